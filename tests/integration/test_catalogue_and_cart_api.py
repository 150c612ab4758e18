"""Integration tests for product and cart endpoints via TestClient."""


class TestProductAPI:
    def test_add_and_read(self, client, product_id):
        response = client.get(f"/products/{product_id}")
        assert response.status_code == 200
        body = response.json()
        assert body["name"] == "Pastel de Nata"
        assert body["is_available_now"] is True

    def test_unknown_product_is_404(self, client):
        assert client.get("/products/prod-404").status_code == 404

    def test_negative_price_is_rejected_by_schema(self, client):
        response = client.post("/products", json={"name": "Free bread", "price": -1})
        assert response.status_code == 422

    def test_unknown_weekday_is_400(self, client):
        response = client.post("/products", json={"name": "Broa", "price": 2.0, "available_days": ["funday"]})
        assert response.status_code == 400

    def test_change_price(self, client, product_id):
        response = client.put(f"/products/{product_id}/price", json={"price": 3.8})
        assert response.status_code == 200
        assert response.json()["price"] == 3.8


class TestCartAPI:
    def test_add_item_returns_cart_with_totals(self, client, product_id):
        response = client.post(
            "/carts/cust-api-001/items",
            json={
                "product_id": product_id,
                "quantity": 2,
                "customizations": [{"name": "Filling", "value": "Custard", "additional_cost": 0.5}],
            },
        )
        assert response.status_code == 201
        totals = response.json()["totals"]
        assert totals["subtotal"] == 7.5
        assert totals["payable"] == 9.23

    def test_missing_cart_is_404(self, client):
        assert client.get("/carts/nobody").status_code == 404

    def test_quantity_ceiling_is_400(self, client, product_id):
        response = client.post("/carts/cust-api-001/items", json={"product_id": product_id, "quantity": 51})
        assert response.status_code == 400

    def test_delivery_without_address_is_400(self, client, filled_cart):
        response = client.put(f"/carts/{filled_cart}/delivery", json={"type": "delivery"})
        assert response.status_code == 400

    def test_delivery_fee_applied(self, client, filled_cart):
        response = client.put(
            f"/carts/{filled_cart}/delivery",
            json={"type": "delivery", "street": "Rua Augusta 1", "city": "Lisboa"},
        )
        assert response.status_code == 200
        assert response.json()["totals"]["delivery_fee"] == 2.5

    def test_discount_code(self, client, filled_cart):
        response = client.put(f"/carts/{filled_cart}/discount", json={"code": "WELCOME10"})
        assert response.status_code == 200
        # capped at the 7.00 subtotal
        assert response.json()["discount"] == 7.0

    def test_validation_report(self, client, filled_cart, product_id):
        assert client.get(f"/carts/{filled_cart}/validation").json() == {"valid": True, "errors": []}

        client.put(f"/products/{product_id}/availability", json={"is_available": False})
        report = client.get(f"/carts/{filled_cart}/validation").json()
        assert report["valid"] is False

    def test_remove_item(self, client, filled_cart, product_id):
        response = client.delete(f"/carts/{filled_cart}/items/{product_id}")
        assert response.status_code == 200
        assert response.json()["items"] == []
