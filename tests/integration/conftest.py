import pytest
from bakery.api import (
    add_exception_handlers,
    cart_router,
    delivery_router,
    loyalty_router,
    order_router,
    product_router,
)
from fastapi import FastAPI
from fastapi.testclient import TestClient


@pytest.fixture()
def client():
    app = FastAPI()
    for router in (product_router, cart_router, order_router, loyalty_router, delivery_router):
        app.include_router(router)
    add_exception_handlers(app)
    return TestClient(app)


@pytest.fixture()
def product_id(client):
    response = client.post("/products", json={"name": "Pastel de Nata", "price": 3.5, "category": "pastry"})
    assert response.status_code == 201
    return response.json()["id"]


@pytest.fixture()
def filled_cart(client, product_id):
    """cust-api-001's cart holding two units of the product."""
    response = client.post("/carts/cust-api-001/items", json={"product_id": product_id, "quantity": 2})
    assert response.status_code == 201
    return "cust-api-001"
