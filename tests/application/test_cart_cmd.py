"""Application tests for cart commands and pre-checkout validation."""

import pytest
from bakery.cart.cart import ShoppingCart
from bakery.cart.items import AddToCart, RemoveFromCart, UpdateCartQuantity
from bakery.cart.management import ApplyCartDiscount, ClearCart
from bakery.cart.validation import validate_cart
from bakery.catalogue.management import SetProductAvailability
from bakery.shared.errors import NotFoundError
from protean import current_domain
from protean.exceptions import ObjectNotFoundError, ValidationError


def _cart(customer_id="cust-001"):
    return current_domain.repository_for(ShoppingCart).find_by_customer(customer_id)


class TestAddToCart:
    def test_first_add_creates_the_cart(self, fill_cart):
        fill_cart(quantity=2)
        cart = _cart()
        assert cart is not None
        assert cart.items[0].quantity == 2
        assert cart.totals.subtotal == 20.0

    def test_price_comes_from_catalogue(self, add_product):
        product = add_product(price=3.5)
        current_domain.process(
            AddToCart(customer_id="cust-001", product_id=product.id, quantity=1),
            asynchronous=False,
        )
        assert _cart().items[0].unit_price == 3.5
        assert _cart().items[0].product_name == "Pastel de Nata"

    def test_customizations_are_priced(self, fill_cart):
        fill_cart(quantity=2, customizations=[{"name": "Filling", "value": "Custard", "additional_cost": 0.5}])
        assert _cart().totals.subtotal == 20.5

    def test_unknown_product(self):
        with pytest.raises(ObjectNotFoundError):
            current_domain.process(
                AddToCart(customer_id="cust-001", product_id="prod-404", quantity=1),
                asynchronous=False,
            )

    def test_one_cart_per_customer(self, fill_cart):
        fill_cart()
        fill_cart()
        assert len(current_domain.repository_for(ShoppingCart)._dao.query.all().items) == 1


class TestChangeCart:
    def test_update_and_remove(self, fill_cart):
        product = fill_cart(quantity=2)
        current_domain.process(
            UpdateCartQuantity(customer_id="cust-001", product_id=product.id, quantity=5),
            asynchronous=False,
        )
        assert _cart().items[0].quantity == 5

        current_domain.process(RemoveFromCart(customer_id="cust-001", product_id=product.id), asynchronous=False)
        assert _cart().is_empty()

    def test_changing_a_missing_cart(self):
        with pytest.raises(NotFoundError):
            current_domain.process(ClearCart(customer_id="nobody"), asynchronous=False)

    def test_discount_code(self, fill_cart):
        fill_cart(quantity=3)
        current_domain.process(ApplyCartDiscount(customer_id="cust-001", code="welcome10"), asynchronous=False)
        cart = _cart()
        assert cart.discount == 10.0
        assert cart.discount_code == "WELCOME10"

    def test_discount_needs_code_or_amount(self, fill_cart):
        fill_cart()
        with pytest.raises(ValidationError):
            current_domain.process(ApplyCartDiscount(customer_id="cust-001"), asynchronous=False)

    def test_clear(self, fill_cart):
        fill_cart()
        current_domain.process(ClearCart(customer_id="cust-001"), asynchronous=False)
        assert _cart().is_empty()
        assert _cart().totals.payable == 0.0


class TestValidateCart:
    def test_valid_cart(self, fill_cart):
        fill_cart()
        assert validate_cart(_cart()) == {"valid": True, "errors": []}

    def test_reports_unavailable_products(self, fill_cart):
        product = fill_cart()
        current_domain.process(SetProductAvailability(product_id=product.id, is_available=False), asynchronous=False)
        report = validate_cart(_cart())
        assert report["valid"] is False
        assert report["errors"] == ["Pastel de Nata is not available right now"]

    def test_reports_quantity_bounds(self, add_product, fill_cart):
        product = add_product(min_order_quantity=6)
        fill_cart(product=product, quantity=2)
        report = validate_cart(_cart())
        assert "Pastel de Nata: minimum order quantity is 6" in report["errors"]
