"""Application tests for checkout — cart to order, numbering and points redemption."""

from datetime import UTC, datetime, timedelta

import pytest
from bakery.cart.cart import ShoppingCart
from bakery.cart.management import SetCartPayment
from bakery.catalogue.management import SetProductAvailability, UpdateProductStock
from bakery.config import get_settings
from bakery.loyalty.account import LoyaltyAccount
from bakery.order.checkout import checkout
from bakery.order.numbering import day_key
from bakery.order.order import Order
from bakery.shared.errors import InsufficientPointsError, UnavailableItemsError
from protean import current_domain
from protean.exceptions import ValidationError


def _account(customer_id="cust-001"):
    return current_domain.repository_for(LoyaltyAccount).find_by_customer(customer_id)


def _expire_cart(customer_id="cust-001"):
    repo = current_domain.repository_for(ShoppingCart)
    cart = repo.find_by_customer(customer_id)
    cart.expires_at = datetime.now(UTC) - timedelta(hours=1)
    repo.add(cart)


class TestPlaceOrder:
    def test_order_is_persisted_and_cart_emptied(self, fill_cart):
        fill_cart(quantity=2)
        order = checkout("cust-001", customer_notes="Ring twice")

        stored = current_domain.repository_for(Order).get(order.id)
        assert stored.status == "pending"
        assert stored.customer_notes == "Ring twice"
        assert stored.payment.amount == 20.0
        assert stored.payment.final_amount == 24.6

        cart = current_domain.repository_for(ShoppingCart).find_by_customer("cust-001")
        assert cart.is_empty()

    def test_checkout_does_not_touch_stock(self, add_product, fill_cart):
        product = add_product(stock_quantity=5)
        fill_cart(product=product, quantity=2)
        checkout("cust-001")
        assert current_domain.repository_for(type(product)).get(product.id).stock_quantity == 5

    def test_empty_cart(self):
        with pytest.raises(ValidationError) as exc:
            checkout("cust-001")
        assert exc.value.messages == {"cart": ["Cart is empty"]}

    def test_expired_cart_is_treated_as_empty(self, fill_cart):
        fill_cart(quantity=2)
        _expire_cart()
        with pytest.raises(ValidationError) as exc:
            checkout("cust-001")
        assert exc.value.messages == {"cart": ["Cart is empty"]}

    def test_choosing_payment_on_an_expired_cart_does_not_revive_its_lines(self, fill_cart):
        fill_cart(quantity=2)
        _expire_cart()

        current_domain.process(SetCartPayment(customer_id="cust-001", method="cash"), asynchronous=False)

        cart = current_domain.repository_for(ShoppingCart).find_by_customer("cust-001")
        assert cart.is_empty()
        assert not cart.is_expired()
        with pytest.raises(ValidationError) as exc:
            checkout("cust-001")
        assert exc.value.messages == {"cart": ["Cart is empty"]}
        assert current_domain.repository_for(Order).for_customer("cust-001") == []

    def test_unavailable_product_blocks_checkout(self, fill_cart):
        product = fill_cart()
        current_domain.process(SetProductAvailability(product_id=product.id, is_available=False), asynchronous=False)
        with pytest.raises(UnavailableItemsError):
            checkout("cust-001")
        assert current_domain.repository_for(ShoppingCart).find_by_customer("cust-001").items

    def test_stock_shortfall_blocks_checkout(self, fill_cart):
        product = fill_cart(quantity=3)
        current_domain.process(UpdateProductStock(product_id=product.id, stock_quantity=2), asynchronous=False)
        with pytest.raises(UnavailableItemsError):
            checkout("cust-001")


class TestOrderNumbers:
    def test_same_day_checkouts_get_consecutive_numbers(self, fill_cart):
        placed_at = datetime.now(UTC)
        fill_cart(customer_id="cust-001")
        fill_cart(customer_id="cust-002")

        first = checkout("cust-001", placed_at=placed_at)
        second = checkout("cust-002", placed_at=placed_at)

        prefix = f"{get_settings().ORDER_NUMBER_PREFIX}{day_key(placed_at)}"
        assert first.order_number == f"{prefix}001"
        assert second.order_number == f"{prefix}002"

    def test_numbers_are_unique_across_many_checkouts(self, fill_cart):
        numbers = set()
        for n in range(5):
            fill_cart(customer_id=f"cust-{n}")
            numbers.add(checkout(f"cust-{n}").order_number)
        assert len(numbers) == 5

    def test_concurrent_checkouts_get_distinct_consecutive_numbers(self, fill_cart, race):
        placed_at = datetime.now(UTC)
        customers = [f"cust-{n}" for n in range(6)]
        for customer_id in customers:
            fill_cart(customer_id=customer_id)

        orders, errors = race(*(lambda c=c: checkout(c, placed_at=placed_at) for c in customers))

        assert errors == []
        prefix = f"{get_settings().ORDER_NUMBER_PREFIX}{day_key(placed_at)}"
        assert sorted(o.order_number for o in orders) == [f"{prefix}{n:03d}" for n in range(1, 7)]


class TestLoyaltyAtCheckout:
    def test_points_are_redeemed_in_the_same_unit_of_work(self, fill_cart, award_bonus):
        award_bonus(amount=150)
        fill_cart(points=100)

        order = checkout("cust-001")

        account = _account()
        assert account.points.current == 50
        assert account.points.used == 100
        assert order.loyalty_points.used == 100
        assert order.loyalty_points.tier == "bronze"

    def test_points_beyond_balance_fail_without_side_effects(self, fill_cart, award_bonus):
        award_bonus(amount=150)
        fill_cart(points=200)

        with pytest.raises(InsufficientPointsError):
            checkout("cust-001")

        assert _account().points.current == 150
        assert current_domain.repository_for(ShoppingCart).find_by_customer("cust-001").items
        assert current_domain.repository_for(Order).for_customer("cust-001") == []

    def test_second_order_cannot_spend_the_same_points(self, add_product, fill_cart, award_bonus):
        award_bonus(amount=150)
        product = add_product()
        fill_cart(product=product, points=100)
        checkout("cust-001")

        fill_cart(product=product, points=100)
        with pytest.raises(InsufficientPointsError):
            checkout("cust-001")

    def test_silver_customers_get_free_delivery(self, fill_cart, award_bonus):
        award_bonus(amount=250)
        fill_cart(delivery=True)
        order = checkout("cust-001")
        assert order.payment.delivery_fee == 0.0
        assert order.loyalty_points.tier == "silver"

    def test_points_are_not_credited_at_checkout(self, fill_cart):
        fill_cart()
        order = checkout("cust-001")
        assert order.loyalty_points.earned > 0
        assert _account() is None
