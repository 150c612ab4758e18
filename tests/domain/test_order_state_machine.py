"""Order status machine: legal transitions, role policy and stamped timestamps."""

import pytest
from bakery.cart.cart import ShoppingCart
from bakery.catalogue.product import Product
from bakery.order.events import OrderCancelled, OrderConfirmed, OrderDelivered, OrderFailed, OrderStatusChanged
from bakery.order.order import TERMINAL_STATUSES, Order, OrderStatus
from bakery.shared.errors import IllegalTransitionError
from bakery.shared.preferences import DeliveryPreference
from protean.exceptions import ValidationError

ADDRESS = {"street": "Rua Augusta 1", "city": "Lisboa", "latitude": 38.71, "longitude": -9.137}


def _order(delivery_type="pickup"):
    product = Product.add(name="Broa", price=2.0)
    cart = ShoppingCart.create(customer_id="cust-001")
    cart.add_item(product.id, 1, product.price, product_name=product.name)
    if delivery_type == "delivery":
        cart.set_delivery(DeliveryPreference(type="delivery", **ADDRESS))
    else:
        cart.set_delivery(DeliveryPreference(type=delivery_type))
    order = Order.place(cart, {str(product.id): product}, "SP240315001", "240315", 1)
    order._events.clear()
    return order


def _walk(order, *statuses, role="staff"):
    for status in statuses:
        order.update_status(status, actor_role=role)


class TestLegalTransitions:
    def test_delivery_happy_path(self):
        order = _order("delivery")
        _walk(order, "confirmed", "preparing", "ready", "out_for_delivery", "delivered")

        assert order.status == "delivered"
        assert order.is_terminal
        assert [h.status for h in order.history()] == [
            "pending",
            "confirmed",
            "preparing",
            "ready",
            "out_for_delivery",
            "delivered",
        ]
        assert order.actual_ready is not None
        assert order.actual_delivery is not None

    def test_pickup_is_collected_from_ready(self):
        order = _order("pickup")
        _walk(order, "confirmed", "preparing", "ready", "delivered")
        assert order.status == "delivered"

    def test_pickup_never_goes_out_for_delivery(self):
        order = _order("pickup")
        _walk(order, "confirmed", "preparing", "ready")
        with pytest.raises(IllegalTransitionError):
            order.update_status("out_for_delivery", actor_role="staff")

    def test_cannot_skip_steps(self):
        order = _order("delivery")
        with pytest.raises(IllegalTransitionError) as exc:
            order.update_status("ready", actor_role="staff")
        assert "status" in exc.value.messages
        assert order.status == "pending"

    def test_terminal_states_accept_nothing(self):
        order = _order()
        order.update_status("cancelled", note="Out of flour", actor_role="staff")
        for status in OrderStatus:
            with pytest.raises(IllegalTransitionError):
                order.update_status(status.value, note="again", actor_role="admin")

    def test_failure_only_once_ready(self):
        order = _order("delivery")
        _walk(order, "confirmed")
        with pytest.raises(IllegalTransitionError):
            order.update_status("failed", note="No driver", actor_role="staff")
        _walk(order, "preparing", "ready")
        order.update_status("failed", note="No driver", actor_role="staff")
        assert order.cancellation_reason == "No driver"
        assert isinstance(order._events[-1], OrderFailed)

    def test_unknown_status_is_a_validation_error(self):
        with pytest.raises(ValidationError):
            _order().update_status("baking")

    def test_terminal_set(self):
        assert {s.value for s in TERMINAL_STATUSES} == {"delivered", "cancelled", "refunded", "failed"}


class TestRolePolicy:
    def test_customer_may_cancel_pending_or_confirmed(self):
        order = _order()
        _walk(order, "confirmed")
        order.cancel("Changed my mind", actor_id="cust-001")
        assert order.status == "cancelled"
        assert order.cancellation_reason == "Changed my mind"

    def test_customer_cannot_cancel_once_preparing(self):
        order = _order()
        _walk(order, "confirmed", "preparing")
        with pytest.raises(IllegalTransitionError):
            order.cancel("Too late", actor_id="cust-001")
        assert order.status == "preparing"

    def test_customer_cannot_confirm(self):
        with pytest.raises(IllegalTransitionError):
            _order().update_status("confirmed", actor_role="customer")

    def test_driver_limited_to_delivery_steps(self):
        order = _order("delivery")
        _walk(order, "confirmed", "preparing", "ready")
        order.update_status("out_for_delivery", actor_role="driver")
        with pytest.raises(IllegalTransitionError):
            order.update_status("refunded", note="Nope", actor_role="driver")
        order.update_status("delivered", actor_role="driver")
        assert order.status == "delivered"

    def test_staff_cancellation_needs_a_reason(self):
        with pytest.raises(ValidationError) as exc:
            _order().update_status("cancelled", actor_role="staff")
        assert "note" in exc.value.messages

    def test_admin_can_refund_from_any_open_state(self):
        order = _order("delivery")
        _walk(order, "confirmed", "preparing", "ready", "out_for_delivery")
        order.refund("Damaged in transit", actor_role="admin")
        assert order.status == "refunded"


class TestEvents:
    def test_confirmation_carries_delivery_details(self):
        order = _order("delivery")
        order.confirm()

        changed, confirmed = order._events
        assert isinstance(changed, OrderStatusChanged)
        assert changed.previous_status == "pending"
        assert isinstance(confirmed, OrderConfirmed)
        assert confirmed.delivery_type == "delivery"
        assert confirmed.street == "Rua Augusta 1"
        assert confirmed.delivery_fee == 2.5
        assert order.estimated_ready is not None

    def test_delivered_event_reports_points(self):
        order = _order()
        _walk(order, "confirmed", "preparing", "ready", "delivered")
        delivered = order._events[-1]
        assert isinstance(delivered, OrderDelivered)
        assert delivered.loyalty_points_earned == order.loyalty_points.earned

    def test_cancelled_event(self):
        order = _order()
        order.cancel("Changed my mind", actor_id="cust-001")
        cancelled = order._events[-1]
        assert isinstance(cancelled, OrderCancelled)
        assert cancelled.reason == "Changed my mind"
