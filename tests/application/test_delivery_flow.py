"""Application tests for the order ↔ delivery ↔ loyalty reactions.

Covers:
- confirming a delivery order schedules exactly one delivery
- dispatch and completion of the delivery move the order forward
- a delivered order credits its points once
- a delivery whose order is unknown still completes
- cancelling an order returns redeemed points and calls off the delivery
"""

from datetime import UTC, datetime

from bakery.delivery.completion import CompleteDelivery, DispatchDelivery, FailDelivery, RecordPickup
from bakery.delivery.delivery import Delivery
from bakery.delivery.order_events import DeliveryOrderEventHandler
from bakery.delivery.scheduling import AssignDriver, ScheduleDelivery
from bakery.delivery.tracking import UpdateDriverLocation
from bakery.loyalty.account import LoyaltyAccount, TransactionKind
from bakery.loyalty.order_events import LoyaltyOrderEventHandler
from bakery.order.checkout import checkout
from bakery.order.events import OrderCancelled, OrderConfirmed, OrderDelivered
from bakery.order.order import Order
from bakery.order.status import CancelOrder, UpdateOrderStatus
from bakery.shared.clock import ensure_utc
from protean import current_domain


def _confirmed_delivery_order(fill_cart, points=0):
    fill_cart(delivery=True, points=points)
    order = checkout("cust-001")
    current_domain.process(
        UpdateOrderStatus(order_id=order.id, status="confirmed", actor_id="staff-1"),
        asynchronous=False,
    )
    return current_domain.repository_for(Order).get(order.id)


def _delivery_of(order) -> Delivery:
    return current_domain.repository_for(Delivery).find_by_order(order.id)


def _deliveries():
    return current_domain.repository_for(Delivery)._dao.query.all().items


def _on_the_road(order):
    delivery = _delivery_of(order)
    current_domain.process(AssignDriver(delivery_id=delivery.id, driver_id="drv-1"), asynchronous=False)
    current_domain.process(
        UpdateDriverLocation(delivery_id=delivery.id, driver_id="drv-1", latitude=38.72, longitude=-9.14),
        asynchronous=False,
    )
    current_domain.process(RecordPickup(delivery_id=delivery.id, actor_id="drv-1"), asynchronous=False)
    return delivery


def _stored(order):
    return current_domain.repository_for(Order).get(order.id)


def _confirmed_event(order):
    return OrderConfirmed(
        order_id=order.id,
        order_number=order.order_number,
        customer_id=order.customer_id,
        delivery_type="delivery",
        street="Rua Augusta 100",
        city="Lisboa",
        confirmed_at=datetime.now(UTC),
    )


class TestDeliveryScheduling:
    def test_confirmation_schedules_a_delivery(self, fill_cart):
        order = _confirmed_delivery_order(fill_cart)
        delivery = _delivery_of(order)

        assert delivery is not None
        assert delivery.status == "pending"
        assert delivery.delivery_fee == order.payment.delivery_fee
        assert delivery.distance is not None

    def test_order_carries_the_delivery_estimate(self, fill_cart):
        order = _confirmed_delivery_order(fill_cart)
        delivery = _delivery_of(order)

        assert delivery.estimated_delivery is not None
        assert ensure_utc(order.estimated_delivery) == ensure_utc(delivery.estimated_delivery)

    def test_redelivered_confirmation_is_ignored(self, fill_cart):
        order = _confirmed_delivery_order(fill_cart)
        DeliveryOrderEventHandler().on_order_confirmed(_confirmed_event(order))
        assert len(_deliveries()) == 1

    def test_pickup_orders_get_no_delivery(self, fill_cart):
        fill_cart()
        order = checkout("cust-001")
        current_domain.process(UpdateOrderStatus(order_id=order.id, status="confirmed"), asynchronous=False)
        assert _deliveries() == []


class TestDeliveryProgress:
    def test_dispatch_walks_order_out_for_delivery(self, fill_cart):
        order = _confirmed_delivery_order(fill_cart)
        delivery = _on_the_road(order)

        current_domain.process(DispatchDelivery(delivery_id=delivery.id), asynchronous=False)

        stored = _stored(order)
        assert stored.status == "out_for_delivery"
        assert [h.status for h in stored.history()][-3:] == ["preparing", "ready", "out_for_delivery"]

    def test_dispatch_restamps_the_order_estimate(self, fill_cart):
        order = _confirmed_delivery_order(fill_cart)
        delivery = _on_the_road(order)

        current_domain.process(DispatchDelivery(delivery_id=delivery.id), asynchronous=False)

        dispatched = _delivery_of(order)
        assert ensure_utc(_stored(order).estimated_delivery) == ensure_utc(dispatched.estimated_delivery)

    def test_completion_delivers_order_and_credits_points(self, fill_cart):
        order = _confirmed_delivery_order(fill_cart)
        delivery = _on_the_road(order)
        current_domain.process(DispatchDelivery(delivery_id=delivery.id), asynchronous=False)

        current_domain.process(CompleteDelivery(delivery_id=delivery.id, notes="Handed over"), asynchronous=False)

        stored = _stored(order)
        assert stored.status == "delivered"
        assert stored.actual_delivery is not None
        account = current_domain.repository_for(LoyaltyAccount).find_by_customer("cust-001")
        assert account.current_points == stored.loyalty_points.earned
        assert account.has_transaction_for(order.id, TransactionKind.EARNED)

    def test_points_are_credited_once(self, fill_cart):
        order = _confirmed_delivery_order(fill_cart)
        delivery = _on_the_road(order)
        current_domain.process(DispatchDelivery(delivery_id=delivery.id), asynchronous=False)
        current_domain.process(CompleteDelivery(delivery_id=delivery.id), asynchronous=False)
        stored = _stored(order)

        LoyaltyOrderEventHandler().on_order_delivered(
            OrderDelivered(
                order_id=stored.id,
                order_number=stored.order_number,
                customer_id=stored.customer_id,
                final_amount=stored.payment.final_amount,
                loyalty_points_earned=stored.loyalty_points.earned,
                delivered_at=datetime.now(UTC),
            )
        )

        account = current_domain.repository_for(LoyaltyAccount).find_by_customer("cust-001")
        assert account.current_points == stored.loyalty_points.earned

    def test_failed_delivery_fails_the_order(self, fill_cart):
        order = _confirmed_delivery_order(fill_cart)
        delivery = _on_the_road(order)
        current_domain.process(DispatchDelivery(delivery_id=delivery.id), asynchronous=False)

        current_domain.process(FailDelivery(delivery_id=delivery.id, reason="Nobody home"), asynchronous=False)

        stored = _stored(order)
        assert stored.status == "failed"
        assert stored.cancellation_reason == "Nobody home"

    def test_failure_before_the_order_is_ready_is_noted(self, fill_cart):
        order = _confirmed_delivery_order(fill_cart)
        delivery = _delivery_of(order)

        current_domain.process(FailDelivery(delivery_id=delivery.id, reason="Van broke down"), asynchronous=False)

        stored = _stored(order)
        assert stored.status == "confirmed"
        assert "Delivery failed while order was confirmed: Van broke down" in stored.staff_notes

    def test_delivery_for_an_unknown_order_still_completes(self):
        delivery = current_domain.process(
            ScheduleDelivery(order_id="ord-unknown", customer_id="cust-001", street="Rua Augusta 100", city="Lisboa"),
            asynchronous=False,
        )
        current_domain.process(AssignDriver(delivery_id=delivery.id, driver_id="drv-1"), asynchronous=False)
        current_domain.process(RecordPickup(delivery_id=delivery.id, actor_id="drv-1"), asynchronous=False)
        current_domain.process(DispatchDelivery(delivery_id=delivery.id), asynchronous=False)

        current_domain.process(CompleteDelivery(delivery_id=delivery.id), asynchronous=False)

        assert current_domain.repository_for(Delivery).get(delivery.id).status == "delivered"


class TestCancellationReactions:
    def test_cancel_returns_points_and_calls_off_delivery(self, fill_cart, award_bonus):
        award_bonus(amount=150)
        order = _confirmed_delivery_order(fill_cart, points=100)
        repo = current_domain.repository_for(LoyaltyAccount)
        assert repo.find_by_customer("cust-001").current_points == 50

        current_domain.process(
            CancelOrder(order_id=order.id, customer_id="cust-001", reason="Plans changed"),
            asynchronous=False,
        )

        assert repo.find_by_customer("cust-001").current_points == 150
        assert _delivery_of(order).status == "cancelled"

    def test_points_are_returned_once(self, fill_cart, award_bonus):
        award_bonus(amount=150)
        order = _confirmed_delivery_order(fill_cart, points=100)
        current_domain.process(CancelOrder(order_id=order.id, customer_id="cust-001"), asynchronous=False)

        LoyaltyOrderEventHandler().on_order_cancelled(
            OrderCancelled(
                order_id=order.id,
                order_number=order.order_number,
                customer_id=order.customer_id,
                reason="Redelivered",
                loyalty_points_used=100,
                cancelled_at=datetime.now(UTC),
            )
        )

        account = current_domain.repository_for(LoyaltyAccount).find_by_customer("cust-001")
        assert account.current_points == 150
        assert len([t for t in account.transactions if t.kind == "adjustment"]) == 1
