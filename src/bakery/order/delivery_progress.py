"""Order transitions recorded on behalf of the delivery — commands and handler.

The delivery tracker, not a person, moves delivery orders through their last
stages. These commands apply those moves with the ``system`` role and are
idempotent: an order already at (or past) the recorded stage is left alone.
"""

from protean import handle
from protean.fields import DateTime, Identifier, String
from protean.utils.globals import current_domain

from bakery.domain import bakery, logger
from bakery.order.order import Order, OrderStatus
from bakery.order.status import order_for
from bakery.shared.roles import ActorRole

# Stages a delivered order passes through, in order
_DELIVERY_PATH = [
    OrderStatus.CONFIRMED,
    OrderStatus.PREPARING,
    OrderStatus.READY,
    OrderStatus.OUT_FOR_DELIVERY,
    OrderStatus.DELIVERED,
]


@bakery.command(part_of="Order")
class RecordOrderDispatch:
    order_id = Identifier(required=True)
    driver_id = String(max_length=100)
    estimated_delivery = DateTime()


@bakery.command(part_of="Order")
class RecordOrderDelivery:
    order_id = Identifier(required=True)
    driver_id = String(max_length=100)


@bakery.command(part_of="Order")
class RecordOrderEstimate:
    order_id = Identifier(required=True)
    estimated_delivery = DateTime(required=True)


@bakery.command(part_of="Order")
class RecordOrderFailure:
    order_id = Identifier(required=True)
    reason = String(max_length=500)


def _advance_to(order: Order, target: OrderStatus, note: str, actor_id: str | None) -> bool:
    """Walk ``order`` along the delivery path up to ``target``. False when there was nothing to do."""
    current = OrderStatus(order.status)
    if order.is_terminal or current not in _DELIVERY_PATH:
        return False
    start = _DELIVERY_PATH.index(current) + 1
    stop = _DELIVERY_PATH.index(target) + 1
    if start >= stop:
        return False
    for status in _DELIVERY_PATH[start:stop]:
        order.update_status(status.value, note=note, actor_id=actor_id, actor_role=ActorRole.SYSTEM.value)
    return True


@bakery.command_handler(part_of=Order)
class DeliveryProgressHandler:
    @handle(RecordOrderDispatch)
    def record_dispatch(self, command):
        order = order_for(command.order_id)
        changed = _advance_to(order, OrderStatus.OUT_FOR_DELIVERY, "Out for delivery", command.driver_id)
        if command.estimated_delivery and not order.is_terminal:
            order.set_estimated_delivery(command.estimated_delivery)
            changed = True
        if changed:
            current_domain.repository_for(Order).add(order)
        return order

    @handle(RecordOrderEstimate)
    def record_estimate(self, command):
        order = order_for(command.order_id)
        if not order.is_terminal:
            order.set_estimated_delivery(command.estimated_delivery)
            current_domain.repository_for(Order).add(order)
        return order

    @handle(RecordOrderDelivery)
    def record_delivery(self, command):
        order = order_for(command.order_id)
        if _advance_to(order, OrderStatus.DELIVERED, "Delivered to customer", command.driver_id):
            current_domain.repository_for(Order).add(order)
            logger.info("Order delivered", order_id=str(order.id), order_number=order.order_number)
        return order

    @handle(RecordOrderFailure)
    def record_failure(self, command):
        order = order_for(command.order_id)
        if OrderStatus.FAILED not in order.allowed_transitions():
            logger.warning(
                "Delivery failure not applicable to order",
                order_id=str(order.id),
                status=order.status,
            )
            if not order.is_terminal:
                reason = command.reason or "no reason given"
                order.add_staff_note(f"Delivery failed while order was {order.status}: {reason}")
                current_domain.repository_for(Order).add(order)
            return order
        order.update_status(
            OrderStatus.FAILED.value,
            note=command.reason or "Delivery failed",
            actor_role=ActorRole.SYSTEM.value,
        )
        current_domain.repository_for(Order).add(order)
        return order
