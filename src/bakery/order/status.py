"""Order status and payment changes — commands and handler.

Every transition carries the acting user and their role. The order checks
that the transition exists in its table before checking that the role may
make it, so an impossible move is reported as such regardless of who asked.
"""

from protean import handle
from protean.exceptions import ObjectNotFoundError
from protean.fields import Identifier, String
from protean.utils.globals import current_domain

from bakery.domain import bakery, logger
from bakery.order.order import Order, OrderStatus, PaymentStatus
from bakery.shared.errors import NotFoundError
from bakery.shared.roles import ActorRole


@bakery.command(part_of="Order")
class UpdateOrderStatus:
    order_id = Identifier(required=True)
    status = String(required=True, choices=OrderStatus)
    note = String(max_length=500)
    actor_id = String(max_length=100)
    actor_role = String(max_length=20, choices=ActorRole, default=ActorRole.STAFF.value)


@bakery.command(part_of="Order")
class CancelOrder:
    """A customer withdrawing their own order."""

    order_id = Identifier(required=True)
    customer_id = Identifier(required=True)
    reason = String(max_length=500)


@bakery.command(part_of="Order")
class ForceCancelOrder:
    """Staff cancelling an order at any non-terminal stage."""

    order_id = Identifier(required=True)
    reason = String(required=True, max_length=500)
    actor_id = String(max_length=100)
    actor_role = String(max_length=20, choices=ActorRole, default=ActorRole.STAFF.value)


@bakery.command(part_of="Order")
class RefundOrder:
    order_id = Identifier(required=True)
    reason = String(required=True, max_length=500)
    actor_id = String(max_length=100)
    actor_role = String(max_length=20, choices=ActorRole, default=ActorRole.STAFF.value)


@bakery.command(part_of="Order")
class RecordPayment:
    order_id = Identifier(required=True)
    status = String(required=True, choices=PaymentStatus)
    transaction_id = String(max_length=255)


def order_for(order_id) -> Order:
    try:
        return current_domain.repository_for(Order).get(order_id)
    except ObjectNotFoundError as exc:
        raise NotFoundError("Order", order_id) from exc


@bakery.command_handler(part_of=Order)
class OrderStatusHandler:
    @handle(UpdateOrderStatus)
    def update_status(self, command):
        order = order_for(command.order_id)
        previous = order.status
        order.update_status(
            new_status=command.status,
            note=command.note,
            actor_id=command.actor_id,
            actor_role=command.actor_role,
        )
        current_domain.repository_for(Order).add(order)
        logger.info(
            "Order status updated",
            order_id=str(order.id),
            order_number=order.order_number,
            previous_status=previous,
            new_status=order.status,
            actor_role=command.actor_role,
        )
        return order

    @handle(CancelOrder)
    def cancel_order(self, command):
        order = order_for(command.order_id)
        if str(order.customer_id) != str(command.customer_id):
            # Another customer's order is reported as missing
            raise NotFoundError("Order", command.order_id)
        order.cancel(
            reason=command.reason or "Cancelled by customer",
            actor_id=str(command.customer_id),
            actor_role=ActorRole.CUSTOMER.value,
        )
        current_domain.repository_for(Order).add(order)
        logger.info("Order cancelled by customer", order_id=str(order.id), order_number=order.order_number)
        return order

    @handle(ForceCancelOrder)
    def force_cancel_order(self, command):
        order = order_for(command.order_id)
        order.cancel(reason=command.reason, actor_id=command.actor_id, actor_role=command.actor_role)
        current_domain.repository_for(Order).add(order)
        logger.info(
            "Order cancelled by staff",
            order_id=str(order.id),
            order_number=order.order_number,
            reason=command.reason,
        )
        return order

    @handle(RefundOrder)
    def refund_order(self, command):
        order = order_for(command.order_id)
        order.refund(reason=command.reason, actor_id=command.actor_id, actor_role=command.actor_role)
        current_domain.repository_for(Order).add(order)
        logger.info(
            "Order refunded",
            order_id=str(order.id),
            order_number=order.order_number,
            amount=order.payment.final_amount,
        )
        return order

    @handle(RecordPayment)
    def record_payment(self, command):
        order = order_for(command.order_id)
        order.record_payment(status=command.status, transaction_id=command.transaction_id)
        current_domain.repository_for(Order).add(order)
        return order
