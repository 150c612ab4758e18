"""Delivery progress, completion and failure — commands and handler.

Dispatch, completion and failure raise events that the order lifecycle
reacts to, so the order follows its delivery without being touched here.
"""

from protean import handle
from protean.fields import Identifier, String
from protean.utils.globals import current_domain

from bakery.delivery.delivery import Delivery
from bakery.delivery.scheduling import delivery_for
from bakery.domain import bakery, logger


@bakery.command(part_of="Delivery")
class RecordPickup:
    delivery_id = Identifier(required=True)
    actor_id = String(max_length=100)
    note = String(max_length=500)


@bakery.command(part_of="Delivery")
class DispatchDelivery:
    delivery_id = Identifier(required=True)
    actor_id = String(max_length=100)
    note = String(max_length=500)


@bakery.command(part_of="Delivery")
class CompleteDelivery:
    delivery_id = Identifier(required=True)
    actor_id = String(max_length=100)
    notes = String(max_length=1000)


@bakery.command(part_of="Delivery")
class FailDelivery:
    delivery_id = Identifier(required=True)
    reason = String(required=True, max_length=500)
    actor_id = String(max_length=100)


@bakery.command(part_of="Delivery")
class CancelDelivery:
    delivery_id = Identifier(required=True)
    reason = String(max_length=500)
    actor_id = String(max_length=100)


@bakery.command_handler(part_of=Delivery)
class DeliveryProgressHandler:
    @handle(RecordPickup)
    def record_pickup(self, command):
        delivery = delivery_for(command.delivery_id)
        delivery.mark_picked_up(actor_id=command.actor_id, note=command.note)
        current_domain.repository_for(Delivery).add(delivery)
        return delivery

    @handle(DispatchDelivery)
    def dispatch(self, command):
        delivery = delivery_for(command.delivery_id)
        delivery.mark_out_for_delivery(actor_id=command.actor_id, note=command.note)
        current_domain.repository_for(Delivery).add(delivery)
        return delivery

    @handle(CompleteDelivery)
    def complete(self, command):
        delivery = delivery_for(command.delivery_id)
        delivery.complete(notes=command.notes, actor_id=command.actor_id)
        current_domain.repository_for(Delivery).add(delivery)
        logger.info(
            "Delivery completed",
            delivery_id=str(delivery.id),
            order_id=str(delivery.order_id),
            delay_minutes=delivery.calculate_delay(),
        )
        return delivery

    @handle(FailDelivery)
    def fail(self, command):
        delivery = delivery_for(command.delivery_id)
        delivery.fail(reason=command.reason, actor_id=command.actor_id)
        current_domain.repository_for(Delivery).add(delivery)
        logger.warning("Delivery failed", delivery_id=str(delivery.id), reason=command.reason)
        return delivery

    @handle(CancelDelivery)
    def cancel(self, command):
        delivery = delivery_for(command.delivery_id)
        delivery.cancel(reason=command.reason, actor_id=command.actor_id)
        current_domain.repository_for(Delivery).add(delivery)
        return delivery
