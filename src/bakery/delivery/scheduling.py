"""Delivery scheduling and driver assignment — commands and handler."""

from protean import handle
from protean.exceptions import ObjectNotFoundError
from protean.fields import Boolean, DateTime, Float, Identifier, String
from protean.utils.globals import current_domain

from bakery.delivery.delivery import Delivery, DeliveryAddress, DeliveryPriority
from bakery.domain import bakery, logger
from bakery.shared.errors import NotFoundError, ValidationError
from bakery.shared.roles import ActorRole


@bakery.command(part_of="Delivery")
class ScheduleDelivery:
    order_id = Identifier(required=True)
    customer_id = Identifier(required=True)
    street = String(required=True, max_length=255)
    city = String(required=True, max_length=100)
    postal_code = String(max_length=20)
    latitude = Float()
    longitude = Float()
    instructions = String(max_length=500)
    delivery_fee = Float(default=0.0)
    priority = String(max_length=10, choices=DeliveryPriority)
    is_urgent = Boolean(default=False)
    estimated_ready = DateTime()
    window_start = DateTime()
    window_end = DateTime()


@bakery.command(part_of="Delivery")
class AssignDriver:
    delivery_id = Identifier(required=True)
    driver_id = String(required=True, max_length=100)
    driver_role = String(max_length=20, choices=ActorRole, default=ActorRole.DRIVER.value)


@bakery.command(part_of="Delivery")
class UpdateDeliveryAddress:
    delivery_id = Identifier(required=True)
    street = String(required=True, max_length=255)
    city = String(required=True, max_length=100)
    postal_code = String(max_length=20)
    latitude = Float()
    longitude = Float()
    instructions = String(max_length=500)


def delivery_for(delivery_id) -> Delivery:
    try:
        return current_domain.repository_for(Delivery).get(delivery_id)
    except ObjectNotFoundError as exc:
        raise NotFoundError("Delivery", delivery_id) from exc


def address_from(command) -> DeliveryAddress:
    return DeliveryAddress(
        street=command.street,
        city=command.city,
        postal_code=command.postal_code,
        latitude=command.latitude,
        longitude=command.longitude,
        instructions=command.instructions,
    )


@bakery.command_handler(part_of=Delivery)
class DeliverySchedulingHandler:
    @handle(ScheduleDelivery)
    def schedule_delivery(self, command):
        repo = current_domain.repository_for(Delivery)
        if repo.find_by_order(command.order_id) is not None:
            raise ValidationError({"order_id": [f"A delivery already exists for order {command.order_id}"]})

        delivery = Delivery.create(
            order_id=command.order_id,
            customer_id=command.customer_id,
            address=address_from(command),
            delivery_fee=command.delivery_fee or 0.0,
            estimated_ready=command.estimated_ready,
            is_urgent=command.is_urgent,
            priority=command.priority,
            window_start=command.window_start,
            window_end=command.window_end,
        )
        repo.add(delivery)
        logger.info(
            "Delivery scheduled",
            delivery_id=str(delivery.id),
            order_id=str(command.order_id),
            distance_km=delivery.distance,
            estimated_delivery=delivery.estimated_delivery.isoformat() if delivery.estimated_delivery else None,
        )
        return delivery

    @handle(AssignDriver)
    def assign_driver(self, command):
        delivery = delivery_for(command.delivery_id)
        delivery.assign_driver(driver_id=command.driver_id, driver_role=command.driver_role)
        current_domain.repository_for(Delivery).add(delivery)
        logger.info("Driver assigned", delivery_id=str(delivery.id), driver_id=command.driver_id)
        return delivery

    @handle(UpdateDeliveryAddress)
    def update_address(self, command):
        delivery = delivery_for(command.delivery_id)
        delivery.change_address(address_from(command))
        current_domain.repository_for(Delivery).add(delivery)
        return delivery
