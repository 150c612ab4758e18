"""Delivery domain events.

``DeliveryDispatched``, ``DeliveryCompleted`` and ``DeliveryFailed`` drive
the matching order transitions; the rest are informational.
"""

from protean.fields import DateTime, Float, Identifier, Integer, String

from bakery.domain import bakery


@bakery.event(part_of="Delivery")
class DeliveryScheduled:
    __version__ = 1

    delivery_id = Identifier(required=True)
    order_id = Identifier(required=True)
    customer_id = Identifier(required=True)
    distance = Float()
    estimated_duration = Integer()
    estimated_delivery = DateTime()
    scheduled_at = DateTime(required=True)


@bakery.event(part_of="Delivery")
class DriverAssigned:
    __version__ = 1

    delivery_id = Identifier(required=True)
    order_id = Identifier(required=True)
    driver_id = String(required=True)
    previous_driver_id = String()
    assigned_at = DateTime(required=True)


@bakery.event(part_of="Delivery")
class DeliveryPickedUp:
    __version__ = 1

    delivery_id = Identifier(required=True)
    order_id = Identifier(required=True)
    driver_id = String()
    picked_up_at = DateTime(required=True)


@bakery.event(part_of="Delivery")
class DeliveryDispatched:
    """The driver left with the order. The order moves to ``out_for_delivery``."""

    __version__ = 1

    delivery_id = Identifier(required=True)
    order_id = Identifier(required=True)
    driver_id = String()
    estimated_delivery = DateTime()
    dispatched_at = DateTime(required=True)


@bakery.event(part_of="Delivery")
class DriverLocationUpdated:
    __version__ = 1

    delivery_id = Identifier(required=True)
    driver_id = String(required=True)
    latitude = Float(required=True)
    longitude = Float(required=True)
    accuracy = Float()
    recorded_at = DateTime(required=True)


@bakery.event(part_of="Delivery")
class DeliveryCompleted:
    """Handed over to the customer. The order moves to ``delivered``."""

    __version__ = 1

    delivery_id = Identifier(required=True)
    order_id = Identifier(required=True)
    driver_id = String()
    actual_duration = Integer()
    delay_minutes = Integer()
    completed_at = DateTime(required=True)


@bakery.event(part_of="Delivery")
class DeliveryFailed:
    """The delivery could not be made. The order moves to ``failed``."""

    __version__ = 1

    delivery_id = Identifier(required=True)
    order_id = Identifier(required=True)
    reason = String()
    failed_at = DateTime(required=True)


@bakery.event(part_of="Delivery")
class DeliveryCancelled:
    __version__ = 1

    delivery_id = Identifier(required=True)
    order_id = Identifier(required=True)
    reason = String()
    cancelled_at = DateTime(required=True)


@bakery.event(part_of="Delivery")
class DeliveryAddressChanged:
    __version__ = 1

    delivery_id = Identifier(required=True)
    order_id = Identifier(required=True)
    distance = Float()
    estimated_delivery = DateTime()
    changed_at = DateTime(required=True)
