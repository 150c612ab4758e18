"""Order domain events — immutable facts about order state changes.

Downstream reactions (delivery scheduling, loyalty credits and refunds) are
driven by these events, so each carries enough data to act on without
reloading the order.
"""

from protean.fields import Boolean, DateTime, Float, Identifier, Integer, String, Text

from bakery.domain import bakery


@bakery.event(part_of="Order")
class OrderPlaced:
    """A cart was checked out into a new order."""

    __version__ = 1

    order_id = Identifier(required=True)
    order_number = String(required=True)
    customer_id = Identifier(required=True)
    delivery_type = String(required=True)
    items = Text(required=True)  # JSON list of line snapshots
    final_amount = Float(required=True)
    loyalty_points_used = Integer(required=True)
    loyalty_points_earned = Integer(required=True)
    placed_at = DateTime(required=True)


@bakery.event(part_of="Order")
class OrderStatusChanged:
    """Any status transition, with the audit details of who made it."""

    __version__ = 1

    order_id = Identifier(required=True)
    order_number = String(required=True)
    previous_status = String(required=True)
    new_status = String(required=True)
    note = String()
    actor_id = String()
    actor_role = String()
    changed_at = DateTime(required=True)


@bakery.event(part_of="Order")
class OrderConfirmed:
    """The bakery accepted the order. Delivery orders get a delivery scheduled."""

    __version__ = 1

    order_id = Identifier(required=True)
    order_number = String(required=True)
    customer_id = Identifier(required=True)
    delivery_type = String(required=True)
    street = String()
    city = String()
    postal_code = String()
    latitude = Float()
    longitude = Float()
    instructions = String()
    delivery_fee = Float()
    is_urgent = Boolean(default=False)
    estimated_ready = DateTime()
    confirmed_at = DateTime(required=True)


@bakery.event(part_of="Order")
class OrderDelivered:
    __version__ = 1

    order_id = Identifier(required=True)
    order_number = String(required=True)
    customer_id = Identifier(required=True)
    final_amount = Float(required=True)
    loyalty_points_earned = Integer(required=True)
    delivered_at = DateTime(required=True)


@bakery.event(part_of="Order")
class OrderCancelled:
    __version__ = 1

    order_id = Identifier(required=True)
    order_number = String(required=True)
    customer_id = Identifier(required=True)
    reason = String()
    loyalty_points_used = Integer(required=True)
    cancelled_at = DateTime(required=True)


@bakery.event(part_of="Order")
class OrderRefunded:
    __version__ = 1

    order_id = Identifier(required=True)
    order_number = String(required=True)
    customer_id = Identifier(required=True)
    reason = String()
    amount = Float(required=True)
    loyalty_points_used = Integer(required=True)
    refunded_at = DateTime(required=True)


@bakery.event(part_of="Order")
class OrderFailed:
    __version__ = 1

    order_id = Identifier(required=True)
    order_number = String(required=True)
    customer_id = Identifier(required=True)
    reason = String()
    failed_at = DateTime(required=True)


@bakery.event(part_of="Order")
class OrderPaymentRecorded:
    __version__ = 1

    order_id = Identifier(required=True)
    payment_status = String(required=True)
    transaction_id = String()
    amount = Float(required=True)
    recorded_at = DateTime(required=True)
