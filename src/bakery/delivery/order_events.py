"""Delivery reacts to order events.

A confirmed delivery order gets its delivery scheduled; a cancelled or
refunded order calls off a delivery that has not finished yet. Both
reactions are idempotent, so a redelivered event changes nothing.
"""

import structlog
from protean.utils.globals import current_domain
from protean.utils.mixins import handle

from bakery.delivery.delivery import Delivery, DeliveryAddress
from bakery.domain import bakery
from bakery.order.events import OrderCancelled, OrderConfirmed, OrderRefunded
from bakery.shared.preferences import DeliveryType

logger = structlog.get_logger(__name__)


@bakery.event_handler(part_of=Delivery, stream_category="bakery::order")
class DeliveryOrderEventHandler:
    """Keeps deliveries in step with the orders they belong to."""

    @handle(OrderConfirmed)
    def on_order_confirmed(self, event: OrderConfirmed) -> None:
        if event.delivery_type != DeliveryType.DELIVERY.value:
            return

        repo = current_domain.repository_for(Delivery)
        if repo.find_by_order(event.order_id) is not None:
            logger.debug("Delivery already scheduled", order_id=str(event.order_id))
            return

        delivery = Delivery.create(
            order_id=event.order_id,
            customer_id=event.customer_id,
            address=DeliveryAddress(
                street=event.street,
                city=event.city,
                postal_code=event.postal_code,
                latitude=event.latitude,
                longitude=event.longitude,
                instructions=event.instructions,
            ),
            delivery_fee=event.delivery_fee or 0.0,
            estimated_ready=event.estimated_ready,
            is_urgent=bool(event.is_urgent),
        )
        repo.add(delivery)
        logger.info(
            "Delivery scheduled for confirmed order",
            delivery_id=str(delivery.id),
            order_id=str(event.order_id),
            order_number=event.order_number,
        )

    def _call_off(self, order_id, reason: str) -> None:
        repo = current_domain.repository_for(Delivery)
        delivery = repo.find_by_order(order_id)
        if delivery is None or delivery.is_terminal:
            return
        delivery.cancel(reason=reason, actor_id="system")
        repo.add(delivery)
        logger.info("Delivery cancelled with its order", delivery_id=str(delivery.id), order_id=str(order_id))

    @handle(OrderCancelled)
    def on_order_cancelled(self, event: OrderCancelled) -> None:
        self._call_off(event.order_id, f"Order cancelled: {event.reason or 'no reason given'}")

    @handle(OrderRefunded)
    def on_order_refunded(self, event: OrderRefunded) -> None:
        self._call_off(event.order_id, f"Order refunded: {event.reason or 'no reason given'}")
