"""Order reacts to delivery events.

Dispatch, completion and failure of a delivery move its order to
``out_for_delivery``, ``delivered`` and ``failed`` respectively, and the
delivery's estimated arrival is copied onto the order whenever it changes.
Deliveries scheduled directly for an order this service does not hold are
ignored.
"""

import structlog
from protean.exceptions import ObjectNotFoundError
from protean.utils.globals import current_domain
from protean.utils.mixins import handle

from bakery.delivery.events import (
    DeliveryAddressChanged,
    DeliveryCompleted,
    DeliveryDispatched,
    DeliveryFailed,
    DeliveryScheduled,
)
from bakery.domain import bakery
from bakery.order.delivery_progress import (
    RecordOrderDelivery,
    RecordOrderDispatch,
    RecordOrderEstimate,
    RecordOrderFailure,
)
from bakery.order.order import Order

logger = structlog.get_logger(__name__)


def _known_order(order_id) -> bool:
    try:
        current_domain.repository_for(Order).get(order_id)
    except ObjectNotFoundError:
        logger.warning("Delivery event for an unknown order", order_id=str(order_id))
        return False
    return True


@bakery.event_handler(part_of=Order, stream_category="bakery::delivery")
class DeliveryEventHandler:
    @handle(DeliveryScheduled)
    def on_delivery_scheduled(self, event: DeliveryScheduled) -> None:
        self._record_estimate(event.order_id, event.estimated_delivery)

    @handle(DeliveryAddressChanged)
    def on_delivery_address_changed(self, event: DeliveryAddressChanged) -> None:
        self._record_estimate(event.order_id, event.estimated_delivery)

    @handle(DeliveryDispatched)
    def on_delivery_dispatched(self, event: DeliveryDispatched) -> None:
        if not _known_order(event.order_id):
            return
        logger.info("Recording dispatch on order", order_id=str(event.order_id), driver_id=event.driver_id)
        current_domain.process(
            RecordOrderDispatch(
                order_id=event.order_id,
                driver_id=event.driver_id,
                estimated_delivery=event.estimated_delivery,
            ),
            asynchronous=False,
        )

    @handle(DeliveryCompleted)
    def on_delivery_completed(self, event: DeliveryCompleted) -> None:
        if not _known_order(event.order_id):
            return
        logger.info("Recording delivery on order", order_id=str(event.order_id), delivery_id=str(event.delivery_id))
        current_domain.process(
            RecordOrderDelivery(order_id=event.order_id, driver_id=event.driver_id),
            asynchronous=False,
        )

    @handle(DeliveryFailed)
    def on_delivery_failed(self, event: DeliveryFailed) -> None:
        if not _known_order(event.order_id):
            return
        logger.warning("Recording delivery failure on order", order_id=str(event.order_id), reason=event.reason)
        current_domain.process(
            RecordOrderFailure(order_id=event.order_id, reason=event.reason),
            asynchronous=False,
        )

    def _record_estimate(self, order_id, estimated_delivery) -> None:
        if estimated_delivery is None or not _known_order(order_id):
            return
        current_domain.process(
            RecordOrderEstimate(order_id=order_id, estimated_delivery=estimated_delivery),
            asynchronous=False,
        )
