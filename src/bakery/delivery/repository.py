"""Repository for the Delivery aggregate."""

from bakery.delivery.delivery import Delivery, DeliveryStatus
from bakery.domain import bakery


@bakery.repository(part_of=Delivery)
class DeliveryRepository:
    def find_by_order(self, order_id) -> Delivery | None:
        return self._dao.query.filter(order_id=str(order_id)).all().first

    def for_driver(self, driver_id) -> list[Delivery]:
        """The driver's deliveries that are still under way."""
        active = [
            status.value
            for status in DeliveryStatus
            if status not in (DeliveryStatus.DELIVERED, DeliveryStatus.FAILED, DeliveryStatus.CANCELLED)
        ]
        return self._dao.query.filter(driver_id=str(driver_id), status__in=active).all().items
