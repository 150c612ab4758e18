"""Repository for the Order aggregate."""

from bakery.domain import bakery
from bakery.order.order import Order


@bakery.repository(part_of=Order)
class OrderRepository:
    def highest_daily_sequence(self, day: str) -> int:
        """Largest sequence already allocated on ``day`` (YYMMDD), 0 if none."""
        latest = self._dao.query.filter(placed_on=day).order_by("-daily_sequence").limit(1).all().first
        return latest.daily_sequence if latest else 0

    def find_by_number(self, order_number: str) -> Order | None:
        return self._dao.query.filter(order_number=order_number).all().first

    def for_customer(self, customer_id) -> list[Order]:
        return self._dao.query.filter(customer_id=str(customer_id)).order_by("-placed_at").all().items
