"""Product aggregate — the read-mostly catalogue consulted at checkout.

Only the parts of a product that the ordering core depends on live here:
its current price, whether it can be sold right now (availability flag,
weekdays and opening hours), and how much stock is left.
"""

import json
from datetime import UTC, datetime, time

from protean import invariant
from protean.exceptions import ValidationError
from protean.fields import Boolean, DateTime, Float, Integer, String, Text

from bakery.catalogue.events import ProductAdded, ProductAvailabilityChanged, ProductPriceChanged, ProductStockUpdated
from bakery.domain import bakery

UNLIMITED_STOCK = -1

WEEKDAYS = ["monday", "tuesday", "wednesday", "thursday", "friday", "saturday", "sunday"]


def _parse_hhmm(value: str | None) -> time | None:
    if not value:
        return None
    hours, minutes = value.split(":")
    return time(int(hours), int(minutes))


@bakery.aggregate
class Product:
    name: String(required=True, max_length=200)
    category: String(max_length=50)
    price: Float(required=True, min_value=0.0)
    is_available: Boolean(default=True)
    available_days: Text()  # JSON list of weekday names; empty means every day
    available_from: String(max_length=5)  # "HH:MM"
    available_until: String(max_length=5)  # "HH:MM"
    stock_quantity: Integer(default=UNLIMITED_STOCK, min_value=UNLIMITED_STOCK)
    min_order_quantity: Integer(default=1, min_value=1)
    max_order_quantity: Integer(default=50, min_value=1)
    created_at: DateTime()
    updated_at: DateTime()

    @invariant.post
    def order_quantity_bounds_must_be_ordered(self):
        if (self.min_order_quantity or 1) > (self.max_order_quantity or 1):
            raise ValidationError({"min_order_quantity": ["Minimum order quantity cannot exceed the maximum"]})

    @classmethod
    def add(
        cls,
        name,
        price,
        category=None,
        available_days=None,
        available_from=None,
        available_until=None,
        stock_quantity=UNLIMITED_STOCK,
        min_order_quantity=1,
        max_order_quantity=50,
    ):
        days = [d.lower() for d in (available_days or [])]
        unknown = [d for d in days if d not in WEEKDAYS]
        if unknown:
            raise ValidationError({"available_days": [f"Unknown weekday(s): {', '.join(unknown)}"]})
        for label, value in (("available_from", available_from), ("available_until", available_until)):
            try:
                _parse_hhmm(value)
            except ValueError as exc:
                raise ValidationError({label: ["Expected a time formatted as HH:MM"]}) from exc

        now = datetime.now(UTC)
        product = cls(
            name=name,
            price=price,
            category=category,
            available_days=json.dumps(days),
            available_from=available_from,
            available_until=available_until,
            stock_quantity=stock_quantity,
            min_order_quantity=min_order_quantity,
            max_order_quantity=max_order_quantity,
            created_at=now,
            updated_at=now,
        )
        product.raise_(
            ProductAdded(
                product_id=str(product.id),
                name=name,
                price=price,
                category=category,
                stock_quantity=stock_quantity,
            )
        )
        return product

    # -------------------------------------------------------------------
    # Queries used by carts and checkout
    # -------------------------------------------------------------------
    @property
    def has_unlimited_stock(self) -> bool:
        return self.stock_quantity == UNLIMITED_STOCK

    def has_stock_for(self, quantity: int) -> bool:
        return self.has_unlimited_stock or self.stock_quantity >= quantity

    def is_available_now(self, at: datetime | None = None) -> bool:
        """True when the product is on sale, in stock and inside its weekday/hour window."""
        if not self.is_available:
            return False
        if not self.has_unlimited_stock and self.stock_quantity <= 0:
            return False

        at = at or datetime.now(UTC)
        days = json.loads(self.available_days) if self.available_days else []
        if days and WEEKDAYS[at.weekday()] not in days:
            return False

        opens = _parse_hhmm(self.available_from)
        closes = _parse_hhmm(self.available_until)
        now = at.time()
        if opens and now < opens:
            return False
        if closes and now > closes:
            return False
        return True

    # -------------------------------------------------------------------
    # Mutations
    # -------------------------------------------------------------------
    def change_price(self, new_price: float) -> None:
        if new_price is None or new_price < 0:
            raise ValidationError({"price": ["Price must be zero or positive"]})
        previous = self.price
        self.price = new_price
        self.updated_at = datetime.now(UTC)
        self.raise_(ProductPriceChanged(product_id=str(self.id), previous_price=previous, new_price=new_price))

    def update_stock(self, stock_quantity: int) -> None:
        if stock_quantity < UNLIMITED_STOCK:
            raise ValidationError({"stock_quantity": ["Stock must be -1 (unlimited) or a non-negative count"]})
        self.stock_quantity = stock_quantity
        self.updated_at = datetime.now(UTC)
        self.raise_(ProductStockUpdated(product_id=str(self.id), stock_quantity=stock_quantity))

    def set_availability(self, is_available: bool) -> None:
        self.is_available = is_available
        self.updated_at = datetime.now(UTC)
        self.raise_(ProductAvailabilityChanged(product_id=str(self.id), is_available=is_available))
