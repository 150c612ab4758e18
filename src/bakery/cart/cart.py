"""Shopping Cart aggregate — the mutable basket a customer fills before checkout.

Each customer owns at most one cart. It is created lazily on the first add,
kept alive for a fixed time after its last change, and emptied when it is
checked out or cleared. Totals are derived data: every mutating method ends
by recomputing them, and an invariant rejects any state in which the stored
totals disagree with the lines they were computed from.
"""

import json
from datetime import UTC, datetime, timedelta

from protean import atomic_change, invariant
from protean.exceptions import ValidationError
from protean.fields import DateTime, Float, HasMany, Identifier, Integer, String, Text, ValueObject

from bakery.cart.events import (
    CartCleared,
    CartDeliveryChosen,
    CartDiscountApplied,
    CartExpired,
    CartItemAdded,
    CartItemQuantityUpdated,
    CartItemRemoved,
    CartPaymentChosen,
)
from bakery.config import get_settings
from bakery.domain import bakery
from bakery.shared.errors import NotFoundError
from bakery.shared.money import ZERO, as_float, compute_totals, line_total, points_to_money, to_decimal
from bakery.shared.preferences import DeliveryPreference, DeliveryType, PaymentPreference
from bakery.shared.pricing import PriceBreakdown


def customization_cost_of(customizations: list[dict] | None) -> float:
    """Sum of ``additional_cost`` over a list of customization choices."""
    total = sum((to_decimal(c.get("additional_cost", 0)) for c in customizations or []), ZERO)
    return as_float(total)


# ---------------------------------------------------------------------------
# Entities
# ---------------------------------------------------------------------------
@bakery.entity(part_of="ShoppingCart")
class CartItem:
    product_id = Identifier(required=True)
    product_name = String(max_length=200)
    quantity = Integer(required=True, min_value=1)
    unit_price = Float(required=True, min_value=0.0)
    customizations = Text()  # JSON list of {name, value, additional_cost}
    customization_cost = Float(default=0.0, min_value=0.0)
    special_instructions = String(max_length=500)
    position = Integer(default=0)
    added_at = DateTime()

    @property
    def line_total(self):
        return line_total(self.quantity, self.unit_price, self.customization_cost)

    @property
    def customization_list(self) -> list[dict]:
        return json.loads(self.customizations) if self.customizations else []


# ---------------------------------------------------------------------------
# Aggregate Root
# ---------------------------------------------------------------------------
@bakery.aggregate
class ShoppingCart:
    customer_id = Identifier(required=True, unique=True)
    items = HasMany(CartItem)
    delivery = ValueObject(DeliveryPreference)
    payment = ValueObject(PaymentPreference)
    discount = Float(default=0.0, min_value=0.0)
    discount_code = String(max_length=50)
    totals = ValueObject(PriceBreakdown)
    created_at = DateTime()
    updated_at = DateTime()
    expires_at = DateTime()

    @invariant.post
    def totals_must_reflect_lines(self):
        if self.totals is None:
            return
        subtotal = sum((item.line_total for item in self.items), ZERO)
        if abs(subtotal - to_decimal(self.totals.subtotal)) > to_decimal("0.000001"):
            raise ValidationError({"totals": ["Cart totals are out of date"]})

    @invariant.post
    def quantity_must_stay_under_ceiling(self):
        if self.item_count() > get_settings().MAX_CART_ITEMS:
            raise ValidationError({"items": [f"A cart cannot hold more than {get_settings().MAX_CART_ITEMS} items"]})

    # -------------------------------------------------------------------
    # Factory
    # -------------------------------------------------------------------
    @classmethod
    def create(cls, customer_id):
        now = datetime.now(UTC)
        return cls(
            customer_id=customer_id,
            delivery=DeliveryPreference(type=DeliveryType.PICKUP.value),
            payment=PaymentPreference(),
            totals=PriceBreakdown(),
            created_at=now,
            updated_at=now,
            expires_at=now + timedelta(hours=get_settings().CART_TTL_HOURS),
        )

    # -------------------------------------------------------------------
    # Queries
    # -------------------------------------------------------------------
    def ordered_items(self) -> list[CartItem]:
        return sorted(self.items, key=lambda i: i.position or 0)

    def find_item(self, product_id) -> CartItem | None:
        return next((i for i in self.items if str(i.product_id) == str(product_id)), None)

    def item_count(self) -> int:
        return sum(i.quantity for i in self.items)

    def is_empty(self) -> bool:
        return not self.items

    def is_expired(self, now: datetime | None = None) -> bool:
        now = now or datetime.now(UTC)
        return self.expires_at is not None and now > self.expires_at

    # -------------------------------------------------------------------
    # Internal helpers
    # -------------------------------------------------------------------
    def _delivery_fee(self):
        if self.delivery and self.delivery.is_delivery and self.items:
            return to_decimal(get_settings().DELIVERY_FEE)
        return ZERO

    def _recalculate_totals(self) -> None:
        settings = get_settings()
        subtotal = sum((item.line_total for item in self.items), ZERO)
        points = self.payment.loyalty_points_used if self.payment else 0
        totals = compute_totals(
            subtotal,
            delivery_fee=self._delivery_fee(),
            discount=self.discount,
            loyalty_discount=points_to_money(points, settings.POINT_VALUE),
            tax_rate=settings.TAX_RATE,
        )
        self.totals = PriceBreakdown.from_totals(totals)

    def _touch(self, now: datetime) -> None:
        self.updated_at = now
        self.expires_at = now + timedelta(hours=get_settings().CART_TTL_HOURS)

    def _empty(self) -> None:
        for item in list(self.items):
            self.remove_items(item)
        self.discount = 0.0
        self.discount_code = None
        if self.payment and self.payment.loyalty_points_used:
            self.payment = PaymentPreference(method=self.payment.method, loyalty_points_used=0)

    def _reset_if_expired(self, now: datetime) -> None:
        if not self.is_expired(now) or self.is_empty():
            return
        with atomic_change(self):
            self._empty()
            self._recalculate_totals()
        self.raise_(CartExpired(cart_id=str(self.id), customer_id=str(self.customer_id), expired_at=self.expires_at))

    # -------------------------------------------------------------------
    # Item management
    # -------------------------------------------------------------------
    def add_item(
        self,
        product_id,
        quantity: int,
        unit_price: float,
        product_name: str | None = None,
        special_instructions: str | None = None,
        customizations: list[dict] | None = None,
    ) -> CartItem:
        """Add a product, or increase its quantity if it is already in the cart.

        An existing line keeps its position; its instructions and customizations
        are replaced by the new ones, not merged.
        """
        settings = get_settings()
        if quantity is None or quantity <= 0:
            raise ValidationError({"quantity": ["Quantity must be at least 1"]})
        if unit_price is None or unit_price < 0:
            raise ValidationError({"unit_price": ["Unit price cannot be negative"]})

        now = datetime.now(UTC)
        self._reset_if_expired(now)

        existing = self.find_item(product_id)
        line_quantity = quantity + (existing.quantity if existing else 0)
        if line_quantity > settings.MAX_ITEM_QUANTITY:
            raise ValidationError(
                {"quantity": [f"At most {settings.MAX_ITEM_QUANTITY} units of a product can be ordered"]}
            )
        if self.item_count() + quantity > settings.MAX_CART_ITEMS:
            raise ValidationError({"items": [f"A cart cannot hold more than {settings.MAX_CART_ITEMS} items"]})

        with atomic_change(self):
            if existing:
                existing.quantity = line_quantity
                existing.special_instructions = special_instructions
                existing.customizations = json.dumps(customizations or [])
                existing.customization_cost = customization_cost_of(customizations)
                item = existing
            else:
                item = CartItem(
                    product_id=product_id,
                    product_name=product_name,
                    quantity=quantity,
                    unit_price=unit_price,
                    customizations=json.dumps(customizations or []),
                    customization_cost=customization_cost_of(customizations),
                    special_instructions=special_instructions,
                    position=max((i.position or 0 for i in self.items), default=0) + 1,
                    added_at=now,
                )
                self.add_items(item)
            self._touch(now)
            self._recalculate_totals()

        self.raise_(
            CartItemAdded(
                cart_id=str(self.id),
                customer_id=str(self.customer_id),
                product_id=str(product_id),
                quantity_added=quantity,
                line_quantity=line_quantity,
                unit_price=item.unit_price,
            )
        )
        return item

    def update_item_quantity(self, product_id, quantity: int) -> None:
        """Set a line's quantity; zero or less removes the line."""
        if quantity is None or quantity <= 0:
            self.remove_item(product_id)
            return

        now = datetime.now(UTC)
        self._reset_if_expired(now)

        settings = get_settings()
        item = self.find_item(product_id)
        if item is None:
            raise NotFoundError("CartItem", product_id)
        if quantity > settings.MAX_ITEM_QUANTITY:
            raise ValidationError(
                {"quantity": [f"At most {settings.MAX_ITEM_QUANTITY} units of a product can be ordered"]}
            )
        if self.item_count() - item.quantity + quantity > settings.MAX_CART_ITEMS:
            raise ValidationError({"items": [f"A cart cannot hold more than {settings.MAX_CART_ITEMS} items"]})

        previous = item.quantity
        with atomic_change(self):
            item.quantity = quantity
            self._touch(now)
            self._recalculate_totals()

        self.raise_(
            CartItemQuantityUpdated(
                cart_id=str(self.id),
                product_id=str(product_id),
                previous_quantity=previous,
                new_quantity=quantity,
            )
        )

    def remove_item(self, product_id) -> None:
        now = datetime.now(UTC)
        self._reset_if_expired(now)

        item = self.find_item(product_id)
        if item is None:
            raise NotFoundError("CartItem", product_id)

        with atomic_change(self):
            self.remove_items(item)
            self._touch(now)
            self._recalculate_totals()

        self.raise_(CartItemRemoved(cart_id=str(self.id), product_id=str(product_id)))

    def clear(self, reason: str = "cleared") -> None:
        """Empty the cart. Delivery and payment method choices are kept."""
        now = datetime.now(UTC)
        with atomic_change(self):
            self._empty()
            self._touch(now)
            self._recalculate_totals()

        self.raise_(
            CartCleared(
                cart_id=str(self.id),
                customer_id=str(self.customer_id),
                reason=reason,
                cleared_at=now,
            )
        )

    # -------------------------------------------------------------------
    # Delivery, payment and discounts
    # -------------------------------------------------------------------
    def set_delivery(self, delivery: DeliveryPreference) -> None:
        now = datetime.now(UTC)
        self._reset_if_expired(now)
        with atomic_change(self):
            self.delivery = delivery
            self._touch(now)
            self._recalculate_totals()

        self.raise_(
            CartDeliveryChosen(
                cart_id=str(self.id),
                delivery_type=delivery.type,
                delivery_fee=self.totals.delivery_fee,
            )
        )

    def set_payment(self, method: str, loyalty_points_used: int = 0) -> None:
        if loyalty_points_used is not None and loyalty_points_used < 0:
            raise ValidationError({"loyalty_points_used": ["Points used cannot be negative"]})

        now = datetime.now(UTC)
        self._reset_if_expired(now)
        with atomic_change(self):
            self.payment = PaymentPreference(method=method, loyalty_points_used=max(0, loyalty_points_used or 0))
            self._touch(now)
            self._recalculate_totals()

        self.raise_(
            CartPaymentChosen(
                cart_id=str(self.id),
                method=method,
                loyalty_points_used=self.payment.loyalty_points_used,
            )
        )

    def apply_discount(self, amount: float, code: str | None = None) -> None:
        """Apply a fixed discount, capped at the current subtotal."""
        if amount is None or amount < 0:
            raise ValidationError({"discount": ["Discount cannot be negative"]})

        now = datetime.now(UTC)
        self._reset_if_expired(now)
        applied = min(to_decimal(amount), to_decimal(self.totals.subtotal if self.totals else 0))
        with atomic_change(self):
            self.discount = as_float(applied)
            self.discount_code = code
            self._touch(now)
            self._recalculate_totals()

        self.raise_(
            CartDiscountApplied(
                cart_id=str(self.id),
                code=code,
                requested_amount=amount,
                applied_amount=self.discount,
            )
        )

    def apply_discount_code(self, code: str) -> None:
        codes = get_settings().DISCOUNT_CODES
        normalized = (code or "").strip().upper()
        if normalized not in codes:
            raise ValidationError({"discount_code": [f"Unknown discount code {code!r}"]})
        self.apply_discount(codes[normalized], code=normalized)

    def renew_expiration(self) -> None:
        """Push the expiry forward. A cart that has already expired is emptied first."""
        now = datetime.now(UTC)
        self._reset_if_expired(now)
        with atomic_change(self):
            self._touch(now)
