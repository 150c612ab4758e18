"""Currency arithmetic.

Amounts are persisted as floats but every calculation runs on ``Decimal``.
Intermediate results (tax, for instance) keep full precision; only the
amount a customer actually pays is rounded, half-up, to cents.
"""

from decimal import ROUND_FLOOR, ROUND_HALF_UP, Decimal
from typing import NamedTuple

CENT = Decimal("0.01")
ZERO = Decimal("0")


def to_decimal(value) -> Decimal:
    """Convert an int, float, str or Decimal into a Decimal without binary noise."""
    if value is None:
        return ZERO
    if isinstance(value, Decimal):
        return value
    if isinstance(value, float):
        return Decimal(repr(value))
    return Decimal(value)


def round_money(value) -> Decimal:
    """Round to cents, half-up (9.225 becomes 9.23)."""
    return to_decimal(value).quantize(CENT, rounding=ROUND_HALF_UP)


def as_float(value) -> float:
    """Decimal to the float stored on aggregates."""
    return float(to_decimal(value))


def compute_tax(subtotal, rate) -> Decimal:
    return to_decimal(subtotal) * to_decimal(rate)


def percentage_of(amount, percentage) -> Decimal:
    """``percentage`` is a fraction: 0.10 means ten percent."""
    return to_decimal(amount) * to_decimal(percentage)


def points_to_money(points: int, point_value) -> Decimal:
    return to_decimal(points or 0) * to_decimal(point_value)


def points_for_amount(amount, points_per_unit) -> int:
    """Whole loyalty points earned for spending ``amount``."""
    earned = (to_decimal(amount) * to_decimal(points_per_unit)).to_integral_value(rounding=ROUND_FLOOR)
    return max(0, int(earned))


def line_total(quantity: int, unit_price, customization_cost=0) -> Decimal:
    """``quantity × unit_price + customization_cost`` for one cart or order line."""
    return to_decimal(quantity) * to_decimal(unit_price) + to_decimal(customization_cost)


class Totals(NamedTuple):
    subtotal: Decimal
    delivery_fee: Decimal
    tax: Decimal
    discount: Decimal
    loyalty_discount: Decimal
    total: Decimal
    payable: Decimal


def compute_totals(subtotal, delivery_fee=0, discount=0, loyalty_discount=0, tax_rate=0) -> Totals:
    """Single source of the totals formula used by carts and orders.

    ``total = max(0, subtotal + delivery_fee + tax - discount - loyalty_discount)``
    where ``tax = subtotal × tax_rate``. ``payable`` is ``total`` rounded to cents.
    """
    subtotal = to_decimal(subtotal)
    delivery_fee = to_decimal(delivery_fee)
    discount = to_decimal(discount)
    loyalty_discount = to_decimal(loyalty_discount)
    tax = compute_tax(subtotal, tax_rate)

    total = max(ZERO, subtotal + delivery_fee + tax - discount - loyalty_discount)
    return Totals(
        subtotal=subtotal,
        delivery_fee=delivery_fee,
        tax=tax,
        discount=discount,
        loyalty_discount=loyalty_discount,
        total=total,
        payable=round_money(total),
    )
