"""PriceBreakdown value object shared by carts, plus the consistency check orders reuse."""

from decimal import Decimal

from protean import invariant
from protean.exceptions import ValidationError
from protean.fields import Float

from bakery.domain import bakery
from bakery.shared.money import ZERO, Totals, as_float, round_money, to_decimal

_TOLERANCE = Decimal("0.000001")


def check_totals(subtotal, delivery_fee, tax, discount, loyalty_discount, total, payable) -> None:
    """Raise unless ``total`` follows the totals formula and ``payable`` is it rounded to cents."""
    expected = max(
        ZERO,
        to_decimal(subtotal)
        + to_decimal(delivery_fee)
        + to_decimal(tax)
        - to_decimal(discount)
        - to_decimal(loyalty_discount),
    )
    if abs(expected - to_decimal(total)) > _TOLERANCE:
        raise ValidationError({"total": [f"Total {total} does not match its components ({expected})"]})
    if round_money(total) != to_decimal(payable):
        raise ValidationError({"payable": ["Payable amount must be the total rounded to cents"]})


@bakery.value_object
class PriceBreakdown:
    """Derived totals of a cart.

    ``total`` keeps full precision, ``payable`` is what the customer is charged.
    Always built from :func:`bakery.shared.money.compute_totals`, never edited
    field by field.
    """

    subtotal = Float(default=0.0, min_value=0.0)
    delivery_fee = Float(default=0.0, min_value=0.0)
    tax = Float(default=0.0, min_value=0.0)
    discount = Float(default=0.0, min_value=0.0)
    loyalty_discount = Float(default=0.0, min_value=0.0)
    total = Float(default=0.0, min_value=0.0)
    payable = Float(default=0.0, min_value=0.0)

    @invariant.post
    def total_must_follow_formula(self):
        check_totals(
            self.subtotal,
            self.delivery_fee,
            self.tax,
            self.discount,
            self.loyalty_discount,
            self.total,
            self.payable,
        )

    @classmethod
    def from_totals(cls, totals: Totals) -> "PriceBreakdown":
        return cls(
            subtotal=as_float(totals.subtotal),
            delivery_fee=as_float(totals.delivery_fee),
            tax=as_float(totals.tax),
            discount=as_float(totals.discount),
            loyalty_discount=as_float(totals.loyalty_discount),
            total=as_float(totals.total),
            payable=as_float(totals.payable),
        )
