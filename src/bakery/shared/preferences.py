"""How a customer wants an order handed over and paid for.

Chosen on the cart and copied verbatim into the order at checkout.
"""

from enum import Enum

from protean import invariant
from protean.exceptions import ValidationError
from protean.fields import DateTime, Float, Integer, String

from bakery.domain import bakery


class DeliveryType(Enum):
    DELIVERY = "delivery"
    PICKUP = "pickup"
    DINE_IN = "dine-in"


class PreferredTime(Enum):
    ASAP = "asap"
    SPECIFIC = "specific"


class PaymentMethod(Enum):
    CARD = "card"
    CASH = "cash"
    MBWAY = "mbway"
    TRANSFER = "transfer"
    PAYPAL = "paypal"


@bakery.value_object
class DeliveryPreference:
    type = String(max_length=10, choices=DeliveryType, default=DeliveryType.PICKUP.value)
    street = String(max_length=255)
    city = String(max_length=100)
    postal_code = String(max_length=20)
    latitude = Float(min_value=-90.0, max_value=90.0)
    longitude = Float(min_value=-180.0, max_value=180.0)
    instructions = String(max_length=500)
    preferred_time = String(max_length=10, choices=PreferredTime, default=PreferredTime.ASAP.value)
    specific_time = DateTime()

    @invariant.post
    def delivery_needs_an_address(self):
        if self.type == DeliveryType.DELIVERY.value and not (self.street and self.city):
            raise ValidationError({"delivery": ["Delivery orders need a street and city"]})

    @invariant.post
    def specific_time_must_be_given(self):
        if self.preferred_time == PreferredTime.SPECIFIC.value and self.specific_time is None:
            raise ValidationError({"specific_time": ["A specific time is required when not ordering ASAP"]})

    @property
    def is_delivery(self) -> bool:
        return self.type == DeliveryType.DELIVERY.value

    @property
    def has_coordinates(self) -> bool:
        return self.latitude is not None and self.longitude is not None


@bakery.value_object
class PaymentPreference:
    method = String(max_length=10, choices=PaymentMethod, default=PaymentMethod.CARD.value)
    loyalty_points_used = Integer(default=0, min_value=0)
