"""Cart-level settings — delivery, payment, discounts and clearing."""

from protean import handle
from protean.exceptions import ValidationError
from protean.fields import DateTime, Float, Identifier, Integer, String
from protean.utils.globals import current_domain

from bakery.cart.cart import ShoppingCart
from bakery.cart.items import existing_cart
from bakery.domain import bakery
from bakery.shared.preferences import DeliveryPreference, DeliveryType, PaymentMethod, PreferredTime


@bakery.command(part_of="ShoppingCart")
class ClearCart:
    customer_id = Identifier(required=True)


@bakery.command(part_of="ShoppingCart")
class SetCartDelivery:
    customer_id = Identifier(required=True)
    type = String(required=True, choices=DeliveryType)
    street = String(max_length=255)
    city = String(max_length=100)
    postal_code = String(max_length=20)
    latitude = Float()
    longitude = Float()
    instructions = String(max_length=500)
    preferred_time = String(choices=PreferredTime, default=PreferredTime.ASAP.value)
    specific_time = DateTime()


@bakery.command(part_of="ShoppingCart")
class SetCartPayment:
    customer_id = Identifier(required=True)
    method = String(required=True, choices=PaymentMethod)
    loyalty_points_used = Integer(default=0)


@bakery.command(part_of="ShoppingCart")
class ApplyCartDiscount:
    customer_id = Identifier(required=True)
    code = String(max_length=50)
    amount = Float()


@bakery.command_handler(part_of=ShoppingCart)
class ManageCartHandler:
    @handle(ClearCart)
    def clear_cart(self, command):
        cart = existing_cart(command.customer_id)
        cart.clear()
        current_domain.repository_for(ShoppingCart).add(cart)
        return cart

    @handle(SetCartDelivery)
    def set_delivery(self, command):
        cart = existing_cart(command.customer_id)
        cart.set_delivery(
            DeliveryPreference(
                type=command.type,
                street=command.street,
                city=command.city,
                postal_code=command.postal_code,
                latitude=command.latitude,
                longitude=command.longitude,
                instructions=command.instructions,
                preferred_time=command.preferred_time,
                specific_time=command.specific_time,
            )
        )
        current_domain.repository_for(ShoppingCart).add(cart)
        return cart

    @handle(SetCartPayment)
    def set_payment(self, command):
        cart = existing_cart(command.customer_id)
        cart.set_payment(method=command.method, loyalty_points_used=command.loyalty_points_used)
        current_domain.repository_for(ShoppingCart).add(cart)
        return cart

    @handle(ApplyCartDiscount)
    def apply_discount(self, command):
        cart = existing_cart(command.customer_id)
        if command.code:
            cart.apply_discount_code(command.code)
        elif command.amount is not None:
            cart.apply_discount(command.amount)
        else:
            raise ValidationError({"discount": ["Provide a discount code or an amount"]})
        current_domain.repository_for(ShoppingCart).add(cart)
        return cart
