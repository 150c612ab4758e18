"""Cart item management — commands and handler.

Carts are addressed by customer: a customer has exactly one cart, which the
first ``AddToCart`` creates. Prices come from the catalogue, never from the
caller.
"""

import json

from protean import handle
from protean.fields import Identifier, Integer, String, Text
from protean.utils.globals import current_domain

from bakery.cart.cart import ShoppingCart
from bakery.catalogue.product import Product
from bakery.domain import bakery, logger
from bakery.shared.errors import NotFoundError


@bakery.command(part_of="ShoppingCart")
class AddToCart:
    customer_id = Identifier(required=True)
    product_id = Identifier(required=True)
    quantity = Integer(required=True)
    special_instructions = String(max_length=500)
    customizations = Text()  # JSON list of {name, value, additional_cost}


@bakery.command(part_of="ShoppingCart")
class UpdateCartQuantity:
    customer_id = Identifier(required=True)
    product_id = Identifier(required=True)
    quantity = Integer(required=True)


@bakery.command(part_of="ShoppingCart")
class RemoveFromCart:
    customer_id = Identifier(required=True)
    product_id = Identifier(required=True)


def existing_cart(customer_id) -> ShoppingCart:
    cart = current_domain.repository_for(ShoppingCart).find_by_customer(customer_id)
    if cart is None:
        raise NotFoundError("ShoppingCart", customer_id)
    return cart


@bakery.command_handler(part_of=ShoppingCart)
class ManageCartItemsHandler:
    @handle(AddToCart)
    def add_to_cart(self, command):
        product = current_domain.repository_for(Product).get(command.product_id)

        repo = current_domain.repository_for(ShoppingCart)
        cart = repo.get_or_create_for(command.customer_id)
        cart.add_item(
            product_id=command.product_id,
            product_name=product.name,
            quantity=command.quantity,
            unit_price=product.price,
            special_instructions=command.special_instructions,
            customizations=json.loads(command.customizations) if command.customizations else None,
        )
        repo.add(cart)
        logger.debug(
            "Item added to cart",
            cart_id=str(cart.id),
            product_id=str(command.product_id),
            quantity=command.quantity,
        )
        return cart

    @handle(UpdateCartQuantity)
    def update_cart_quantity(self, command):
        cart = existing_cart(command.customer_id)
        cart.update_item_quantity(product_id=command.product_id, quantity=command.quantity)
        current_domain.repository_for(ShoppingCart).add(cart)
        return cart

    @handle(RemoveFromCart)
    def remove_from_cart(self, command):
        cart = existing_cart(command.customer_id)
        cart.remove_item(product_id=command.product_id)
        current_domain.repository_for(ShoppingCart).add(cart)
        return cart
