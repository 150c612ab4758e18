"""Catalogue maintenance — commands and handler."""

import json

from protean import handle
from protean.fields import Boolean, Float, Identifier, Integer, String, Text
from protean.utils.globals import current_domain

from bakery.catalogue.product import UNLIMITED_STOCK, Product
from bakery.domain import bakery


@bakery.command(part_of="Product")
class AddProduct:
    name: String(required=True, max_length=200)
    price: Float(required=True, min_value=0.0)
    category: String(max_length=50)
    available_days: Text()  # JSON list of weekday names
    available_from: String(max_length=5)
    available_until: String(max_length=5)
    stock_quantity: Integer(default=UNLIMITED_STOCK)
    min_order_quantity: Integer(default=1)
    max_order_quantity: Integer(default=50)


@bakery.command(part_of="Product")
class ChangeProductPrice:
    product_id: Identifier(required=True)
    price: Float(required=True, min_value=0.0)


@bakery.command(part_of="Product")
class UpdateProductStock:
    product_id: Identifier(required=True)
    stock_quantity: Integer(required=True)


@bakery.command(part_of="Product")
class SetProductAvailability:
    product_id: Identifier(required=True)
    is_available: Boolean(required=True)


@bakery.command_handler(part_of=Product)
class ManageProductsHandler:
    @handle(AddProduct)
    def add_product(self, command):
        product = Product.add(
            name=command.name,
            price=command.price,
            category=command.category,
            available_days=json.loads(command.available_days) if command.available_days else None,
            available_from=command.available_from,
            available_until=command.available_until,
            stock_quantity=command.stock_quantity,
            min_order_quantity=command.min_order_quantity,
            max_order_quantity=command.max_order_quantity,
        )
        current_domain.repository_for(Product).add(product)
        return product

    @handle(ChangeProductPrice)
    def change_price(self, command):
        repo = current_domain.repository_for(Product)
        product = repo.get(command.product_id)
        product.change_price(command.price)
        repo.add(product)
        return product

    @handle(UpdateProductStock)
    def update_stock(self, command):
        repo = current_domain.repository_for(Product)
        product = repo.get(command.product_id)
        product.update_stock(command.stock_quantity)
        repo.add(product)
        return product

    @handle(SetProductAvailability)
    def set_availability(self, command):
        repo = current_domain.repository_for(Product)
        product = repo.get(command.product_id)
        product.set_availability(command.is_available)
        repo.add(product)
        return product
