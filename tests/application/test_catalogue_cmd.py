"""Application tests for catalogue maintenance commands."""

import json

from bakery.catalogue.management import ChangeProductPrice, SetProductAvailability, UpdateProductStock
from bakery.catalogue.product import Product
from protean import current_domain


class TestAddProduct:
    def test_product_persists(self, add_product):
        product = add_product(name="Broa de Milho", price=2.4, available_days=json.dumps(["saturday"]))
        stored = current_domain.repository_for(Product).get(product.id)
        assert stored.name == "Broa de Milho"
        assert json.loads(stored.available_days) == ["saturday"]


class TestProductChanges:
    def test_change_price(self, add_product):
        product = add_product()
        current_domain.process(ChangeProductPrice(product_id=product.id, price=11.5), asynchronous=False)
        assert current_domain.repository_for(Product).get(product.id).price == 11.5

    def test_update_stock(self, add_product):
        product = add_product()
        current_domain.process(UpdateProductStock(product_id=product.id, stock_quantity=12), asynchronous=False)
        assert current_domain.repository_for(Product).get(product.id).stock_quantity == 12

    def test_withdraw_from_sale(self, add_product):
        product = add_product()
        current_domain.process(SetProductAvailability(product_id=product.id, is_available=False), asynchronous=False)
        assert current_domain.repository_for(Product).get(product.id).is_available is False
