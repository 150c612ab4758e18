"""Repository for the ShoppingCart aggregate."""

from bakery.cart.cart import ShoppingCart
from bakery.domain import bakery


@bakery.repository(part_of=ShoppingCart)
class ShoppingCartRepository:
    def find_by_customer(self, customer_id) -> ShoppingCart | None:
        """The customer's cart, or None if they have never added anything."""
        return self._dao.query.filter(customer_id=str(customer_id)).all().first

    def get_or_create_for(self, customer_id) -> ShoppingCart:
        return self.find_by_customer(customer_id) or ShoppingCart.create(customer_id=customer_id)
