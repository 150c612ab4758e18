"""Repository for the LoyaltyAccount aggregate."""

from bakery.domain import bakery
from bakery.loyalty.account import LoyaltyAccount


@bakery.repository(part_of=LoyaltyAccount)
class LoyaltyAccountRepository:
    def find_by_customer(self, customer_id) -> LoyaltyAccount | None:
        return self._dao.query.filter(customer_id=str(customer_id)).all().first

    def get_or_open_for(self, customer_id) -> LoyaltyAccount:
        """Accounts are opened lazily by whichever path first touches them."""
        return self.find_by_customer(customer_id) or LoyaltyAccount.open(customer_id)
