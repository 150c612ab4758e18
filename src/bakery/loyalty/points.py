"""Points ledger — commands, handler and the serialised redemption entry point.

Staff and system paths credit, debit and correct balances only through these
commands, so the aggregate's ledger methods are the single place the balance
invariant is enforced.
"""

from protean import handle
from protean.exceptions import ExpectedVersionError
from protean.fields import DateTime, Float, Identifier, Integer, String
from protean.utils.globals import current_domain

from bakery.config import get_settings
from bakery.domain import bakery, logger
from bakery.loyalty.account import LoyaltyAccount
from bakery.shared.errors import ConcurrencyConflictError, NotFoundError
from bakery.shared.locks import loyalty_account_locks


@bakery.command(part_of="LoyaltyAccount")
class OpenLoyaltyAccount:
    customer_id = Identifier(required=True)


@bakery.command(part_of="LoyaltyAccount")
class AwardPoints:
    customer_id = Identifier(required=True)
    amount = Integer(required=True)
    description = String(required=True, max_length=500)
    order_id = Identifier()
    order_amount = Float()
    expires_in_days = Integer()


@bakery.command(part_of="LoyaltyAccount")
class AwardBonusPoints:
    customer_id = Identifier(required=True)
    amount = Integer(required=True)
    description = String(required=True, max_length=500)
    expires_in_days = Integer()


@bakery.command(part_of="LoyaltyAccount")
class RedeemPoints:
    customer_id = Identifier(required=True)
    amount = Integer(required=True)
    description = String(required=True, max_length=500)
    order_id = Identifier()


@bakery.command(part_of="LoyaltyAccount")
class AdjustPoints:
    customer_id = Identifier(required=True)
    amount = Integer(required=True)
    description = String(required=True, max_length=500)
    reason = String(required=True, max_length=500)


@bakery.command(part_of="LoyaltyAccount")
class ExpirePoints:
    customer_id = Identifier(required=True)
    as_of = DateTime()


def account_for(customer_id) -> LoyaltyAccount:
    account = current_domain.repository_for(LoyaltyAccount).find_by_customer(customer_id)
    if account is None:
        raise NotFoundError("LoyaltyAccount", customer_id)
    return account


@bakery.command_handler(part_of=LoyaltyAccount)
class ManagePointsHandler:
    @handle(OpenLoyaltyAccount)
    def open_account(self, command):
        repo = current_domain.repository_for(LoyaltyAccount)
        account = repo.get_or_open_for(command.customer_id)
        repo.add(account)
        return account

    @handle(AwardPoints)
    def award_points(self, command):
        repo = current_domain.repository_for(LoyaltyAccount)
        account = repo.get_or_open_for(command.customer_id)
        account.add_points(
            amount=command.amount,
            description=command.description,
            order_id=command.order_id,
            expires_in_days=command.expires_in_days,
            order_amount=command.order_amount,
        )
        repo.add(account)
        logger.info(
            "Loyalty points awarded",
            customer_id=str(command.customer_id),
            amount=command.amount,
            balance=account.current_points,
            tier=account.tier,
        )
        return account

    @handle(AwardBonusPoints)
    def award_bonus(self, command):
        repo = current_domain.repository_for(LoyaltyAccount)
        account = repo.get_or_open_for(command.customer_id)
        account.add_bonus(
            amount=command.amount,
            description=command.description,
            expires_in_days=command.expires_in_days,
        )
        repo.add(account)
        return account

    @handle(RedeemPoints)
    def redeem_points(self, command):
        account = account_for(command.customer_id)
        account.use_points(
            amount=command.amount,
            description=command.description,
            order_id=command.order_id,
        )
        current_domain.repository_for(LoyaltyAccount).add(account)
        logger.info(
            "Loyalty points redeemed",
            customer_id=str(command.customer_id),
            amount=command.amount,
            balance=account.current_points,
        )
        return account

    @handle(AdjustPoints)
    def adjust_points(self, command):
        account = account_for(command.customer_id)
        account.adjust_points(
            amount=command.amount,
            description=command.description,
            reason=command.reason,
        )
        current_domain.repository_for(LoyaltyAccount).add(account)
        logger.info(
            "Loyalty points adjusted",
            customer_id=str(command.customer_id),
            amount=command.amount,
            reason=command.reason,
        )
        return account

    @handle(ExpirePoints)
    def expire_points(self, command):
        account = account_for(command.customer_id)
        expired = account.expire_points(command.as_of)
        if expired:
            current_domain.repository_for(LoyaltyAccount).add(account)
            logger.info("Loyalty points expired", customer_id=str(command.customer_id), amount=expired)
        return account


def process_serialised(customer_id, command) -> LoyaltyAccount:
    """Process a balance-decrementing command with the account lock held from load to commit.

    A write that still loses an optimistic version race is retried against a
    freshly loaded account; after the configured attempts the conflict is
    surfaced to the caller.
    """
    attempts = get_settings().LOYALTY_REDEMPTION_RETRIES
    with loyalty_account_locks.hold(customer_id):
        for attempt in range(1, attempts + 1):
            try:
                return current_domain.process(command, asynchronous=False)
            except ExpectedVersionError:
                logger.warning(
                    "Loyalty account write lost a version race",
                    customer_id=str(customer_id),
                    attempt=attempt,
                )
    raise ConcurrencyConflictError(f"Loyalty account of customer {customer_id} was updated concurrently, please retry")


def redeem_points(customer_id, amount: int, description: str, order_id=None) -> LoyaltyAccount:
    """Redeem points with the balance check and the decrement serialised per account."""
    command = RedeemPoints(customer_id=customer_id, amount=amount, description=description, order_id=order_id)
    return process_serialised(customer_id, command)
