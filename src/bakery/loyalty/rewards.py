"""Rewards and goals — commands and handler."""

from protean import handle
from protean.fields import DateTime, Float, Identifier, Integer, String
from protean.utils.globals import current_domain

from bakery.domain import bakery
from bakery.loyalty.account import LoyaltyAccount
from bakery.loyalty.points import account_for


@bakery.command(part_of="LoyaltyAccount")
class CreateReward:
    customer_id = Identifier(required=True)
    name = String(required=True, max_length=100)
    description = String(max_length=500)
    points_cost = Integer(required=True, min_value=1)
    discount_amount = Float(default=0.0)
    discount_percentage = Float(default=0.0)
    expires_at = DateTime()


@bakery.command(part_of="LoyaltyAccount")
class RedeemReward:
    customer_id = Identifier(required=True)
    reward_id = Identifier(required=True)
    order_id = Identifier()


@bakery.command(part_of="LoyaltyAccount")
class CreateGoal:
    customer_id = Identifier(required=True)
    name = String(required=True, max_length=100)
    description = String(max_length=500)
    target_points = Integer(required=True, min_value=1)
    reward = String(max_length=200)
    expires_at = DateTime()


@bakery.command_handler(part_of=LoyaltyAccount)
class ManageRewardsHandler:
    @handle(CreateReward)
    def create_reward(self, command):
        repo = current_domain.repository_for(LoyaltyAccount)
        account = repo.get_or_open_for(command.customer_id)
        account.add_reward(
            name=command.name,
            description=command.description,
            points_cost=command.points_cost,
            discount_amount=command.discount_amount,
            discount_percentage=command.discount_percentage,
            expires_at=command.expires_at,
        )
        repo.add(account)
        return account

    @handle(RedeemReward)
    def redeem_reward(self, command):
        account = account_for(command.customer_id)
        account.redeem_reward(command.reward_id, order_id=command.order_id)
        current_domain.repository_for(LoyaltyAccount).add(account)
        return account

    @handle(CreateGoal)
    def create_goal(self, command):
        repo = current_domain.repository_for(LoyaltyAccount)
        account = repo.get_or_open_for(command.customer_id)
        account.add_goal(
            name=command.name,
            description=command.description,
            target_points=command.target_points,
            reward=command.reward,
            expires_at=command.expires_at,
        )
        repo.add(account)
        return account
