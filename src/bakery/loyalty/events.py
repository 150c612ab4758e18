"""Loyalty ledger events."""

from protean.fields import DateTime, Float, Identifier, Integer, String

from bakery.domain import bakery


@bakery.event(part_of="LoyaltyAccount")
class LoyaltyAccountOpened:
    __version__ = 1

    account_id = Identifier(required=True)
    customer_id = Identifier(required=True)
    tier = String(required=True)
    opened_at = DateTime(required=True)


@bakery.event(part_of="LoyaltyAccount")
class PointsEarned:
    """Points were credited, for an order or as a bonus."""

    __version__ = 1

    account_id = Identifier(required=True)
    customer_id = Identifier(required=True)
    amount = Integer(required=True)
    kind = String(required=True)
    description = String()
    order_id = Identifier()
    expires_at = DateTime()
    balance = Integer(required=True)


@bakery.event(part_of="LoyaltyAccount")
class PointsRedeemed:
    __version__ = 1

    account_id = Identifier(required=True)
    customer_id = Identifier(required=True)
    amount = Integer(required=True)
    description = String()
    order_id = Identifier()
    balance = Integer(required=True)


@bakery.event(part_of="LoyaltyAccount")
class PointsAdjusted:
    """A signed manual correction to the balance."""

    __version__ = 1

    account_id = Identifier(required=True)
    customer_id = Identifier(required=True)
    amount = Integer(required=True)
    reason = String(required=True)
    balance = Integer(required=True)


@bakery.event(part_of="LoyaltyAccount")
class PointsExpired:
    __version__ = 1

    account_id = Identifier(required=True)
    customer_id = Identifier(required=True)
    amount = Integer(required=True)
    balance = Integer(required=True)
    expired_at = DateTime(required=True)


@bakery.event(part_of="LoyaltyAccount")
class TierChanged:
    __version__ = 1

    account_id = Identifier(required=True)
    customer_id = Identifier(required=True)
    previous_tier = String(required=True)
    new_tier = String(required=True)
    points = Integer(required=True)
    discount_percentage = Float(required=True)
    changed_at = DateTime(required=True)


@bakery.event(part_of="LoyaltyAccount")
class RewardAdded:
    __version__ = 1

    account_id = Identifier(required=True)
    reward_id = Identifier(required=True)
    name = String(required=True)
    points_cost = Integer(required=True)


@bakery.event(part_of="LoyaltyAccount")
class RewardRedeemed:
    __version__ = 1

    account_id = Identifier(required=True)
    reward_id = Identifier(required=True)
    points_cost = Integer(required=True)
    order_id = Identifier()
    redeemed_at = DateTime(required=True)


@bakery.event(part_of="LoyaltyAccount")
class GoalAdded:
    __version__ = 1

    account_id = Identifier(required=True)
    goal_id = Identifier(required=True)
    name = String(required=True)
    target_points = Integer(required=True)


@bakery.event(part_of="LoyaltyAccount")
class GoalCompleted:
    __version__ = 1

    account_id = Identifier(required=True)
    goal_id = Identifier(required=True)
    name = String(required=True)
    reward = String()
    completed_at = DateTime(required=True)
