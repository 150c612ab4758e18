"""Loyalty tiers and what each one is worth.

One ascending table drives both tier derivation and benefit assignment, so the
two can never disagree.
"""

from enum import Enum
from typing import NamedTuple


class LoyaltyTier(Enum):
    BRONZE = "bronze"
    SILVER = "silver"
    GOLD = "gold"
    PLATINUM = "platinum"


class TierBenefits(NamedTuple):
    discount_percentage: float
    free_delivery: bool
    priority_support: bool
    exclusive_offers: bool
    birthday_reward: bool
    early_access: bool


class TierRule(NamedTuple):
    min_points: int
    tier: LoyaltyTier
    benefits: TierBenefits


TIERS: tuple[TierRule, ...] = (
    TierRule(0, LoyaltyTier.BRONZE, TierBenefits(0.05, False, False, False, False, False)),
    TierRule(200, LoyaltyTier.SILVER, TierBenefits(0.10, True, False, True, True, False)),
    TierRule(500, LoyaltyTier.GOLD, TierBenefits(0.15, True, True, True, True, True)),
    TierRule(1000, LoyaltyTier.PLATINUM, TierBenefits(0.20, True, True, True, True, True)),
)

_BY_TIER = {rule.tier: rule for rule in TIERS}


def tier_for(points: int) -> LoyaltyTier:
    """The highest tier whose threshold does not exceed ``points``."""
    current = TIERS[0].tier
    for rule in TIERS:
        if points >= rule.min_points:
            current = rule.tier
    return current


def benefits_for(tier: LoyaltyTier | str) -> TierBenefits:
    return _BY_TIER[LoyaltyTier(tier)].benefits


def points_required_for(tier: LoyaltyTier | str) -> int:
    return _BY_TIER[LoyaltyTier(tier)].min_points


def next_tier(tier: LoyaltyTier | str) -> LoyaltyTier | None:
    """The tier after ``tier``, or None at the top."""
    tiers = [rule.tier for rule in TIERS]
    position = tiers.index(LoyaltyTier(tier))
    return tiers[position + 1] if position + 1 < len(tiers) else None
