"""Loyalty Account aggregate — a customer's points ledger.

Every change to the balance goes through one of the ledger methods below,
each of which appends a transaction, replaces the ``PointsBalance`` value
object wholesale, and re-derives the tier in the same atomic change. The
balance object refuses to exist unless ``total == used + expired + current``,
and the aggregate refuses a tier that does not match ``current``.

Points granted by earning, bonuses and positive adjustments are tracked per
grant (``remaining``). Redemptions consume the oldest grants first, which is
what lets expiry remove exactly the unspent part of a grant that has lapsed.
"""

from datetime import UTC, datetime, timedelta
from enum import Enum

from protean import atomic_change, invariant
from protean.exceptions import ValidationError
from protean.fields import Boolean, DateTime, Float, HasMany, Identifier, Integer, String, ValueObject

from bakery.domain import bakery
from bakery.loyalty.events import (
    GoalAdded,
    GoalCompleted,
    LoyaltyAccountOpened,
    PointsAdjusted,
    PointsEarned,
    PointsExpired,
    PointsRedeemed,
    RewardAdded,
    RewardRedeemed,
    TierChanged,
)
from bakery.loyalty.tiers import LoyaltyTier, benefits_for, next_tier, points_required_for, tier_for
from bakery.shared.clock import ensure_utc
from bakery.shared.errors import InsufficientPointsError, NotFoundError
from bakery.shared.money import as_float, percentage_of, to_decimal


class TransactionKind(Enum):
    EARNED = "earned"
    USED = "used"
    EXPIRED = "expired"
    BONUS = "bonus"
    ADJUSTMENT = "adjustment"


# ---------------------------------------------------------------------------
# Value Objects
# ---------------------------------------------------------------------------
@bakery.value_object(part_of="LoyaltyAccount")
class PointsBalance:
    current = Integer(default=0, min_value=0)
    total = Integer(default=0, min_value=0)
    used = Integer(default=0, min_value=0)
    expired = Integer(default=0, min_value=0)

    @invariant.post
    def points_must_be_conserved(self):
        if self.total != self.used + self.expired + self.current:
            raise ValidationError(
                {"points": [f"total ({self.total}) must equal used + expired + current"]}
            )


@bakery.value_object(part_of="LoyaltyAccount")
class Benefits:
    discount_percentage = Float(default=0.0, min_value=0.0, max_value=1.0)
    free_delivery = Boolean(default=False)
    priority_support = Boolean(default=False)
    exclusive_offers = Boolean(default=False)
    birthday_reward = Boolean(default=False)
    early_access = Boolean(default=False)

    @classmethod
    def for_tier(cls, tier) -> "Benefits":
        return cls(**benefits_for(tier)._asdict())


@bakery.value_object(part_of="LoyaltyAccount")
class Statistics:
    total_orders = Integer(default=0, min_value=0)
    total_spent = Float(default=0.0, min_value=0.0)
    average_order_value = Float(default=0.0, min_value=0.0)
    current_streak = Integer(default=0, min_value=0)
    longest_streak = Integer(default=0, min_value=0)
    last_order_date = DateTime()


# ---------------------------------------------------------------------------
# Entities
# ---------------------------------------------------------------------------
@bakery.entity(part_of="LoyaltyAccount")
class LoyaltyTransaction:
    kind = String(required=True, choices=TransactionKind)
    amount = Integer(required=True)  # signed
    description = String(max_length=500)
    order_id = Identifier()
    expires_at = DateTime()
    remaining = Integer(default=0, min_value=0)  # unspent part of a grant
    sequence = Integer(required=True)
    created_at = DateTime(required=True)


@bakery.entity(part_of="LoyaltyAccount")
class TierChange:
    tier = String(required=True, choices=LoyaltyTier)
    achieved_at = DateTime(required=True)
    points_required = Integer(required=True)
    points_achieved = Integer(required=True)


@bakery.entity(part_of="LoyaltyAccount")
class Reward:
    name = String(required=True, max_length=100)
    description = String(max_length=500)
    points_cost = Integer(required=True, min_value=1)
    discount_amount = Float(default=0.0, min_value=0.0)
    discount_percentage = Float(default=0.0, min_value=0.0, max_value=1.0)
    is_active = Boolean(default=True)
    expires_at = DateTime()
    redeemed_at = DateTime()
    order_id = Identifier()


@bakery.entity(part_of="LoyaltyAccount")
class Goal:
    name = String(required=True, max_length=100)
    description = String(max_length=500)
    target_points = Integer(required=True, min_value=1)
    current_points = Integer(default=0, min_value=0)
    reward = String(max_length=200)
    is_completed = Boolean(default=False)
    completed_at = DateTime()
    expires_at = DateTime()


# ---------------------------------------------------------------------------
# Aggregate Root
# ---------------------------------------------------------------------------
@bakery.aggregate
class LoyaltyAccount:
    customer_id = Identifier(required=True, unique=True)
    points = ValueObject(PointsBalance)
    tier = String(choices=LoyaltyTier, default=LoyaltyTier.BRONZE.value)
    benefits = ValueObject(Benefits)
    statistics = ValueObject(Statistics)
    tier_history = HasMany(TierChange)
    transactions = HasMany(LoyaltyTransaction)
    rewards = HasMany(Reward)
    goals = HasMany(Goal)
    created_at = DateTime()
    updated_at = DateTime()

    @invariant.post
    def tier_must_match_current_points(self):
        if self.points is not None and self.tier != tier_for(self.points.current).value:
            raise ValidationError({"tier": ["Tier is out of date with the points balance"]})

    # -------------------------------------------------------------------
    # Factory
    # -------------------------------------------------------------------
    @classmethod
    def open(cls, customer_id):
        now = datetime.now(UTC)
        account = cls(
            customer_id=customer_id,
            points=PointsBalance(),
            tier=LoyaltyTier.BRONZE.value,
            benefits=Benefits.for_tier(LoyaltyTier.BRONZE),
            statistics=Statistics(),
            created_at=now,
            updated_at=now,
        )
        account.raise_(
            LoyaltyAccountOpened(
                account_id=str(account.id),
                customer_id=str(customer_id),
                tier=account.tier,
                opened_at=now,
            )
        )
        return account

    # -------------------------------------------------------------------
    # Queries
    # -------------------------------------------------------------------
    @property
    def current_points(self) -> int:
        return self.points.current if self.points else 0

    def ordered_transactions(self) -> list[LoyaltyTransaction]:
        return sorted(self.transactions, key=lambda t: t.sequence)

    def has_transaction_for(self, order_id, kind: TransactionKind) -> bool:
        return any(str(t.order_id) == str(order_id) and t.kind == kind.value for t in self.transactions)

    def can_use_points(self, amount: int) -> bool:
        return amount is not None and 0 < amount <= self.current_points

    def calculate_tier(self) -> LoyaltyTier:
        return tier_for(self.current_points)

    def get_available_discount(self, order_amount):
        """Tier discount on ``order_amount``, as a Decimal."""
        return percentage_of(order_amount, self.benefits.discount_percentage if self.benefits else 0)

    def has_free_delivery(self) -> bool:
        return bool(self.benefits and self.benefits.free_delivery)

    def next_tier(self) -> LoyaltyTier | None:
        return next_tier(self.tier)

    def progress_to_next_tier(self) -> dict:
        """How far the account is from the next tier, with the percentage clamped to 0–100."""
        upcoming = self.next_tier()
        if upcoming is None:
            return {"next_tier": None, "points_needed": 0, "percentage": 100.0}

        floor = points_required_for(self.tier)
        ceiling = points_required_for(upcoming)
        percentage = (self.current_points - floor) / (ceiling - floor) * 100
        return {
            "next_tier": upcoming.value,
            "points_needed": max(0, ceiling - self.current_points),
            "percentage": round(min(100.0, max(0.0, percentage)), 2),
        }

    # -------------------------------------------------------------------
    # Internal helpers
    # -------------------------------------------------------------------
    def _next_sequence(self) -> int:
        return max((t.sequence for t in self.transactions), default=0) + 1

    def _record(self, kind: TransactionKind, amount: int, description: str, **extra) -> LoyaltyTransaction:
        transaction = LoyaltyTransaction(
            kind=kind.value,
            amount=amount,
            description=description,
            sequence=self._next_sequence(),
            created_at=datetime.now(UTC),
            **extra,
        )
        self.add_transactions(transaction)
        return transaction

    def _set_balance(self, current: int, total: int, used: int, expired: int) -> None:
        self.points = PointsBalance(current=current, total=total, used=used, expired=expired)

    def _consume_grants(self, amount: int) -> None:
        """Spend ``amount`` from the oldest unspent grants."""
        outstanding = amount
        for grant in self.ordered_transactions():
            if outstanding == 0:
                break
            if grant.remaining:
                taken = min(grant.remaining, outstanding)
                grant.remaining -= taken
                outstanding -= taken

    def _grant(self, kind: TransactionKind, amount: int, description: str, order_id=None, expires_in_days=None):
        expires_at = None
        if expires_in_days:
            expires_at = datetime.now(UTC) + timedelta(days=expires_in_days)
        transaction = self._record(
            kind,
            amount,
            description,
            order_id=order_id,
            expires_at=expires_at,
            remaining=amount,
        )
        balance = self.points
        self._set_balance(
            current=balance.current + amount,
            total=balance.total + amount,
            used=balance.used,
            expired=balance.expired,
        )
        return transaction

    def _progress_goals(self, amount: int, now: datetime) -> list[Goal]:
        completed = []
        for goal in self.goals:
            if goal.is_completed or (goal.expires_at and goal.expires_at < now):
                continue
            goal.current_points = min(goal.target_points, goal.current_points + amount)
            if goal.current_points >= goal.target_points:
                goal.is_completed = True
                goal.completed_at = now
                completed.append(goal)
        return completed

    def _record_order_statistics(self, order_amount, now: datetime) -> None:
        stats = self.statistics or Statistics()
        total_orders = stats.total_orders + 1
        total_spent = to_decimal(stats.total_spent) + to_decimal(order_amount or 0)

        streak = 1
        if stats.last_order_date is not None:
            gap = (now.date() - stats.last_order_date.date()).days
            if gap == 0:
                streak = max(1, stats.current_streak)
            elif gap == 1:
                streak = stats.current_streak + 1

        self.statistics = Statistics(
            total_orders=total_orders,
            total_spent=as_float(total_spent),
            average_order_value=round(as_float(total_spent / total_orders), 2) if total_orders else 0.0,
            current_streak=streak,
            longest_streak=max(stats.longest_streak, streak),
            last_order_date=now,
        )

    def update_tier(self) -> TierChanged | None:
        """Re-derive the tier and, on a change, record history and swap benefits wholesale."""
        derived = self.calculate_tier()
        if derived.value == self.tier:
            return None

        now = datetime.now(UTC)
        previous = self.tier
        self.add_tier_history(
            TierChange(
                tier=derived.value,
                achieved_at=now,
                points_required=points_required_for(derived),
                points_achieved=self.current_points,
            )
        )
        self.tier = derived.value
        self.benefits = Benefits.for_tier(derived)
        return TierChanged(
            account_id=str(self.id),
            customer_id=str(self.customer_id),
            previous_tier=previous,
            new_tier=derived.value,
            points=self.current_points,
            discount_percentage=self.benefits.discount_percentage,
            changed_at=now,
        )

    def _raise_all(self, *events) -> None:
        for event in events:
            if event is not None:
                self.raise_(event)

    # -------------------------------------------------------------------
    # Ledger operations
    # -------------------------------------------------------------------
    def add_points(
        self,
        amount: int,
        description: str,
        order_id=None,
        expires_in_days: int | None = None,
        order_amount: float | None = None,
    ) -> LoyaltyTransaction:
        """Credit points earned by a purchase. Also counts the order in the statistics."""
        if amount is None or amount <= 0:
            raise ValidationError({"amount": ["Points to add must be positive"]})

        now = datetime.now(UTC)
        with atomic_change(self):
            transaction = self._grant(TransactionKind.EARNED, amount, description, order_id, expires_in_days)
            self._record_order_statistics(order_amount, now)
            completed = self._progress_goals(amount, now)
            tier_changed = self.update_tier()
            self.updated_at = now

        self._raise_all(
            PointsEarned(
                account_id=str(self.id),
                customer_id=str(self.customer_id),
                amount=amount,
                kind=TransactionKind.EARNED.value,
                description=description,
                order_id=str(order_id) if order_id else None,
                expires_at=transaction.expires_at,
                balance=self.current_points,
            ),
            tier_changed,
            *(self._goal_completed(goal) for goal in completed),
        )
        return transaction

    def add_bonus(self, amount: int, description: str, expires_in_days: int | None = None) -> LoyaltyTransaction:
        """Credit promotional points; unlike earning, no order is counted."""
        if amount is None or amount <= 0:
            raise ValidationError({"amount": ["Bonus points must be positive"]})

        now = datetime.now(UTC)
        with atomic_change(self):
            transaction = self._grant(TransactionKind.BONUS, amount, description, None, expires_in_days)
            completed = self._progress_goals(amount, now)
            tier_changed = self.update_tier()
            self.updated_at = now

        self._raise_all(
            PointsEarned(
                account_id=str(self.id),
                customer_id=str(self.customer_id),
                amount=amount,
                kind=TransactionKind.BONUS.value,
                description=description,
                expires_at=transaction.expires_at,
                balance=self.current_points,
            ),
            tier_changed,
            *(self._goal_completed(goal) for goal in completed),
        )
        return transaction

    def use_points(self, amount: int, description: str, order_id=None) -> LoyaltyTransaction:
        """Redeem points. Fails without touching the ledger when the balance is too low."""
        if amount is None or amount <= 0:
            raise ValidationError({"amount": ["Points to use must be positive"]})
        if amount > self.current_points:
            raise InsufficientPointsError(requested=amount, available=self.current_points)

        now = datetime.now(UTC)
        with atomic_change(self):
            self._consume_grants(amount)
            transaction = self._record(TransactionKind.USED, -amount, description, order_id=order_id)
            balance = self.points
            self._set_balance(
                current=balance.current - amount,
                total=balance.total,
                used=balance.used + amount,
                expired=balance.expired,
            )
            tier_changed = self.update_tier()
            self.updated_at = now

        self._raise_all(
            PointsRedeemed(
                account_id=str(self.id),
                customer_id=str(self.customer_id),
                amount=amount,
                description=description,
                order_id=str(order_id) if order_id else None,
                balance=self.current_points,
            ),
            tier_changed,
        )
        return transaction

    def adjust_points(self, amount: int, description: str, reason: str, order_id=None) -> LoyaltyTransaction:
        """Signed manual correction. Moves ``current`` and ``total`` together."""
        if not amount:
            raise ValidationError({"amount": ["Adjustment cannot be zero"]})
        if not reason:
            raise ValidationError({"reason": ["A reason is required for adjustments"]})
        if amount < 0 and -amount > self.current_points:
            raise InsufficientPointsError(requested=-amount, available=self.current_points)

        now = datetime.now(UTC)
        with atomic_change(self):
            if amount < 0:
                self._consume_grants(-amount)
            transaction = self._record(
                TransactionKind.ADJUSTMENT,
                amount,
                f"{description} - {reason}",
                order_id=order_id,
                remaining=max(0, amount),
            )
            balance = self.points
            self._set_balance(
                current=balance.current + amount,
                total=balance.total + amount,
                used=balance.used,
                expired=balance.expired,
            )
            tier_changed = self.update_tier()
            self.updated_at = now

        self._raise_all(
            PointsAdjusted(
                account_id=str(self.id),
                customer_id=str(self.customer_id),
                amount=amount,
                reason=reason,
                balance=self.current_points,
            ),
            tier_changed,
        )
        return transaction

    def expire_points(self, now: datetime | None = None) -> int:
        """Expire the unspent part of every grant whose expiry has passed. Returns the points expired."""
        now = now or datetime.now(UTC)
        due = [t for t in self.ordered_transactions() if t.remaining and t.expires_at and t.expires_at <= now]
        amount = min(sum(t.remaining for t in due), self.current_points)
        if amount == 0:
            return 0

        with atomic_change(self):
            for grant in due:
                grant.remaining = 0
            self._record(TransactionKind.EXPIRED, -amount, "Points expired")
            balance = self.points
            self._set_balance(
                current=balance.current - amount,
                total=balance.total,
                used=balance.used,
                expired=balance.expired + amount,
            )
            tier_changed = self.update_tier()
            self.updated_at = now

        self._raise_all(
            PointsExpired(
                account_id=str(self.id),
                customer_id=str(self.customer_id),
                amount=amount,
                balance=self.current_points,
                expired_at=now,
            ),
            tier_changed,
        )
        return amount

    # -------------------------------------------------------------------
    # Rewards and goals
    # -------------------------------------------------------------------
    def add_reward(
        self,
        name: str,
        points_cost: int,
        description: str | None = None,
        discount_amount: float = 0.0,
        discount_percentage: float = 0.0,
        expires_at: datetime | None = None,
    ) -> Reward:
        reward = Reward(
            name=name,
            description=description,
            points_cost=points_cost,
            discount_amount=discount_amount,
            discount_percentage=discount_percentage,
            expires_at=ensure_utc(expires_at),
        )
        self.add_rewards(reward)
        self.raise_(
            RewardAdded(account_id=str(self.id), reward_id=str(reward.id), name=name, points_cost=points_cost)
        )
        return reward

    def redeem_reward(self, reward_id, order_id=None) -> Reward:
        reward = next((r for r in self.rewards if str(r.id) == str(reward_id)), None)
        if reward is None:
            raise NotFoundError("Reward", reward_id)
        if not reward.is_active or reward.redeemed_at is not None:
            raise ValidationError({"reward": ["Reward is no longer available"]})

        now = datetime.now(UTC)
        if reward.expires_at and reward.expires_at < now:
            raise ValidationError({"reward": ["Reward has expired"]})

        self.use_points(reward.points_cost, f"Reward: {reward.name}", order_id=order_id)
        reward.is_active = False
        reward.redeemed_at = now
        reward.order_id = order_id
        self.raise_(
            RewardRedeemed(
                account_id=str(self.id),
                reward_id=str(reward.id),
                points_cost=reward.points_cost,
                order_id=str(order_id) if order_id else None,
                redeemed_at=now,
            )
        )
        return reward

    def add_goal(
        self,
        name: str,
        target_points: int,
        description: str | None = None,
        reward: str | None = None,
        expires_at: datetime | None = None,
    ) -> Goal:
        goal = Goal(
            name=name,
            description=description,
            target_points=target_points,
            reward=reward,
            expires_at=ensure_utc(expires_at),
        )
        self.add_goals(goal)
        self.raise_(GoalAdded(account_id=str(self.id), goal_id=str(goal.id), name=name, target_points=target_points))
        return goal

    def _goal_completed(self, goal: Goal) -> GoalCompleted:
        return GoalCompleted(
            account_id=str(self.id),
            goal_id=str(goal.id),
            name=goal.name,
            reward=goal.reward,
            completed_at=goal.completed_at,
        )
