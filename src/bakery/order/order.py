"""Order aggregate (CQRS) — the immutable record of a checked-out cart.

An order freezes the cart's lines at the catalogue price of the moment of
checkout, together with the delivery and payment choices, and then only
moves through its status machine. Money is settled while the order is
``pending``; once it leaves ``pending`` the lines and amounts never change.

State Machine (delivery orders):
    PENDING → CONFIRMED → PREPARING → READY → OUT_FOR_DELIVERY → DELIVERED
    {READY, OUT_FOR_DELIVERY} → FAILED

State Machine (pickup and dine-in orders):
    PENDING → CONFIRMED → PREPARING → READY → DELIVERED (collected)

Any non-terminal state → {CANCELLED, REFUNDED}
Terminal: DELIVERED, CANCELLED, REFUNDED, FAILED

Legality of a transition is checked first, then whether the acting role may
make it (see ``ROLE_POLICY``).
"""

import json
from datetime import UTC, datetime, timedelta
from enum import Enum

from protean import atomic_change, invariant
from protean.exceptions import ValidationError
from protean.fields import Boolean, DateTime, Float, HasMany, Identifier, Integer, String, Text, ValueObject

from bakery.config import get_settings
from bakery.domain import bakery
from bakery.order.events import (
    OrderCancelled,
    OrderConfirmed,
    OrderDelivered,
    OrderFailed,
    OrderPaymentRecorded,
    OrderPlaced,
    OrderRefunded,
    OrderStatusChanged,
)
from bakery.shared.errors import IllegalTransitionError, InsufficientPointsError, UnavailableItemsError
from bakery.shared.money import (
    ZERO,
    as_float,
    compute_totals,
    line_total,
    percentage_of,
    points_for_amount,
    points_to_money,
)
from bakery.shared.preferences import DeliveryPreference, PaymentMethod
from bakery.shared.pricing import check_totals
from bakery.shared.roles import ActorRole

DEFAULT_NOTE = "Status updated"


# ---------------------------------------------------------------------------
# Enums
# ---------------------------------------------------------------------------
class OrderStatus(Enum):
    PENDING = "pending"
    CONFIRMED = "confirmed"
    PREPARING = "preparing"
    READY = "ready"
    OUT_FOR_DELIVERY = "out_for_delivery"
    DELIVERED = "delivered"
    CANCELLED = "cancelled"
    REFUNDED = "refunded"
    FAILED = "failed"


class PaymentStatus(Enum):
    PENDING = "pending"
    PAID = "paid"
    FAILED = "failed"
    REFUNDED = "refunded"


class OrderSource(Enum):
    WEBSITE = "website"
    PHONE = "phone"
    WHATSAPP = "whatsapp"
    IN_STORE = "in-store"
    MOBILE_APP = "mobile-app"


_WITHDRAWALS = {OrderStatus.CANCELLED, OrderStatus.REFUNDED}

_DELIVERY_TRANSITIONS = {
    OrderStatus.PENDING: {OrderStatus.CONFIRMED} | _WITHDRAWALS,
    OrderStatus.CONFIRMED: {OrderStatus.PREPARING} | _WITHDRAWALS,
    OrderStatus.PREPARING: {OrderStatus.READY} | _WITHDRAWALS,
    OrderStatus.READY: {OrderStatus.OUT_FOR_DELIVERY, OrderStatus.FAILED} | _WITHDRAWALS,
    OrderStatus.OUT_FOR_DELIVERY: {OrderStatus.DELIVERED, OrderStatus.FAILED} | _WITHDRAWALS,
    OrderStatus.DELIVERED: set(),  # terminal
    OrderStatus.CANCELLED: set(),  # terminal
    OrderStatus.REFUNDED: set(),  # terminal
    OrderStatus.FAILED: set(),  # terminal
}

_COLLECTION_TRANSITIONS = {
    **_DELIVERY_TRANSITIONS,
    OrderStatus.READY: {OrderStatus.DELIVERED} | _WITHDRAWALS,
    OrderStatus.OUT_FOR_DELIVERY: set(),  # unreachable for collection orders
}

TERMINAL_STATUSES = {status for status, targets in _DELIVERY_TRANSITIONS.items() if not targets}

# Targets each role may move an order to; None means any legal transition.
ROLE_POLICY: dict[ActorRole, set[OrderStatus] | None] = {
    ActorRole.CUSTOMER: {OrderStatus.CANCELLED},
    ActorRole.DRIVER: {OrderStatus.OUT_FOR_DELIVERY, OrderStatus.DELIVERED, OrderStatus.FAILED},
    ActorRole.STAFF: None,
    ActorRole.ADMIN: None,
    ActorRole.SYSTEM: None,
}

CUSTOMER_CANCELLABLE = {OrderStatus.PENDING, OrderStatus.CONFIRMED}


# ---------------------------------------------------------------------------
# Value Objects
# ---------------------------------------------------------------------------
@bakery.value_object(part_of="Order")
class OrderPayment:
    """How the order is paid and what it costs.

    ``total`` is the exact amount, ``final_amount`` the charged amount rounded
    to cents.
    """

    method = String(max_length=10, choices=PaymentMethod, default=PaymentMethod.CARD.value)
    status = String(max_length=10, choices=PaymentStatus, default=PaymentStatus.PENDING.value)
    transaction_id = String(max_length=255)
    paid_at = DateTime()
    amount = Float(default=0.0, min_value=0.0)
    delivery_fee = Float(default=0.0, min_value=0.0)
    tax = Float(default=0.0, min_value=0.0)
    discount = Float(default=0.0, min_value=0.0)
    loyalty_discount = Float(default=0.0, min_value=0.0)
    total = Float(default=0.0, min_value=0.0)
    final_amount = Float(default=0.0, min_value=0.0)

    @invariant.post
    def final_amount_must_follow_formula(self):
        check_totals(
            self.amount,
            self.delivery_fee,
            self.tax,
            self.discount,
            self.loyalty_discount,
            self.total,
            self.final_amount,
        )


@bakery.value_object(part_of="Order")
class LoyaltyPoints:
    earned = Integer(default=0, min_value=0)
    used = Integer(default=0, min_value=0)
    tier = String(max_length=20)
    tier_discount_percentage = Float(default=0.0, min_value=0.0)


# ---------------------------------------------------------------------------
# Entities
# ---------------------------------------------------------------------------
@bakery.entity(part_of="Order")
class OrderItem:
    """One line of the order, frozen at checkout."""

    product_id = Identifier(required=True)
    product_name = String(required=True, max_length=200)
    quantity = Integer(required=True, min_value=1)
    unit_price = Float(required=True, min_value=0.0)
    customizations = Text()  # JSON list of {name, value, additional_cost}
    customization_cost = Float(default=0.0, min_value=0.0)
    total_price = Float(required=True, min_value=0.0)
    special_instructions = String(max_length=500)
    position = Integer(default=0)


@bakery.entity(part_of="Order")
class OrderStatusChange:
    """Audit trail entry. Entries are only ever appended."""

    status = String(required=True, choices=OrderStatus)
    note = String(max_length=500)
    actor_id = String(max_length=100)
    actor_role = String(max_length=20, choices=ActorRole)
    sequence = Integer(required=True)
    occurred_at = DateTime(required=True)


# ---------------------------------------------------------------------------
# Aggregate Root
# ---------------------------------------------------------------------------
@bakery.aggregate
class Order:
    order_number = String(required=True, max_length=20, unique=True)
    placed_on = String(required=True, max_length=6)  # YYMMDD
    daily_sequence = Integer(required=True, min_value=1)
    customer_id = Identifier(required=True)
    status = String(choices=OrderStatus, default=OrderStatus.PENDING.value)
    items = HasMany(OrderItem)
    status_history = HasMany(OrderStatusChange)
    delivery = ValueObject(DeliveryPreference)
    payment = ValueObject(OrderPayment)
    loyalty_points = ValueObject(LoyaltyPoints)
    source = String(max_length=20, choices=OrderSource, default=OrderSource.WEBSITE.value)
    customer_notes = String(max_length=1000)
    staff_notes = Text()
    is_urgent = Boolean(default=False)
    cancellation_reason = String(max_length=500)
    placed_at = DateTime()
    estimated_ready = DateTime()
    actual_ready = DateTime()
    estimated_delivery = DateTime()
    actual_delivery = DateTime()
    updated_at = DateTime()

    # -------------------------------------------------------------------
    # Factory method
    # -------------------------------------------------------------------
    @classmethod
    def place(
        cls,
        cart,
        products: dict,
        order_number: str,
        placed_on: str,
        daily_sequence: int,
        account=None,
        source: str = OrderSource.WEBSITE.value,
        customer_notes: str | None = None,
        is_urgent: bool = False,
        placed_at: datetime | None = None,
    ):
        """Snapshot ``cart`` into a new pending order.

        ``products`` maps product ids to the catalogue's current ``Product``
        (or None when the product no longer exists). ``account`` is the
        customer's loyalty account, if any: its tier discount and free
        delivery apply, and it must hold the points the cart wants to use.
        """
        now = placed_at or datetime.now(UTC)

        if cart.is_expired(now) or cart.is_empty():
            raise ValidationError({"cart": ["Cart is empty"]})

        lines = cart.ordered_items()
        unavailable = []
        for line in lines:
            product = products.get(str(line.product_id))
            if product is None:
                unavailable.append(line.product_name or str(line.product_id))
            elif not product.is_available_now(now) or not product.has_stock_for(line.quantity):
                unavailable.append(product.name)
        if unavailable:
            raise UnavailableItemsError(unavailable)

        points_used = cart.payment.loyalty_points_used if cart.payment else 0
        available_points = account.current_points if account is not None else 0
        if points_used > available_points:
            raise InsufficientPointsError(requested=points_used, available=available_points)

        order = cls(
            order_number=order_number,
            placed_on=placed_on,
            daily_sequence=daily_sequence,
            customer_id=cart.customer_id,
            status=OrderStatus.PENDING.value,
            delivery=cart.delivery,
            source=source,
            customer_notes=customer_notes,
            is_urgent=is_urgent,
            placed_at=now,
            updated_at=now,
        )
        with atomic_change(order):
            for position, line in enumerate(lines, start=1):
                price = products[str(line.product_id)].price
                order.add_items(
                    OrderItem(
                        product_id=line.product_id,
                        product_name=products[str(line.product_id)].name,
                        quantity=line.quantity,
                        unit_price=price,
                        customizations=line.customizations,
                        customization_cost=line.customization_cost,
                        total_price=as_float(line_total(line.quantity, price, line.customization_cost)),
                        special_instructions=line.special_instructions,
                        position=position,
                    )
                )

            tier_discount = account.benefits.discount_percentage if account is not None and account.benefits else 0.0
            free_delivery = account is not None and account.has_free_delivery()
            order.payment = OrderPayment(method=cart.payment.method if cart.payment else PaymentMethod.CARD.value)
            order.loyalty_points = LoyaltyPoints(
                used=points_used,
                tier=account.tier if account is not None else None,
                tier_discount_percentage=tier_discount,
            )
            order._price(
                delivery_fee=ZERO if free_delivery else order._standard_delivery_fee(),
                discount=cart.discount,
            )
            order._append_history(OrderStatus.PENDING, "Order placed", str(cart.customer_id), ActorRole.CUSTOMER)

        order.raise_(
            OrderPlaced(
                order_id=str(order.id),
                order_number=order_number,
                customer_id=str(order.customer_id),
                delivery_type=order.delivery.type if order.delivery else "",
                items=json.dumps(
                    [
                        {
                            "product_id": str(i.product_id),
                            "product_name": i.product_name,
                            "quantity": i.quantity,
                            "unit_price": i.unit_price,
                            "total_price": i.total_price,
                        }
                        for i in order.ordered_items()
                    ]
                ),
                final_amount=order.payment.final_amount,
                loyalty_points_used=order.loyalty_points.used,
                loyalty_points_earned=order.loyalty_points.earned,
                placed_at=now,
            )
        )
        return order

    # -------------------------------------------------------------------
    # Queries
    # -------------------------------------------------------------------
    @property
    def is_delivery(self) -> bool:
        return bool(self.delivery and self.delivery.is_delivery)

    @property
    def is_terminal(self) -> bool:
        return OrderStatus(self.status) in TERMINAL_STATUSES

    def ordered_items(self) -> list[OrderItem]:
        return sorted(self.items, key=lambda i: i.position or 0)

    def history(self) -> list[OrderStatusChange]:
        return sorted(self.status_history, key=lambda h: h.sequence)

    def allowed_transitions(self) -> set[OrderStatus]:
        table = _DELIVERY_TRANSITIONS if self.is_delivery else _COLLECTION_TRANSITIONS
        return table.get(OrderStatus(self.status), set())

    # -------------------------------------------------------------------
    # Pricing (pending orders only)
    # -------------------------------------------------------------------
    def _standard_delivery_fee(self):
        if self.is_delivery:
            return get_settings().DELIVERY_FEE
        return ZERO

    def _price(self, delivery_fee, discount) -> None:
        settings = get_settings()
        subtotal = sum((line_total(i.quantity, i.unit_price, i.customization_cost) for i in self.items), ZERO)
        discount = min(subtotal, discount or ZERO)
        loyalty = self.loyalty_points or LoyaltyPoints()
        loyalty_discount = points_to_money(loyalty.used, settings.POINT_VALUE) + percentage_of(
            subtotal, loyalty.tier_discount_percentage or 0.0
        )
        totals = compute_totals(
            subtotal,
            delivery_fee=delivery_fee,
            discount=discount,
            loyalty_discount=loyalty_discount,
            tax_rate=settings.TAX_RATE,
        )
        current = self.payment or OrderPayment()
        self.payment = OrderPayment(
            method=current.method,
            status=current.status,
            transaction_id=current.transaction_id,
            paid_at=current.paid_at,
            amount=as_float(totals.subtotal),
            delivery_fee=as_float(totals.delivery_fee),
            tax=as_float(totals.tax),
            discount=as_float(totals.discount),
            loyalty_discount=as_float(totals.loyalty_discount),
            total=as_float(totals.total),
            final_amount=as_float(totals.payable),
        )
        self.loyalty_points = LoyaltyPoints(
            earned=points_for_amount(totals.payable, settings.POINTS_PER_CURRENCY_UNIT),
            used=loyalty.used,
            tier=loyalty.tier,
            tier_discount_percentage=loyalty.tier_discount_percentage,
        )

    def _assert_financially_open(self) -> None:
        if OrderStatus(self.status) != OrderStatus.PENDING:
            raise ValidationError({"status": ["Order amounts are frozen once the order leaves pending"]})

    def calculate_total(self) -> float:
        """Recompute the amounts from the lines and adjustments. Pending orders only."""
        self._assert_financially_open()
        with atomic_change(self):
            self._price(delivery_fee=self.payment.delivery_fee, discount=self.payment.discount)
            self.updated_at = datetime.now(UTC)
        return self.payment.final_amount

    def apply_discount(self, amount: float) -> None:
        self._assert_financially_open()
        if amount is None or amount < 0:
            raise ValidationError({"discount": ["Discount cannot be negative"]})
        with atomic_change(self):
            self._price(delivery_fee=self.payment.delivery_fee, discount=amount)
            self.updated_at = datetime.now(UTC)

    # -------------------------------------------------------------------
    # Status machine
    # -------------------------------------------------------------------
    def _append_history(self, status: OrderStatus, note: str, actor_id: str | None, role: ActorRole) -> None:
        self.add_status_history(
            OrderStatusChange(
                status=status.value,
                note=note,
                actor_id=actor_id,
                actor_role=role.value,
                sequence=max((h.sequence for h in self.status_history), default=0) + 1,
                occurred_at=datetime.now(UTC),
            )
        )

    def _assert_can_transition(self, target: OrderStatus) -> None:
        if target not in self.allowed_transitions():
            raise IllegalTransitionError(self.status, target.value)

    def _assert_role_may(self, target: OrderStatus, role: ActorRole, note: str | None) -> None:
        current = OrderStatus(self.status)
        permitted = ROLE_POLICY.get(role, set())
        if permitted is not None and target not in permitted:
            raise IllegalTransitionError(
                current.value, target.value, f"A {role.value} cannot move an order to {target.value}"
            )
        if role == ActorRole.CUSTOMER and current not in CUSTOMER_CANCELLABLE:
            raise IllegalTransitionError(
                current.value, target.value, f"Orders can no longer be cancelled once {current.value}"
            )
        if role in (ActorRole.STAFF, ActorRole.ADMIN) and target in _WITHDRAWALS and not note:
            raise ValidationError({"note": [f"A reason is required to move an order to {target.value}"]})

    def update_status(
        self,
        new_status: str,
        note: str | None = None,
        actor_id: str | None = None,
        actor_role: str = ActorRole.SYSTEM.value,
    ) -> None:
        """Move the order to ``new_status`` and append the change to its history."""
        try:
            target = OrderStatus(new_status)
            role = ActorRole(actor_role)
        except ValueError as exc:
            raise ValidationError({"status": [str(exc)]}) from exc

        self._assert_can_transition(target)
        self._assert_role_may(target, role, note)

        previous = self.status
        now = datetime.now(UTC)
        with atomic_change(self):
            self.status = target.value
            self._append_history(target, note or DEFAULT_NOTE, actor_id, role)
            self._stamp(target, now, note)
            self.updated_at = now

        self.raise_(
            OrderStatusChanged(
                order_id=str(self.id),
                order_number=self.order_number,
                previous_status=previous,
                new_status=target.value,
                note=note or DEFAULT_NOTE,
                actor_id=actor_id,
                actor_role=role.value,
                changed_at=now,
            )
        )
        self._raise_milestone(target, now, note)

    def _stamp(self, target: OrderStatus, now: datetime, note: str | None) -> None:
        settings = get_settings()
        if target == OrderStatus.CONFIRMED and self.estimated_ready is None:
            self.estimated_ready = now + timedelta(minutes=settings.DEFAULT_PREPARATION_MINUTES)
        elif target == OrderStatus.PREPARING:
            self.estimated_ready = now + timedelta(minutes=settings.DEFAULT_PREPARATION_MINUTES)
        elif target == OrderStatus.READY:
            self.actual_ready = now
        elif target == OrderStatus.DELIVERED:
            self.actual_delivery = now
        elif target in _WITHDRAWALS or target == OrderStatus.FAILED:
            self.cancellation_reason = note
        if target == OrderStatus.REFUNDED and self.payment:
            self._replace_payment(status=PaymentStatus.REFUNDED.value)

    def _raise_milestone(self, target: OrderStatus, now: datetime, note: str | None) -> None:
        common = {
            "order_id": str(self.id),
            "order_number": self.order_number,
            "customer_id": str(self.customer_id),
        }
        if target == OrderStatus.CONFIRMED:
            delivery = self.delivery or DeliveryPreference()
            self.raise_(
                OrderConfirmed(
                    **common,
                    delivery_type=delivery.type,
                    street=delivery.street,
                    city=delivery.city,
                    postal_code=delivery.postal_code,
                    latitude=delivery.latitude,
                    longitude=delivery.longitude,
                    instructions=delivery.instructions,
                    delivery_fee=self.payment.delivery_fee if self.payment else 0.0,
                    is_urgent=bool(self.is_urgent),
                    estimated_ready=self.estimated_ready,
                    confirmed_at=now,
                )
            )
        elif target == OrderStatus.DELIVERED:
            self.raise_(
                OrderDelivered(
                    **common,
                    final_amount=self.payment.final_amount,
                    loyalty_points_earned=self.loyalty_points.earned if self.loyalty_points else 0,
                    delivered_at=now,
                )
            )
        elif target == OrderStatus.CANCELLED:
            self.raise_(
                OrderCancelled(
                    **common,
                    reason=note,
                    loyalty_points_used=self.loyalty_points.used if self.loyalty_points else 0,
                    cancelled_at=now,
                )
            )
        elif target == OrderStatus.REFUNDED:
            self.raise_(
                OrderRefunded(
                    **common,
                    reason=note,
                    amount=self.payment.final_amount,
                    loyalty_points_used=self.loyalty_points.used if self.loyalty_points else 0,
                    refunded_at=now,
                )
            )
        elif target == OrderStatus.FAILED:
            self.raise_(OrderFailed(**common, reason=note, failed_at=now))

    # Shorthands used by handlers
    def confirm(self, actor_id=None, actor_role=ActorRole.STAFF.value, note=None) -> None:
        self.update_status(OrderStatus.CONFIRMED.value, note, actor_id, actor_role)

    def cancel(self, reason: str | None, actor_id=None, actor_role=ActorRole.CUSTOMER.value) -> None:
        self.update_status(OrderStatus.CANCELLED.value, reason, actor_id, actor_role)

    def refund(self, reason: str, actor_id=None, actor_role=ActorRole.STAFF.value) -> None:
        self.update_status(OrderStatus.REFUNDED.value, reason, actor_id, actor_role)

    # -------------------------------------------------------------------
    # Payment and staff annotations
    # -------------------------------------------------------------------
    def _replace_payment(self, **changes) -> None:
        current = self.payment
        values = {
            "method": current.method,
            "status": current.status,
            "transaction_id": current.transaction_id,
            "paid_at": current.paid_at,
            "amount": current.amount,
            "delivery_fee": current.delivery_fee,
            "tax": current.tax,
            "discount": current.discount,
            "loyalty_discount": current.loyalty_discount,
            "total": current.total,
            "final_amount": current.final_amount,
        }
        values.update(changes)
        self.payment = OrderPayment(**values)

    def record_payment(self, status: str, transaction_id: str | None = None) -> None:
        try:
            payment_status = PaymentStatus(status)
        except ValueError as exc:
            raise ValidationError({"payment_status": [str(exc)]}) from exc
        if self.payment.status == PaymentStatus.REFUNDED.value:
            raise ValidationError({"payment_status": ["Payment has already been refunded"]})

        now = datetime.now(UTC)
        self._replace_payment(
            status=payment_status.value,
            transaction_id=transaction_id or self.payment.transaction_id,
            paid_at=now if payment_status == PaymentStatus.PAID else self.payment.paid_at,
        )
        self.updated_at = now
        self.raise_(
            OrderPaymentRecorded(
                order_id=str(self.id),
                payment_status=payment_status.value,
                transaction_id=transaction_id,
                amount=self.payment.final_amount,
                recorded_at=now,
            )
        )

    def add_staff_note(self, note: str, author: str | None = None) -> None:
        if not note:
            raise ValidationError({"note": ["Note cannot be empty"]})
        entry = f"[{datetime.now(UTC):%Y-%m-%d %H:%M}] {author + ': ' if author else ''}{note}"
        self.staff_notes = f"{self.staff_notes}\n{entry}" if self.staff_notes else entry
        self.updated_at = datetime.now(UTC)

    def mark_urgent(self, is_urgent: bool = True) -> None:
        if self.is_terminal:
            raise ValidationError({"status": ["Closed orders cannot be flagged"]})
        self.is_urgent = is_urgent
        self.updated_at = datetime.now(UTC)

    def set_estimated_delivery(self, estimated_delivery: datetime | None) -> None:
        self.estimated_delivery = estimated_delivery
        self.updated_at = datetime.now(UTC)
