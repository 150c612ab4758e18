"""Delivery aggregate (CQRS) — the trip of one delivery order from the bakery to the customer.

A delivery is scheduled when a delivery order is confirmed. Distance and
travel time are estimated from the bakery to the customer's coordinates, a
driver is assigned, and the driver's position is recorded while the order
is on its way.

State Machine:
    PENDING → ASSIGNED → PICKED_UP → {OUT_FOR_DELIVERY, IN_TRANSIT} → DELIVERED
    ASSIGNED → IN_TRANSIT (first location update, driver heading to the bakery)
    IN_TRANSIT → {PICKED_UP, OUT_FOR_DELIVERY}
    Any non-terminal state → {FAILED, CANCELLED}

Terminal: DELIVERED, FAILED, CANCELLED
"""

from datetime import UTC, datetime, timedelta
from enum import Enum

from protean import atomic_change
from protean.exceptions import ValidationError
from protean.fields import Boolean, DateTime, Float, HasMany, Identifier, Integer, String, ValueObject

from bakery.config import get_settings
from bakery.delivery.events import (
    DeliveryAddressChanged,
    DeliveryCancelled,
    DeliveryCompleted,
    DeliveryDispatched,
    DeliveryFailed,
    DeliveryPickedUp,
    DeliveryScheduled,
    DriverAssigned,
    DriverLocationUpdated,
)
from bakery.domain import bakery
from bakery.shared.clock import ensure_utc
from bakery.shared.errors import IllegalTransitionError
from bakery.shared.geo import add_minutes, haversine_km, travel_minutes
from bakery.shared.roles import ActorRole


# ---------------------------------------------------------------------------
# Enums
# ---------------------------------------------------------------------------
class DeliveryStatus(Enum):
    PENDING = "pending"
    ASSIGNED = "assigned"
    PICKED_UP = "picked_up"
    IN_TRANSIT = "in_transit"
    OUT_FOR_DELIVERY = "out_for_delivery"
    DELIVERED = "delivered"
    FAILED = "failed"
    CANCELLED = "cancelled"


class DeliveryPriority(Enum):
    LOW = "low"
    NORMAL = "normal"
    HIGH = "high"
    URGENT = "urgent"


_ABORTS = {DeliveryStatus.FAILED, DeliveryStatus.CANCELLED}

_VALID_TRANSITIONS = {
    DeliveryStatus.PENDING: {DeliveryStatus.ASSIGNED} | _ABORTS,
    DeliveryStatus.ASSIGNED: {DeliveryStatus.ASSIGNED, DeliveryStatus.PICKED_UP, DeliveryStatus.IN_TRANSIT} | _ABORTS,
    DeliveryStatus.PICKED_UP: {DeliveryStatus.OUT_FOR_DELIVERY, DeliveryStatus.IN_TRANSIT} | _ABORTS,
    DeliveryStatus.IN_TRANSIT: {DeliveryStatus.PICKED_UP, DeliveryStatus.OUT_FOR_DELIVERY, DeliveryStatus.DELIVERED}
    | _ABORTS,
    DeliveryStatus.OUT_FOR_DELIVERY: {DeliveryStatus.DELIVERED} | _ABORTS,
    DeliveryStatus.DELIVERED: set(),  # terminal
    DeliveryStatus.FAILED: set(),  # terminal
    DeliveryStatus.CANCELLED: set(),  # terminal
}

TERMINAL_STATUSES = {status for status, targets in _VALID_TRANSITIONS.items() if not targets}

# Statuses in which the assigned driver reports positions
_TRACKED_STATUSES = {
    DeliveryStatus.ASSIGNED,
    DeliveryStatus.PICKED_UP,
    DeliveryStatus.IN_TRANSIT,
    DeliveryStatus.OUT_FOR_DELIVERY,
}


# ---------------------------------------------------------------------------
# Value Objects
# ---------------------------------------------------------------------------
@bakery.value_object(part_of="Delivery")
class DeliveryAddress:
    street = String(required=True, max_length=255)
    city = String(required=True, max_length=100)
    postal_code = String(max_length=20)
    latitude = Float(min_value=-90.0, max_value=90.0)
    longitude = Float(min_value=-180.0, max_value=180.0)
    instructions = String(max_length=500)

    @property
    def has_coordinates(self) -> bool:
        return self.latitude is not None and self.longitude is not None


@bakery.value_object(part_of="Delivery")
class LastLocation:
    latitude = Float(required=True)
    longitude = Float(required=True)
    accuracy = Float(default=0.0)
    recorded_at = DateTime(required=True)


# ---------------------------------------------------------------------------
# Entities
# ---------------------------------------------------------------------------
@bakery.entity(part_of="Delivery")
class DeliveryStatusChange:
    status = String(required=True, choices=DeliveryStatus)
    note = String(max_length=500)
    actor_id = String(max_length=100)
    latitude = Float()
    longitude = Float()
    sequence = Integer(required=True)
    occurred_at = DateTime(required=True)


@bakery.entity(part_of="Delivery")
class LocationPoint:
    latitude = Float(required=True)
    longitude = Float(required=True)
    accuracy = Float(default=0.0)
    sequence = Integer(required=True)
    recorded_at = DateTime(required=True)


# ---------------------------------------------------------------------------
# Aggregate Root
# ---------------------------------------------------------------------------
@bakery.aggregate
class Delivery:
    order_id = Identifier(required=True, unique=True)
    customer_id = Identifier(required=True)
    driver_id = String(max_length=100)
    status = String(choices=DeliveryStatus, default=DeliveryStatus.PENDING.value)
    status_history = HasMany(DeliveryStatusChange)
    address = ValueObject(DeliveryAddress)
    last_location = ValueObject(LastLocation)
    location_history = HasMany(LocationPoint)
    distance = Float(min_value=0.0)  # km
    estimated_duration = Integer(min_value=0)  # minutes
    actual_duration = Integer(min_value=0)  # minutes
    delivery_fee = Float(default=0.0, min_value=0.0)
    priority = String(max_length=10, choices=DeliveryPriority, default=DeliveryPriority.NORMAL.value)
    is_urgent = Boolean(default=False)
    special_instructions = String(max_length=500)
    delivery_notes = String(max_length=1000)
    failure_reason = String(max_length=500)
    estimated_ready = DateTime()
    estimated_pickup = DateTime()
    actual_pickup = DateTime()
    estimated_delivery = DateTime()
    actual_delivery = DateTime()
    completed_at = DateTime()
    window_start = DateTime()
    window_end = DateTime()
    created_at = DateTime()
    updated_at = DateTime()

    # -------------------------------------------------------------------
    # Factory method
    # -------------------------------------------------------------------
    @classmethod
    def create(
        cls,
        order_id,
        customer_id,
        address: DeliveryAddress,
        delivery_fee: float = 0.0,
        origin: tuple[float, float] | None = None,
        estimated_ready: datetime | None = None,
        is_urgent: bool = False,
        priority: str | None = None,
        special_instructions: str | None = None,
        window_start: datetime | None = None,
        window_end: datetime | None = None,
    ):
        """Schedule a delivery and estimate when it will arrive.

        ``origin`` defaults to the bakery's configured coordinates. Without
        customer coordinates the distance stays unknown and only the pickup
        time is estimated.
        """
        settings = get_settings()
        now = datetime.now(UTC)
        if window_start and window_end and ensure_utc(window_start) > ensure_utc(window_end):
            raise ValidationError({"window": ["Delivery window must start before it ends"]})

        delivery = cls(
            order_id=order_id,
            customer_id=customer_id,
            address=address,
            delivery_fee=delivery_fee,
            is_urgent=is_urgent,
            priority=priority or (DeliveryPriority.URGENT.value if is_urgent else DeliveryPriority.NORMAL.value),
            special_instructions=special_instructions or address.instructions,
            estimated_ready=ensure_utc(estimated_ready)
            or now + timedelta(minutes=settings.DEFAULT_PREPARATION_MINUTES),
            window_start=ensure_utc(window_start),
            window_end=ensure_utc(window_end),
            created_at=now,
            updated_at=now,
        )
        with atomic_change(delivery):
            delivery._estimate(origin)
            delivery._append_history(DeliveryStatus.PENDING, "Delivery scheduled")

        delivery.raise_(
            DeliveryScheduled(
                delivery_id=str(delivery.id),
                order_id=str(order_id),
                customer_id=str(customer_id),
                distance=delivery.distance,
                estimated_duration=delivery.estimated_duration,
                estimated_delivery=delivery.estimated_delivery,
                scheduled_at=now,
            )
        )
        return delivery

    # -------------------------------------------------------------------
    # Queries
    # -------------------------------------------------------------------
    @staticmethod
    def calculate_distance(lat1: float, lng1: float, lat2: float, lng2: float) -> float:
        return haversine_km(lat1, lng1, lat2, lng2)

    @property
    def is_terminal(self) -> bool:
        return DeliveryStatus(self.status) in TERMINAL_STATUSES

    def history(self) -> list[DeliveryStatusChange]:
        return sorted(self.status_history, key=lambda h: h.sequence)

    def locations(self) -> list[LocationPoint]:
        """Recorded driver positions, oldest first."""
        return sorted(self.location_history, key=lambda p: p.sequence)

    def calculate_delay(self) -> int:
        """Minutes the delivery arrived after its estimate; 0 when early or unknown."""
        if self.estimated_delivery is None or self.actual_delivery is None:
            return 0
        late = ensure_utc(self.actual_delivery) - ensure_utc(self.estimated_delivery)
        return max(0, int(late.total_seconds() // 60))

    def is_within_delivery_window(self, now: datetime | None = None) -> bool:
        if self.window_start is None or self.window_end is None:
            return True
        now = now or datetime.now(UTC)
        return ensure_utc(self.window_start) <= now <= ensure_utc(self.window_end)

    def remaining_distance(self) -> float | None:
        if self.last_location is None or self.address is None or not self.address.has_coordinates:
            return None
        return haversine_km(
            self.last_location.latitude,
            self.last_location.longitude,
            self.address.latitude,
            self.address.longitude,
        )

    # -------------------------------------------------------------------
    # Internal helpers
    # -------------------------------------------------------------------
    def _estimate(self, origin: tuple[float, float] | None = None) -> None:
        settings = get_settings()
        origin = origin or (settings.BAKERY_LATITUDE, settings.BAKERY_LONGITUDE)
        if self.address is not None and self.address.has_coordinates:
            self.distance = round(haversine_km(origin[0], origin[1], self.address.latitude, self.address.longitude), 3)
            self.estimated_duration = travel_minutes(self.distance, settings.AVERAGE_SPEED_KMH)
        else:
            self.distance = None
            self.estimated_duration = None
        self.estimated_pickup = add_minutes(self.estimated_ready, settings.PICKUP_BUFFER_MINUTES)
        self.estimated_delivery = (
            add_minutes(self.estimated_pickup, self.estimated_duration) if self.estimated_duration is not None else None
        )

    def _append_history(self, status: DeliveryStatus, note: str, actor_id: str | None = None) -> None:
        location = self.last_location
        self.add_status_history(
            DeliveryStatusChange(
                status=status.value,
                note=note,
                actor_id=actor_id,
                latitude=location.latitude if location else None,
                longitude=location.longitude if location else None,
                sequence=max((h.sequence for h in self.status_history), default=0) + 1,
                occurred_at=datetime.now(UTC),
            )
        )

    def _assert_can_transition(self, target: DeliveryStatus) -> None:
        current = DeliveryStatus(self.status)
        if target not in _VALID_TRANSITIONS[current]:
            raise IllegalTransitionError(current.value, target.value)

    def _transition(self, target: DeliveryStatus, note: str, actor_id: str | None = None) -> datetime:
        """Move to ``target``; callers stamp timings inside their own ``atomic_change``."""
        self._assert_can_transition(target)
        now = datetime.now(UTC)
        self.status = target.value
        self._append_history(target, note, actor_id)
        self.delivery_notes = note
        self.updated_at = now
        return now

    # -------------------------------------------------------------------
    # Driver assignment and tracking
    # -------------------------------------------------------------------
    def assign_driver(self, driver_id: str, driver_role: str = ActorRole.DRIVER.value) -> None:
        """Assign (or, while still ``assigned``, reassign) a driver."""
        if driver_role != ActorRole.DRIVER.value:
            raise ValidationError({"driver_id": ["Only users with the driver role can be assigned"]})
        if not driver_id:
            raise ValidationError({"driver_id": ["Driver is required"]})

        previous = self.driver_id
        with atomic_change(self):
            now = self._transition(DeliveryStatus.ASSIGNED, f"Driver {driver_id} assigned", actor_id=driver_id)
            self.driver_id = driver_id

        self.raise_(
            DriverAssigned(
                delivery_id=str(self.id),
                order_id=str(self.order_id),
                driver_id=driver_id,
                previous_driver_id=previous,
                assigned_at=now,
            )
        )

    def update_location(self, driver_id: str, latitude: float, longitude: float, accuracy: float = 0.0) -> None:
        """Record the assigned driver's position.

        Only the most recent ``LOCATION_HISTORY_LIMIT`` positions are kept;
        the oldest are dropped in the same change that appends the new one.
        """
        if str(driver_id) != str(self.driver_id):
            raise ValidationError({"driver_id": ["Only the assigned driver can report the location"]})
        if DeliveryStatus(self.status) not in _TRACKED_STATUSES:
            raise ValidationError({"status": [f"Location cannot be updated while {self.status}"]})

        limit = get_settings().LOCATION_HISTORY_LIMIT
        now = datetime.now(UTC)
        with atomic_change(self):
            self.last_location = LastLocation(
                latitude=latitude,
                longitude=longitude,
                accuracy=accuracy or 0.0,
                recorded_at=now,
            )
            points = self.locations()
            self.add_location_history(
                LocationPoint(
                    latitude=latitude,
                    longitude=longitude,
                    accuracy=accuracy or 0.0,
                    sequence=(points[-1].sequence if points else 0) + 1,
                    recorded_at=now,
                )
            )
            overflow = len(points) + 1 - limit
            if overflow > 0:
                self.remove_location_history(points[:overflow])

            if DeliveryStatus(self.status) == DeliveryStatus.ASSIGNED:
                self._transition(DeliveryStatus.IN_TRANSIT, "Driver on the way", actor_id=driver_id)
            self.updated_at = now

        self.raise_(
            DriverLocationUpdated(
                delivery_id=str(self.id),
                driver_id=str(driver_id),
                latitude=latitude,
                longitude=longitude,
                accuracy=accuracy or 0.0,
                recorded_at=now,
            )
        )

    # -------------------------------------------------------------------
    # Status changes
    # -------------------------------------------------------------------
    def mark_picked_up(self, actor_id: str | None = None, note: str | None = None) -> None:
        with atomic_change(self):
            now = self._transition(DeliveryStatus.PICKED_UP, note or "Order picked up", actor_id or self.driver_id)
            self.actual_pickup = now

        self.raise_(
            DeliveryPickedUp(
                delivery_id=str(self.id),
                order_id=str(self.order_id),
                driver_id=self.driver_id,
                picked_up_at=now,
            )
        )

    def mark_out_for_delivery(self, actor_id: str | None = None, note: str | None = None) -> None:
        if self.actual_pickup is None:
            raise ValidationError({"status": ["The order has not been picked up yet"]})
        with atomic_change(self):
            now = self._transition(
                DeliveryStatus.OUT_FOR_DELIVERY, note or "Out for delivery", actor_id or self.driver_id
            )
            if self.estimated_duration is not None:
                self.estimated_delivery = add_minutes(now, self.estimated_duration)

        self.raise_(
            DeliveryDispatched(
                delivery_id=str(self.id),
                order_id=str(self.order_id),
                driver_id=self.driver_id,
                estimated_delivery=self.estimated_delivery,
                dispatched_at=now,
            )
        )

    def complete(self, notes: str | None = None, actor_id: str | None = None) -> None:
        """Hand the order over. The order it belongs to is closed in reaction."""
        if DeliveryStatus(self.status) == DeliveryStatus.IN_TRANSIT and self.actual_pickup is None:
            raise ValidationError({"status": ["The order has not been picked up yet"]})
        with atomic_change(self):
            now = self._transition(DeliveryStatus.DELIVERED, notes or "Delivered", actor_id or self.driver_id)
            self.completed_at = now
            self.actual_delivery = now
            if self.actual_pickup is not None:
                elapsed = now - ensure_utc(self.actual_pickup)
                self.actual_duration = max(0, int(elapsed.total_seconds() // 60))

        self.raise_(
            DeliveryCompleted(
                delivery_id=str(self.id),
                order_id=str(self.order_id),
                driver_id=self.driver_id,
                actual_duration=self.actual_duration,
                delay_minutes=self.calculate_delay(),
                completed_at=now,
            )
        )

    def fail(self, reason: str, actor_id: str | None = None) -> None:
        if not reason:
            raise ValidationError({"reason": ["A failure reason is required"]})
        with atomic_change(self):
            now = self._transition(DeliveryStatus.FAILED, reason, actor_id)
            self.failure_reason = reason

        self.raise_(
            DeliveryFailed(
                delivery_id=str(self.id),
                order_id=str(self.order_id),
                reason=reason,
                failed_at=now,
            )
        )

    def cancel(self, reason: str | None = None, actor_id: str | None = None) -> None:
        with atomic_change(self):
            now = self._transition(DeliveryStatus.CANCELLED, reason or "Delivery cancelled", actor_id)
            self.failure_reason = reason

        self.raise_(
            DeliveryCancelled(
                delivery_id=str(self.id),
                order_id=str(self.order_id),
                reason=reason,
                cancelled_at=now,
            )
        )

    def update_status(self, new_status: str, note: str | None = None, actor_id: str | None = None) -> None:
        """Generic entry point dispatching to the dedicated transition methods."""
        try:
            target = DeliveryStatus(new_status)
        except ValueError as exc:
            raise ValidationError({"status": [str(exc)]}) from exc

        if target == DeliveryStatus.PICKED_UP:
            self.mark_picked_up(actor_id, note)
        elif target == DeliveryStatus.OUT_FOR_DELIVERY:
            self.mark_out_for_delivery(actor_id, note)
        elif target == DeliveryStatus.DELIVERED:
            self.complete(note, actor_id)
        elif target == DeliveryStatus.FAILED:
            self.fail(note, actor_id)
        elif target == DeliveryStatus.CANCELLED:
            self.cancel(note, actor_id)
        else:
            with atomic_change(self):
                self._transition(target, note or "Status updated", actor_id)

    def change_address(self, address: DeliveryAddress, origin: tuple[float, float] | None = None) -> None:
        """Correct the drop-off address before the driver leaves with the order."""
        if DeliveryStatus(self.status) not in {DeliveryStatus.PENDING, DeliveryStatus.ASSIGNED}:
            raise ValidationError({"address": ["The address can no longer be changed"]})
        now = datetime.now(UTC)
        with atomic_change(self):
            self.address = address
            self._estimate(origin)
            self.updated_at = now

        self.raise_(
            DeliveryAddressChanged(
                delivery_id=str(self.id),
                order_id=str(self.order_id),
                distance=self.distance,
                estimated_delivery=self.estimated_delivery,
                changed_at=now,
            )
        )
