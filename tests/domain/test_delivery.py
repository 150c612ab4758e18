"""Tests for the Delivery aggregate: estimates, driver tracking and completion."""

from datetime import UTC, datetime, timedelta

import pytest
from bakery.delivery.delivery import Delivery, DeliveryAddress, DeliveryStatus
from bakery.delivery.events import DeliveryCompleted, DeliveryDispatched, DriverAssigned
from bakery.shared.errors import IllegalTransitionError
from protean.exceptions import ValidationError

ADDRESS = DeliveryAddress(street="Rua Augusta 1", city="Lisboa", latitude=0.0, longitude=1.0)


def _delivery(**overrides):
    kwargs = {
        "order_id": "ord-001",
        "customer_id": "cust-001",
        "address": ADDRESS,
        "delivery_fee": 2.5,
        "origin": (0.0, 0.0),
        "estimated_ready": datetime(2024, 3, 15, 12, 0, tzinfo=UTC),
    }
    kwargs.update(overrides)
    delivery = Delivery.create(**kwargs)
    delivery._events.clear()
    return delivery


def _on_the_road(driver="drv-1"):
    delivery = _delivery()
    delivery.assign_driver(driver)
    delivery.mark_picked_up()
    delivery._events.clear()
    return delivery


class TestEstimates:
    def test_one_degree_of_longitude_at_the_equator(self):
        assert Delivery.calculate_distance(0, 0, 0, 1) == pytest.approx(111.195, abs=0.001)

    def test_create_estimates_distance_and_eta(self):
        delivery = _delivery()
        assert delivery.status == DeliveryStatus.PENDING.value
        assert delivery.distance == pytest.approx(111.195, abs=0.001)
        assert delivery.estimated_duration == 267
        assert delivery.estimated_pickup == datetime(2024, 3, 15, 12, 15, tzinfo=UTC)
        assert delivery.estimated_delivery == delivery.estimated_pickup + timedelta(minutes=267)

    def test_without_coordinates_only_pickup_is_estimated(self):
        delivery = _delivery(address=DeliveryAddress(street="Rua Augusta 1", city="Lisboa"))
        assert delivery.distance is None
        assert delivery.estimated_delivery is None
        assert delivery.estimated_pickup is not None

    def test_urgent_deliveries_get_urgent_priority(self):
        assert _delivery(is_urgent=True).priority == "urgent"

    def test_window_must_be_ordered(self):
        start = datetime(2024, 3, 15, 14, 0, tzinfo=UTC)
        with pytest.raises(ValidationError):
            _delivery(window_start=start, window_end=start - timedelta(hours=1))

    def test_delivery_window(self):
        start = datetime(2024, 3, 15, 14, 0, tzinfo=UTC)
        delivery = _delivery(window_start=start, window_end=start + timedelta(hours=1))
        assert delivery.is_within_delivery_window(start + timedelta(minutes=30))
        assert not delivery.is_within_delivery_window(start + timedelta(hours=2))
        assert _delivery().is_within_delivery_window()


class TestDriverAssignment:
    def test_assign(self):
        delivery = _delivery()
        delivery.assign_driver("drv-1")
        assert delivery.status == "assigned"
        assert delivery.driver_id == "drv-1"
        assert isinstance(delivery._events[-1], DriverAssigned)

    def test_reassign_while_assigned(self):
        delivery = _delivery()
        delivery.assign_driver("drv-1")
        delivery.assign_driver("drv-2")
        assert delivery.driver_id == "drv-2"
        assert delivery._events[-1].previous_driver_id == "drv-1"

    def test_only_drivers_can_be_assigned(self):
        with pytest.raises(ValidationError):
            _delivery().assign_driver("usr-9", driver_role="staff")


class TestLocationTracking:
    def test_only_assigned_driver_reports(self):
        delivery = _on_the_road("drv-1")
        with pytest.raises(ValidationError):
            delivery.update_location("drv-2", 0.0, 0.5)

    def test_not_tracked_before_assignment(self):
        delivery = _delivery()
        with pytest.raises(ValidationError):
            delivery.update_location(None, 0.0, 0.5)

    def test_first_update_puts_assigned_driver_in_transit(self):
        delivery = _delivery()
        delivery.assign_driver("drv-1")
        delivery.update_location("drv-1", 0.0, 0.2)
        assert delivery.status == "in_transit"
        assert delivery.last_location.longitude == 0.2

    def test_history_keeps_the_most_recent_hundred(self):
        delivery = _on_the_road()
        for step in range(105):
            delivery.update_location("drv-1", 0.0, step / 1000)

        points = delivery.locations()
        assert len(points) == 100
        assert points[0].sequence == 6
        assert points[-1].sequence == 105
        assert points[-1].longitude == pytest.approx(0.104)

    def test_remaining_distance(self):
        delivery = _on_the_road()
        delivery.update_location("drv-1", 0.0, 0.5)
        assert delivery.remaining_distance() == pytest.approx(55.597, abs=0.01)


class TestCompletion:
    def test_out_for_delivery_needs_pickup(self):
        delivery = _delivery()
        delivery.assign_driver("drv-1")
        with pytest.raises(ValidationError):
            delivery.mark_out_for_delivery()

    def test_dispatch_restamps_eta(self):
        delivery = _on_the_road()
        delivery.mark_out_for_delivery()
        assert delivery.status == "out_for_delivery"
        assert isinstance(delivery._events[-1], DeliveryDispatched)
        assert delivery.estimated_delivery > datetime.now(UTC)

    def test_complete(self):
        delivery = _on_the_road()
        delivery.mark_out_for_delivery()
        delivery.complete(notes="Left with the neighbour")

        assert delivery.status == "delivered"
        assert delivery.actual_duration == 0
        assert delivery.calculate_delay() == 0
        event = delivery._events[-1]
        assert isinstance(event, DeliveryCompleted)
        assert event.delay_minutes == 0

    def test_in_transit_without_pickup_cannot_complete(self):
        delivery = _delivery()
        delivery.assign_driver("drv-1")
        delivery.update_location("drv-1", 0.0, 0.3)
        with pytest.raises(ValidationError):
            delivery.complete()

    def test_delay_is_measured_against_estimate(self):
        delivery = _on_the_road()
        delivery.actual_delivery = delivery.estimated_delivery + timedelta(minutes=12, seconds=30)
        assert delivery.calculate_delay() == 12

    def test_failure_requires_reason(self):
        delivery = _on_the_road()
        with pytest.raises(ValidationError):
            delivery.fail("")
        delivery.fail("Customer not at home")
        assert delivery.failure_reason == "Customer not at home"
        assert delivery.is_terminal

    def test_terminal_deliveries_cannot_move(self):
        delivery = _delivery()
        delivery.cancel("Order cancelled")
        with pytest.raises(IllegalTransitionError):
            delivery.assign_driver("drv-1")

    def test_pending_cannot_jump_to_delivered(self):
        with pytest.raises(IllegalTransitionError):
            _delivery().update_status("delivered")


class TestAddressChange:
    def test_change_reestimates(self):
        delivery = _delivery()
        delivery.change_address(
            DeliveryAddress(street="Rua Nova 2", city="Lisboa", latitude=0.0, longitude=0.5), origin=(0.0, 0.0)
        )
        assert delivery.distance == pytest.approx(55.597, abs=0.001)

    def test_locked_once_picked_up(self):
        delivery = _on_the_road()
        with pytest.raises(ValidationError):
            delivery.change_address(DeliveryAddress(street="Rua Nova 2", city="Lisboa"))
