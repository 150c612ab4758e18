"""Great-circle geometry for delivery tracking."""

import math
from datetime import datetime, timedelta

EARTH_RADIUS_KM = 6371.0


def haversine_km(lat1: float, lng1: float, lat2: float, lng2: float) -> float:
    """Distance in kilometres between two latitude/longitude points.

    ``a = sin²(Δlat/2) + cos(lat1)·cos(lat2)·sin²(Δlng/2)``,
    ``d = 2R·atan2(√a, √(1−a))``.
    """
    phi1 = math.radians(lat1)
    phi2 = math.radians(lat2)
    d_phi = math.radians(lat2 - lat1)
    d_lambda = math.radians(lng2 - lng1)

    a = math.sin(d_phi / 2) ** 2 + math.cos(phi1) * math.cos(phi2) * math.sin(d_lambda / 2) ** 2
    return 2 * EARTH_RADIUS_KM * math.atan2(math.sqrt(a), math.sqrt(1 - a))


def travel_minutes(distance_km: float, speed_kmh: float) -> int:
    """Whole minutes needed to cover ``distance_km`` at ``speed_kmh``, rounded up."""
    if distance_km <= 0 or speed_kmh <= 0:
        return 0
    return math.ceil(distance_km / speed_kmh * 60)


def add_minutes(moment: datetime | None, minutes: int) -> datetime | None:
    if moment is None:
        return None
    return moment + timedelta(minutes=minutes)
