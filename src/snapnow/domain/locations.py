"""Live location domain models."""

import math
from dataclasses import dataclass
from datetime import datetime
from uuid import UUID

from snapnow.domain.identity import Role

_EARTH_RADIUS_M = 6_371_000.0


@dataclass(frozen=True)
class LivePosition:
    """Latest known position of one party for one booking."""

    booking_id: UUID
    role: Role
    user_id: UUID
    latitude: float
    longitude: float
    accuracy: float | None
    updated_at: datetime


@dataclass(frozen=True)
class PositionFix:
    """A position reported by the device location provider."""

    latitude: float
    longitude: float
    accuracy: float | None
    recorded_at: datetime


def is_valid_coordinate(latitude: float, longitude: float) -> bool:
    """Return true for finite WGS84 latitude/longitude values."""
    if not (math.isfinite(latitude) and math.isfinite(longitude)):
        return False
    return -90.0 <= latitude <= 90.0 and -180.0 <= longitude <= 180.0


def distance_meters(
    lat1: float, lng1: float, lat2: float, lng2: float
) -> float:
    """Great-circle distance between two points (haversine)."""
    phi1 = math.radians(lat1)
    phi2 = math.radians(lat2)
    d_phi = math.radians(lat2 - lat1)
    d_lambda = math.radians(lng2 - lng1)
    a = (
        math.sin(d_phi / 2) ** 2
        + math.cos(phi1) * math.cos(phi2) * math.sin(d_lambda / 2) ** 2
    )
    return 2 * _EARTH_RADIUS_M * math.asin(math.sqrt(a))
