"""
Geographic helpers.
"""

import math
from dataclasses import dataclass
from typing import Optional

EARTH_RADIUS_KM = 6371.0


@dataclass(frozen=True)
class LocationAnchor:
    """A point with a search radius, derived from the query."""

    lat: float
    lng: float
    radius_km: float
    name: Optional[str] = None


def haversine_km(lat1: float, lng1: float, lat2: float, lng2: float) -> float:
    """Great-circle distance in kilometres."""
    phi1 = math.radians(lat1)
    phi2 = math.radians(lat2)
    d_phi = math.radians(lat2 - lat1)
    d_lambda = math.radians(lng2 - lng1)

    a = math.sin(d_phi / 2) ** 2 + math.cos(phi1) * math.cos(phi2) * math.sin(d_lambda / 2) ** 2
    return 2 * EARTH_RADIUS_KM * math.asin(min(1.0, math.sqrt(a)))
