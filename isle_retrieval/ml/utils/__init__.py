"""
ML utilities
"""

from .geo import EARTH_RADIUS_KM, LocationAnchor, haversine_km

__all__ = ["EARTH_RADIUS_KM", "LocationAnchor", "haversine_km"]
