"""Small geometry helpers for radius searches."""

import math
from typing import Tuple

EARTH_RADIUS_METERS = 6_371_008.8


def circle_area_km2(radius_meters: float) -> float:
    return math.pi * (radius_meters / 1000) ** 2


def haversine_meters(a: Tuple[float, float], b: Tuple[float, float]) -> float:
    """Great-circle distance between two ``(lon, lat)`` points."""
    lon1, lat1 = map(math.radians, a)
    lon2, lat2 = map(math.radians, b)
    dlat = lat2 - lat1
    dlon = lon2 - lon1
    h = math.sin(dlat / 2) ** 2 + math.cos(lat1) * math.cos(lat2) * math.sin(dlon / 2) ** 2
    return 2 * EARTH_RADIUS_METERS * math.asin(math.sqrt(h))


def radius_to_km_param(radius_meters: int, upper: int = 33) -> int:
    """TMAP radius parameters are whole kilometres between 1 and ``upper``."""
    return max(1, min(upper, math.ceil(radius_meters / 1000)))
