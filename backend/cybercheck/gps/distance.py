"""
Great-circle distance between two coordinates
"""
from math import radians, sin, cos, atan2, sqrt

EARTH_RADIUS_METERS = 6371000.0


def distance(lat1: float, lon1: float, lat2: float, lon2: float) -> float:
    """
    Haversine distance in meters

    Inputs are not range-checked; callers supply sane degrees.
    """
    phi1 = radians(lat1)
    phi2 = radians(lat2)
    d_phi = radians(lat2 - lat1)
    d_lambda = radians(lon2 - lon1)

    a = sin(d_phi / 2) ** 2 + cos(phi1) * cos(phi2) * sin(d_lambda / 2) ** 2
    # Rounding can push a a hair outside [0, 1] and make sqrt(1 - a) NaN
    a = min(1.0, max(0.0, a))
    c = 2 * atan2(sqrt(a), sqrt(1 - a))

    return EARTH_RADIUS_METERS * c
