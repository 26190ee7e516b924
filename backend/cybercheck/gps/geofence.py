"""
Geofence Evaluator
"""
from .distance import distance
from .models import GeofenceResult, LocationReading


def evaluate(
    reading: LocationReading,
    target_lat: float,
    target_lon: float,
    radius_meters: float,
) -> GeofenceResult:
    """Check a reading against a circular fence; the boundary counts as inside"""
    meters = distance(reading.latitude, reading.longitude, target_lat, target_lon)
    return GeofenceResult(within_radius=meters <= radius_meters, distance_meters=meters)
