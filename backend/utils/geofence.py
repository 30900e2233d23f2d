"""
Geofence check for trust-sensitive worker actions.

Coordinates are expected to be range-checked at the request boundary
(see ``is_valid_coordinates``); the distance math does not re-validate them.
"""
import math
from pydantic import BaseModel

EARTH_RADIUS_METERS = 6_371_000
DEFAULT_MAX_DISTANCE_METERS = 10.0


class GeofenceResult(BaseModel):
    within_range: bool
    distance_meters: float


def is_valid_coordinates(lat: float, lon: float) -> bool:
    return -90 <= lat <= 90 and -180 <= lon <= 180


def haversine_distance(lat1: float, lon1: float, lat2: float, lon2: float) -> float:
    """Great-circle distance between two points in meters."""
    phi1 = math.radians(lat1)
    phi2 = math.radians(lat2)
    delta_phi = math.radians(lat2 - lat1)
    delta_lambda = math.radians(lon2 - lon1)

    a = (
        math.sin(delta_phi / 2) ** 2
        + math.cos(phi1) * math.cos(phi2) * math.sin(delta_lambda / 2) ** 2
    )
    # Rounding can push a just outside [0, 1] near antipodal points
    a = min(1.0, max(0.0, a))
    c = 2 * math.atan2(math.sqrt(a), math.sqrt(1 - a))

    return EARTH_RADIUS_METERS * c


def check_geofence(
    device_lat: float,
    device_lon: float,
    target_lat: float,
    target_lon: float,
    max_distance_meters: float = DEFAULT_MAX_DISTANCE_METERS,
) -> GeofenceResult:
    distance = haversine_distance(device_lat, device_lon, target_lat, target_lon)
    return GeofenceResult(within_range=distance <= max_distance_meters, distance_meters=distance)
