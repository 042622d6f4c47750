"""
GPS helpers for geofence checks and movement filtering
All distances are in meters unless the name says otherwise
"""

from datetime import datetime
from math import atan2, cos, radians, sin, sqrt
from typing import Optional

EARTH_RADIUS_METERS = 6371000
METERS_PER_MILE = 1609.344

# Movement below these limits is treated as GPS jitter
MIN_MOVEMENT_METERS = 150
MIN_MOVEMENT_SPEED_MPH = 0.5


def haversine_distance(lat1: float, lng1: float, lat2: float, lng2: float) -> float:
    """Great-circle distance between two points in meters"""
    phi1, phi2 = radians(lat1), radians(lat2)
    d_lat = radians(lat2 - lat1)
    d_lng = radians(lng2 - lng1)

    a = sin(d_lat / 2) ** 2 + cos(phi1) * cos(phi2) * sin(d_lng / 2) ** 2
    c = 2 * atan2(sqrt(a), sqrt(1 - a))
    return EARTH_RADIUS_METERS * c


def calculate_speed(
    lat1: float,
    lng1: float,
    time1: datetime,
    lat2: float,
    lng2: float,
    time2: datetime,
) -> float:
    """Average speed in mph between two timestamped samples"""
    distance_miles = haversine_distance(lat1, lng1, lat2, lng2) / METERS_PER_MILE
    hours = (time2 - time1).total_seconds() / 3600

    if hours == 0:
        return 0.0

    return distance_miles / hours


def is_significant_movement(distance_m: float, speed_mph: float) -> bool:
    return distance_m >= MIN_MOVEMENT_METERS and speed_mph >= MIN_MOVEMENT_SPEED_MPH


def format_full_address(
    address: Optional[str],
    city: Optional[str] = None,
    state: Optional[str] = None,
    zip_code: Optional[str] = None,
) -> str:
    """Build a single-line address: "street, city, state zip" """
    if not address or not address.strip():
        return ""

    full = address.strip()
    if city:
        full += f", {city.strip()}"
    if state:
        full += f", {state.strip()}"
    if zip_code:
        full += f" {zip_code.strip()}"
    return full
