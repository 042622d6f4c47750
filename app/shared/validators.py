"""Shared validation utilities"""

from typing import Tuple


def validate_coordinates(latitude, longitude) -> Tuple[float, float]:
    """
    Validate and normalize a latitude/longitude pair.

    Args:
        latitude: Latitude in decimal degrees (number or numeric string)
        longitude: Longitude in decimal degrees (number or numeric string)

    Returns:
        (latitude, longitude) as floats

    Raises:
        ValueError: If either value is missing, non-numeric or out of range
    """
    try:
        lat = float(latitude)
        lng = float(longitude)
    except (TypeError, ValueError) as e:
        raise ValueError(f"Invalid coordinates: {latitude}, {longitude}") from e

    if lat != lat or lng != lng:  # NaN
        raise ValueError("Coordinates must be numbers")

    if not -90 <= lat <= 90:
        raise ValueError(f"Latitude out of range: {lat}")

    if not -180 <= lng <= 180:
        raise ValueError(f"Longitude out of range: {lng}")

    return lat, lng
