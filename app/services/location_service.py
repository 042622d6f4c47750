"""
Vehicle Location Service
Stores GPS samples reported for vehicle devices and reads them back
"""

import logging
from datetime import datetime
from typing import List, Optional

from sqlalchemy import desc
from sqlalchemy.orm import Session

from ..models import VehicleLocation
from ..shared.validators import validate_coordinates
from ..utils.datetime_helpers import to_naive_utc, utc_now
from ..utils.gps import calculate_speed, haversine_distance, is_significant_movement

logger = logging.getLogger(__name__)

MAX_TRAIL_POINTS = 500


def record_location(
    db: Session,
    organization_id: int,
    device_id: str,
    latitude,
    longitude,
    timestamp: Optional[datetime] = None,
    speed: Optional[float] = None,
    heading: Optional[float] = None,
) -> VehicleLocation:
    """
    Store a location sample for a vehicle device

    Raises:
        ValueError: If the device id is blank or the coordinates are invalid
    """
    if not device_id or not str(device_id).strip():
        raise ValueError("device_id is required")

    lat, lng = validate_coordinates(latitude, longitude)

    sample = VehicleLocation(
        organization_id=organization_id,
        device_id=str(device_id).strip(),
        latitude=lat,
        longitude=lng,
        speed=speed,
        heading=heading,
        timestamp=to_naive_utc(timestamp) if timestamp else utc_now(),
    )
    db.add(sample)
    db.commit()
    db.refresh(sample)

    logger.debug(f"📍 Location for device {sample.device_id}: {lat:.6f}, {lng:.6f}")
    return sample


def get_latest_location(
    db: Session, organization_id: int, device_id: str
) -> Optional[VehicleLocation]:
    return (
        db.query(VehicleLocation)
        .filter(
            VehicleLocation.organization_id == organization_id,
            VehicleLocation.device_id == device_id,
        )
        .order_by(desc(VehicleLocation.timestamp), desc(VehicleLocation.id))
        .first()
    )


def get_vehicle_trail(
    db: Session,
    organization_id: int,
    device_id: str,
    limit: int = 50,
    filter_jitter: bool = False,
) -> List[VehicleLocation]:
    """
    Most recent samples for a device, oldest first.

    With filter_jitter, a point is kept only when it moved significantly
    from the previously kept point.
    """
    limit = max(1, min(int(limit), MAX_TRAIL_POINTS))

    samples = (
        db.query(VehicleLocation)
        .filter(
            VehicleLocation.organization_id == organization_id,
            VehicleLocation.device_id == device_id,
        )
        .order_by(desc(VehicleLocation.timestamp), desc(VehicleLocation.id))
        .limit(limit)
        .all()
    )
    samples.reverse()

    if not filter_jitter or len(samples) < 2:
        return samples

    trail = [samples[0]]
    for sample in samples[1:]:
        last = trail[-1]
        distance = haversine_distance(
            last.latitude, last.longitude, sample.latitude, sample.longitude
        )
        speed = calculate_speed(
            last.latitude,
            last.longitude,
            last.timestamp,
            sample.latitude,
            sample.longitude,
            sample.timestamp,
        )
        if is_significant_movement(distance, speed):
            trail.append(sample)

    return trail
