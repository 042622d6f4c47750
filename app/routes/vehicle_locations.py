"""
Vehicle location ingestion
Each new sample triggers the arrival and departure geofence checks for that vehicle.
"""

import logging

from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy.orm import Session

from ..database import get_db
from ..schemas import (
    LocationIngestResponse,
    LocationSampleCreate,
    LocationSampleResponse,
    VehicleTrailResponse,
)
from ..services.auto_job_service import AutoJobService
from ..services.location_service import get_vehicle_trail, record_location
from .auto_jobs import get_auto_job_service

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/vehicle-locations", tags=["Vehicle Locations"])


@router.post("", response_model=LocationIngestResponse)
async def ingest_location(
    payload: LocationSampleCreate,
    db: Session = Depends(get_db),
    service: AutoJobService = Depends(get_auto_job_service),
):
    try:
        sample = record_location(
            db,
            organization_id=payload.organization_id,
            device_id=payload.device_id,
            latitude=payload.latitude,
            longitude=payload.longitude,
            timestamp=payload.timestamp,
            speed=payload.speed,
            heading=payload.heading,
        )
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e)) from e
    except Exception as e:
        db.rollback()
        logger.error(f"❌ Failed to store location for device {payload.device_id}: {e}")
        raise HTTPException(status_code=500, detail="Failed to store location") from e

    arrivals = await service.check_vehicle_arrival(sample.device_id, sample.organization_id)
    departures = await service.check_vehicle_departure(sample.device_id, sample.organization_id)

    return LocationIngestResponse(
        sample=LocationSampleResponse.model_validate(sample),
        arrivals=arrivals,
        departures=departures,
    )


@router.get("/{device_id}/trail", response_model=VehicleTrailResponse)
async def get_trail(
    device_id: str,
    organization_id: int = Query(...),
    limit: int = Query(50, ge=1, le=500),
    filter_jitter: bool = False,
    db: Session = Depends(get_db),
):
    points = get_vehicle_trail(db, organization_id, device_id, limit, filter_jitter)
    return VehicleTrailResponse(
        device_id=device_id,
        points=[LocationSampleResponse.model_validate(p) for p in points],
    )
