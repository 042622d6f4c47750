from datetime import datetime
from typing import Optional

from pydantic import BaseModel, Field


class LocationSampleCreate(BaseModel):
    organization_id: int
    device_id: str = Field(..., min_length=1, max_length=100)
    latitude: float
    longitude: float
    timestamp: Optional[datetime] = None
    speed: Optional[float] = None
    heading: Optional[float] = None


class LocationSampleResponse(BaseModel):
    id: int
    organization_id: int
    device_id: str
    latitude: float
    longitude: float
    speed: Optional[float]
    heading: Optional[float]
    timestamp: datetime

    class Config:
        from_attributes = True


class LocationIngestResponse(BaseModel):
    sample: LocationSampleResponse
    arrivals: int
    departures: int


class VehicleTrailResponse(BaseModel):
    device_id: str
    points: list[LocationSampleResponse]


class AutoJobRunResult(BaseModel):
    auto_started: int
    auto_completed: int
    errors: int


class AutoJobSettingsResponse(BaseModel):
    auto_start_delay_minutes: int
    auto_complete_delay_minutes: int
    proximity_threshold_meters: float
    check_interval_seconds: float


class AutoJobStatusResponse(BaseModel):
    running: bool
    last_run_at: Optional[datetime] = None
    settings: AutoJobSettingsResponse


class ProjectLifecycleResponse(BaseModel):
    id: int
    status: str
    arrived_at: Optional[datetime]
    departed_at: Optional[datetime]
    auto_started_at: Optional[datetime]
    auto_completed_at: Optional[datetime]

    class Config:
        from_attributes = True
