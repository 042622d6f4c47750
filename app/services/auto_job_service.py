"""
Auto Job Lifecycle Service
Promotes projects through arrival → auto-start → departure → auto-complete
based on elapsed time and vehicle GPS proximity to the job site.

- Auto-start: vehicle arrived more than N minutes ago → in-progress
- Auto-complete: vehicle departed more than N minutes ago → completed
- Departure: latest vehicle sample is outside the job-site radius

Every transition is a conditional UPDATE guarded by its nullable timestamp
column, so re-running a scan is a no-op once the latch is set. Within one
process the periodic tick and the location-triggered checks are serialized
through a single lock; across processes the guarded UPDATE decides which
writer wins and only that writer sends the notification.
"""

import asyncio
import logging
from datetime import datetime, timedelta
from typing import Callable, Optional

from pydantic import BaseModel
from sqlalchemy.orm import Session

from ..config import (
    AUTO_COMPLETE_DELAY_MINUTES,
    AUTO_JOB_CHECK_INTERVAL_SECONDS,
    AUTO_START_DELAY_MINUTES,
    PROXIMITY_THRESHOLD_METERS,
)
from ..models import JobStatus, NotificationPriority, Project, User
from ..utils.datetime_helpers import utc_now
from ..utils.gps import haversine_distance
from .location_service import get_latest_location

logger = logging.getLogger(__name__)

UNKNOWN_TECHNICIAN = "Unknown"


class AutoJobSettings(BaseModel):
    auto_start_delay_minutes: int = AUTO_START_DELAY_MINUTES
    auto_complete_delay_minutes: int = AUTO_COMPLETE_DELAY_MINUTES
    proximity_threshold_meters: float = PROXIMITY_THRESHOLD_METERS
    check_interval_seconds: float = AUTO_JOB_CHECK_INTERVAL_SECONDS


class AutoJobService:
    """Owns the polling loop; construct one per process at startup"""

    def __init__(
        self,
        session_factory,
        geocoder,
        notifier,
        settings: Optional[AutoJobSettings] = None,
        clock: Callable[[], datetime] = utc_now,
    ):
        self.session_factory = session_factory
        self.geocoder = geocoder
        self.notifier = notifier
        self.settings = settings or AutoJobSettings()
        self.clock = clock

        self._lock = asyncio.Lock()
        self._task: Optional[asyncio.Task] = None
        self._stop_event: Optional[asyncio.Event] = None
        self.last_run_at: Optional[datetime] = None

    @property
    def is_running(self) -> bool:
        return self._task is not None and not self._task.done()

    # ------------------------------------------------------------------
    # Scheduling
    # ------------------------------------------------------------------

    def start(self) -> None:
        """Start the polling loop on the running event loop"""
        if self.is_running:
            logger.info("AutoJobService already running")
            return

        logger.info(
            f"🚀 Starting AutoJobService (every {self.settings.check_interval_seconds}s, "
            f"start delay {self.settings.auto_start_delay_minutes}m, "
            f"complete delay {self.settings.auto_complete_delay_minutes}m, "
            f"radius {self.settings.proximity_threshold_meters}m)"
        )
        self._stop_event = asyncio.Event()
        self._task = asyncio.create_task(self._run(), name="auto-job-service")

    async def stop(self) -> None:
        """Signal the loop to exit and wait for the in-flight tick to finish"""
        if self._task is None:
            return

        self._stop_event.set()
        try:
            await self._task
        finally:
            self._task = None
            self._stop_event = None
            logger.info("AutoJobService stopped")

    async def _run(self) -> None:
        while not self._stop_event.is_set():
            await self.tick()
            try:
                await asyncio.wait_for(
                    self._stop_event.wait(), timeout=self.settings.check_interval_seconds
                )
            except asyncio.TimeoutError:
                pass

    async def tick(self) -> dict:
        """Run one auto-start and auto-complete pass"""
        summary = {"auto_started": 0, "auto_completed": 0, "errors": 0}

        async with self._lock:
            try:
                started = await self.check_auto_start()
                completed = await self.check_auto_complete()
                summary["auto_started"] = started["auto_started"]
                summary["auto_completed"] = completed["auto_completed"]
                summary["errors"] = started["errors"] + completed["errors"]
            except Exception as e:
                logger.error(f"❌ Error in AutoJobService check: {e}")
                summary["errors"] += 1
            finally:
                self.last_run_at = self.clock()

        if summary["auto_started"] or summary["auto_completed"] or summary["errors"]:
            logger.info(f"📊 Auto job summary: {summary}")
        else:
            logger.debug("ℹ️ No auto job transitions needed")

        return summary

    # ------------------------------------------------------------------
    # Auto-start / auto-complete scans
    # ------------------------------------------------------------------

    async def check_auto_start(self) -> dict:
        result = {"auto_started": 0, "errors": 0}
        now = self.clock()
        cutoff = now - timedelta(minutes=self.settings.auto_start_delay_minutes)

        db = self.session_factory()
        try:
            projects = (
                db.query(Project)
                .filter(
                    Project.arrived_at.isnot(None),
                    Project.auto_started_at.is_(None),
                    Project.status.notin_([JobStatus.IN_PROGRESS, JobStatus.COMPLETED]),
                    Project.vehicle_id.isnot(None),
                    Project.arrived_at <= cutoff,
                )
                .order_by(Project.id)
                .all()
            )

            for project in projects:
                project_id = project.id
                try:
                    if await self.auto_start_job(db, project, now):
                        result["auto_started"] += 1
                except Exception as e:
                    db.rollback()
                    result["errors"] += 1
                    logger.error(f"❌ Error auto-starting job {project_id}: {e}")
        finally:
            db.close()

        return result

    async def check_auto_complete(self) -> dict:
        result = {"auto_completed": 0, "errors": 0}
        now = self.clock()
        cutoff = now - timedelta(minutes=self.settings.auto_complete_delay_minutes)

        db = self.session_factory()
        try:
            projects = (
                db.query(Project)
                .filter(
                    Project.departed_at.isnot(None),
                    Project.auto_completed_at.is_(None),
                    Project.status == JobStatus.IN_PROGRESS,
                    Project.departed_at <= cutoff,
                )
                .order_by(Project.id)
                .all()
            )

            for project in projects:
                project_id = project.id
                try:
                    if await self.auto_complete_job(db, project, now):
                        result["auto_completed"] += 1
                except Exception as e:
                    db.rollback()
                    result["errors"] += 1
                    logger.error(f"❌ Error auto-completing job {project_id}: {e}")
        finally:
            db.close()

        return result

    async def auto_start_job(self, db: Session, project: Project, now: datetime) -> bool:
        """
        Move a project to in-progress. Returns False when another writer
        already latched auto_started_at.
        """
        project_id = project.id
        updated = (
            db.query(Project)
            .filter(
                Project.id == project_id,
                Project.auto_started_at.is_(None),
                Project.status.notin_([JobStatus.IN_PROGRESS, JobStatus.COMPLETED]),
            )
            .update(
                {
                    Project.status: JobStatus.IN_PROGRESS,
                    Project.auto_started_at: now,
                    Project.start_date: now,
                    Project.updated_at: now,
                },
                synchronize_session=False,
            )
        )
        db.commit()

        if not updated:
            logger.info(f"⏭️ Job {project_id} already started, skipping")
            return False

        db.refresh(project)
        technician_name = self._technician_name(db, project.assigned_user_id)
        logger.info(f"✅ Auto-started job {project_id} ({project.name}) for technician {technician_name}")

        await self._notify(
            project,
            type="job_auto_started",
            title="Job Auto-Started",
            message=(
                f'Job "{project.name}" ({project.job_number or "N/A"}) was automatically started '
                f"after {self.settings.auto_start_delay_minutes} minutes at location. "
                f"Technician: {technician_name}"
            ),
            data={
                "jobId": project_id,
                "jobName": project.name,
                "technicianName": technician_name,
                "autoStartedAt": now.isoformat(),
            },
        )
        return True

    async def auto_complete_job(self, db: Session, project: Project, now: datetime) -> bool:
        project_id = project.id
        updated = (
            db.query(Project)
            .filter(
                Project.id == project_id,
                Project.auto_completed_at.is_(None),
                Project.status == JobStatus.IN_PROGRESS,
            )
            .update(
                {
                    Project.status: JobStatus.COMPLETED,
                    Project.auto_completed_at: now,
                    Project.end_date: now,
                    Project.progress: 100,
                    Project.updated_at: now,
                },
                synchronize_session=False,
            )
        )
        db.commit()

        if not updated:
            logger.info(f"⏭️ Job {project_id} already completed, skipping")
            return False

        db.refresh(project)
        technician_name = self._technician_name(db, project.assigned_user_id)
        logger.info(
            f"✅ Auto-completed job {project_id} ({project.name}) for technician {technician_name}"
        )

        await self._notify(
            project,
            type="job_auto_completed",
            title="Job Auto-Completed",
            message=(
                f'Job "{project.name}" ({project.job_number or "N/A"}) was automatically completed '
                f"after {self.settings.auto_complete_delay_minutes} minutes of departure. "
                f"Technician: {technician_name}"
            ),
            data={
                "jobId": project_id,
                "jobName": project.name,
                "technicianName": technician_name,
                "autoCompletedAt": now.isoformat(),
            },
        )
        return True

    # ------------------------------------------------------------------
    # Geofence checks (triggered by new location samples)
    # ------------------------------------------------------------------

    async def check_vehicle_departure(self, vehicle_id: str, organization_id: int) -> int:
        """Latch departed_at on in-progress jobs the vehicle has moved away from"""
        async with self._lock:
            db = self.session_factory()
            try:
                projects = (
                    db.query(Project)
                    .filter(
                        Project.vehicle_id == vehicle_id,
                        Project.organization_id == organization_id,
                        Project.status == JobStatus.IN_PROGRESS,
                        Project.arrived_at.isnot(None),
                        Project.departed_at.is_(None),
                    )
                    .order_by(Project.id)
                    .all()
                )
                if not projects:
                    return 0

                location = get_latest_location(db, organization_id, vehicle_id)
                if not location:
                    return 0

                departed = 0
                for project in projects:
                    project_id = project.id
                    try:
                        distance = await self._distance_to_site(project, location)
                        if distance is None or distance <= self.settings.proximity_threshold_meters:
                            continue

                        now = self.clock()
                        updated = (
                            db.query(Project)
                            .filter(Project.id == project_id, Project.departed_at.is_(None))
                            .update(
                                {Project.departed_at: now, Project.updated_at: now},
                                synchronize_session=False,
                            )
                        )
                        db.commit()

                        if updated:
                            departed += 1
                            logger.info(
                                f"🚚 Marked job {project_id} as departed (distance: {distance:.0f}m)"
                            )
                    except Exception as e:
                        db.rollback()
                        logger.error(f"❌ Error checking departure for job {project_id}: {e}")

                return departed
            except Exception as e:
                logger.error(f"❌ Error checking vehicle departure for {vehicle_id}: {e}")
                return 0
            finally:
                db.close()

    async def check_vehicle_arrival(self, vehicle_id: str, organization_id: int) -> int:
        """Latch arrived_at on scheduled jobs the vehicle is now parked at"""
        async with self._lock:
            db = self.session_factory()
            try:
                projects = (
                    db.query(Project)
                    .filter(
                        Project.vehicle_id == vehicle_id,
                        Project.organization_id == organization_id,
                        Project.status == JobStatus.SCHEDULED,
                        Project.arrived_at.is_(None),
                    )
                    .order_by(Project.id)
                    .all()
                )
                if not projects:
                    return 0

                location = get_latest_location(db, organization_id, vehicle_id)
                if not location:
                    return 0

                arrived = 0
                for project in projects:
                    project_id = project.id
                    try:
                        distance = await self._distance_to_site(project, location)
                        if distance is None or distance > self.settings.proximity_threshold_meters:
                            continue

                        if self._latch_arrival(db, project_id):
                            arrived += 1
                            logger.info(
                                f"📍 Vehicle {vehicle_id} arrived at job {project_id} "
                                f"(distance: {distance:.0f}m)"
                            )
                    except Exception as e:
                        db.rollback()
                        logger.error(f"❌ Error checking arrival for job {project_id}: {e}")

                return arrived
            except Exception as e:
                logger.error(f"❌ Error checking vehicle arrival for {vehicle_id}: {e}")
                return 0
            finally:
                db.close()

    async def mark_arrival(self, project_id: int, organization_id: int) -> bool:
        """Manually record arrival for a scheduled project"""
        async with self._lock:
            db = self.session_factory()
            try:
                exists = (
                    db.query(Project.id)
                    .filter(Project.id == project_id, Project.organization_id == organization_id)
                    .first()
                )
                if not exists:
                    return False
                return self._latch_arrival(db, project_id)
            finally:
                db.close()

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    def _latch_arrival(self, db: Session, project_id: int) -> bool:
        now = self.clock()
        updated = (
            db.query(Project)
            .filter(
                Project.id == project_id,
                Project.arrived_at.is_(None),
                Project.status == JobStatus.SCHEDULED,
            )
            .update(
                {
                    Project.arrived_at: now,
                    Project.status: JobStatus.ARRIVED,
                    Project.updated_at: now,
                },
                synchronize_session=False,
            )
        )
        db.commit()
        return bool(updated)

    async def _distance_to_site(self, project: Project, location) -> Optional[float]:
        """Meters from the vehicle sample to the job site, None if the site can't be located"""
        if not project.address:
            return None

        coords = await self.geocoder.geocode_project(project)
        if not coords:
            return None

        return haversine_distance(location.latitude, location.longitude, coords[0], coords[1])

    def _technician_name(self, db: Session, user_id: Optional[int]) -> str:
        if not user_id:
            return UNKNOWN_TECHNICIAN
        try:
            user = db.query(User).filter(User.id == user_id).first()
        except Exception as e:
            db.rollback()
            logger.warning(f"⚠️ Could not load technician {user_id}: {e}")
            return UNKNOWN_TECHNICIAN
        return user.display_name if user else UNKNOWN_TECHNICIAN

    async def _notify(self, project: Project, type: str, title: str, message: str, data: dict):
        # The status change stays committed even if the notification fails
        try:
            await self.notifier.send_notification(
                organization_id=project.organization_id,
                user_id=None,
                type=type,
                title=title,
                message=message,
                data=data,
                priority=NotificationPriority.HIGH,
            )
        except Exception as e:
            logger.error(f"❌ Failed to send {type} notification for job {project.id}: {e}")

    def status(self) -> dict:
        return {
            "running": self.is_running,
            "last_run_at": self.last_run_at,
            "settings": self.settings.model_dump(),
        }
