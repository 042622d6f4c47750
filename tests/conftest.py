import os

# Must be set before any app module reads config
os.environ.setdefault("DATABASE_URL", "sqlite://")
os.environ.setdefault("AUTO_JOB_SERVICE_ENABLED", "false")
os.environ.setdefault("DB_LOG_SLOW_QUERIES", "false")

from datetime import datetime  # noqa: E402
from math import pi  # noqa: E402

import pytest  # noqa: E402
from sqlalchemy import create_engine  # noqa: E402
from sqlalchemy.orm import sessionmaker  # noqa: E402
from sqlalchemy.pool import StaticPool  # noqa: E402

from app.database import Base  # noqa: E402
from app.models import JobStatus, Organization, Project, User  # noqa: E402
from app.services.auto_job_service import AutoJobService, AutoJobSettings  # noqa: E402
from app.utils.gps import EARTH_RADIUS_METERS  # noqa: E402

NOW = datetime(2026, 3, 2, 15, 0, 0)
JOB_SITE = (40.0150, -105.2705)
METERS_PER_DEGREE_LAT = EARTH_RADIUS_METERS * pi / 180


def north_of(point, meters):
    """Point `meters` due north of `point` (exact along a meridian)"""
    return point[0] + meters / METERS_PER_DEGREE_LAT, point[1]


class FixedClock:
    def __init__(self, now=NOW):
        self.now = now

    def __call__(self):
        return self.now


class FakeGeocoder:
    """Resolves every project to `coords` unless its address is listed in `failing`"""

    def __init__(self, coords=JOB_SITE, failing=(), raising=()):
        self.coords = coords
        self.failing = set(failing)
        self.raising = set(raising)
        self.calls = []

    async def geocode_project(self, project):
        self.calls.append(project.id)
        if project.address in self.raising:
            raise RuntimeError("geocoder exploded")
        if project.address in self.failing:
            return None
        return self.coords


class RecordingNotifier:
    def __init__(self, fail=False):
        self.fail = fail
        self.sent = []

    async def send_notification(self, **kwargs):
        if self.fail:
            raise RuntimeError("dispatcher down")
        self.sent.append(kwargs)
        return len(self.sent)


@pytest.fixture
def session_factory():
    engine = create_engine(
        "sqlite://", connect_args={"check_same_thread": False}, poolclass=StaticPool
    )
    Base.metadata.create_all(engine)
    factory = sessionmaker(autocommit=False, autoflush=False, bind=engine)
    yield factory
    engine.dispose()


@pytest.fixture
def db(session_factory):
    session = session_factory()
    yield session
    session.close()


@pytest.fixture
def organization(db):
    org = Organization(name="Front Range Plumbing")
    db.add(org)
    db.commit()
    db.refresh(org)
    return org


@pytest.fixture
def technician(db, organization):
    user = User(
        organization_id=organization.id,
        first_name="Dana",
        last_name="Reyes",
        email="dana@example.com",
    )
    db.add(user)
    db.commit()
    db.refresh(user)
    return user


@pytest.fixture
def clock():
    return FixedClock()


@pytest.fixture
def geocoder():
    return FakeGeocoder()


@pytest.fixture
def notifier():
    return RecordingNotifier()


@pytest.fixture
def service(session_factory, geocoder, notifier, clock):
    return AutoJobService(
        session_factory=session_factory,
        geocoder=geocoder,
        notifier=notifier,
        settings=AutoJobSettings(
            auto_start_delay_minutes=10,
            auto_complete_delay_minutes=10,
            proximity_threshold_meters=100,
            check_interval_seconds=60,
        ),
        clock=clock,
    )


@pytest.fixture
def make_project(db, organization):
    def _make(**overrides):
        values = {
            "organization_id": organization.id,
            "name": "Water heater install",
            "job_number": "J-1001",
            "status": JobStatus.SCHEDULED,
            "address": "1777 Broadway",
            "city": "Boulder",
            "state": "CO",
            "zip_code": "80302",
            "vehicle_id": "truck-7",
        }
        values.update(overrides)
        project = Project(**values)
        db.add(project)
        db.commit()
        db.refresh(project)
        return project

    return _make
