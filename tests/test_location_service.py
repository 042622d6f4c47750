from datetime import datetime, timedelta, timezone

import pytest

from app.services.location_service import get_latest_location, get_vehicle_trail, record_location

from .conftest import JOB_SITE, NOW, north_of


def test_record_location_normalizes_timestamp(db, organization):
    aware = datetime(2026, 3, 2, 8, 0, 0, tzinfo=timezone(timedelta(hours=-7)))

    sample = record_location(db, organization.id, " truck-7 ", "40.0", "-105.0", aware)

    assert sample.device_id == "truck-7"
    assert sample.latitude == 40.0
    assert sample.timestamp == datetime(2026, 3, 2, 15, 0, 0)


def test_record_location_rejects_bad_input(db, organization):
    with pytest.raises(ValueError):
        record_location(db, organization.id, "truck-7", 95, 0)
    with pytest.raises(ValueError):
        record_location(db, organization.id, "", 40, -105)


def test_latest_location_is_newest_by_timestamp(db, organization):
    record_location(db, organization.id, "truck-7", 40.1, -105.1, NOW)
    record_location(db, organization.id, "truck-7", 40.0, -105.0, NOW - timedelta(minutes=5))
    record_location(db, organization.id, "truck-9", 39.0, -104.0, NOW + timedelta(minutes=5))

    latest = get_latest_location(db, organization.id, "truck-7")

    assert (latest.latitude, latest.longitude) == (40.1, -105.1)
    assert get_latest_location(db, organization.id, "truck-404") is None


def test_trail_is_capped_and_oldest_first(db, organization):
    for i in range(5):
        record_location(db, organization.id, "truck-7", 40 + i * 0.01, -105, NOW + timedelta(minutes=i))

    trail = get_vehicle_trail(db, organization.id, "truck-7", limit=3)

    assert [p.timestamp for p in trail] == [NOW + timedelta(minutes=i) for i in (2, 3, 4)]


def test_trail_filters_jitter(db, organization):
    record_location(db, organization.id, "truck-7", *JOB_SITE, NOW)
    # 20m wiggle while parked
    record_location(db, organization.id, "truck-7", *north_of(JOB_SITE, 20), NOW + timedelta(minutes=1))
    # Drives off 2km
    record_location(db, organization.id, "truck-7", *north_of(JOB_SITE, 2000), NOW + timedelta(minutes=3))

    raw = get_vehicle_trail(db, organization.id, "truck-7")
    filtered = get_vehicle_trail(db, organization.id, "truck-7", filter_jitter=True)

    assert len(raw) == 3
    assert [p.timestamp for p in filtered] == [NOW, NOW + timedelta(minutes=3)]
