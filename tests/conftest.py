"""Pytest configuration and fixtures."""

from datetime import date, datetime, timezone

import pytest

from availability_engine.distance import DistanceClient
from availability_engine.schema import (
    Appointment,
    BookingPolicy,
    DriveEstimate,
    Location,
    StaffAvailability,
    StaffMember,
)

MONDAY = date(2025, 2, 3)
SUNDAY = date(2025, 2, 2)
TUESDAY = date(2025, 2, 4)

# Well before any test date, so the lead-time rule never applies
LONG_AGO = datetime(2025, 1, 1, tzinfo=timezone.utc)


@pytest.fixture
def policy() -> BookingPolicy:
    """Policy with a 10 minute grid and a 15 minute buffer."""
    return BookingPolicy(
        min_lead_time_hours=24,
        buffer_minutes=15,
        max_drive_distance_km=50,
        time_slot_interval_minutes=10,
        time_zone="Australia/Sydney",
    )


@pytest.fixture
def alex() -> StaffMember:
    return StaffMember(id="staff-a", name="Alex")


@pytest.fixture
def sam() -> StaffMember:
    return StaffMember(id="staff-b", name="Sam")


@pytest.fixture
def monday_hours() -> list[StaffAvailability]:
    """Alex and Sam both work Mondays; Sam starts later."""
    return [
        StaffAvailability(staff_id="staff-a", day_of_week=1, start_time="08:00", end_time="18:00"),
        StaffAvailability(staff_id="staff-b", day_of_week=1, start_time="12:00 PM", end_time="6:00 PM"),
    ]


@pytest.fixture
def job_at_x() -> Appointment:
    """Alex's Monday job 10:00-11:00 at site X."""
    return Appointment(
        id="appt-x",
        staff_id="staff-a",
        appointment_date=MONDAY,
        start_time="10:00",
        duration_minutes=60,
        latitude=-33.8688,
        longitude=151.2093,
        address="12 Harbour St, Sydney NSW",
    )


@pytest.fixture
def site_y() -> Location:
    return Location(latitude=-33.80, longitude=151.10)


@pytest.fixture
def x_to_y() -> dict[str, DriveEstimate]:
    """Site X to site Y is 15 km, 25 minutes by road."""
    return {"appt-x": DriveEstimate(duration_minutes=25, distance_km=15.0, source="mapping-service")}


@pytest.fixture
def offline_client() -> DistanceClient:
    """Distance client without an API key; every lookup falls back locally."""
    return DistanceClient(api_key="")
