"""Tests for booking form validation."""

from datetime import datetime, timezone
from zoneinfo import ZoneInfo

import pytest

from availability_engine.schema import BookingForm, BookingPolicy, SelectedProduct
from availability_engine.validation import service_duration, validate

NOW = datetime(2025, 2, 1, 0, 0, tzinfo=timezone.utc)


@pytest.fixture
def lead_policy() -> BookingPolicy:
    return BookingPolicy(
        min_lead_time_hours=24,
        buffer_minutes=30,
        max_drive_distance_km=50,
        time_slot_interval_minutes=30,
        time_zone="Australia/Sydney",
    )


@pytest.fixture
def good_form() -> BookingForm:
    return BookingForm(
        contact="owner@example.com",
        contact_type="email",
        address="12 Harbour St, Sydney NSW",
        selected_products=[SelectedProduct(id="photos", duration_minutes=90)],
        preferred_date="2025-02-10",
        preferred_time="10:00 AM",
    )


def test_valid_form(good_form, lead_policy):
    result = validate(good_form, lead_policy, now=NOW)
    assert result.valid
    assert result.errors == []
    assert result.warnings == []


def test_bad_email_and_missing_address_gives_two_errors(good_form, lead_policy):
    form = good_form.model_copy(update={"contact": "not-an-email", "address": ""})
    result = validate(form, lead_policy, now=NOW)
    assert not result.valid
    assert result.errors == ["Please enter a valid email address", "Property address is required"]


def test_empty_form_collects_every_error(lead_policy):
    result = validate(BookingForm(), lead_policy, now=NOW)
    assert result.errors == [
        "Contact information is required",
        "Property address is required",
        "Please select at least one service",
        "Please select a date",
        "Please select a time",
    ]


@pytest.mark.parametrize(
    "phone,ok",
    [("+61 400 123 456", True), ("(02) 9876-5432", True), ("12345", False), ("0400 abc 123", False)],
)
def test_phone_numbers(good_form, lead_policy, phone, ok):
    form = good_form.model_copy(update={"contact": phone, "contact_type": "phone"})
    result = validate(form, lead_policy, now=NOW)
    assert result.valid is ok
    if not ok:
        assert result.errors == ["Please enter a valid phone number"]


def test_lead_time_in_business_zone(good_form, lead_policy):
    """Midnight Sydney on Feb 3 leaves only 10 hours before a 10:00 booking."""
    now = datetime(2025, 2, 3, 0, 0, tzinfo=ZoneInfo("Australia/Sydney"))
    form = good_form.model_copy(update={"preferred_date": "2025-02-03"})
    result = validate(form, lead_policy, now=now)
    assert result.errors == ["Bookings must be made at least 24 hours in advance"]


def test_lead_time_exactly_met(good_form, lead_policy):
    now = datetime(2025, 2, 9, 10, 0, tzinfo=ZoneInfo("Australia/Sydney"))
    assert validate(good_form, lead_policy, now=now).valid


def test_unparseable_date_or_time(good_form, lead_policy):
    form = good_form.model_copy(update={"preferred_time": "25:00"})
    assert validate(form, lead_policy, now=NOW).errors == ["Please select a valid date and time"]
    form = good_form.model_copy(update={"preferred_date": "10/02/2025"})
    assert validate(form, lead_policy, now=NOW).errors == ["Please select a valid date and time"]


def test_zero_duration_services_warn(good_form, lead_policy):
    form = good_form.model_copy(update={"selected_products": [SelectedProduct(id="floorplan")]})
    result = validate(form, lead_policy, now=NOW)
    assert result.valid
    assert result.warnings == ["Selected services have no on-site duration"]


def test_service_duration_sums_products():
    products = [SelectedProduct(duration_minutes=60), SelectedProduct(duration_minutes=45), SelectedProduct()]
    assert service_duration(products) == 105
    assert service_duration([]) == 0
