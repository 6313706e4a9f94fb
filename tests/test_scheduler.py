"""Unit tests for deterministic slot generation."""

from datetime import date, datetime, timezone
from unittest.mock import patch
from zoneinfo import ZoneInfo

from availability_engine import scheduler
from availability_engine.scheduler import (
    NO_STAFF_AVAILABLE,
    SCHEDULE_UNAVAILABLE,
    TOO_SOON,
    generate_slots,
    is_staff_available,
)
from availability_engine.schema import Appointment, BookingForm, BookingPolicy
from availability_engine.validation import validate

MONDAY = date(2025, 2, 3)
LONG_AGO = datetime(2025, 1, 1, tzinfo=timezone.utc)


def by_time(slots):
    return {s.time: s for s in slots}


def test_monday_scenario(policy, alex, monday_hours, job_at_x, site_y, x_to_y):
    """Job 10:00-11:00 at X, new job at Y 25 min away, 15 min buffer."""
    slots = generate_slots(
        MONDAY,
        60,
        staff=[alex],
        availability=monday_hours,
        appointments=[job_at_x],
        policy=policy,
        destination=site_y,
        drive_estimates=x_to_y,
        now=LONG_AGO,
    )
    table = by_time(slots)

    blocked = table["11:10 AM"]
    assert not blocked.available
    assert blocked.conflict_reason == (
        "Previous job ends at 11:00 AM, need 25 min drive + 15 min buffer. Next available: 11:40 AM"
    )
    assert blocked.next_available == "11:40 AM"

    free = table["11:40 AM"]
    assert free.available
    assert free.eligible_staff_ids == ["staff-a"]

    assert "Time conflict" in table["10:30 AM"].conflict_reason
    assert table["8:20 AM"].available
    assert not table["8:50 AM"].available
    assert table["7:00 AM"].conflict_reason == "Outside working hours"


def test_grid_is_ordered_and_bounded(policy, alex, monday_hours):
    slots = generate_slots(
        MONDAY, 60, staff=[alex], availability=monday_hours, appointments=[], policy=policy, now=LONG_AGO
    )
    minutes = [s.minutes for s in slots]
    assert minutes == sorted(minutes)
    assert minutes[0] == 420
    assert minutes[-1] == 1130
    assert len(slots) == 72


def test_available_slots_have_eligible_staff(policy, alex, sam, monday_hours, job_at_x):
    slots = generate_slots(
        MONDAY,
        60,
        staff=[alex, sam],
        availability=monday_hours,
        appointments=[job_at_x],
        policy=policy,
        now=LONG_AGO,
    )
    for slot in slots:
        assert slot.available == bool(slot.eligible_staff_ids)
    table = by_time(slots)
    assert table["12:00 PM"].eligible_staff_ids == ["staff-a", "staff-b"]
    assert table["9:00 AM"].eligible_staff_ids == []


def test_conflict_reason_outranks_working_hours(policy, alex, sam, monday_hours, job_at_x):
    """At 10:30 Alex is booked and Sam has not started; the booking is reported."""
    slots = generate_slots(
        MONDAY,
        60,
        staff=[sam, alex],
        availability=monday_hours,
        appointments=[job_at_x],
        policy=policy,
        now=LONG_AGO,
    )
    slot = by_time(slots)["10:30 AM"]
    assert slot.conflict_reason.startswith("Time conflict with existing appointment at 12 Harbour St")
    assert slot.next_available == "11:00 AM"


def test_not_working_reason_uses_first_member(policy, alex, sam, monday_hours):
    slots = generate_slots(
        date(2025, 2, 4),
        60,
        staff=[alex, sam],
        availability=monday_hours,
        appointments=[],
        policy=policy,
        now=LONG_AGO,
    )
    assert slots
    assert all(s.conflict_reason == "Alex not working this day" for s in slots)


def test_preferred_staff_only(policy, alex, sam, monday_hours):
    slots = generate_slots(
        MONDAY,
        60,
        staff=[alex, sam],
        availability=monday_hours,
        appointments=[],
        policy=policy,
        preferred_staff_id="staff-b",
        now=LONG_AGO,
    )
    table = by_time(slots)
    assert not table["9:00 AM"].available
    assert table["1:00 PM"].eligible_staff_ids == ["staff-b"]


def test_unknown_preferred_staff(policy, alex, monday_hours):
    slots = generate_slots(
        MONDAY,
        60,
        staff=[alex],
        availability=monday_hours,
        appointments=[],
        policy=policy,
        preferred_staff_id="ghost",
        now=LONG_AGO,
    )
    assert all(s.conflict_reason == NO_STAFF_AVAILABLE for s in slots)


def test_no_staff_means_everything_open():
    policy = BookingPolicy(
        min_lead_time_hours=0, buffer_minutes=30, max_drive_distance_km=50, time_slot_interval_minutes=30
    )
    slots = generate_slots(MONDAY, 90, staff=[], availability=[], appointments=[], policy=policy, now=LONG_AGO)
    assert len(slots) == 24
    assert all(s.available and s.eligible_staff_ids == [] for s in slots)


def test_closed_weekday_returns_nothing(policy, alex, monday_hours):
    slots = generate_slots(
        date(2025, 2, 2), 60, staff=[alex], availability=monday_hours, appointments=[], policy=policy, now=LONG_AGO
    )
    assert slots == []


def test_lead_time_blocks_today_only(policy, alex, monday_hours):
    """At 08:00 Sydney with a 2 hour notice period nothing before 10:00 can be booked."""
    now = datetime(2025, 2, 3, 8, 0, tzinfo=ZoneInfo("Australia/Sydney"))
    short_notice = policy.model_copy(update={"min_lead_time_hours": 2})
    slots = generate_slots(
        MONDAY, 60, staff=[alex], availability=monday_hours, appointments=[], policy=short_notice, now=now
    )
    table = by_time(slots)
    assert table["9:50 AM"].conflict_reason == TOO_SOON
    assert table["10:00 AM"].available

    tomorrow = generate_slots(
        date(2025, 2, 4), 60, staff=[alex], availability=monday_hours, appointments=[], policy=short_notice, now=now
    )
    assert all(s.conflict_reason != TOO_SOON for s in tomorrow)


def test_cancelled_appointments_free_the_slot(policy, alex, monday_hours, job_at_x):
    cancelled = job_at_x.model_copy(update={"status": "cancelled"})
    slots = generate_slots(
        MONDAY, 60, staff=[alex], availability=monday_hours, appointments=[cancelled], policy=policy, now=LONG_AGO
    )
    assert by_time(slots)["10:00 AM"].available


def test_generation_is_idempotent(policy, alex, sam, monday_hours, job_at_x, site_y, x_to_y):
    kwargs = dict(
        staff=[alex, sam],
        availability=monday_hours,
        appointments=[job_at_x],
        policy=policy,
        destination=site_y,
        drive_estimates=x_to_y,
        now=LONG_AGO,
    )
    assert generate_slots(MONDAY, 60, **kwargs) == generate_slots(MONDAY, 60, **kwargs)


def test_member_error_does_not_abort_others(policy, alex, sam, monday_hours):
    real_evaluate = scheduler._evaluate_member

    def flaky(member, **kwargs):
        if member.id == "staff-a":
            raise ValueError("corrupt schedule")
        return real_evaluate(member, **kwargs)

    with patch.object(scheduler, "_evaluate_member", side_effect=flaky):
        slots = generate_slots(
            MONDAY, 60, staff=[alex, sam], availability=monday_hours, appointments=[], policy=policy, now=LONG_AGO
        )
    table = by_time(slots)
    assert table["1:00 PM"].eligible_staff_ids == ["staff-b"]
    assert table["9:00 AM"].conflict_reason == "Outside working hours"
    assert SCHEDULE_UNAVAILABLE not in {s.conflict_reason for s in slots if s.minutes >= 720}


def test_is_staff_available(monday_hours, job_at_x):
    appointments = [job_at_x]
    assert is_staff_available("staff-a", MONDAY, 660, 60, monday_hours, appointments, "Australia/Sydney")
    assert not is_staff_available("staff-a", MONDAY, 630, 60, monday_hours, appointments, "Australia/Sydney")
    assert not is_staff_available("staff-a", MONDAY, 420, 60, monday_hours, appointments, "Australia/Sydney")
    assert not is_staff_available("staff-a", "2025-02-04", 660, 60, monday_hours, appointments)


def test_appointment_for_other_staff_does_not_block(policy, alex, monday_hours):
    other = Appointment(id="other", staff_id="staff-z", appointment_date=MONDAY, start_time="10:00")
    slots = generate_slots(
        MONDAY, 60, staff=[alex], availability=monday_hours, appointments=[other], policy=policy, now=LONG_AGO
    )
    assert by_time(slots)["10:00 AM"].available


def test_notice_period_into_tomorrow_is_enforced_by_validation(policy, alex, monday_hours):
    """Tuesday 08:00 is offered at Monday 08:00 with 24 h notice, and validation rejects it."""
    now = datetime(2025, 2, 3, 8, 0, tzinfo=ZoneInfo("Australia/Sydney"))
    tuesday_hours = [r.model_copy(update={"day_of_week": 2}) for r in monday_hours]
    slots = generate_slots(
        date(2025, 2, 4), 60, staff=[alex], availability=tuesday_hours, appointments=[], policy=policy, now=now
    )
    assert by_time(slots)["8:00 AM"].available

    form = BookingForm(
        contact="owner@example.com",
        address="1 Main St",
        selected_products=[{"id": "p", "duration_minutes": 60}],
        preferred_date="2025-02-04",
        preferred_time="7:50 AM",
    )
    assert validate(form, policy, now=now).errors == ["Bookings must be made at least 24 hours in advance"]
    assert validate(form.model_copy(update={"preferred_time": "8:00 AM"}), policy, now=now).valid
