"""Deterministic slot generation across a working day for a pool of staff."""

from concurrent.futures import ThreadPoolExecutor
from datetime import date, datetime
from typing import Iterable, Mapping, NamedTuple, Optional, Union

from availability_engine.config import settings
from availability_engine.conflicts import has_conflict
from availability_engine.ledger import AvailabilityLedger
from availability_engine.logging_context import bind_context, get_request_logger
from availability_engine.schema import (
    Appointment,
    BookingPolicy,
    Candidate,
    DriveEstimate,
    Location,
    StaffAvailability,
    StaffMember,
    TimeSlot,
)
from availability_engine.stores import appointments_for_day
from availability_engine.timeutil import day_of_week, format_minutes, local_now, parse_day

logger = get_request_logger(__name__)

TOO_SOON = "Too soon - minimum booking notice required"
NO_STAFF_AVAILABLE = "No team members available"
SCHEDULE_UNAVAILABLE = "Schedule unavailable"

# Blocking reasons rank: an appointment conflict explains more than hours or days off
RANK_CONFLICT = 3
RANK_HOURS = 2
RANK_DAY_OFF = 1
RANK_ERROR = 0


class _Verdict(NamedTuple):
    ok: bool
    rank: int = RANK_ERROR
    reason: Optional[str] = None
    next_available: Optional[int] = None


_PASS = _Verdict(ok=True)


def candidate_minutes(policy: BookingPolicy) -> list[int]:
    """Start minutes from opening time, stepping by the slot interval, before closing time."""
    schedule = settings.schedule
    return list(range(schedule.opening_minute, schedule.closing_minute, policy.time_slot_interval_minutes))


def _lead_cutoff(day: date, policy: BookingPolicy, now: Optional[datetime]) -> Optional[float]:
    """
    Earliest bookable minute when the day is today, otherwise None.

    Later days are not trimmed even when the notice period reaches into them;
    validation.validate checks the full date-time before a booking is accepted.
    """
    current = local_now(policy.time_zone, now)
    if current.date() != day:
        return None
    return current.hour * 60 + current.minute + policy.min_lead_time_hours * 60


def _evaluate_member(
    member: StaffMember,
    day: date,
    minutes: list[int],
    duration: int,
    ledger: AvailabilityLedger,
    appointments: list[Appointment],
    policy: BookingPolicy,
    destination: Optional[Location],
    drive_estimates: Mapping[str, DriveEstimate],
) -> list[_Verdict]:
    """Verdict for each candidate minute for a single staff member."""
    weekday = day_of_week(day)
    member_appointments = appointments_for_day(appointments, day, policy.time_zone, staff_id=member.id)
    verdicts = []
    for minute in minutes:
        reason = ledger.blocking_reason(member, weekday, minute, duration)
        if reason is not None:
            rank = RANK_DAY_OFF if ledger.window(member.id, weekday) is None else RANK_HOURS
            verdicts.append(_Verdict(ok=False, rank=rank, reason=reason))
            continue
        candidate = Candidate(
            day=day,
            start_minutes=minute,
            duration_minutes=duration,
            latitude=destination.latitude if destination else None,
            longitude=destination.longitude if destination else None,
        )
        result = has_conflict(candidate, member_appointments, drive_estimates, policy)
        if result.conflict:
            verdicts.append(
                _Verdict(ok=False, rank=RANK_CONFLICT, reason=result.reason, next_available=result.next_available)
            )
        else:
            verdicts.append(_PASS)
    return verdicts


def _safe_evaluate(member: StaffMember, minutes: list[int], **kwargs) -> list[_Verdict]:
    """Evaluate one member; bad data for that member blocks only their slots."""
    try:
        return _evaluate_member(member, minutes=minutes, **kwargs)
    except ValueError:
        logger.exception("Could not evaluate schedule for staff member %s", member.id)
        return [_Verdict(ok=False, rank=RANK_ERROR, reason=SCHEDULE_UNAVAILABLE)] * len(minutes)


def _aggregate(minute: int, pool: list[StaffMember], verdicts: list[_Verdict]) -> TimeSlot:
    eligible = [m.id for m, v in zip(pool, verdicts) if v.ok]
    if eligible:
        return TimeSlot(time=format_minutes(minute), minutes=minute, available=True, eligible_staff_ids=eligible)
    if not verdicts:
        return TimeSlot(time=format_minutes(minute), minutes=minute, available=False, conflict_reason=NO_STAFF_AVAILABLE)
    # Highest rank wins; within a rank the first member in staff order
    blocking = min(enumerate(verdicts), key=lambda item: (-item[1].rank, item[0]))[1]
    suggestions = [v.next_available for v in verdicts if v.next_available is not None]
    return TimeSlot(
        time=format_minutes(minute),
        minutes=minute,
        available=False,
        conflict_reason=blocking.reason or NO_STAFF_AVAILABLE,
        next_available=format_minutes(min(suggestions)) if suggestions else None,
    )


def generate_slots(
    day: Union[date, str],
    service_duration_minutes: int,
    *,
    staff: Iterable[StaffMember],
    availability: Iterable[StaffAvailability],
    appointments: Iterable[Appointment],
    policy: BookingPolicy,
    preferred_staff_id: Optional[str] = None,
    destination: Optional[Location] = None,
    drive_estimates: Optional[Mapping[str, DriveEstimate]] = None,
    now: Optional[datetime] = None,
) -> list[TimeSlot]:
    """
    Compute every candidate slot for one day, flagged available or not.
    Returns an empty list on globally closed weekdays.
    """
    day = parse_day(day)
    if service_duration_minutes <= 0:
        raise ValueError(f"service_duration_minutes must be > 0, got {service_duration_minutes}")
    if day_of_week(day) in settings.schedule.closed_weekdays:
        logger.info("%s is a closed weekday, no slots", day.isoformat())
        return []

    staff = list(staff)
    appointments = list(appointments)
    grid = candidate_minutes(policy)
    cutoff = _lead_cutoff(day, policy, now)
    open_minutes = [m for m in grid if cutoff is None or m >= cutoff]

    if not staff:
        # Businesses without a team yet accept any slot past the lead time
        verdict_map = {m: [_PASS] for m in open_minutes}
        pool: list[StaffMember] = [StaffMember(id="")]
    else:
        pool = [m for m in staff if m.id == preferred_staff_id] if preferred_staff_id else staff
        ledger = AvailabilityLedger(availability)
        evaluate = bind_context(_safe_evaluate)
        kwargs = dict(
            day=day,
            duration=service_duration_minutes,
            ledger=ledger,
            appointments=appointments,
            policy=policy,
            destination=destination,
            drive_estimates=drive_estimates or {},
        )
        per_member: list[list[_Verdict]] = []
        if pool and open_minutes:
            workers = min(settings.schedule.staff_workers, len(pool))
            with ThreadPoolExecutor(max_workers=workers) as executor:
                per_member = list(
                    executor.map(lambda member: evaluate(member, open_minutes, **kwargs), pool)
                )
        verdict_map = {
            minute: [verdicts[i] for verdicts in per_member] for i, minute in enumerate(open_minutes)
        }

    slots = []
    for minute in grid:
        if minute not in verdict_map:
            slots.append(
                TimeSlot(time=format_minutes(minute), minutes=minute, available=False, conflict_reason=TOO_SOON)
            )
        elif not staff:
            slots.append(TimeSlot(time=format_minutes(minute), minutes=minute, available=True))
        else:
            slots.append(_aggregate(minute, pool, verdict_map[minute]))

    logger.info(
        "Generated %s slots for %s (%s available)",
        len(slots),
        day.isoformat(),
        sum(1 for s in slots if s.available),
    )
    return slots


def is_staff_available(
    staff_id: str,
    day: Union[date, str],
    start_minutes: int,
    duration_minutes: int,
    availability: Iterable[StaffAvailability],
    appointments: Iterable[Appointment],
    time_zone: Optional[str] = None,
) -> bool:
    """Working hours plus direct overlap only; drive time and buffers are not applied."""
    day = parse_day(day)
    if not AvailabilityLedger(availability).is_working(staff_id, day_of_week(day), start_minutes, duration_minutes):
        return False
    end = start_minutes + duration_minutes
    return not any(
        start_minutes < a.end_minutes and end > a.start_minutes
        for a in appointments_for_day(appointments, day, time_zone, staff_id=staff_id)
    )
