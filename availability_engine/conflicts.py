"""Conflict detection between a candidate appointment and a staff member's day."""

from typing import Iterable, Mapping, Optional

from availability_engine.distance import heuristic_estimate
from availability_engine.logging_context import get_request_logger
from availability_engine.schema import (
    Appointment,
    BookingPolicy,
    Candidate,
    ConflictKind,
    ConflictResult,
    DriveEstimate,
)
from availability_engine.timeutil import day_key, format_minutes

logger = get_request_logger(__name__)

# Appointments further apart than this are not "back-to-back" for the distance rule
DISTANCE_WINDOW_MINUTES = 180

NO_CONFLICT = ConflictResult(conflict=False)


def same_day_appointments(
    candidate: Candidate,
    appointments: Iterable[Appointment],
    time_zone: Optional[str],
) -> list[Appointment]:
    """Non-cancelled appointments on the candidate's calendar day, ordered by start."""
    key = day_key(candidate.day, time_zone)
    same_day = [
        a
        for a in appointments
        if not a.is_cancelled and day_key(a.appointment_date, time_zone) == key
    ]
    return sorted(same_day, key=lambda a: (a.start_minutes, a.id))


def _place(appt: Appointment) -> str:
    return (appt.address or "").split(",")[0].strip() or "another location"


def _overlaps(candidate: Candidate, appt: Appointment) -> bool:
    return candidate.start_minutes < appt.end_minutes and candidate.end_minutes > appt.start_minutes


def _gap(candidate: Candidate, appt: Appointment) -> int:
    """Idle minutes between two non-overlapping appointments."""
    if candidate.start_minutes >= appt.end_minutes:
        return candidate.start_minutes - appt.end_minutes
    return appt.start_minutes - candidate.end_minutes


def _estimate_for(
    candidate: Candidate,
    appt: Appointment,
    estimates: Mapping[str, DriveEstimate],
) -> Optional[DriveEstimate]:
    estimate = estimates.get(appt.id)
    if estimate is None and candidate.has_coordinates and appt.has_coordinates:
        estimate = heuristic_estimate(
            appt.latitude, appt.longitude, candidate.latitude, candidate.longitude
        )
    return estimate


def _overlap_result(appt: Appointment) -> ConflictResult:
    start = format_minutes(appt.start_minutes)
    end = format_minutes(appt.end_minutes)
    return ConflictResult(
        conflict=True,
        kind=ConflictKind.OVERLAP,
        reason=f"Time conflict with existing appointment at {_place(appt)} ({start} - {end})",
        next_available=appt.end_minutes,
        appointment_id=appt.id,
    )


def _soft_conflict(
    candidate: Candidate,
    appt: Appointment,
    estimate: Optional[DriveEstimate],
    policy: BookingPolicy,
) -> Optional[ConflictResult]:
    """Distance and buffer rules for one non-overlapping appointment; first failing rule wins."""
    buffer = policy.buffer_minutes

    if estimate is not None and estimate.distance_km > policy.max_drive_distance_km:
        close_in_time = (
            abs(appt.end_minutes - candidate.start_minutes) < DISTANCE_WINDOW_MINUTES
            or abs(candidate.end_minutes - appt.start_minutes) < DISTANCE_WINDOW_MINUTES
        )
        if close_in_time:
            return ConflictResult(
                conflict=True,
                kind=ConflictKind.DISTANCE,
                reason=(
                    f"Location {estimate.distance_km:g}km away exceeds maximum drive "
                    f"distance of {policy.max_drive_distance_km:g}km"
                ),
                appointment_id=appt.id,
                drive_minutes=estimate.duration_minutes,
                buffer_minutes=buffer,
            )

    # No estimate at all still enforces the buffer
    drive = estimate.duration_minutes if estimate is not None else 0
    required = drive + buffer
    if estimate is not None:
        need = f"need {drive} min drive + {buffer} min buffer"
    else:
        need = f"need {buffer} min buffer"

    if candidate.start_minutes >= appt.end_minutes:
        if candidate.start_minutes - appt.end_minutes < required:
            next_available = appt.end_minutes + required
            return ConflictResult(
                conflict=True,
                kind=ConflictKind.BUFFER_AFTER,
                reason=(
                    f"Previous job ends at {format_minutes(appt.end_minutes)}, {need}. "
                    f"Next available: {format_minutes(next_available)}"
                ),
                next_available=next_available,
                appointment_id=appt.id,
                drive_minutes=drive,
                buffer_minutes=buffer,
            )
    elif candidate.end_minutes <= appt.start_minutes:
        if appt.start_minutes - candidate.end_minutes < required:
            latest_start = max(0, appt.start_minutes - required - candidate.duration_minutes)
            return ConflictResult(
                conflict=True,
                kind=ConflictKind.BUFFER_BEFORE,
                reason=(
                    f"Next job starts at {format_minutes(appt.start_minutes)}, "
                    f"{need} to arrive on time"
                ),
                next_available=latest_start,
                appointment_id=appt.id,
                drive_minutes=drive,
                buffer_minutes=buffer,
            )
    return None


def has_conflict(
    candidate: Candidate,
    staff_appointments: Iterable[Appointment],
    distance_estimates: Optional[Mapping[str, DriveEstimate]],
    policy: BookingPolicy,
) -> ConflictResult:
    """
    Decide whether a candidate conflicts with one staff member's appointments.

    Direct overlap is conclusive and checked first across the whole day.
    Otherwise each appointment is tested for distance, then buffer after,
    then buffer before. When several appointments produce a soft conflict,
    the one closest in time to the candidate is reported (ties: earlier
    start, then appointment id).
    """
    day = same_day_appointments(candidate, staff_appointments, policy.time_zone)
    estimates = distance_estimates or {}

    for appt in day:
        if _overlaps(candidate, appt):
            logger.debug("Direct overlap with appointment %s", appt.id)
            return _overlap_result(appt)

    soft: list[tuple[int, int, str, ConflictResult]] = []
    for appt in day:
        result = _soft_conflict(candidate, appt, _estimate_for(candidate, appt, estimates), policy)
        if result is not None:
            soft.append((_gap(candidate, appt), appt.start_minutes, appt.id, result))

    if not soft:
        return NO_CONFLICT
    closest = min(soft, key=lambda item: item[:3])
    logger.debug("Conflict with appointment %s: %s", closest[2], closest[3].reason)
    return closest[3]
