"""
Collaborator interfaces for settings, staff and appointments.

The engine only reads through these protocols. InMemoryStore backs the
HTTP app and the tests; production deployments plug in their own stores.
"""

from datetime import date
from typing import Iterable, Optional, Protocol

from availability_engine.config import settings
from availability_engine.schema import Appointment, BookingPolicy, StaffAvailability, StaffMember
from availability_engine.timeutil import day_key


class SettingsStore(Protocol):
    def get_policy(self, business_id: str) -> BookingPolicy: ...


class StaffDirectory(Protocol):
    def list_staff(self, business_id: str) -> list[StaffMember]: ...

    def list_availability(self, business_id: str) -> list[StaffAvailability]: ...


class AppointmentStore(Protocol):
    def list_appointments(
        self,
        business_id: str,
        start: date,
        end: date,
        staff_id: Optional[str] = None,
    ) -> list[Appointment]: ...


def default_policy() -> BookingPolicy:
    """Policy for a business that has not saved its own booking settings."""
    defaults = settings.policy
    return BookingPolicy(
        min_lead_time_hours=defaults.min_lead_time_hours,
        buffer_minutes=defaults.buffer_minutes,
        max_drive_distance_km=defaults.max_drive_distance_km,
        time_slot_interval_minutes=defaults.time_slot_interval_minutes,
    )


def appointments_for_day(
    appointments: Iterable[Appointment],
    day: date,
    time_zone: Optional[str],
    staff_id: Optional[str] = None,
) -> list[Appointment]:
    """Non-cancelled appointments on one calendar day, optionally for one staff member."""
    key = day.isoformat()
    return [
        a
        for a in appointments
        if not a.is_cancelled
        and (staff_id is None or a.staff_id == staff_id)
        and day_key(a.appointment_date, time_zone) == key
    ]


class InMemoryStore:
    """Dict-backed implementation of all three store protocols."""

    def __init__(self) -> None:
        self._policies: dict[str, BookingPolicy] = {}
        self._staff: dict[str, list[StaffMember]] = {}
        self._availability: dict[str, list[StaffAvailability]] = {}
        self._appointments: dict[str, list[Appointment]] = {}

    # -- loading --

    def set_policy(self, business_id: str, policy: BookingPolicy) -> None:
        self._policies[business_id] = policy

    def add_staff(self, business_id: str, member: StaffMember, availability: Iterable[StaffAvailability] = ()) -> None:
        self._staff.setdefault(business_id, []).append(member)
        self._availability.setdefault(business_id, []).extend(availability)

    def add_appointment(self, business_id: str, appointment: Appointment) -> None:
        self._appointments.setdefault(business_id, []).append(appointment)

    def reset(self) -> None:
        """Clear all data. Used by test fixtures for isolation."""
        self._policies.clear()
        self._staff.clear()
        self._availability.clear()
        self._appointments.clear()

    # -- protocols --

    def get_policy(self, business_id: str) -> BookingPolicy:
        policy = self._policies.get(business_id)
        return policy if policy is not None else default_policy()

    def list_staff(self, business_id: str) -> list[StaffMember]:
        return list(self._staff.get(business_id, []))

    def list_availability(self, business_id: str) -> list[StaffAvailability]:
        return list(self._availability.get(business_id, []))

    def list_appointments(
        self,
        business_id: str,
        start: date,
        end: date,
        staff_id: Optional[str] = None,
    ) -> list[Appointment]:
        """Appointments whose calendar day in the business zone falls in [start, end]."""
        policy = self._policies.get(business_id)
        zone = policy.time_zone if policy else None
        first, last = start.isoformat(), end.isoformat()
        return [
            a
            for a in self._appointments.get(business_id, [])
            if not a.is_cancelled
            and (staff_id is None or a.staff_id == staff_id)
            and first <= day_key(a.appointment_date, zone) <= last
        ]
