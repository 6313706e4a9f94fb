"""Wires the stores, drive estimator, slot generator and validator together."""

from datetime import date, datetime, timedelta
from typing import Optional, Union

from availability_engine.distance import DistanceClient, DriveEstimator, check_drive_limit
from availability_engine.logging_context import get_request_logger
from availability_engine.scheduler import generate_slots
from availability_engine.schema import (
    AvailableDay,
    BookingForm,
    DriveEstimate,
    Location,
    TimeSlot,
    ValidationResult,
)
from availability_engine.stores import AppointmentStore, SettingsStore, StaffDirectory
from availability_engine.timeutil import parse_day
from availability_engine.validation import validate

logger = get_request_logger(__name__)


class AvailabilityEngine:
    """
    Read-only availability queries for one deployment.

    Holds no per-request state: every call loads what it needs from the
    stores and builds its own DriveEstimator, so the distance cache never
    outlives the request.
    """

    def __init__(
        self,
        settings_store: SettingsStore,
        staff_directory: StaffDirectory,
        appointment_store: AppointmentStore,
        client: Optional[DistanceClient] = None,
    ) -> None:
        self.settings_store = settings_store
        self.staff_directory = staff_directory
        self.appointment_store = appointment_store
        self.client = client if client is not None else DistanceClient()

    def _estimator(self) -> DriveEstimator:
        return DriveEstimator(self.client)

    def generate_slots(
        self,
        business_id: str,
        day: Union[date, str],
        service_duration_minutes: int,
        preferred_staff_id: Optional[str] = None,
        destination: Optional[Location] = None,
        now: Optional[datetime] = None,
    ) -> list[TimeSlot]:
        """Slots for one day of one business."""
        days = self.available_days(
            business_id,
            day,
            1,
            service_duration_minutes,
            preferred_staff_id=preferred_staff_id,
            destination=destination,
            now=now,
        )
        return days[0].slots

    def available_days(
        self,
        business_id: str,
        start: Union[date, str],
        days: int,
        service_duration_minutes: int,
        preferred_staff_id: Optional[str] = None,
        destination: Optional[Location] = None,
        now: Optional[datetime] = None,
    ) -> list[AvailableDay]:
        """Slots for ``days`` consecutive days starting at ``start``."""
        if days < 1:
            raise ValueError(f"days must be >= 1, got {days}")
        first = parse_day(start)
        last = first + timedelta(days=days - 1)

        policy = self.settings_store.get_policy(business_id)
        staff = self.staff_directory.list_staff(business_id)
        availability = self.staff_directory.list_availability(business_id)
        appointments = self.appointment_store.list_appointments(
            business_id, first, last, staff_id=preferred_staff_id
        )
        logger.info(
            "Loaded %s staff and %s appointments for %s (%s to %s)",
            len(staff),
            len(appointments),
            business_id,
            first.isoformat(),
            last.isoformat(),
        )

        estimates = {}
        if destination is not None and appointments:
            estimates = self._estimator().prefetch(appointments, destination)

        result = []
        for offset in range(days):
            day = first + timedelta(days=offset)
            slots = generate_slots(
                day,
                service_duration_minutes,
                staff=staff,
                availability=availability,
                appointments=appointments,
                policy=policy,
                preferred_staff_id=preferred_staff_id,
                destination=destination,
                drive_estimates=estimates,
                now=now,
            )
            result.append(
                AvailableDay(
                    date=day.isoformat(),
                    has_availability=any(s.available for s in slots),
                    slots=slots,
                )
            )
        return result

    def validate(self, business_id: str, form: BookingForm, now: Optional[datetime] = None) -> ValidationResult:
        """Validate a booking form against the business's lead time."""
        return validate(form, self.settings_store.get_policy(business_id), now=now)

    def drive_time(self, business_id: str, origin: Location, destination: Location) -> tuple[DriveEstimate, bool]:
        """Drive estimate between two points and whether it is within the business's limit."""
        policy = self.settings_store.get_policy(business_id)
        estimate = self._estimator().estimate(
            origin.latitude, origin.longitude, destination.latitude, destination.longitude
        )
        return estimate, check_drive_limit(estimate, policy.max_drive_distance_km)

    def drive_time_from_address(
        self, business_id: str, origin_address: str, destination: Location
    ) -> tuple[DriveEstimate, bool]:
        """Drive estimate from an address and whether it is within the business's limit."""
        policy = self.settings_store.get_policy(business_id)
        estimate = self._estimator().estimate_from_address(
            origin_address, destination.latitude, destination.longitude
        )
        return estimate, check_drive_limit(estimate, policy.max_drive_distance_km)
