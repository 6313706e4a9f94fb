"""Weekly working hours per staff member."""

from typing import Iterable, Optional

from availability_engine.schema import StaffAvailability, StaffMember

OUTSIDE_HOURS = "Outside working hours"


class AvailabilityLedger:
    """Lookup of StaffAvailability records by (staff_id, day_of_week)."""

    def __init__(self, records: Iterable[StaffAvailability]) -> None:
        self._records: dict[tuple[str, int], StaffAvailability] = {}
        for record in records:
            # Later records replace earlier ones for the same staff/day
            self._records[(record.staff_id, record.day_of_week)] = record

    def window(self, staff_id: str, day_of_week: int) -> Optional[StaffAvailability]:
        """The working record for that weekday, or None when the member is off."""
        record = self._records.get((staff_id, day_of_week))
        if record is None or not record.is_available:
            return None
        return record

    def is_working(self, staff_id: str, day_of_week: int, minute_of_day: int, duration_minutes: int) -> bool:
        """True when [minute, minute + duration) lies inside the member's working window."""
        record = self.window(staff_id, day_of_week)
        if record is None:
            return False
        return (
            record.start_minutes <= minute_of_day
            and minute_of_day + duration_minutes <= record.end_minutes
        )

    def blocking_reason(
        self,
        member: StaffMember,
        day_of_week: int,
        minute_of_day: int,
        duration_minutes: int,
    ) -> Optional[str]:
        """Why the member cannot take the slot, or None when they are working."""
        if self.window(member.id, day_of_week) is None:
            return f"{member.name or 'Team member'} not working this day"
        if not self.is_working(member.id, day_of_week, minute_of_day, duration_minutes):
            return OUTSIDE_HOURS
        return None
