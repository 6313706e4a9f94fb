"""Pydantic models for the availability engine and its request/response bodies."""

from datetime import date, datetime
from enum import Enum
from typing import Any, Literal, Optional, Union

from pydantic import BaseModel, Field, field_validator, model_validator

from availability_engine.timeutil import parse_datetime, parse_day, to_datetime, to_minutes


def _minutes_from_text(data: Any, text_key: str, minutes_key: str) -> Any:
    """Fill ``minutes_key`` from a textual time under ``text_key`` when only the text is given."""
    if isinstance(data, dict) and data.get(minutes_key) is None and data.get(text_key):
        data = dict(data)
        data[minutes_key] = to_minutes(data.pop(text_key))
    return data


# --- Stored entities (read-only to the engine) ---


class StaffMember(BaseModel):
    """A team member who can be assigned appointments."""

    id: str
    name: str = ""


class StaffAvailability(BaseModel):
    """Weekly working window for one staff member on one weekday."""

    staff_id: str
    day_of_week: int = Field(..., ge=0, le=6, description="0=Sunday, 6=Saturday")
    is_available: bool = True
    start_minutes: int = Field(default=0, ge=0, le=24 * 60)
    end_minutes: int = Field(default=0, ge=0, le=24 * 60)

    @model_validator(mode="before")
    @classmethod
    def accept_time_text(cls, data: Any) -> Any:
        data = _minutes_from_text(data, "start_time", "start_minutes")
        return _minutes_from_text(data, "end_time", "end_minutes")

    @model_validator(mode="after")
    def window_is_ordered(self) -> "StaffAvailability":
        if self.is_available and self.start_minutes >= self.end_minutes:
            raise ValueError(
                f"start_minutes ({self.start_minutes}) must be before end_minutes ({self.end_minutes})"
            )
        return self


class AppointmentStatus(str, Enum):
    """Known appointment lifecycle states."""

    SCHEDULED = "scheduled"
    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"
    CANCELLED = "cancelled"
    IN_REVISION = "in_revision"


class Appointment(BaseModel):
    """An already-booked appointment."""

    id: str
    staff_id: Optional[str] = None
    appointment_date: Union[datetime, date] = Field(..., description="Instant or calendar day")
    start_minutes: int = Field(..., ge=0, lt=24 * 60)
    duration_minutes: int = Field(default=60, ge=0)
    status: str = AppointmentStatus.SCHEDULED.value
    latitude: Optional[float] = None
    longitude: Optional[float] = None
    address: Optional[str] = None

    @model_validator(mode="before")
    @classmethod
    def accept_time_text(cls, data: Any) -> Any:
        data = _minutes_from_text(data, "start_time", "start_minutes")
        if isinstance(data, dict) and data.get("duration_minutes") is None:
            data = {k: v for k, v in data.items() if k != "duration_minutes"}
        return data

    @field_validator("appointment_date", mode="before")
    @classmethod
    def normalize_date(cls, value: Any) -> Any:
        # Naive values stay naive until the business zone is known
        if isinstance(value, str) and len(value.strip()) == 10:
            return parse_day(value)
        if isinstance(value, str):
            return parse_datetime(value)
        if isinstance(value, (int, float)):
            return to_datetime(value)
        return value

    @property
    def end_minutes(self) -> int:
        return self.start_minutes + self.duration_minutes

    @property
    def is_cancelled(self) -> bool:
        return self.status == AppointmentStatus.CANCELLED.value

    @property
    def has_coordinates(self) -> bool:
        return self.latitude is not None and self.longitude is not None


class BookingPolicy(BaseModel):
    """Business booking settings consumed by the engine."""

    min_lead_time_hours: float = Field(..., ge=0)
    buffer_minutes: int = Field(..., ge=0)
    max_drive_distance_km: float = Field(..., ge=0)
    time_slot_interval_minutes: int = Field(..., gt=0)
    time_zone: Optional[str] = Field(default=None, description="IANA zone, default from config")


class Location(BaseModel):
    """Coordinates of a booking destination."""

    latitude: float = Field(..., ge=-90, le=90)
    longitude: float = Field(..., ge=-180, le=180)


class DriveEstimate(BaseModel):
    """Estimated drive between two appointment locations."""

    duration_minutes: int = Field(..., ge=0)
    distance_km: float = Field(..., ge=0)
    source: Literal["mapping-service", "heuristic", "fallback-default"]


# --- Conflict detection ---


class Candidate(BaseModel):
    """A proposed appointment to test against a staff member's day."""

    day: Union[datetime, date]
    start_minutes: int = Field(..., ge=0)
    duration_minutes: int = Field(..., ge=0)
    latitude: Optional[float] = None
    longitude: Optional[float] = None

    @property
    def end_minutes(self) -> int:
        return self.start_minutes + self.duration_minutes

    @property
    def has_coordinates(self) -> bool:
        return self.latitude is not None and self.longitude is not None


class ConflictKind(str, Enum):
    OVERLAP = "overlap"
    DISTANCE = "distance"
    BUFFER_AFTER = "buffer_after"
    BUFFER_BEFORE = "buffer_before"


class ConflictResult(BaseModel):
    """Outcome of checking one candidate against one staff member."""

    conflict: bool = False
    kind: Optional[ConflictKind] = None
    reason: Optional[str] = None
    next_available: Optional[int] = Field(
        default=None, description="Suggested start in minutes since midnight"
    )
    appointment_id: Optional[str] = None
    drive_minutes: int = 0
    buffer_minutes: int = 0


# --- Output entities ---


class TimeSlot(BaseModel):
    """One candidate start time and whether it can be offered."""

    time: str = Field(..., description='Display time, e.g. "8:00 AM"')
    minutes: int
    available: bool
    eligible_staff_ids: list[str] = Field(default_factory=list)
    conflict_reason: Optional[str] = None
    next_available: Optional[str] = None


class AvailableDay(BaseModel):
    """Slots for one calendar day."""

    date: str = Field(..., pattern=r"^\d{4}-\d{2}-\d{2}$")
    has_availability: bool
    slots: list[TimeSlot] = Field(default_factory=list)


# --- Booking validation ---


class SelectedProduct(BaseModel):
    """A service picked on the booking form."""

    id: Optional[str] = None
    duration_minutes: int = Field(default=0, ge=0)


class BookingForm(BaseModel):
    """Booking form submission; every field is optional so all errors can be collected."""

    contact: str = ""
    contact_type: Literal["email", "phone"] = "email"
    address: str = ""
    selected_products: list[SelectedProduct] = Field(default_factory=list)
    preferred_date: str = ""
    preferred_time: str = ""


class ValidationResult(BaseModel):
    valid: bool
    errors: list[str] = Field(default_factory=list)
    warnings: list[str] = Field(default_factory=list)


# --- Request / Response ---


class SlotsRequest(BaseModel):
    """Request body for POST /slots."""

    business_id: str
    date: str = Field(..., pattern=r"^\d{4}-\d{2}-\d{2}$", description="Date YYYY-MM-DD")
    service_duration_minutes: int = Field(..., gt=0, le=24 * 60)
    preferred_staff_id: Optional[str] = None
    destination: Optional[Location] = None


class SlotsResponse(BaseModel):
    """Response from POST /slots."""

    date: str
    slots: list[TimeSlot]


class AvailableDaysRequest(BaseModel):
    """Request body for POST /available-days."""

    business_id: str
    start_date: str = Field(..., pattern=r"^\d{4}-\d{2}-\d{2}$")
    days: int = Field(default=7, ge=1, le=60)
    service_duration_minutes: int = Field(..., gt=0, le=24 * 60)
    preferred_staff_id: Optional[str] = None
    destination: Optional[Location] = None


class AvailableDaysResponse(BaseModel):
    days: list[AvailableDay]


class ValidateRequest(BaseModel):
    """Request body for POST /validate."""

    business_id: str
    form: BookingForm


class DriveTimeResponse(DriveEstimate):
    """Response from GET /drive-time and GET /drive-time-address."""

    within_limit: bool
