"""FastAPI application for the availability engine."""

from datetime import datetime

from fastapi import Depends, FastAPI, HTTPException, Query, Request

from availability_engine.engine import AvailabilityEngine
from availability_engine.logging_context import get_request_logger, new_request_id, set_request_id
from availability_engine.schema import (
    AvailableDaysRequest,
    AvailableDaysResponse,
    DriveTimeResponse,
    Location,
    SlotsRequest,
    SlotsResponse,
    ValidateRequest,
    ValidationResult,
)
from availability_engine.stores import InMemoryStore

logger = get_request_logger(__name__)

app = FastAPI(title="Availability Engine", version="0.1.0")

store = InMemoryStore()


def get_engine() -> AvailabilityEngine:
    """Engine over the process-wide store."""
    return AvailabilityEngine(store, store, store)


def current_time() -> datetime:
    """Clock used for lead-time checks."""
    return datetime.now().astimezone()


@app.middleware("http")
async def request_id_middleware(request: Request, call_next):
    request_id = request.headers.get("X-Request-ID") or new_request_id()
    set_request_id(request_id)
    response = await call_next(request)
    response.headers["X-Request-ID"] = request_id
    return response


@app.post("/slots", response_model=SlotsResponse)
def slots(
    request: SlotsRequest,
    engine: AvailabilityEngine = Depends(get_engine),
    now: datetime = Depends(current_time),
) -> SlotsResponse:
    """All candidate slots for one day, each flagged available or with a reason."""
    try:
        result = engine.generate_slots(
            request.business_id,
            request.date,
            request.service_duration_minutes,
            preferred_staff_id=request.preferred_staff_id,
            destination=request.destination,
            now=now,
        )
    except ValueError as e:
        raise HTTPException(status_code=422, detail=str(e))
    return SlotsResponse(date=request.date, slots=result)


@app.post("/available-days", response_model=AvailableDaysResponse)
def available_days(
    request: AvailableDaysRequest,
    engine: AvailabilityEngine = Depends(get_engine),
    now: datetime = Depends(current_time),
) -> AvailableDaysResponse:
    """Slots for a run of consecutive days, with a per-day availability flag."""
    try:
        days = engine.available_days(
            request.business_id,
            request.start_date,
            request.days,
            request.service_duration_minutes,
            preferred_staff_id=request.preferred_staff_id,
            destination=request.destination,
            now=now,
        )
    except ValueError as e:
        raise HTTPException(status_code=422, detail=str(e))
    return AvailableDaysResponse(days=days)


@app.post("/validate", response_model=ValidationResult)
def validate_booking(
    request: ValidateRequest,
    engine: AvailabilityEngine = Depends(get_engine),
    now: datetime = Depends(current_time),
) -> ValidationResult:
    """
    Validate a booking form.
    Policy failures come back as valid=false with messages, not as HTTP errors.
    """
    try:
        return engine.validate(request.business_id, request.form, now=now)
    except ValueError as e:
        raise HTTPException(status_code=422, detail=str(e))


@app.get("/drive-time", response_model=DriveTimeResponse)
def drive_time(
    business_id: str,
    origin_lat: float = Query(..., ge=-90, le=90),
    origin_lng: float = Query(..., ge=-180, le=180),
    dest_lat: float = Query(..., ge=-90, le=90),
    dest_lng: float = Query(..., ge=-180, le=180),
    engine: AvailabilityEngine = Depends(get_engine),
) -> DriveTimeResponse:
    """Drive estimate between two coordinate pairs."""
    estimate, within_limit = engine.drive_time(
        business_id,
        Location(latitude=origin_lat, longitude=origin_lng),
        Location(latitude=dest_lat, longitude=dest_lng),
    )
    return DriveTimeResponse(**estimate.model_dump(), within_limit=within_limit)


@app.get("/drive-time-address", response_model=DriveTimeResponse)
def drive_time_address(
    business_id: str,
    origin_address: str = Query(..., min_length=1),
    dest_lat: float = Query(..., ge=-90, le=90),
    dest_lng: float = Query(..., ge=-180, le=180),
    engine: AvailabilityEngine = Depends(get_engine),
) -> DriveTimeResponse:
    """Drive estimate from an address to a coordinate pair."""
    estimate, within_limit = engine.drive_time_from_address(
        business_id, origin_address, Location(latitude=dest_lat, longitude=dest_lng)
    )
    return DriveTimeResponse(**estimate.model_dump(), within_limit=within_limit)


@app.get("/health")
def health() -> dict[str, str]:
    """Health check endpoint."""
    return {"status": "ok"}
