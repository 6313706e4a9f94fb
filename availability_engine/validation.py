"""Booking form validation. Every check runs; all messages are collected."""

import re
from datetime import datetime, time, timedelta
from typing import Iterable, Optional

from availability_engine.logging_context import get_request_logger
from availability_engine.schema import BookingForm, BookingPolicy, SelectedProduct, ValidationResult
from availability_engine.timeutil import local_now, parse_day, resolve_zone, to_minutes

logger = get_request_logger(__name__)

EMAIL_RE = re.compile(r"^[^\s@]+@[^\s@]+\.[^\s@]+$")
PHONE_RE = re.compile(r"^[\d\s\-+()]{10,}$")


def service_duration(products: Iterable[SelectedProduct]) -> int:
    """Total on-site minutes for the selected services."""
    return sum(p.duration_minutes for p in products)


def _check_contact(form: BookingForm) -> Optional[str]:
    contact = form.contact.strip()
    if not contact:
        return "Contact information is required"
    if form.contact_type == "email" and not EMAIL_RE.match(contact):
        return "Please enter a valid email address"
    if form.contact_type == "phone" and not PHONE_RE.match(contact):
        return "Please enter a valid phone number"
    return None


def _check_lead_time(form: BookingForm, policy: BookingPolicy, now: Optional[datetime]) -> Optional[str]:
    try:
        day = parse_day(form.preferred_date)
        hours, minutes = divmod(to_minutes(form.preferred_time), 60)
    except ValueError:
        return "Please select a valid date and time"
    zone = resolve_zone(policy.time_zone)
    booking_at = datetime.combine(day, time(hours, minutes), tzinfo=zone)
    earliest = local_now(policy.time_zone, now) + timedelta(hours=policy.min_lead_time_hours)
    if booking_at < earliest:
        return f"Bookings must be made at least {policy.min_lead_time_hours:g} hours in advance"
    return None


def validate(form: BookingForm, policy: BookingPolicy, now: Optional[datetime] = None) -> ValidationResult:
    errors: list[str] = []
    warnings: list[str] = []

    contact_error = _check_contact(form)
    if contact_error:
        errors.append(contact_error)

    if not form.address.strip():
        errors.append("Property address is required")

    if not form.selected_products:
        errors.append("Please select at least one service")
    elif service_duration(form.selected_products) == 0:
        warnings.append("Selected services have no on-site duration")

    has_date = bool(form.preferred_date.strip())
    has_time = bool(form.preferred_time.strip())
    if not has_date:
        errors.append("Please select a date")
    if not has_time:
        errors.append("Please select a time")
    if has_date and has_time:
        lead_error = _check_lead_time(form, policy, now)
        if lead_error:
            errors.append(lead_error)

    if errors:
        logger.info("Booking form rejected with %s error(s)", len(errors))
    return ValidationResult(valid=not errors, errors=errors, warnings=warnings)
