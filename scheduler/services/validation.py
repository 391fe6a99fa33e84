"""Booking rules applied to a request before any storage access.

Everything here is pure: the current time and the booking policy are passed
in, so the same request always gets the same verdict for the same inputs.
"""

from datetime import datetime, timedelta, timezone
from typing import List
from zoneinfo import ZoneInfo

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

from scheduler.core.exceptions import AppointmentValidationError, ValidationReason
from scheduler.schemas.appointment import AppointmentRequest
from scheduler.utils.timestamps import (
    parse_instant,
    to_canonical_utc,
    validate_timezone,
)

# (attribute, wire name) in the order presence is checked
REQUIRED_TEXT_FIELDS = (
    ("full_name", "fullName"),
    ("location", "location"),
    ("appointment_time", "appointmentTime"),
    ("car", "car"),
)

SERVICES_EMPTY_MESSAGE = "Services array cannot be empty"
SERVICES_BLANK_MESSAGE = "Services cannot contain empty values"
INVALID_TIME_MESSAGE = "Invalid appointment time format"
PAST_TIME_MESSAGE = "Appointment cannot be in the past"


def _format_hour(hour: int) -> str:
    """24h clock hour to ``9 AM`` / ``7 PM`` style."""
    hour = hour % 24
    suffix = "AM" if hour < 12 else "PM"
    return f"{hour % 12 or 12} {suffix}"


class BookingPolicy(BaseModel):
    """Business rules that decide which instants are bookable."""

    model_config = ConfigDict(frozen=True)

    timezone: str = "America/New_York"
    timezone_label: str = "EST"
    open_hour: int = Field(9, ge=0, le=23)
    close_hour: int = Field(19, ge=1, le=24)
    slot_interval_minutes: int = Field(30, gt=0)
    conflict_tolerance_minutes: int = Field(15, ge=0)

    @field_validator("timezone")
    @classmethod
    def validate_zone_name(cls, v):
        return validate_timezone(v)

    @model_validator(mode="after")
    def validate_windows(self):
        if self.open_hour >= self.close_hour:
            raise ValueError("open_hour must be earlier than close_hour")
        # The window must cover the slot but never reach the neighbouring slot
        if not (
            self.slot_interval_minutes / 2
            <= self.conflict_tolerance_minutes
            < self.slot_interval_minutes
        ):
            raise ValueError(
                "conflict_tolerance_minutes must be at least half the slot "
                "interval and less than a full interval"
            )
        return self

    @classmethod
    def from_settings(cls, settings) -> "BookingPolicy":
        return cls(
            timezone=settings.BUSINESS_TIMEZONE,
            timezone_label=settings.BUSINESS_TIMEZONE_LABEL,
            open_hour=settings.BUSINESS_OPEN_HOUR,
            close_hour=settings.BUSINESS_CLOSE_HOUR,
            slot_interval_minutes=settings.SLOT_INTERVAL_MINUTES,
            conflict_tolerance_minutes=settings.CONFLICT_TOLERANCE_MINUTES,
        )

    @property
    def zone(self) -> ZoneInfo:
        return ZoneInfo(self.timezone)

    @property
    def tolerance(self) -> timedelta:
        return timedelta(minutes=self.conflict_tolerance_minutes)

    @property
    def business_hours_message(self) -> str:
        return (
            f"Appointments must be between {_format_hour(self.open_hour)} and "
            f"{_format_hour(self.close_hour)} {self.timezone_label}"
        )

    @property
    def interval_message(self) -> str:
        return (
            f"Appointments must be scheduled on "
            f"{self.slot_interval_minutes}-minute intervals"
        )


class NormalizedAppointmentRequest(BaseModel):
    """A request that passed every booking rule."""

    model_config = ConfigDict(frozen=True)

    full_name: str
    location: str
    car: str
    services: List[str]
    appointment_time: datetime
    appointment_datetime: str


def _is_blank(value) -> bool:
    return value is None or not isinstance(value, str) or not value.strip()


def _check_presence(request: AppointmentRequest) -> None:
    for attr, wire_name in REQUIRED_TEXT_FIELDS:
        if _is_blank(getattr(request, attr)):
            raise AppointmentValidationError(
                ValidationReason.MISSING_FIELD, f"Missing required field: {wire_name}"
            )

    if request.services is None:
        raise AppointmentValidationError(
            ValidationReason.MISSING_FIELD, "Missing required field: services"
        )


def _check_services(services) -> List[str]:
    if not isinstance(services, list) or len(services) == 0:
        raise AppointmentValidationError(
            ValidationReason.INVALID_SERVICES, SERVICES_EMPTY_MESSAGE
        )

    if any(_is_blank(service) for service in services):
        raise AppointmentValidationError(
            ValidationReason.INVALID_SERVICES, SERVICES_BLANK_MESSAGE
        )

    return list(services)


def _parse_time(value: str) -> datetime:
    try:
        return parse_instant(value)
    except (ValueError, OverflowError):
        raise AppointmentValidationError(
            ValidationReason.INVALID_TIME_FORMAT, INVALID_TIME_MESSAGE
        )


def check_business_hours(instant: datetime, policy: BookingPolicy) -> bool:
    """True if the instant falls in ``[open, close)`` on the business clock."""
    local = instant.astimezone(policy.zone)
    return policy.open_hour <= local.hour < policy.close_hour


def check_slot_alignment(instant: datetime, policy: BookingPolicy) -> bool:
    """True if the instant sits exactly on the slot grid of the business clock."""
    local = instant.astimezone(policy.zone)
    if local.second or local.microsecond:
        return False
    minutes_since_midnight = local.hour * 60 + local.minute
    return minutes_since_midnight % policy.slot_interval_minutes == 0


def validate_appointment_request(
    request: AppointmentRequest, now: datetime, policy: BookingPolicy
) -> NormalizedAppointmentRequest:
    """Run the booking rules in order and stop at the first violation.

    Args:
        request: Untrusted booking request
        now: Processing time; the appointment must be strictly later
        policy: Business hours, reference zone and slot grid

    Returns:
        The normalized request with its UTC instant and canonical key

    Raises:
        AppointmentValidationError: with a reason code and a stable message
    """
    if now.tzinfo is None:
        now = now.replace(tzinfo=timezone.utc)

    _check_presence(request)
    services = _check_services(request.services)
    instant = _parse_time(request.appointment_time)

    if instant <= now:
        raise AppointmentValidationError(ValidationReason.PAST_TIME, PAST_TIME_MESSAGE)

    if not check_business_hours(instant, policy):
        raise AppointmentValidationError(
            ValidationReason.OUTSIDE_BUSINESS_HOURS, policy.business_hours_message
        )

    if not check_slot_alignment(instant, policy):
        raise AppointmentValidationError(
            ValidationReason.MISALIGNED_INTERVAL, policy.interval_message
        )

    return NormalizedAppointmentRequest(
        full_name=request.full_name,
        location=request.location,
        car=request.car,
        services=services,
        appointment_time=instant,
        appointment_datetime=to_canonical_utc(instant),
    )
