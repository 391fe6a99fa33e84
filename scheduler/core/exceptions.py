from enum import Enum
from typing import Any, Optional

from fastapi import status


class ErrorCode(str, Enum):
    AUTH_MISSING = "auth_missing"
    AUTH_INVALID = "auth_invalid"
    VALIDATION_ERROR = "validation_error"
    CONFLICT = "conflict"
    NOT_FOUND = "not_found"
    INTERNAL_ERROR = "internal_error"


class ValidationReason(str, Enum):
    MISSING_FIELD = "missing_field"
    INVALID_SERVICES = "invalid_services"
    INVALID_TIME_FORMAT = "invalid_time_format"
    PAST_TIME = "past_time"
    OUTSIDE_BUSINESS_HOURS = "outside_business_hours"
    MISALIGNED_INTERVAL = "misaligned_interval"
    INVALID_REQUEST = "invalid_request"


class AppointmentError(Exception):
    """Base error for every failure the booking pipeline reports to callers."""

    status_code: int = status.HTTP_500_INTERNAL_SERVER_ERROR
    code: ErrorCode = ErrorCode.INTERNAL_ERROR
    default_message: str = "Internal server error"

    def __init__(self, message: Optional[str] = None):
        self.message = message or self.default_message
        super().__init__(self.message)

    def to_dict(self, include_detail: bool = False) -> dict[str, Any]:
        return {"message": self.message, "error": self.code.value}


class AuthMissingError(AppointmentError):
    status_code = status.HTTP_401_UNAUTHORIZED
    code = ErrorCode.AUTH_MISSING
    default_message = "Missing Authorization header"


class AuthInvalidError(AppointmentError):
    status_code = status.HTTP_403_FORBIDDEN
    code = ErrorCode.AUTH_INVALID
    default_message = "Invalid API key"


class AppointmentValidationError(AppointmentError):
    status_code = status.HTTP_400_BAD_REQUEST
    code = ErrorCode.VALIDATION_ERROR

    def __init__(self, reason: ValidationReason, message: str):
        self.reason = reason
        super().__init__(message)

    def to_dict(self, include_detail: bool = False) -> dict[str, Any]:
        body = super().to_dict(include_detail)
        body["reason"] = self.reason.value
        return body


class AppointmentConflictError(AppointmentError):
    status_code = status.HTTP_409_CONFLICT
    code = ErrorCode.CONFLICT
    default_message = "This time slot is already booked"


class AppointmentNotFoundError(AppointmentError):
    status_code = status.HTTP_404_NOT_FOUND
    code = ErrorCode.NOT_FOUND
    default_message = "Appointment not found"


class StorageError(AppointmentError):
    """The store failed unexpectedly.

    The originating exception is chained as ``__cause__``; its text only
    reaches the response body when ``include_detail`` is requested.
    """

    default_message = "Could not process the appointment"

    def to_dict(self, include_detail: bool = False) -> dict[str, Any]:
        body = super().to_dict(include_detail)
        if include_detail and self.__cause__ is not None:
            body["detail"] = str(self.__cause__)
        return body
