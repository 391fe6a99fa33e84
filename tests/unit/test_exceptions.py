import pytest
from sqlalchemy.exc import OperationalError

from scheduler.core.exceptions import (
    AppointmentValidationError,
    StorageError,
    ValidationReason,
)


def raise_storage_error():
    try:
        raise OperationalError(
            "SELECT", {}, Exception("could not connect to server at 10.0.0.5")
        )
    except OperationalError as e:
        raise StorageError("Could not create the appointment") from e


class TestStorageError:
    def test_detail_hidden_by_default(self):
        with pytest.raises(StorageError) as exc_info:
            raise_storage_error()

        assert exc_info.value.to_dict() == {
            "message": "Could not create the appointment",
            "error": "internal_error",
        }

    def test_detail_carries_cause_when_requested(self):
        with pytest.raises(StorageError) as exc_info:
            raise_storage_error()

        body = exc_info.value.to_dict(include_detail=True)
        assert body["message"] == "Could not create the appointment"
        assert "10.0.0.5" in body["detail"]

    def test_no_detail_without_cause(self):
        assert "detail" not in StorageError().to_dict(include_detail=True)
        assert StorageError().message == "Could not process the appointment"


class TestAppointmentValidationError:
    def test_body_includes_reason(self):
        error = AppointmentValidationError(
            ValidationReason.PAST_TIME, "Appointment cannot be in the past"
        )
        assert error.status_code == 400
        assert error.to_dict() == {
            "message": "Appointment cannot be in the past",
            "error": "validation_error",
            "reason": "past_time",
        }
