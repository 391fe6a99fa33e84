from datetime import datetime

import structlog
from fastapi import APIRouter, Depends, status
from sqlalchemy.ext.asyncio import AsyncSession

from scheduler.api.deps.auth import require_api_key
from scheduler.api.deps.booking import get_booking_policy, get_current_time
from scheduler.api.deps.database import get_db
from scheduler.core.exceptions import (
    AppointmentError,
    AppointmentNotFoundError,
    AppointmentValidationError,
    StorageError,
)
from scheduler.schemas.appointment import (
    Appointment,
    AppointmentDeleted,
    AppointmentRequest,
    ErrorResponse,
)
from scheduler.services.appointment import AppointmentService
from scheduler.services.validation import BookingPolicy

logger = structlog.get_logger(__name__)

router = APIRouter(
    dependencies=[Depends(require_api_key)],
    responses={
        401: {"model": ErrorResponse},
        403: {"model": ErrorResponse},
        500: {"model": ErrorResponse},
    },
)


@router.post(
    "",
    response_model=Appointment,
    status_code=status.HTTP_201_CREATED,
    responses={400: {"model": ErrorResponse}, 409: {"model": ErrorResponse}},
)
async def create_appointment(
    appointment_request: AppointmentRequest,
    db: AsyncSession = Depends(get_db),
    now: datetime = Depends(get_current_time),
    policy: BookingPolicy = Depends(get_booking_policy),
):
    """Create new appointment with validation and conflict checking."""
    service = AppointmentService(db)
    try:
        return await service.create_appointment(appointment_request, now, policy)
    except AppointmentValidationError as e:
        logger.info(
            "Appointment validation failed", reason=e.reason.value, message=e.message
        )
        raise
    except AppointmentError:
        raise
    except Exception as e:
        logger.error("Unexpected error creating appointment", exc_info=e)
        raise StorageError("Could not create the appointment") from e


@router.get(
    "/{appointment_id}",
    response_model=Appointment,
    responses={404: {"model": ErrorResponse}},
)
async def get_appointment(appointment_id: str, db: AsyncSession = Depends(get_db)):
    """Get appointment by id."""
    service = AppointmentService(db)
    try:
        appointment = await service.get_appointment(appointment_id)
    except AppointmentError:
        raise
    except Exception as e:
        logger.error(
            "Unexpected error loading appointment",
            appointment_id=appointment_id,
            exc_info=e,
        )
        raise StorageError("Could not load the appointment") from e

    if not appointment:
        raise AppointmentNotFoundError()
    return appointment


@router.delete(
    "/{appointment_id}",
    response_model=AppointmentDeleted,
    status_code=status.HTTP_200_OK,
    responses={404: {"model": ErrorResponse}},
)
async def delete_appointment(appointment_id: str, db: AsyncSession = Depends(get_db)):
    """Delete appointment by id."""
    service = AppointmentService(db)
    try:
        await service.delete_appointment(appointment_id)
    except AppointmentError:
        raise
    except Exception as e:
        logger.error(
            "Unexpected error deleting appointment",
            appointment_id=appointment_id,
            exc_info=e,
        )
        raise StorageError("Could not delete the appointment") from e

    return AppointmentDeleted(appointment_id=appointment_id)


@router.post(
    "/{appointment_id}/cancel",
    response_model=Appointment,
    responses={404: {"model": ErrorResponse}},
)
async def cancel_appointment(
    appointment_id: str,
    db: AsyncSession = Depends(get_db),
    now: datetime = Depends(get_current_time),
):
    """Cancel appointment, releasing its slot for new bookings."""
    service = AppointmentService(db)
    try:
        return await service.cancel_appointment(appointment_id, now)
    except AppointmentError:
        raise
    except Exception as e:
        logger.error(
            "Unexpected error cancelling appointment",
            appointment_id=appointment_id,
            exc_info=e,
        )
        raise StorageError("Could not cancel the appointment") from e
