from datetime import datetime, timedelta
from typing import Optional

import structlog
from sqlalchemy import and_, select
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from scheduler.core.exceptions import (
    AppointmentConflictError,
    AppointmentNotFoundError,
    StorageError,
)
from scheduler.models.appointment import (
    Appointment,
    AppointmentStatus,
    generate_appointment_id,
)
from scheduler.schemas.appointment import AppointmentRequest
from scheduler.services.validation import (
    BookingPolicy,
    NormalizedAppointmentRequest,
    validate_appointment_request,
)
from scheduler.utils.timestamps import to_canonical_utc

logger = structlog.get_logger(__name__)


class AppointmentService:
    """Appointment booking: conflict detection, commit, and lookup by id."""

    def __init__(self, db: AsyncSession):
        self.db = db

    async def create_appointment(
        self, request: AppointmentRequest, now: datetime, policy: BookingPolicy
    ) -> Appointment:
        """Validate, check for conflicts, then persist a new appointment."""

        # Fail fast before touching the store
        normalized = validate_appointment_request(request, now, policy)

        if await self.has_conflict(
            normalized.location, normalized.appointment_time, policy.tolerance
        ):
            logger.info(
                "Appointment slot already booked",
                location_id=normalized.location,
                appointment_datetime=normalized.appointment_datetime,
            )
            raise AppointmentConflictError()

        return await self.commit_appointment(normalized, now, policy.tolerance)

    async def has_conflict(
        self, location: str, instant: datetime, tolerance: timedelta
    ) -> bool:
        """Check for a scheduled appointment at the location within ±tolerance.

        Both window bounds are inclusive.
        """
        window_start = to_canonical_utc(instant - tolerance)
        window_end = to_canonical_utc(instant + tolerance)

        query = (
            select(Appointment.appointment_id)
            .where(
                and_(
                    Appointment.location_id == location,
                    Appointment.appointment_datetime.between(window_start, window_end),
                    Appointment.status == AppointmentStatus.SCHEDULED.value,
                )
            )
            .limit(1)
        )

        try:
            result = await self.db.execute(query)
        except SQLAlchemyError as e:
            logger.error(
                "Conflict check failed", location_id=location, exc_info=e
            )
            raise StorageError("Could not create the appointment") from e

        conflicting_id = result.scalar_one_or_none()
        if conflicting_id:
            logger.debug(
                "Found conflicting appointment",
                appointment_id=conflicting_id,
                window_start=window_start,
                window_end=window_end,
            )
            return True
        return False

    async def commit_appointment(
        self,
        normalized: NormalizedAppointmentRequest,
        now: datetime,
        tolerance: timedelta,
    ) -> Appointment:
        """Insert the appointment record.

        The unique slot index is the authoritative conflict guard: when a
        concurrent writer got there first the insert fails, and the failure
        is reported as a conflict rather than a storage error.
        """
        appointment = Appointment(
            appointment_id=generate_appointment_id(now),
            location_id=normalized.location,
            appointment_datetime=normalized.appointment_datetime,
            customer_name=normalized.full_name,
            vehicle_details=normalized.car,
            services_list=list(normalized.services),
            status=AppointmentStatus.SCHEDULED.value,
            created_at=now,
            updated_at=now,
        )

        try:
            self.db.add(appointment)
            await self.db.commit()
        except IntegrityError as e:
            await self.db.rollback()
            if await self.has_conflict(
                normalized.location, normalized.appointment_time, tolerance
            ):
                logger.info(
                    "Concurrent booking rejected by slot constraint",
                    location_id=normalized.location,
                    appointment_datetime=normalized.appointment_datetime,
                )
                raise AppointmentConflictError() from e
            logger.error(
                "Failed to save appointment due to integrity constraint",
                appointment_id=appointment.appointment_id,
                exc_info=e,
            )
            raise StorageError("Could not create the appointment") from e
        except SQLAlchemyError as e:
            await self.db.rollback()
            logger.error(
                "Failed to save appointment",
                appointment_id=appointment.appointment_id,
                exc_info=e,
            )
            raise StorageError("Could not create the appointment") from e

        logger.info(
            "Appointment created",
            appointment_id=appointment.appointment_id,
            location_id=appointment.location_id,
            appointment_datetime=appointment.appointment_datetime,
        )
        return appointment

    async def get_appointment(self, appointment_id: str) -> Optional[Appointment]:
        """Get appointment by id."""
        try:
            result = await self.db.execute(
                select(Appointment).where(Appointment.appointment_id == appointment_id)
            )
        except SQLAlchemyError as e:
            logger.error(
                "Failed to load appointment", appointment_id=appointment_id, exc_info=e
            )
            raise StorageError("Could not load the appointment") from e
        return result.scalar_one_or_none()

    async def delete_appointment(self, appointment_id: str) -> None:
        """Hard delete by id. Raises AppointmentNotFoundError if absent."""
        appointment = await self.get_appointment(appointment_id)
        if not appointment:
            raise AppointmentNotFoundError()

        try:
            await self.db.delete(appointment)
            await self.db.commit()
        except SQLAlchemyError as e:
            await self.db.rollback()
            logger.error(
                "Failed to delete appointment", appointment_id=appointment_id, exc_info=e
            )
            raise StorageError("Could not delete the appointment") from e

        logger.info("Appointment deleted", appointment_id=appointment_id)

    async def cancel_appointment(
        self, appointment_id: str, now: datetime
    ) -> Appointment:
        """Mark an appointment cancelled, releasing its slot."""
        appointment = await self.get_appointment(appointment_id)
        if not appointment:
            raise AppointmentNotFoundError()

        if not appointment.cancel(now):
            logger.info(
                "Appointment already cancelled", appointment_id=appointment_id
            )
            return appointment

        try:
            await self.db.commit()
        except SQLAlchemyError as e:
            await self.db.rollback()
            logger.error(
                "Failed to cancel appointment", appointment_id=appointment_id, exc_info=e
            )
            raise StorageError("Could not cancel the appointment") from e

        logger.info("Appointment cancelled", appointment_id=appointment_id)
        return appointment
