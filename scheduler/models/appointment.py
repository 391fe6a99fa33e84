import enum
import secrets
from datetime import datetime
from typing import Optional

from sqlalchemy import JSON, Column, DateTime, Index, String, text
from sqlalchemy.orm.attributes import flag_modified
from sqlalchemy.sql import func

from scheduler.core.database import Base
from scheduler.utils.timestamps import utc_now


class AppointmentStatus(enum.Enum):
    SCHEDULED = "SCHEDULED"
    CANCELLED = "CANCELLED"


def generate_appointment_id(now: Optional[datetime] = None) -> str:
    """Build an id from the creation time plus a random suffix.

    The millisecond timestamp keeps ids roughly ordered; the suffix keeps two
    commits in the same millisecond from colliding.
    """
    now = now or utc_now()
    return f"appt_{int(now.timestamp() * 1000)}_{secrets.token_hex(4)}"


class Appointment(Base):
    """A booked slot at a location."""

    __tablename__ = "appointments"

    appointment_id = Column(String(64), primary_key=True, default=generate_appointment_id)

    # Conflict-check key: canonical UTC timestamp, see utils.timestamps
    location_id = Column(String(255), nullable=False)
    appointment_datetime = Column(String(20), nullable=False)

    customer_name = Column(String(255), nullable=False)
    vehicle_details = Column(String(255), nullable=False)
    services_list = Column(JSON, nullable=False)

    status = Column(
        String(20), nullable=False, default=AppointmentStatus.SCHEDULED.value
    )

    # Python-side defaults keep the written values loaded after a commit
    created_at = Column(
        DateTime(timezone=True), default=utc_now, server_default=func.now()
    )
    updated_at = Column(
        DateTime(timezone=True),
        default=utc_now,
        server_default=func.now(),
        onupdate=utc_now,
    )

    __table_args__ = (
        Index("ix_appointments_location_time", "location_id", "appointment_datetime"),
        # One live booking per slot; cancelled rows do not hold the slot
        Index(
            "uq_appointments_location_slot",
            "location_id",
            "appointment_datetime",
            unique=True,
            postgresql_where=text("status = 'SCHEDULED'"),
            sqlite_where=text("status = 'SCHEDULED'"),
        ),
    )

    @property
    def is_active(self) -> bool:
        return self.status == AppointmentStatus.SCHEDULED.value

    def cancel(self, now: Optional[datetime] = None) -> bool:
        """Mark the appointment cancelled. Returns False if it already was."""
        if not self.is_active:
            return False

        self.status = AppointmentStatus.CANCELLED.value
        self.updated_at = now or utc_now()
        # Written even when equal to the stored value so onupdate never replaces it
        flag_modified(self, "updated_at")
        return True

    def __repr__(self):
        return (
            f"<Appointment(id='{self.appointment_id}', status='{self.status}', "
            f"location='{self.location_id}', datetime='{self.appointment_datetime}')>"
        )
