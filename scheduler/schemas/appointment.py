from datetime import datetime
from typing import Any, List, Optional

from pydantic import BaseModel, ConfigDict, Field

# Import enums from the model to avoid duplication
from scheduler.models.appointment import AppointmentStatus


class AppointmentRequest(BaseModel):
    """Incoming booking request.

    Every field is optional here so the booking validator, not the schema
    layer, decides which field is missing and reports it by name.
    """

    model_config = ConfigDict(populate_by_name=True)

    full_name: Optional[str] = Field(None, alias="fullName")
    location: Optional[str] = None
    appointment_time: Optional[str] = Field(None, alias="appointmentTime")
    car: Optional[str] = None
    services: Optional[Any] = None


# Response schemas
class Appointment(BaseModel):
    model_config = ConfigDict(from_attributes=True, populate_by_name=True)

    appointment_id: str = Field(..., alias="appointmentId")
    location_id: str = Field(..., alias="locationId")
    appointment_datetime: str = Field(..., alias="appointmentDateTime")
    customer_name: str = Field(..., alias="customerName")
    vehicle_details: str = Field(..., alias="vehicleDetails")
    services_list: List[str] = Field(..., alias="servicesList")
    status: AppointmentStatus
    created_at: Optional[datetime] = Field(None, alias="createdAt")
    updated_at: Optional[datetime] = Field(None, alias="updatedAt")


class AppointmentDeleted(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    message: str = "Appointment deleted successfully"
    appointment_id: str = Field(..., alias="appointmentId")


class ErrorResponse(BaseModel):
    message: str
    error: str
    reason: Optional[str] = None
    detail: Optional[str] = None
