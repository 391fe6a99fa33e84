from fastapi import APIRouter

from scheduler.api.v1.endpoints import appointments

api_router = APIRouter()

# Appointment booking endpoints
api_router.include_router(
    appointments.router, prefix="/appointments", tags=["appointments"]
)
