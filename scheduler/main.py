from contextlib import asynccontextmanager

import structlog
from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError, ResponseValidationError
from fastapi.responses import JSONResponse

from scheduler.api.deps.auth import authenticate_request
from scheduler.api.v1.api import api_router
from scheduler.core.config import settings
from scheduler.core.database import close_db, init_db
from scheduler.core.exceptions import (
    AppointmentError,
    AppointmentValidationError,
    StorageError,
    ValidationReason,
)
from scheduler.core.logging import configure_logging

logger = structlog.get_logger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    configure_logging()
    logger.info(
        "Application starting up",
        environment=settings.ENVIRONMENT,
        business_timezone=settings.BUSINESS_TIMEZONE,
    )
    await init_db()
    yield
    await close_db()
    logger.info("Application shutting down")


app = FastAPI(title=settings.PROJECT_NAME, version=settings.VERSION, lifespan=lifespan)


def error_response(exc: AppointmentError) -> JSONResponse:
    return JSONResponse(
        status_code=exc.status_code,
        content=exc.to_dict(include_detail=settings.DEBUG),
    )


@app.exception_handler(AppointmentError)
async def appointment_error_handler(request: Request, exc: AppointmentError):
    """Render every pipeline failure as a structured JSON body."""
    return error_response(exc)


@app.exception_handler(RequestValidationError)
async def validation_exception_handler(request: Request, exc: RequestValidationError):
    """Malformed JSON or wrongly typed fields are a 400, not FastAPI's 422."""
    # Auth still wins over a bad body
    try:
        await authenticate_request(request)
    except AppointmentError as auth_error:
        return error_response(auth_error)

    logger.info(
        "Request body rejected", path=request.url.path, errors=exc.errors()
    )
    error = AppointmentValidationError(
        ValidationReason.INVALID_REQUEST, "Invalid request body"
    )
    return JSONResponse(
        status_code=status.HTTP_400_BAD_REQUEST, content=error.to_dict()
    )


@app.exception_handler(ResponseValidationError)
async def response_validation_exception_handler(
    request: Request, exc: ResponseValidationError
):
    logger.error(
        "Response could not be serialized", path=request.url.path, errors=exc.errors()
    )
    return error_response(StorageError())


@app.exception_handler(Exception)
async def unhandled_exception_handler(request: Request, exc: Exception):
    logger.exception("Unhandled error", path=request.url.path)
    return error_response(StorageError())


@app.get("/health")
async def health_check():
    return {"status": "healthy"}


app.include_router(api_router)


if __name__ == "__main__":
    import uvicorn

    uvicorn.run("scheduler.main:app", host="0.0.0.0", port=8000)
