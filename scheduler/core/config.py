from pydantic import field_validator
from pydantic_settings import BaseSettings

from scheduler.utils.timestamps import validate_timezone


class Settings(BaseSettings):
    """Application settings."""

    # Basic settings
    PROJECT_NAME: str = "Appointment Scheduler"
    VERSION: str = "1.0.0"
    ENVIRONMENT: str = "development"
    DEBUG: bool = False

    # Security
    API_KEY: str

    # Database
    DATABASE_URL: str
    AUTO_CREATE_TABLES: bool = True

    # Booking policy
    BUSINESS_TIMEZONE: str = "America/New_York"
    BUSINESS_TIMEZONE_LABEL: str = "EST"
    BUSINESS_OPEN_HOUR: int = 9
    BUSINESS_CLOSE_HOUR: int = 19
    SLOT_INTERVAL_MINUTES: int = 30
    CONFLICT_TOLERANCE_MINUTES: int = 15

    @field_validator("BUSINESS_TIMEZONE")
    @classmethod
    def validate_business_timezone(cls, v):
        return validate_timezone(v)

    # Logging
    LOG_LEVEL: str = "INFO"
    LOG_JSON: bool = False

    model_config = {"env_file": ".env", "case_sensitive": True}


# Global settings instance
settings = Settings()
