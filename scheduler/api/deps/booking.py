from datetime import datetime
from functools import lru_cache

from scheduler.core.config import settings
from scheduler.services.validation import BookingPolicy
from scheduler.utils.timestamps import utc_now


@lru_cache(maxsize=1)
def get_booking_policy() -> BookingPolicy:
    """Booking policy built once from settings."""
    return BookingPolicy.from_settings(settings)


def get_current_time() -> datetime:
    """Request-processing time, injected so tests can pin "now"."""
    return utc_now()
