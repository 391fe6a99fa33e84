from datetime import datetime, timedelta, timezone
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

CANONICAL_FORMAT = "%Y-%m-%dT%H:%M:%SZ"

# Room for projecting into any zone and widening by a conflict window
# without leaving the datetime range
EARLIEST_INSTANT = datetime.min.replace(tzinfo=timezone.utc) + timedelta(days=2)
LATEST_INSTANT = datetime.max.replace(tzinfo=timezone.utc) - timedelta(days=2)


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def validate_timezone(name: str) -> str:
    """Return ``name`` if it is a known IANA zone, else raise ``ValueError``."""
    try:
        ZoneInfo(name)
    except (ZoneInfoNotFoundError, ValueError):
        raise ValueError(f"Invalid timezone: {name}")
    return name


def parse_instant(value: str) -> datetime:
    """Parse an ISO-8601 timestamp into an aware UTC datetime.

    Accepts a ``Z`` suffix or a numeric offset. A timestamp without any
    offset is read as UTC. Raises ``ValueError`` when the text is not a
    valid ISO-8601 date-time or lies at the very edge of the representable
    range (years 1 and 9999).
    """
    text = value.strip()
    if "T" not in text and " " not in text:
        # Bare dates are not instants
        raise ValueError(f"Not an ISO-8601 date-time: {value!r}")

    parsed = datetime.fromisoformat(text)
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)

    try:
        instant = parsed.astimezone(timezone.utc)
    except OverflowError:
        raise ValueError(f"Date-time out of range: {value!r}")

    if not EARLIEST_INSTANT <= instant <= LATEST_INSTANT:
        raise ValueError(f"Date-time out of range: {value!r}")
    return instant


def to_canonical_utc(instant: datetime) -> str:
    """Render an aware datetime as ``YYYY-MM-DDTHH:MM:SSZ`` in UTC.

    Fixed width, so string order matches chronological order and the value
    can serve directly as a range-query key.
    """
    if instant.tzinfo is None:
        raise ValueError("Canonical timestamps require an aware datetime")
    return instant.astimezone(timezone.utc).strftime(CANONICAL_FORMAT)
