from datetime import datetime, timezone
from zoneinfo import ZoneInfo


def get_utc_now() -> datetime:
    """
    Get the current date and time in UTC.

    This function returns the current time with timezone information set to UTC,
    ensuring that the returned datetime object is offset-aware.

    Returns:
        datetime: The current date and time in UTC with tzinfo set to ZoneInfo("UTC").
    """
    return datetime.now(ZoneInfo("UTC"))


def ensure_aware_utc(dt: datetime) -> datetime:
    """Treat naive datetimes as UTC and convert aware ones to UTC."""
    if dt.tzinfo is None:
        return dt.replace(tzinfo=timezone.utc)
    return dt.astimezone(timezone.utc)


def to_numeric_date(dt: datetime) -> int:
    """Seconds since the epoch, as carried by JWT time claims."""
    return int(ensure_aware_utc(dt).timestamp())


def from_numeric_date(value: int | float) -> datetime:
    return datetime.fromtimestamp(int(value), tz=timezone.utc)


def truncate_to_seconds(dt: datetime) -> datetime:
    return ensure_aware_utc(dt).replace(microsecond=0)
