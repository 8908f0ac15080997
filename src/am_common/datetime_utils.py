"""UTC datetime utilities."""

from datetime import datetime, timezone


def utc_now() -> datetime:
    """Return timezone-aware UTC now."""
    return datetime.now(timezone.utc)


def as_utc(dt: datetime) -> datetime:
    """Treat naive datetimes from clients as UTC."""
    return dt.replace(tzinfo=timezone.utc) if dt.tzinfo is None else dt
