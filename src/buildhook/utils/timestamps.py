from datetime import datetime, timezone


def as_utc(value: datetime) -> datetime:
    """Return an aware UTC datetime.

    SQLite hands back naive datetimes even for timezone-aware columns; those are
    stored as UTC, so a naive value is taken to be UTC.
    """
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def isoformat_utc(value: datetime | None) -> str:
    if value is None:
        return ""
    return as_utc(value).isoformat()


def utcnow() -> datetime:
    return datetime.now(timezone.utc)
