from datetime import datetime, timezone


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def iso_timestamp(moment: datetime | None = None) -> str:
    """Render *moment* (default: now) as ``2024-01-01T10:00:00.000Z``."""
    moment = to_utc(moment or utc_now())
    return moment.isoformat(timespec="milliseconds").replace("+00:00", "Z")


def to_utc(moment: datetime) -> datetime:
    # Naive values come back from SQLite and from timestamp-without-tz columns; treat them as UTC
    if moment.tzinfo is None:
        return moment.replace(tzinfo=timezone.utc)
    return moment.astimezone(timezone.utc)


def to_utc_iso(moment: datetime) -> str:
    """Render a row datetime so that its first 10 characters are the UTC date."""
    return to_utc(moment).isoformat()
