"""UTC-everywhere time handling."""

from datetime import datetime, timezone


def now_utc() -> datetime:
    """
    Current time in UTC.

    Use this instead of datetime.now() everywhere.
    """
    return datetime.now(timezone.utc)


def to_utc(dt: datetime) -> datetime:
    """
    Normalize a database timestamp to aware UTC.

    psycopg2 returns aware datetimes for timestamptz columns; naive values
    are assumed to already be UTC.
    """
    if dt.tzinfo is None:
        return dt.replace(tzinfo=timezone.utc)
    return dt.astimezone(timezone.utc)
