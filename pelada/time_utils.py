from datetime import UTC, datetime


def utcnow_naive():
    """Return current UTC timestamp as naive datetime for DB timestamp columns."""
    return datetime.now(UTC).replace(tzinfo=None)


def utc_today():
    """Calendar date in UTC, used to reject match dates in the past."""
    return utcnow_naive().date()


def isoformat_or_none(value):
    return value.isoformat() if value else None
