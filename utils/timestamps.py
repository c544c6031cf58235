"""
Standardized UTC timestamp utilities.

Log records carry ISO-8601 UTC; file names use file_timestamp().
"""
from datetime import datetime, timezone


def utc_now() -> datetime:
    """
    Return current UTC time with timezone info.

    Use this instead of datetime.now() or datetime.utcnow() to ensure
    timezone-aware UTC timestamps.
    """
    return datetime.now(timezone.utc)


def file_timestamp(when: datetime | None = None) -> str:
    """
    Timestamp safe for file names and storage keys.

    Format: "YYYY-MM-DDTHH-MM-SS-mmmZ" (no colons or dots).
    """
    when = when or utc_now()
    return when.strftime("%Y-%m-%dT%H-%M-%S-") + f"{when.microsecond // 1000:03d}Z"
