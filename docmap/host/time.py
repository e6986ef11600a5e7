"""Time and timestamp utilities."""

from datetime import datetime, timezone


def now_utc() -> datetime:
    """Get current UTC time truncated to milliseconds.

    Document stores keep millisecond precision, so timestamps are truncated
    before they are assigned to a record. This keeps the in-memory value
    equal to the value read back from the store.

    Returns:
        datetime object with UTC timezone
    """
    now = datetime.now(timezone.utc)
    return now.replace(microsecond=(now.microsecond // 1000) * 1000)
