"""DateTime utilities for timezone-aware timestamp handling.

All timestamps are stored as offset-naive UTC, compatible with PostgreSQL
TIMESTAMP WITHOUT TIME ZONE columns.
"""

from datetime import datetime, timezone
from typing import Optional


def utc_now() -> datetime:
    """
    Get current UTC datetime without timezone info (offset-naive).

    Example:
        >>> now = utc_now()
        >>> print(now.tzinfo)
        None
    """
    return datetime.now(timezone.utc).replace(tzinfo=None)


def to_naive_utc(value: Optional[datetime]) -> Optional[datetime]:
    """Convert an aware datetime to naive UTC; naive values are assumed UTC already."""
    if value is None or value.tzinfo is None:
        return value
    return value.astimezone(timezone.utc).replace(tzinfo=None)


# Lambda version for SQLAlchemy default/onupdate parameters
utc_now_lambda = lambda: datetime.now(timezone.utc).replace(tzinfo=None)
