"""Timezone helpers – provide a single UTC now() for the database layer.

SQLAlchemy ``DateTime`` columns without timezone info store naive datetimes,
so the database layer uses :pyfunc:`utc_now_naive` everywhere.
"""

from datetime import datetime
from datetime import timezone


def utc_now_naive() -> datetime:  # noqa: D401 – simple utility
    """Return *naive* current time in UTC for database compatibility."""
    return datetime.now(timezone.utc).replace(tzinfo=None)


__all__ = ["utc_now_naive"]
