from datetime import datetime
from typing import Optional


def now() -> datetime:
    """Get current local datetime object."""
    return datetime.now().astimezone().replace(tzinfo=None)


def clock_time(dt: Optional[datetime] = None) -> str:
    """Wall clock time used as a prefix for status lines."""
    if dt is None:
        dt = now()
    return dt.strftime('%H:%M:%S')
