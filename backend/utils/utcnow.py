"""UTC clock helpers.

``datetime.utcnow()`` is deprecated since Python 3.12.  ``utcnow`` produces
the same **naive** UTC datetime without the DeprecationWarning; the
millisecond helpers are what snapshots and cache records store.
"""

import time
from datetime import datetime, timezone


def utcnow() -> datetime:
    """Return the current UTC time as a naive (tzinfo=None) datetime."""
    return datetime.now(timezone.utc).replace(tzinfo=None)


def now_ms() -> int:
    """Current POSIX time in integer milliseconds."""
    return int(time.time() * 1000)
