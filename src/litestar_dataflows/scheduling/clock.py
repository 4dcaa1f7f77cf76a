"""Clock implementations."""

from __future__ import annotations

import time

__all__ = ["SystemClock"]


class SystemClock:
    """Clock reading the system wall time."""

    def now(self) -> int:
        """Return the current time as integer epoch seconds."""
        return int(time.time())
