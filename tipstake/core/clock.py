"""
Clocks for the staking engine.

The engine never schedules anything; it reads the current time once per
operation from an injected clock. Production uses wall-clock seconds, tests
and the demo move time by hand.
"""

import time


class SystemClock:
    """Unix time in whole seconds."""

    def now(self) -> int:
        return int(time.time())


class ManualClock:
    """
    Clock that only moves when told to.

    Usage:
        clock = ManualClock(start=1_700_000_000)
        clock.advance(3600)
    """

    def __init__(self, start: int = 0):
        self._now = start

    def now(self) -> int:
        return self._now

    def advance(self, seconds: int) -> int:
        """Move forward and return the new time."""
        if seconds < 0:
            raise ValueError("Clock cannot move backwards")
        self._now += seconds
        return self._now

    def set(self, timestamp: int) -> None:
        if timestamp < self._now:
            raise ValueError("Clock cannot move backwards")
        self._now = timestamp
