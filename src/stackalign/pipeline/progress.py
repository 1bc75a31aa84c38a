"""Wall-clock interval timer for periodic progress logging."""

import time


class ProgressTimer:
    """Reports when a logging interval has passed.

    Parameters
    ----------
    interval_sec : float
        Minimum seconds between two True results of ``has_interval_passed``.
    clock : callable, optional
        Returns the current time in seconds (for testing). Defaults to
        ``time.monotonic``.
    """

    def __init__(self, interval_sec: float = 5.0, clock=None):
        self.interval_sec = interval_sec
        self._clock = clock or time.monotonic
        self._start = self._clock()
        self._last = self._start

    def has_interval_passed(self) -> bool:
        now = self._clock()
        if now - self._last >= self.interval_sec:
            self._last = now
            return True
        return False

    @property
    def elapsed_seconds(self) -> float:
        return self._clock() - self._start
