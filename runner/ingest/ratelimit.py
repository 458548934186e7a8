import time
from typing import Callable


class RateLimiter:
    """
    Spaces calls to one external API at least `interval` seconds apart.

    Clock and sleep are injectable so tests can run without waiting.
    """

    def __init__(
        self,
        interval: float,
        clock: Callable[[], float] = time.monotonic,
        sleep: Callable[[float], None] = time.sleep,
    ):
        self.interval = max(0.0, float(interval))
        self._clock = clock
        self._sleep = sleep
        self._last: float | None = None
        self.waited = 0.0

    def wait(self) -> float:
        now = self._clock()
        delay = 0.0
        if self._last is not None:
            delay = self.interval - (now - self._last)
        if delay > 0:
            self._sleep(delay)
            self.waited += delay
        else:
            delay = 0.0
        self._last = self._clock()
        return delay
