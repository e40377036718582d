"""Request pacing."""
import logging
import time
from typing import Callable, Optional

logger = logging.getLogger(__name__)


class Pacer:
    """
    Enforce a minimum interval between consecutive operations.

    The wait before each operation is ``interval - time since last call``,
    floored at zero. The very first call waits the full interval so a run
    never opens with an unthrottled request.

    ``clock`` and ``sleep`` are injectable so tests can run without real
    delays.
    """

    def __init__(
        self,
        interval: float,
        clock: Callable[[], float] = time.monotonic,
        sleep: Callable[[float], None] = time.sleep,
        name: str = "pacer",
    ):
        if interval < 0:
            raise ValueError("interval must be >= 0")
        self.interval = interval
        self.name = name
        self._clock = clock
        self._sleep = sleep
        self._last_call: Optional[float] = None

    @classmethod
    def from_milliseconds(cls, delay_ms: int, **kwargs) -> "Pacer":
        return cls(delay_ms / 1000.0, **kwargs)

    def wait_duration(self, since_last: Optional[float]) -> float:
        """How long to wait given the seconds since the previous call."""
        if since_last is None:
            return self.interval
        return max(0.0, self.interval - since_last)

    def wait(self) -> float:
        """Sleep as needed, mark the call, and return the seconds slept."""
        now = self._clock()
        since_last = None if self._last_call is None else now - self._last_call
        duration = self.wait_duration(since_last)

        if duration > 0:
            logger.debug(f"[{self.name}] waiting {duration:.3f}s")
            self._sleep(duration)

        self._last_call = self._clock()
        return duration
