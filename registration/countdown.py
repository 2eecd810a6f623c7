"""Hold countdown and the repeating tick that drives it."""
import logging
import threading
import time
from typing import Callable, Optional

logger = logging.getLogger(__name__)


def format_remaining(seconds_remaining: float) -> str:
    """Render remaining time as MM:SS (floored to whole seconds)."""
    ms = max(0, int(seconds_remaining * 1000))
    minutes = ms // 60000
    seconds = (ms % 60000) // 1000
    return f"{minutes:02d}:{seconds:02d}"


class Countdown:
    """Fixed deadline measured on a monotonic clock."""

    def __init__(self, duration_seconds: float, clock: Callable[[], float] = time.monotonic):
        self.clock = clock
        self.duration_seconds = duration_seconds
        self.deadline = clock() + duration_seconds

    def remaining(self) -> float:
        return max(0.0, self.deadline - self.clock())

    def expired(self) -> bool:
        return self.deadline - self.clock() <= 0

    def display(self) -> str:
        return format_remaining(self.remaining())


class TimerHandle:
    """Cancellable handle for a repeating tick."""

    def __init__(self):
        self._cancelled = threading.Event()

    def cancel(self) -> None:
        self._cancelled.set()

    @property
    def active(self) -> bool:
        return not self._cancelled.is_set()

    def wait(self, interval: float) -> bool:
        """Sleep up to interval; True if cancelled meanwhile."""
        return self._cancelled.wait(interval)


class ThreadScheduler:
    """Runs a callback every interval seconds on a daemon thread until cancelled."""

    def schedule_repeating(self, interval: float, callback: Callable[[], None]) -> TimerHandle:
        handle = TimerHandle()

        def run():
            while not handle.wait(interval):
                try:
                    callback()
                except Exception:
                    logger.exception("Timer callback failed; stopping timer")
                    handle.cancel()

        threading.Thread(target=run, name="hold-countdown", daemon=True).start()
        return handle


def cancel_timer(handle: Optional[TimerHandle]) -> None:
    if handle is not None:
        handle.cancel()
