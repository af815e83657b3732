"""Failure signal and termination predicate shared by all stress workers."""

import threading
import time
from typing import Callable, Optional


class FailureSignal:
    """One-way flag marking the run as failed.

    Transitions false -> true once; there is no reset. Concurrent trips are
    idempotent and only the first reporter is recorded.
    """

    def __init__(self):
        self._event = threading.Event()
        self._lock = threading.Lock()
        self._tripped_by: Optional[str] = None

    def trip(self, source: Optional[str] = None) -> None:
        with self._lock:
            if self._event.is_set():
                return
            self._tripped_by = source
            self._event.set()

    def is_tripped(self) -> bool:
        return self._event.is_set()

    @property
    def tripped_by(self) -> Optional[str]:
        return self._tripped_by

    def wait(self, timeout: Optional[float] = None) -> bool:
        """Block until tripped or timeout; returns whether the signal is tripped."""
        return self._event.wait(timeout)


class TerminationPredicate:
    """Keep going while the signal is clear and the deadline has not passed.

    Reads only the signal and a monotonic clock, so it is cheap and safe to
    call from any number of threads.
    """

    def __init__(
        self,
        signal: FailureSignal,
        duration_seconds: float,
        clock: Callable[[], float] = time.monotonic
    ):
        self._signal = signal
        self._clock = clock
        self._deadline = clock() + duration_seconds

    def __call__(self) -> bool:
        return self.keep_going()

    def keep_going(self) -> bool:
        return not self._signal.is_tripped() and self._clock() < self._deadline

    def remaining(self) -> float:
        return max(0.0, self._deadline - self._clock())

    def sleep(self, seconds: float) -> bool:
        """Pause for up to `seconds`, waking early on a trip. Returns keep_going()."""
        if seconds > 0:
            self._signal.wait(min(seconds, self.remaining()))
        return self.keep_going()
