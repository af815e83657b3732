"""StressWorker - repeat one cluster operation until told to stop.

Each iteration runs `do_work()` once. Transient errors (see errors.TRANSIENT_ERRORS)
are counted and the loop continues. Anything else trips the shared failure
signal and makes `run()` return False. Tripping never interrupts another
worker's operation in flight; it only stops new iterations from starting.
"""

import logging
from typing import Optional

from .errors import TRANSIENT_ERRORS
from .metrics import WorkerMetrics
from .signals import FailureSignal, TerminationPredicate

logger = logging.getLogger(__name__)


class StressWorker:

    name = "worker"

    def __init__(
        self,
        keep_going: TerminationPredicate,
        signal: FailureSignal,
        cluster,
        pause_seconds: float = 0.0,
        error_pause_seconds: float = 0.1
    ):
        self.keep_going = keep_going
        self.signal = signal
        self.cluster = cluster
        self.pause_seconds = pause_seconds
        self.error_pause_seconds = error_pause_seconds
        self.metrics = WorkerMetrics(worker=self.name)
        self.failure: Optional[BaseException] = None

    def __call__(self) -> bool:
        return self.run()

    def run(self) -> bool:
        logger.info("%s started", self.name)
        try:
            while self.keep_going():
                try:
                    with self.metrics.timed():
                        self.do_work()
                except TRANSIENT_ERRORS as e:
                    self.metrics.record_transient(f"{type(e).__name__}: {e}")
                    logger.warning("%s: transient error, continuing: %s", self.name, e)
                    self.keep_going.sleep(self.error_pause_seconds)
                    continue
                self.keep_going.sleep(self.pause_seconds)
            self.finish()
        except Exception as e:
            self.failure = e
            self.metrics.record_failure(f"{type(e).__name__}: {e}")
            logger.error("%s failed: %s", self.name, e, exc_info=True)
            self.signal.trip(self.name)
            return False
        finally:
            self.metrics.finalize()

        logger.info("%s finished: %s", self.name, self.metrics.summary_line())
        return True

    def do_work(self) -> None:
        raise NotImplementedError

    def finish(self) -> None:
        """Runs once after the loop ends; may raise to fail the worker."""
        pass
