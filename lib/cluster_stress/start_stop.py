"""Churn worker - stop a random member, restart it, require it to rejoin in time."""

import logging
import random
import time
from typing import Optional

from .constants import Defaults
from .errors import InvariantViolation, TRANSIENT_ERRORS
from .workers import StressWorker

logger = logging.getLogger(__name__)


class StartStopLoad(StressWorker):

    name = "start-stop"

    def __init__(
        self,
        keep_going,
        signal,
        cluster,
        rejoin_timeout: float = Defaults.REJOIN_TIMEOUT_SECONDS,
        down_seconds: float = Defaults.CHURN_PAUSE_SECONDS,
        rng: Optional[random.Random] = None,
        **kwargs
    ):
        kwargs.setdefault("pause_seconds", down_seconds)
        super().__init__(keep_going, signal, cluster, **kwargs)
        self.rejoin_timeout = rejoin_timeout
        self.down_seconds = down_seconds
        self.rng = rng or random.Random()

    def do_work(self) -> None:
        member = self.rng.choice(self.cluster.members())
        logger.debug("%s: stopping %s", self.name, member.member_id)
        try:
            self.cluster.stop_member(member)
            # wakes early on a trip, but the member is restarted either way
            self.signal.wait(self.down_seconds)
        finally:
            self.await_rejoin(member)
        self.metrics.increment(f"restarts_{member.kind}")

    def await_rejoin(self, member, base_delay: float = 0.05, max_delay: float = 2.0) -> None:
        """Restart the member and poll with exponential backoff until it is live.

        A rejected restart is retried on the same backoff. Either way the cycle
        ends with the member live or an InvariantViolation once the bound expires.
        """
        deadline = time.monotonic() + self.rejoin_timeout
        attempt = 0
        started = False
        while True:
            if not started:
                try:
                    self.cluster.start_member(member)
                    started = True
                except TRANSIENT_ERRORS as e:
                    logger.warning("%s: restart of %s rejected, retrying: %s", self.name, member.member_id, e)
            if started and self.cluster.is_live(member):
                return

            remaining = deadline - time.monotonic()
            if remaining <= 0:
                state = "did not rejoin" if started else "could not be restarted"
                raise InvariantViolation(
                    f"{member.member_id} {state} within {self.rejoin_timeout:.1f}s"
                )
            delay = min(base_delay * (2 ** attempt), max_delay)
            jitter = delay * 0.25 * (2 * random.random() - 1)
            time.sleep(min(delay + jitter, remaining))
            attempt += 1
