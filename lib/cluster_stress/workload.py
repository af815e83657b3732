"""Write workload - committed writes must stay readable under churn and backups."""

import logging
import random
import time
import uuid
from typing import Dict, Iterable, List, Optional

from .constants import Defaults, WorkloadKeys
from .errors import InvariantViolation, MemberUnavailableError, NoQuorumError, TRANSIENT_ERRORS
from .workers import StressWorker

logger = logging.getLogger(__name__)

VERIFY_SAMPLE = 200
VERIFY_CHUNK = 1000


class Workload(StressWorker):
    """Writes unique keys, reads each back from a live member, re-verifies periodically.

    Every write the cluster acknowledged is remembered. A remembered write that
    a live core no longer returns, or returns with a different value, is a
    lost or corrupted commit.
    """

    name = "workload"

    def __init__(
        self,
        keep_going,
        signal,
        cluster,
        verify_every: int = Defaults.VERIFY_EVERY,
        final_verify_timeout: float = Defaults.REJOIN_TIMEOUT_SECONDS,
        rng: Optional[random.Random] = None,
        **kwargs
    ):
        super().__init__(keep_going, signal, cluster, **kwargs)
        self.verify_every = verify_every
        self.final_verify_timeout = final_verify_timeout
        self.rng = rng or random.Random()
        self.acknowledged: Dict[str, str] = {}
        self._seq = 0

    def do_work(self) -> None:
        key = WorkloadKeys.tx(self._seq)
        value = uuid.uuid4().hex
        self._seq += 1

        try:
            self.cluster.commit(key, value)
        except NoQuorumError:
            self.metrics.increment("no_quorum")
            raise
        self.acknowledged[key] = value
        self.metrics.increment("writes_acknowledged")

        member = self.rng.choice(self.cluster.members())
        read = self.cluster.read(member, key)
        if read != value:
            raise InvariantViolation(
                f"{member.member_id} returned {read!r} for acknowledged write {key} (expected {value!r})"
            )

        if self._seq % self.verify_every == 0:
            self.verify(self._sample())

    def _sample(self) -> List[str]:
        keys = list(self.acknowledged)
        if len(keys) <= VERIFY_SAMPLE:
            return keys
        recent = keys[-VERIFY_SAMPLE // 2:]
        older = self.rng.sample(keys[:-VERIFY_SAMPLE // 2], VERIFY_SAMPLE // 2)
        return older + recent

    def verify(self, keys: Iterable[str]) -> None:
        """Every key must be readable, unchanged, from at least one live core member."""
        pending = {key: self.acknowledged[key] for key in keys}
        reachable = 0

        for core in self.cluster.core_members():
            if not pending:
                break
            try:
                found = self._read_all(core, list(pending))
            except TRANSIENT_ERRORS:
                continue
            reachable += 1
            for key, value in found.items():
                if value is None:
                    continue
                if value != pending[key]:
                    raise InvariantViolation(
                        f"{core.member_id} holds {value!r} for {key}, acknowledged {pending[key]!r}"
                    )
                del pending[key]

        self.metrics.increment("verifications")
        if pending:
            if reachable == 0:
                raise MemberUnavailableError("cluster", "no core member reachable for verification")
            missing = sorted(pending)
            raise InvariantViolation(
                f"{len(missing)} acknowledged writes unreadable from every live core, e.g. {missing[:5]}"
            )

    def _read_all(self, member, keys: List[str]) -> Dict[str, Optional[str]]:
        found = {}
        for i in range(0, len(keys), VERIFY_CHUNK):
            chunk = keys[i:i + VERIFY_CHUNK]
            found.update(zip(chunk, self.cluster.read_many(member, chunk)))
        return found

    def finish(self) -> None:
        """Final check of every acknowledged write, retried while cores are unreachable."""
        deadline = time.monotonic() + self.final_verify_timeout
        while True:
            try:
                self.verify(list(self.acknowledged))
                logger.info("%s: all %d acknowledged writes readable", self.name, len(self.acknowledged))
                return
            except TRANSIENT_ERRORS as e:
                if time.monotonic() >= deadline:
                    raise InvariantViolation(f"final verification impossible: {e}") from e
                time.sleep(0.1)
