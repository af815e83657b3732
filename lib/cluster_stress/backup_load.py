"""Backup worker - take online backups from each live member in turn."""

import logging
from collections import deque
from pathlib import Path
from typing import Callable, Deque

from .backup import BackupOutcome
from .constants import Defaults
from .errors import TRANSIENT_ERRORS
from .workers import StressWorker

logger = logging.getLogger(__name__)

Backup = Callable[[str, Path], BackupOutcome]


class BackupLoad(StressWorker):
    """One iteration walks every member; stopped ones are skipped, live ones backed up.

    A member that disappears mid-copy is a benign outcome. Any other error
    from the backup collaborator fails the worker.
    """

    name = "backup"

    MAX_OUTCOMES = 1000

    def __init__(
        self,
        keep_going,
        signal,
        cluster,
        backup_directory: Path,
        backup: Backup,
        **kwargs
    ):
        kwargs.setdefault("pause_seconds", Defaults.BACKUP_PAUSE_SECONDS)
        super().__init__(keep_going, signal, cluster, **kwargs)
        self.backup_directory = Path(backup_directory)
        self.backup = backup
        self.attempts = 0
        self.outcomes: Deque[BackupOutcome] = deque(maxlen=self.MAX_OUTCOMES)

    def do_work(self) -> None:
        for member in self.cluster.members():
            if not self.keep_going():
                return
            if not self.cluster.is_live(member) or not member.backup_enabled:
                self.metrics.increment("skipped")
                continue
            self.outcomes.append(self._backup(member))

    def _backup(self, member) -> BackupOutcome:
        self.attempts += 1
        address = str(member.backup_address)
        destination = self.backup_directory / f"{member.member_id}-{self.attempts:06d}"
        try:
            outcome = self.backup(address, destination)
        except TRANSIENT_ERRORS as e:
            self.metrics.increment("unavailable")
            logger.info("%s: %s unavailable during backup: %s", self.name, address, e)
            return BackupOutcome(address=address, success=False, diagnostic=str(e))

        self.metrics.increment("backups")
        logger.debug("%s: backed up %s (%d keys) to %s", self.name, address, outcome.key_count, destination)
        return outcome
