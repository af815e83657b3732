"""Online backup / store copy against a member's advertised backup address."""

import json
import logging
import shutil
import time
from dataclasses import dataclass
from datetime import datetime, timezone
from pathlib import Path
from typing import Optional

import yaml
from redis.exceptions import ConnectionError as RedisConnectionError, RedisError, TimeoutError as RedisTimeoutError

from .cluster import read_store
from .constants import Layout
from .errors import BackupFailedError, MemberUnavailableError

logger = logging.getLogger(__name__)


@dataclass
class BackupOutcome:
    """Result of one backup attempt against one member."""
    address: str
    success: bool
    diagnostic: Optional[str] = None
    artifact: Optional[Path] = None
    key_count: int = 0
    duration_ms: float = 0.0


class StoreCopyBackup:
    """Copies a live member's store into a destination directory.

    Callable as `backup(address, destination) -> BackupOutcome`. Raises
    MemberUnavailableError when the member is down or drops mid-copy, and
    BackupFailedError for protocol or I/O failures. Partial artifacts are
    removed on either error.
    """

    def __init__(self, cluster):
        self.cluster = cluster

    def __call__(self, address, destination: Path) -> BackupOutcome:
        address = str(address)
        destination = Path(destination)
        member = self.cluster.member_at(address)
        if member is None:
            raise BackupFailedError(address, "no backup server listening")
        if not member.running:
            raise MemberUnavailableError(member.member_id, "stopped")

        start = time.time()
        try:
            destination.mkdir(parents=True, exist_ok=False)
        except OSError as e:
            raise BackupFailedError(address, f"cannot create {destination}: {e}") from e

        try:
            store = read_store(member.client)
            with open(destination / Layout.BACKUP_STORE_FILE, "w", encoding="utf-8") as f:
                json.dump(store, f)
            with open(destination / Layout.BACKUP_MANIFEST_FILE, "w", encoding="utf-8") as f:
                yaml.safe_dump({
                    "member": member.member_id,
                    "address": address,
                    "keys": len(store),
                    "taken_at": datetime.now(timezone.utc).isoformat(),
                }, f)
        except (RedisConnectionError, RedisTimeoutError) as e:
            _discard(destination)
            raise MemberUnavailableError(member.member_id, f"connection lost during store copy: {e}") from e
        except RedisError as e:
            _discard(destination)
            raise BackupFailedError(address, f"protocol error: {e}") from e
        except OSError as e:
            _discard(destination)
            raise BackupFailedError(address, f"I/O error: {e}") from e

        return BackupOutcome(
            address=address,
            success=True,
            artifact=destination,
            key_count=len(store),
            duration_ms=(time.time() - start) * 1000
        )


def _discard(path: Path) -> None:
    shutil.rmtree(path, ignore_errors=True)
