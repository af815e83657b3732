"""LocalCluster - in-process core/edge cluster used as the stress target.

Each member owns an isolated fakeredis server. Stopping a member disconnects
its server, so clients see the same redis ConnectionError a real outage
produces. Core members keep a segmented log on disk; restarted members catch
up from a live core's log, or by a full store copy once the entries they need
have been pruned.
"""

import json
import logging
import threading
from pathlib import Path
from typing import Dict, List, Mapping, Optional

import fakeredis
import yaml
from redis.exceptions import ConnectionError as RedisConnectionError

from .config import AdvertisedAddress, InstanceSettings
from .constants import Defaults, Layout, MemberKind, Settings
from .errors import ClusterStartupError, MemberUnavailableError, NoQuorumError
from .raft_log import LogEntry, PruningStrategy, SegmentedLog, parse_duration, parse_size

logger = logging.getLogger(__name__)


def read_store(client) -> Dict[str, str]:
    """Read every key/value of a member store."""
    keys = sorted(client.scan_iter(count=500))
    if not keys:
        return {}
    return dict(zip(keys, client.mget(keys)))


class Member:
    """A single cluster member and its on-disk state."""

    def __init__(self, kind: str, index: int, directory: Path, settings: Mapping[str, str]):
        self.kind = kind
        self.index = index
        self.member_id = f"{kind}-{index}"
        self.directory = Path(directory)
        self.settings = dict(settings)
        self.applied_index = 0
        self.running = False

        self.server = fakeredis.FakeServer()
        self.server.connected = False
        self.client = fakeredis.FakeStrictRedis(server=self.server, decode_responses=True)
        self.log: Optional[SegmentedLog] = None

    @property
    def is_core(self) -> bool:
        return self.kind == MemberKind.CORE

    @property
    def backup_enabled(self) -> bool:
        return self.settings.get(Settings.ONLINE_BACKUP_ENABLED, Settings.FALSE).lower() == Settings.TRUE

    @property
    def backup_address(self) -> Optional[AdvertisedAddress]:
        server = self.settings.get(Settings.ONLINE_BACKUP_SERVER)
        return AdvertisedAddress.parse(server) if server else None

    def open_log(self) -> SegmentedLog:
        if self.log is None:
            setting = lambda name: self.settings.get(name, Defaults.CORE_SETTINGS[name])
            self.log = SegmentedLog(
                self.directory / Layout.RAFT_LOG_DIR,
                rotation_size=parse_size(setting(Settings.RAFT_LOG_ROTATION_SIZE)),
                pruning_frequency=parse_duration(setting(Settings.RAFT_LOG_PRUNING_FREQUENCY)),
                pruning_strategy=PruningStrategy.parse(setting(Settings.RAFT_LOG_PRUNING_STRATEGY)),
            )
        return self.log

    def __repr__(self) -> str:
        return f"Member({self.member_id}, running={self.running}, applied={self.applied_index})"


class LocalCluster:
    """Core/edge cluster with member lifecycle, backup address lookup and a replicated store."""

    def __init__(
        self,
        directory: Path,
        number_of_cores: int,
        number_of_edges: int,
        core_params: Optional[Mapping[str, str]] = None,
        instance_core_params: Optional[InstanceSettings] = None,
        edge_params: Optional[Mapping[str, str]] = None,
        instance_edge_params: Optional[InstanceSettings] = None
    ):
        self.directory = Path(directory)
        self._lock = threading.RLock()
        self._commit_index = 0
        self.log_catchups = 0
        self.store_copies = 0

        self._cores = [
            self._new_member(MemberKind.CORE, i, core_params, instance_core_params)
            for i in range(number_of_cores)
        ]
        self._edges = [
            self._new_member(MemberKind.EDGE, i, edge_params, instance_edge_params)
            for i in range(number_of_edges)
        ]

    def _new_member(self, kind, index, params, instance_params) -> Member:
        settings = dict(params or {})
        for name, value_for in (instance_params or {}).items():
            settings[name] = value_for(index)
        return Member(kind, index, self.directory / f"{kind}-{index}", settings)

    # Lifecycle

    def start(self) -> None:
        with self._lock:
            for member in self.members():
                self.start_member(member)

        live = self.live_members()
        expected = len(self.members())
        if len(live) != expected:
            raise ClusterStartupError(f"{len(live)}/{expected} members live after start")
        logger.info("Cluster started: %d core, %d edge members", len(self._cores), len(self._edges))

    def shutdown(self) -> None:
        with self._lock:
            for member in self.members():
                if member.running:
                    self._write_snapshot(member)
                    self.stop_member(member)
        logger.info(
            "Cluster shut down (commit index %d, %d log catch-ups, %d store copies)",
            self._commit_index, self.log_catchups, self.store_copies
        )

    def start_member(self, member: Member) -> None:
        with self._lock:
            if member.running:
                return
            member.directory.mkdir(parents=True, exist_ok=True)
            with open(member.directory / Layout.MEMBER_SETTINGS_FILE, "w", encoding="utf-8") as f:
                yaml.safe_dump({"member": member.member_id, "settings": member.settings}, f)
            if member.is_core:
                member.open_log()

            member.server.connected = True
            self._catch_up(member)
            member.running = True
        logger.debug("Started %s", member.member_id)

    def stop_member(self, member: Member) -> None:
        with self._lock:
            member.running = False
            member.server.connected = False
        logger.debug("Stopped %s", member.member_id)

    # Membership

    def members(self) -> List[Member]:
        return self._cores + self._edges

    def core_members(self) -> List[Member]:
        return list(self._cores)

    def edge_members(self) -> List[Member]:
        return list(self._edges)

    def member(self, kind: str, index: int) -> Member:
        pool = self._cores if kind == MemberKind.CORE else self._edges
        return pool[index]

    def member_at(self, address) -> Optional[Member]:
        """Member advertising a backup server at `address`, if any."""
        wanted = str(address)
        for member in self.members():
            if member.backup_enabled and str(member.backup_address) == wanted:
                return member
        return None

    def is_live(self, member: Member) -> bool:
        if not member.running:
            return False
        try:
            return bool(member.client.ping())
        except RedisConnectionError:
            return False

    def live_members(self) -> List[Member]:
        return [m for m in self.members() if self.is_live(m)]

    @property
    def commit_index(self) -> int:
        return self._commit_index

    # Data path

    def commit(self, key: str, value: str) -> int:
        """Replicate a write; acknowledged only once a majority of cores applied it."""
        with self._lock:
            # members still behind the commit index take no new entries
            targets = [m for m in self.members() if m.running and self._current(m)]
            current_cores = [m for m in targets if m.is_core]
            required = len(self._cores) // 2 + 1
            if len(current_cores) < required:
                raise NoQuorumError(len(current_cores), required)

            entry = LogEntry(self._commit_index + 1, key, value)
            for member in targets:
                self._apply(member, entry)
            self._commit_index = entry.index
            return entry.index

    def read(self, member: Member, key: str) -> Optional[str]:
        if not member.running:
            raise MemberUnavailableError(member.member_id, "stopped")
        return member.client.get(key)

    def read_many(self, member: Member, keys: List[str]) -> List[Optional[str]]:
        if not member.running:
            raise MemberUnavailableError(member.member_id, "stopped")
        return member.client.mget(keys) if keys else []

    def _apply(self, member: Member, entry: LogEntry) -> None:
        member.client.set(entry.key, entry.value)
        if member.is_core:
            member.log.append(entry)
        member.applied_index = entry.index

    def _current(self, member: Member) -> bool:
        if member.applied_index < self._commit_index:
            self._catch_up(member)
        return member.applied_index == self._commit_index

    def _catch_up(self, member: Member) -> None:
        if member.applied_index >= self._commit_index:
            return

        donors = [
            c for c in self._cores
            if c.running and c is not member and c.applied_index == self._commit_index
        ]
        if not donors:
            logger.warning("%s is behind (%d < %d) with no live donor",
                           member.member_id, member.applied_index, self._commit_index)
            return

        donor = donors[0]
        entries = donor.log.entries_from(member.applied_index + 1)
        if entries is not None:
            for entry in entries:
                self._apply(member, entry)
            self.log_catchups += 1
            logger.debug("%s caught up from %s log (%d entries)", member.member_id, donor.member_id, len(entries))
            return

        # Needed entries were pruned from the donor: copy its whole store.
        member.client.flushall()
        store = read_store(donor.client)
        if store:
            member.client.mset(store)
        if member.is_core:
            member.log.reset(donor.applied_index)
        member.applied_index = donor.applied_index
        self.store_copies += 1
        logger.info("%s store-copied from %s (%d keys)", member.member_id, donor.member_id, len(store))

    def _write_snapshot(self, member: Member) -> None:
        snapshot = {"applied_index": member.applied_index, "data": read_store(member.client)}
        with open(member.directory / Layout.STORE_SNAPSHOT_FILE, "w", encoding="utf-8") as f:
            json.dump(snapshot, f)
