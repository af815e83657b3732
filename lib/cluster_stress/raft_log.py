"""Segmented append-only log with size-based rotation and periodic pruning.

Used by core members of LocalCluster. Not thread-safe on its own; the owning
cluster serialises access under its lock.
"""

import json
import re
import time
from dataclasses import dataclass
from pathlib import Path
from typing import Callable, List, Optional

SEGMENT_PREFIX = "segment."

_SIZE_RE = re.compile(r'^\s*(\d+)\s*([kmg]?)b?\s*$', re.IGNORECASE)
_DURATION_RE = re.compile(r'^\s*(\d+(?:\.\d+)?)\s*(ms|s|m|h)?\s*$', re.IGNORECASE)
_STRATEGY_RE = re.compile(r'^\s*(\d+)\s+(files|entries)\s*$', re.IGNORECASE)

_SIZE_UNITS = {'': 1, 'k': 1024, 'm': 1024 ** 2, 'g': 1024 ** 3}
_DURATION_UNITS = {'ms': 0.001, 's': 1, 'm': 60, 'h': 3600}


def parse_size(value: str) -> int:
    """Parse '1K', '512', '4MB' into bytes."""
    match = _SIZE_RE.match(value)
    if not match:
        raise ValueError(f"Invalid size: {value!r}")
    return int(match.group(1)) * _SIZE_UNITS[match.group(2).lower()]


def parse_duration(value: str) -> float:
    """Parse '1s', '500ms', '2m' into seconds. A bare number is seconds."""
    match = _DURATION_RE.match(value)
    if not match:
        raise ValueError(f"Invalid duration: {value!r}")
    unit = (match.group(2) or 's').lower()
    return float(match.group(1)) * _DURATION_UNITS[unit]


@dataclass(frozen=True)
class PruningStrategy:
    """What to keep when pruning: everything, nothing, or the last N files/entries."""
    kind: str
    amount: int = 0

    @classmethod
    def parse(cls, value: str) -> "PruningStrategy":
        normalized = value.strip().lower()
        if normalized in ("keep_all", "keep_none"):
            return cls(normalized)
        match = _STRATEGY_RE.match(normalized)
        if not match:
            raise ValueError(f"Invalid pruning strategy: {value!r}")
        return cls(match.group(2), int(match.group(1)))


@dataclass(frozen=True)
class LogEntry:
    index: int
    key: str
    value: str


@dataclass
class _Segment:
    first_index: int
    path: Path
    size: int = 0


class SegmentedLog:

    def __init__(
        self,
        directory: Path,
        rotation_size: int,
        pruning_frequency: float,
        pruning_strategy: PruningStrategy,
        clock: Callable[[], float] = time.monotonic
    ):
        self.directory = Path(directory)
        self.rotation_size = rotation_size
        self.pruning_frequency = pruning_frequency
        self.pruning_strategy = pruning_strategy
        self._clock = clock
        self._last_prune = clock()
        self.pruned_segments = 0

        self.directory.mkdir(parents=True, exist_ok=True)
        self._segments: List[_Segment] = self._load_segments()
        self.last_index = self._scan_last_index()

    def _load_segments(self) -> List[_Segment]:
        segments = []
        for path in self.directory.glob(f"{SEGMENT_PREFIX}*"):
            first_index = int(path.name[len(SEGMENT_PREFIX):])
            segments.append(_Segment(first_index, path, path.stat().st_size))
        segments.sort(key=lambda s: s.first_index)
        return segments

    def _scan_last_index(self) -> int:
        if not self._segments:
            return 0
        last = self._segments[-1]
        entries = self._read_segment(last)
        return entries[-1].index if entries else last.first_index - 1

    @property
    def first_index(self) -> Optional[int]:
        """Lowest index still retained, or None when the log holds no segments."""
        return self._segments[0].first_index if self._segments else None

    @property
    def segment_count(self) -> int:
        return len(self._segments)

    def append(self, entry: LogEntry) -> None:
        if entry.index <= self.last_index:
            raise ValueError(f"Out of order append: {entry.index} <= {self.last_index}")

        if not self._segments or self._segments[-1].size >= self.rotation_size:
            self._rotate(entry.index)

        line = json.dumps({'index': entry.index, 'key': entry.key, 'value': entry.value}) + '\n'
        current = self._segments[-1]
        with open(current.path, 'a', encoding='utf-8') as f:
            f.write(line)
        current.size += len(line.encode('utf-8'))
        self.last_index = entry.index

        if self._clock() - self._last_prune >= self.pruning_frequency:
            self.prune()

    def _rotate(self, first_index: int) -> None:
        path = self.directory / f"{SEGMENT_PREFIX}{first_index:020d}"
        path.touch()
        self._segments.append(_Segment(first_index, path))

    def prune(self) -> int:
        """Drop closed segments according to the pruning strategy. Returns segments removed."""
        self._last_prune = self._clock()
        closed = self._segments[:-1]
        strategy = self.pruning_strategy

        if strategy.kind == "keep_all" or not closed:
            return 0
        if strategy.kind == "keep_none":
            doomed = closed
        elif strategy.kind == "files":
            doomed = closed[:max(0, len(closed) - strategy.amount)]
        else:
            keep_from = self.last_index - strategy.amount + 1
            doomed = [
                segment for segment, successor in zip(closed, self._segments[1:])
                if successor.first_index <= keep_from
            ]

        for segment in doomed:
            segment.path.unlink(missing_ok=True)
        self._segments = self._segments[len(doomed):]
        self.pruned_segments += len(doomed)
        return len(doomed)

    def reset(self, last_index: int) -> None:
        """Discard every segment and continue the log after `last_index` (used after a store copy)."""
        for segment in self._segments:
            segment.path.unlink(missing_ok=True)
        self._segments = []
        self.last_index = last_index

    def entries_from(self, index: int) -> Optional[List[LogEntry]]:
        """Entries with index >= `index`, or None if some of them were pruned."""
        if index > self.last_index:
            return []
        if self.first_index is None or index < self.first_index:
            return None

        entries = []
        for segment in self._segments:
            entries.extend(e for e in self._read_segment(segment) if e.index >= index)
        return entries

    def _read_segment(self, segment: _Segment) -> List[LogEntry]:
        entries = []
        with open(segment.path, 'r', encoding='utf-8') as f:
            for line in f:
                if line.strip():
                    data = json.loads(line)
                    entries.append(LogEntry(data['index'], data['key'], data['value']))
        return entries
