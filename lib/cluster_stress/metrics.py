"""Per-worker metrics collection

Provides:
- WorkerMetrics dataclass recording iterations, outcomes and latencies
- Latency percentiles (p50, p95, p99)
- Summary rendering for the harness report
"""
import statistics
import threading
import time
from contextlib import contextmanager
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional


@dataclass
class WorkerMetrics:
    worker: str
    start_time: float = field(default_factory=time.time)
    end_time: Optional[float] = None
    iterations: int = 0
    successes: int = 0
    transient_errors: int = 0
    failures: int = 0
    latencies_ms: List[float] = field(default_factory=list)
    counters: Dict[str, int] = field(default_factory=dict)
    errors: List[str] = field(default_factory=list)
    _lock: threading.Lock = field(default_factory=threading.Lock, repr=False, compare=False)

    MAX_SAMPLES = 10000

    @property
    def duration_seconds(self) -> float:
        end = self.end_time or time.time()
        return end - self.start_time

    @property
    def success_rate(self) -> float:
        if self.iterations == 0:
            return 0.0
        return self.successes / self.iterations

    @property
    def throughput_ops_per_sec(self) -> float:
        if self.duration_seconds == 0:
            return 0.0
        return self.iterations / self.duration_seconds

    def latency_percentile(self, percentile: float) -> float:
        latencies = sorted(self.latencies_ms)
        if not latencies:
            return 0.0
        idx = int(len(latencies) * percentile / 100)
        return latencies[min(idx, len(latencies) - 1)]

    @property
    def latency_avg_ms(self) -> float:
        if not self.latencies_ms:
            return 0.0
        return statistics.mean(self.latencies_ms)

    def record_success(self, latency_ms: float):
        with self._lock:
            self.iterations += 1
            self.successes += 1
            self.latencies_ms.append(latency_ms)
            if len(self.latencies_ms) > self.MAX_SAMPLES:
                self.latencies_ms = self.latencies_ms[-self.MAX_SAMPLES:]

    def record_transient(self, error: str):
        with self._lock:
            self.iterations += 1
            self.transient_errors += 1
            self._record_error(error)

    def record_failure(self, error: str):
        with self._lock:
            self.iterations += 1
            self.failures += 1
            self._record_error(error)

    def _record_error(self, error: str):
        self.errors.append(error)
        if len(self.errors) > self.MAX_SAMPLES:
            self.errors = self.errors[-self.MAX_SAMPLES:]

    def increment(self, name: str, value: int = 1):
        with self._lock:
            self.counters[name] = self.counters.get(name, 0) + value

    @contextmanager
    def timed(self):
        """Time the enclosed block and record a success if it does not raise."""
        start = time.time()
        yield
        self.record_success((time.time() - start) * 1000)

    def finalize(self):
        self.end_time = time.time()

    def to_dict(self) -> Dict[str, Any]:
        return {
            "worker": self.worker,
            "duration_seconds": round(self.duration_seconds, 3),
            "iterations": self.iterations,
            "successes": self.successes,
            "transient_errors": self.transient_errors,
            "failures": self.failures,
            "success_rate": round(self.success_rate, 4),
            "latency_p50_ms": round(self.latency_percentile(50), 2),
            "latency_p95_ms": round(self.latency_percentile(95), 2),
            "latency_p99_ms": round(self.latency_percentile(99), 2),
            "latency_avg_ms": round(self.latency_avg_ms, 2),
            "throughput_ops_per_sec": round(self.throughput_ops_per_sec, 2),
            "counters": dict(self.counters),
            "errors": self.errors[-20:],
        }

    def summary_line(self) -> str:
        return (
            f"{self.worker}: {self.successes}/{self.iterations} ok, "
            f"{self.transient_errors} transient, {self.failures} failed, "
            f"p50 {self.latency_percentile(50):.2f}ms p99 {self.latency_percentile(99):.2f}ms"
            + (f", {self.counters}" if self.counters else "")
        )
