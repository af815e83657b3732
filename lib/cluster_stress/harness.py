"""
Backup / Store-Copy Interaction Harness

Runs three stress workers concurrently against one cluster:
- workload: acknowledged writes must stay readable
- start-stop: random members are stopped and restarted
- backup: online backups are taken from live members

The first unrecoverable error trips a shared signal; the other workers stop
starting new iterations. The cluster is always shut down. Working
directories are deleted only when every worker succeeded.
"""
import logging
import time
from concurrent.futures import ThreadPoolExecutor, TimeoutError as FutureTimeoutError, wait as futures_wait
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Any, Callable, Dict, List, Optional

from .backup import StoreCopyBackup
from .backup_load import BackupLoad
from .cluster import LocalCluster
from .config import StressConfig
from .constants import Defaults
from .errors import ClusterStartupError, StressTestFailure
from .metrics import WorkerMetrics
from .signals import FailureSignal, TerminationPredicate
from .start_stop import StartStopLoad
from .workdirs import delete_recursively, ensure_exists_and_empty
from .workload import Workload

logger = logging.getLogger(__name__)


class RunStatus(Enum):
    PASSED = "passed"
    FAILED = "failed"


@dataclass
class WorkerReport:
    name: str
    success: bool
    metrics: WorkerMetrics
    error: Optional[str] = None


@dataclass
class HarnessResult:
    status: RunStatus
    duration_seconds: float
    reports: List[WorkerReport]
    working_directory: Path
    tripped_by: Optional[str] = None
    cleaned_up: bool = False
    cluster_counters: Dict[str, int] = field(default_factory=dict)

    @property
    def passed(self) -> bool:
        return self.status == RunStatus.PASSED

    @property
    def failed_workers(self) -> List[str]:
        return [r.name for r in self.reports if not r.success]

    def report(self, name: str) -> WorkerReport:
        for r in self.reports:
            if r.name == name:
                return r
        raise KeyError(name)

    def raise_for_status(self) -> None:
        if not self.passed:
            reasons = [f"{r.name}: {r.error}" for r in self.reports if not r.success and r.error]
            raise StressTestFailure(self.failed_workers, reasons)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "status": self.status.value,
            "duration_seconds": round(self.duration_seconds, 3),
            "tripped_by": self.tripped_by,
            "failed_workers": self.failed_workers,
            "working_directory": str(self.working_directory),
            "cleaned_up": self.cleaned_up,
            "cluster": self.cluster_counters,
            "workers": [r.metrics.to_dict() for r in self.reports],
        }

    def summary(self) -> str:
        lines = [
            f"STRESS RUN {self.status.value.upper()} in {self.duration_seconds:.1f}s",
        ]
        lines.extend(f"  {r.metrics.summary_line()}" for r in self.reports)
        if self.cluster_counters:
            lines.append(f"  cluster: {self.cluster_counters}")
        if not self.passed:
            lines.append(f"  failed: {', '.join(self.failed_workers)} (tripped by {self.tripped_by})")
            lines.append(f"  working directories kept under {self.working_directory}")
        return "\n".join(lines)


def local_cluster(config: StressConfig) -> LocalCluster:
    return LocalCluster(
        config.cluster_directory,
        config.number_of_cores,
        config.number_of_edges,
        core_params=config.core_settings,
        instance_core_params=config.core_instance_settings(),
        edge_params={},
        instance_edge_params=config.edge_instance_settings(),
    )


class BackupStoreCopyInteractionHarness:

    WORKERS = 3

    def __init__(
        self,
        config: StressConfig,
        cluster_factory: Callable[[StressConfig], Any] = local_cluster,
        backup_factory: Callable[[Any], Callable] = StoreCopyBackup,
        grace_seconds: float = Defaults.SHUTDOWN_GRACE_SECONDS
    ):
        self.config = config
        self.cluster_factory = cluster_factory
        self.backup_factory = backup_factory
        self.grace_seconds = grace_seconds

    def execute(self) -> HarnessResult:
        config = self.config
        start_time = time.time()

        cluster_directory = ensure_exists_and_empty(config.cluster_directory)
        backup_directory = ensure_exists_and_empty(config.backup_directory)

        cluster = self.cluster_factory(config)
        signal = FailureSignal()
        reports: List[WorkerReport] = []

        try:
            cluster.start()
            expected = config.number_of_cores + config.number_of_edges
            live = len(cluster.live_members())
            if live != expected:
                raise ClusterStartupError(f"{live}/{expected} members live before workers start")

            keep_going = TerminationPredicate(signal, config.duration_seconds)
            workers = [
                Workload(keep_going, signal, cluster, final_verify_timeout=config.rejoin_timeout_seconds),
                StartStopLoad(
                    keep_going, signal, cluster,
                    rejoin_timeout=config.rejoin_timeout_seconds,
                    down_seconds=config.churn_pause_seconds,
                ),
                BackupLoad(
                    keep_going, signal, cluster, backup_directory,
                    self.backup_factory(cluster),
                    pause_seconds=config.backup_pause_seconds,
                ),
            ]
            logger.info(
                "Running %d workers for %.0fs against %d core / %d edge members",
                len(workers), config.duration_seconds, config.number_of_cores, config.number_of_edges
            )
            reports = self._run_workers(workers, keep_going, signal)
        finally:
            cluster.shutdown()

        passed = all(r.success for r in reports)
        if passed:
            delete_recursively(cluster_directory)
            delete_recursively(backup_directory)

        result = HarnessResult(
            status=RunStatus.PASSED if passed else RunStatus.FAILED,
            duration_seconds=time.time() - start_time,
            reports=reports,
            working_directory=config.working_directory,
            tripped_by=signal.tripped_by,
            cleaned_up=passed,
            cluster_counters={
                "commit_index": getattr(cluster, "commit_index", 0),
                "log_catchups": getattr(cluster, "log_catchups", 0),
                "store_copies": getattr(cluster, "store_copies", 0),
            },
        )
        log = logger.info if passed else logger.error
        log(result.summary())
        return result

    def _run_workers(self, workers, keep_going: TerminationPredicate, signal: FailureSignal) -> List[WorkerReport]:
        """Run each worker on its own thread and wait for all of them, whatever each returns."""
        executor = ThreadPoolExecutor(max_workers=self.WORKERS, thread_name_prefix="stress")
        try:
            futures = [(worker, executor.submit(worker.run)) for worker in workers]
            reports = []
            for worker, future in futures:
                error = None
                try:
                    success = future.result(timeout=keep_going.remaining() + self.grace_seconds)
                except FutureTimeoutError:
                    success = False
                    error = f"did not stop within {self.grace_seconds:.1f}s grace period"
                    signal.trip(worker.name)
                    logger.error("%s overran its grace period; waiting for it before shutdown", worker.name)
                    futures_wait([future])
                except Exception as e:
                    success = False
                    error = f"{type(e).__name__}: {e}"
                    signal.trip(worker.name)

                if not success and error is None and worker.failure is not None:
                    error = f"{type(worker.failure).__name__}: {worker.failure}"
                reports.append(WorkerReport(worker.name, bool(success), worker.metrics, error))
            return reports
        finally:
            executor.shutdown(wait=True)
