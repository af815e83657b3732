"""Cluster Stress Harness

Concurrent churn, online backup and write workload against a core/edge cluster.
"""

from .backup import BackupOutcome, StoreCopyBackup
from .backup_load import BackupLoad
from .cluster import LocalCluster, Member
from .config import AdvertisedAddress, StressConfig, configure_backup
from .constants import Defaults, EnvVars, MemberKind, Settings
from .errors import (
    BackupFailedError,
    ClusterStartupError,
    ConfigError,
    InvariantViolation,
    MemberUnavailableError,
    NoQuorumError,
    SetupError,
    StressError,
    StressTestFailure,
    TRANSIENT_ERRORS,
    is_transient,
)
from .harness import BackupStoreCopyInteractionHarness, HarnessResult, RunStatus, WorkerReport
from .metrics import WorkerMetrics
from .signals import FailureSignal, TerminationPredicate
from .start_stop import StartStopLoad
from .workers import StressWorker
from .workload import Workload

__all__ = [
    'BackupOutcome',
    'StoreCopyBackup',
    'BackupLoad',
    'LocalCluster',
    'Member',
    'AdvertisedAddress',
    'StressConfig',
    'configure_backup',
    'Defaults',
    'EnvVars',
    'MemberKind',
    'Settings',
    'BackupFailedError',
    'ClusterStartupError',
    'ConfigError',
    'InvariantViolation',
    'MemberUnavailableError',
    'NoQuorumError',
    'SetupError',
    'StressError',
    'StressTestFailure',
    'TRANSIENT_ERRORS',
    'is_transient',
    'BackupStoreCopyInteractionHarness',
    'HarnessResult',
    'RunStatus',
    'WorkerReport',
    'WorkerMetrics',
    'FailureSignal',
    'TerminationPredicate',
    'StartStopLoad',
    'StressWorker',
    'Workload',
]

__version__ = '0.1.0'
