"""Constants, environment variable names and setting keys for the stress harness."""


class EnvVars:
    """Environment variables read by StressConfig.from_env()."""

    PREFIX = "BACKUP_STORE_COPY_INTERACTION_STRESS_"

    NUMBER_OF_CORES = PREFIX + "NUMBER_OF_CORES"
    NUMBER_OF_EDGES = PREFIX + "NUMBER_OF_EDGES"
    DURATION = PREFIX + "DURATION"
    WORKING_DIRECTORY = PREFIX + "WORKING_DIRECTORY"
    BASE_CORE_BACKUP_PORT = PREFIX + "BASE_CORE_BACKUP_PORT"
    BASE_EDGE_BACKUP_PORT = PREFIX + "BASE_EDGE_BACKUP_PORT"
    REJOIN_TIMEOUT = PREFIX + "REJOIN_TIMEOUT"
    CHURN_PAUSE = PREFIX + "CHURN_PAUSE"
    BACKUP_PAUSE = PREFIX + "BACKUP_PAUSE"
    SETTINGS_FILE = PREFIX + "SETTINGS_FILE"

    LOG_LEVEL = "STRESS_LOG_LEVEL"


class Settings:
    """Member setting names injected into the cluster at construction."""

    RAFT_LOG_ROTATION_SIZE = "raft_log_rotation_size"
    RAFT_LOG_PRUNING_FREQUENCY = "raft_log_pruning_frequency"
    RAFT_LOG_PRUNING_STRATEGY = "raft_log_pruning_strategy"

    ONLINE_BACKUP_ENABLED = "online_backup_enabled"
    ONLINE_BACKUP_SERVER = "online_backup_server"

    TRUE = "true"
    FALSE = "false"


class MemberKind:
    CORE = "core"
    EDGE = "edge"


class Defaults:
    """Default configuration values."""
    NUMBER_OF_CORES = 3
    NUMBER_OF_EDGES = 1
    DURATION_MINUTES = 30.0
    BASE_CORE_BACKUP_PORT = 8000
    BASE_EDGE_BACKUP_PORT = 9000
    BACKUP_HOST = "localhost"

    REJOIN_TIMEOUT_SECONDS = 30.0
    CHURN_PAUSE_SECONDS = 1.0
    BACKUP_PAUSE_SECONDS = 0.5
    VERIFY_EVERY = 50
    SHUTDOWN_GRACE_SECONDS = 60.0

    CORE_SETTINGS = {
        Settings.RAFT_LOG_ROTATION_SIZE: "1K",
        Settings.RAFT_LOG_PRUNING_FREQUENCY: "1s",
        Settings.RAFT_LOG_PRUNING_STRATEGY: "keep_none",
    }


class Layout:
    """Working directory layout."""
    CLUSTER_DIR = "cluster"
    BACKUPS_DIR = "backups"
    MEMBER_SETTINGS_FILE = "member.yaml"
    STORE_SNAPSHOT_FILE = "store.json"
    RAFT_LOG_DIR = "raft-log"
    BACKUP_STORE_FILE = "store.json"
    BACKUP_MANIFEST_FILE = "manifest.yaml"


class WorkloadKeys:
    """Key patterns written by the write workload."""

    PREFIX = "stress:tx"

    @classmethod
    def tx(cls, seq: int) -> str:
        return f"{cls.PREFIX}:{seq}"
