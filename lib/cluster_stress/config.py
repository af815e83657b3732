"""Harness configuration - environment loading, validation, address plumbing"""

import os
import tempfile
from dataclasses import dataclass, field
from pathlib import Path
from types import MappingProxyType
from typing import Callable, Dict, Mapping, Optional

import yaml

from .constants import Defaults, EnvVars, Layout, MemberKind, Settings
from .errors import ConfigError
from .raft_log import PruningStrategy, parse_duration, parse_size


InstanceSettings = Dict[str, Callable[[int], str]]


@dataclass(frozen=True)
class AdvertisedAddress:
    host: str
    port: int

    def __str__(self) -> str:
        return f"{self.host}:{self.port}"

    @classmethod
    def parse(cls, value: str) -> "AdvertisedAddress":
        host, _, port = value.rpartition(":")
        if not host or not port.isdigit():
            raise ValueError(f"Invalid address: {value!r}")
        return cls(host, int(port))


@dataclass(frozen=True)
class StressConfig:
    """Immutable configuration for one harness run."""
    number_of_cores: int = Defaults.NUMBER_OF_CORES
    number_of_edges: int = Defaults.NUMBER_OF_EDGES
    duration_seconds: float = Defaults.DURATION_MINUTES * 60
    working_directory: Path = field(default_factory=lambda: Path(tempfile.gettempdir()))
    base_core_backup_port: int = Defaults.BASE_CORE_BACKUP_PORT
    base_edge_backup_port: int = Defaults.BASE_EDGE_BACKUP_PORT
    rejoin_timeout_seconds: float = Defaults.REJOIN_TIMEOUT_SECONDS
    churn_pause_seconds: float = Defaults.CHURN_PAUSE_SECONDS
    backup_pause_seconds: float = Defaults.BACKUP_PAUSE_SECONDS
    core_settings: Mapping[str, str] = field(default_factory=lambda: dict(Defaults.CORE_SETTINGS))
    backup_host: str = Defaults.BACKUP_HOST

    def __post_init__(self):
        object.__setattr__(self, "working_directory", Path(self.working_directory))
        object.__setattr__(self, "core_settings", MappingProxyType(dict(self.core_settings)))
        self.validate()

    def validate(self) -> None:
        if self.number_of_cores < 1:
            raise ConfigError(f"number_of_cores must be >= 1, got {self.number_of_cores}")
        if self.number_of_edges < 0:
            raise ConfigError(f"number_of_edges must be >= 0, got {self.number_of_edges}")
        if self.duration_seconds <= 0:
            raise ConfigError(f"duration must be positive, got {self.duration_seconds}s")
        if self.rejoin_timeout_seconds <= 0:
            raise ConfigError(f"rejoin timeout must be positive, got {self.rejoin_timeout_seconds}s")

        core_ports = range(self.base_core_backup_port, self.base_core_backup_port + self.number_of_cores)
        edge_ports = range(self.base_edge_backup_port, self.base_edge_backup_port + self.number_of_edges)
        for name, ports in (("core", core_ports), ("edge", edge_ports)):
            if ports and (ports[0] < 1 or ports[-1] > 65535):
                raise ConfigError(f"{name} backup ports {ports[0]}-{ports[-1]} outside 1-65535")
        if set(core_ports) & set(edge_ports):
            raise ConfigError("core and edge backup port ranges overlap")

        parsers = {
            Settings.RAFT_LOG_ROTATION_SIZE: parse_size,
            Settings.RAFT_LOG_PRUNING_FREQUENCY: parse_duration,
            Settings.RAFT_LOG_PRUNING_STRATEGY: PruningStrategy.parse,
        }
        for name, parse in parsers.items():
            if name in self.core_settings:
                try:
                    parse(str(self.core_settings[name]))
                except ValueError as e:
                    raise ConfigError(f"Invalid core setting {name}: {e}") from e

    @property
    def cluster_directory(self) -> Path:
        return self.working_directory / Layout.CLUSTER_DIR

    @property
    def backup_directory(self) -> Path:
        return self.working_directory / Layout.BACKUPS_DIR

    def backup_address(self, kind: str, index: int) -> AdvertisedAddress:
        """Deterministic backup address for a member: class port base + index."""
        base = self.base_core_backup_port if kind == MemberKind.CORE else self.base_edge_backup_port
        return AdvertisedAddress(self.backup_host, base + index)

    def core_instance_settings(self) -> InstanceSettings:
        return configure_backup(lambda index: self.backup_address(MemberKind.CORE, index))

    def edge_instance_settings(self) -> InstanceSettings:
        return configure_backup(lambda index: self.backup_address(MemberKind.EDGE, index))

    @classmethod
    def from_env(cls, environ: Optional[Mapping[str, str]] = None, **overrides) -> "StressConfig":
        """Build configuration from defaults overridden by environment variables.

        Keyword overrides (e.g. from CLI flags) take precedence over the environment.
        """
        env = os.environ if environ is None else environ

        try:
            values = dict(
                number_of_cores=int(env.get(EnvVars.NUMBER_OF_CORES, Defaults.NUMBER_OF_CORES)),
                number_of_edges=int(env.get(EnvVars.NUMBER_OF_EDGES, Defaults.NUMBER_OF_EDGES)),
                duration_seconds=float(env.get(EnvVars.DURATION, Defaults.DURATION_MINUTES)) * 60,
                working_directory=Path(env.get(EnvVars.WORKING_DIRECTORY, tempfile.gettempdir())),
                base_core_backup_port=int(env.get(EnvVars.BASE_CORE_BACKUP_PORT, Defaults.BASE_CORE_BACKUP_PORT)),
                base_edge_backup_port=int(env.get(EnvVars.BASE_EDGE_BACKUP_PORT, Defaults.BASE_EDGE_BACKUP_PORT)),
                rejoin_timeout_seconds=float(env.get(EnvVars.REJOIN_TIMEOUT, Defaults.REJOIN_TIMEOUT_SECONDS)),
                churn_pause_seconds=float(env.get(EnvVars.CHURN_PAUSE, Defaults.CHURN_PAUSE_SECONDS)),
                backup_pause_seconds=float(env.get(EnvVars.BACKUP_PAUSE, Defaults.BACKUP_PAUSE_SECONDS)),
            )
        except ValueError as e:
            raise ConfigError(f"Invalid environment value: {e}") from e

        core_settings = dict(Defaults.CORE_SETTINGS)
        settings_file = env.get(EnvVars.SETTINGS_FILE)
        if settings_file:
            core_settings.update(load_settings_file(Path(settings_file)))
        values["core_settings"] = core_settings

        values.update({k: v for k, v in overrides.items() if v is not None})
        return cls(**values)


def configure_backup(address: Callable[[int], AdvertisedAddress]) -> InstanceSettings:
    """Per-instance settings enabling online backup on each member's own address."""
    return {
        Settings.ONLINE_BACKUP_ENABLED: lambda index: Settings.TRUE,
        Settings.ONLINE_BACKUP_SERVER: lambda index: str(address(index)),
    }


def load_settings_file(path: Path) -> Dict[str, str]:
    """Load core setting overrides from a YAML mapping."""
    if not path.exists():
        raise ConfigError(f"Settings file not found: {path}")

    with open(path, "r", encoding="utf-8") as f:
        data = yaml.safe_load(f) or {}

    if not isinstance(data, dict):
        raise ConfigError(f"Settings file {path} must contain a mapping")

    settings = {}
    for key, value in data.items():
        if isinstance(value, bool):
            value = Settings.TRUE if value else Settings.FALSE
        settings[str(key)] = str(value)
    return settings
