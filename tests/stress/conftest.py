"""
Stress Test Fixtures

Provides:
- StressConfig built from the environment, with a short default duration
- Duration override via BACKUP_STORE_COPY_INTERACTION_STRESS_DURATION (minutes)
"""
import os

import pytest

from cluster_stress.config import StressConfig
from cluster_stress.constants import EnvVars

DEFAULT_STRESS_MINUTES = 1.0


@pytest.fixture
def stress_config(tmp_path) -> StressConfig:
    minutes = float(os.environ.get(EnvVars.DURATION, DEFAULT_STRESS_MINUTES))
    return StressConfig.from_env(
        duration_seconds=minutes * 60,
        working_directory=tmp_path / "stress",
    )
