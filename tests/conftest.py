"""Shared pytest fixtures for the cluster stress harness tests."""

import sys
from pathlib import Path
from typing import Generator

import pytest

# Add lib directory to path
sys.path.insert(0, str(Path(__file__).parent.parent / "lib"))

from cluster_stress.cluster import LocalCluster
from cluster_stress.config import StressConfig
from cluster_stress.signals import FailureSignal, TerminationPredicate


@pytest.fixture
def fast_config(tmp_path) -> StressConfig:
    """A few seconds of stress against 3 cores and 1 edge."""
    return StressConfig(
        number_of_cores=3,
        number_of_edges=1,
        duration_seconds=2.0,
        working_directory=tmp_path / "work",
        rejoin_timeout_seconds=5.0,
        churn_pause_seconds=0.05,
        backup_pause_seconds=0.05,
    )


@pytest.fixture
def cluster_factory(tmp_path):
    """Build started LocalClusters under tmp_path; all are shut down afterwards."""
    clusters = []

    def create(cores: int = 3, edges: int = 1, core_params=None, config: StressConfig = None) -> LocalCluster:
        cfg = config or StressConfig(
            number_of_cores=cores,
            number_of_edges=edges,
            duration_seconds=1,
            working_directory=tmp_path / f"cluster-{len(clusters)}",
        )
        cluster = LocalCluster(
            cfg.cluster_directory,
            cfg.number_of_cores,
            cfg.number_of_edges,
            core_params=core_params if core_params is not None else cfg.core_settings,
            instance_core_params=cfg.core_instance_settings(),
            instance_edge_params=cfg.edge_instance_settings(),
        )
        cluster.start()
        clusters.append(cluster)
        return cluster

    yield create

    for cluster in clusters:
        cluster.shutdown()


@pytest.fixture
def cluster(cluster_factory) -> Generator[LocalCluster, None, None]:
    """Started 3 core + 1 edge cluster with aggressive log pruning."""
    yield cluster_factory()


@pytest.fixture
def signal() -> FailureSignal:
    return FailureSignal()


@pytest.fixture
def forever(signal) -> TerminationPredicate:
    """Predicate that only a trip can end."""
    return TerminationPredicate(signal, duration_seconds=3600)


def pytest_configure(config):
    """Configure pytest markers."""
    config.addinivalue_line(
        "markers", "stress: long-running concurrent stress scenarios"
    )
    config.addinivalue_line(
        "markers", "slow: marks slow-running tests"
    )
    config.addinivalue_line(
        "markers", "p0: critical-path tests"
    )


def pytest_collection_modifyitems(config, items):
    """Add markers based on test location."""
    for item in items:
        if "stress" in Path(str(item.fspath)).parts:
            item.add_marker(pytest.mark.stress)
