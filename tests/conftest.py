"""Shared fixtures for kubedeploy tests.

Provides a scripted in-memory cluster that records every call, fast retry
and convergence settings, and the four-document namespace scenario, so
tests can exercise full runs without touching a real Kubernetes cluster.
"""

from __future__ import annotations

import pytest

from kubedeploy.models.config import (
    ConvergenceConfig,
    EngineConfig,
    KubeDeployConfig,
    RetryConfig,
)
from kubedeploy.models.documents import ResourceDocument

from .fakes import ScriptedCluster, make_scenario_documents


@pytest.fixture
def cluster() -> ScriptedCluster:
    return ScriptedCluster()


@pytest.fixture
def fast_config() -> KubeDeployConfig:
    """Config with zero retry backoff and sub-second readiness polling."""
    return KubeDeployConfig(
        retry=RetryConfig(max_attempts=5, base_delay=0.0, max_delay=0.0),
        convergence=ConvergenceConfig(timeout_seconds=0.3, initial_interval=0.01, max_interval=0.05),
        engine=EngineConfig(max_workers=4),
    )


@pytest.fixture
def scenario_documents() -> list[ResourceDocument]:
    return make_scenario_documents()
