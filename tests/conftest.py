"""
Shared pytest fixtures for day2ops tests.

This module provides:
- Settings with explicit requeue intervals
- Fresh in-memory plan store, management client and cluster tracker
- A seeded cluster with control-plane machines

Usage:
    Fixtures are auto-discovered by pytest. Builders for individual resources
    live in ``tests/_support/builders.py``.
"""

import sys
from pathlib import Path

import pytest

# Ensure day2ops package is importable
sys.path.insert(0, str(Path(__file__).parent.parent / "src"))
sys.path.insert(0, str(Path(__file__).parent.parent))

from day2ops.clients.memory import (
    InMemoryClusterTracker,
    InMemoryManagementClient,
    StaticAccessReviewer,
)
from day2ops.core.settings import Day2Settings
from day2ops.models import ObjectKey
from day2ops.plan.store import InMemoryPlanStore
from tests._support.builders import make_cluster, make_machine


@pytest.fixture
def settings() -> Day2Settings:
    """Settings independent of the environment."""
    return Day2Settings(
        namespace="day2ops-system",
        controller_service_account="day2ops-manager",
        store_url="sqlite://",
        plan_requeue_seconds=5,
        address_requeue_seconds=10,
        converge_requeue_seconds=30,
        inventory_requeue_seconds=180,
        max_workers=1,
        error_backoff_base=0.5,
        error_backoff_max=300,
    )


@pytest.fixture
def store() -> InMemoryPlanStore:
    return InMemoryPlanStore()


@pytest.fixture
def client() -> InMemoryManagementClient:
    return InMemoryManagementClient()


@pytest.fixture
def tracker() -> InMemoryClusterTracker:
    return InMemoryClusterTracker()


@pytest.fixture
def reviewer() -> StaticAccessReviewer:
    return StaticAccessReviewer({"alice"})


@pytest.fixture
def cluster_key() -> ObjectKey:
    return ObjectKey("default", "c1")


@pytest.fixture
def seeded_client(client: InMemoryManagementClient) -> InMemoryManagementClient:
    """Cluster ``c1`` with control-plane machines m0 (10.0.0.5), m1 and m2."""
    client.add_cluster(make_cluster("c1"))
    client.add_machine(make_machine("m0", ip="10.0.0.5"))
    client.add_machine(make_machine("m1", ip="10.0.0.6"))
    client.add_machine(make_machine("m2", ip="10.0.0.7"))
    return client
