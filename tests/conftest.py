"""
Test configuration and fixtures.
"""

from datetime import datetime, timedelta, timezone

import pytest

from patchway.core.events import EventLog
from patchway.core.graph import InMemoryGraphStore
from patchway.core.pipeline import Pipeline
from patchway.core.policy import RolePolicy
from patchway.core.queue import InMemoryQueueManager
from patchway.models.config import PatchwayConfig
from patchway.models.work import (
    AddEdge,
    AddNodeInstance,
    AddNodePrototype,
    CreateGraph,
    Position,
)
from patchway.tools.registry import build_default_registry


class FakeClock:
    """Manually advanced clock."""

    def __init__(self):
        self.now = datetime(2024, 1, 1, 12, 0, 0, tzinfo=timezone.utc)

    def __call__(self) -> datetime:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += timedelta(seconds=seconds)


@pytest.fixture
def clock():
    """Clock that only moves when told to."""
    return FakeClock()


@pytest.fixture
def queue(clock):
    """In-memory queue with a 30s lease and 3 attempts."""
    return InMemoryQueueManager(lease_seconds=30, max_attempts=3, clock=clock)


@pytest.fixture
def seed_ops():
    """Graph g1 with prototype p1 and instances a, b joined by edge e1."""
    return [
        CreateGraph(graph_id="g1", name="Architecture"),
        AddNodePrototype(prototype_id="p1", name="Service", description="A running service"),
        AddNodePrototype(prototype_id="p2", name="Database", description="Stores data"),
        AddNodeInstance(graph_id="g1", prototype_id="p1", instance_id="a", position=Position(x=0, y=0)),
        AddNodeInstance(graph_id="g1", prototype_id="p2", instance_id="b", position=Position(x=10, y=0)),
        AddEdge(graph_id="g1", edge_id="e1", source_id="a", destination_id="b", label="reads"),
    ]


@pytest.fixture
def store(seed_ops):
    """Graph store holding the seed graph."""
    store = InMemoryGraphStore()
    store.apply_mutations("g1", seed_ops, patch_id="seed")
    return store


@pytest.fixture
def registry(store):
    """Registry of built-in tools bound to the seeded store."""
    return build_default_registry(store)


@pytest.fixture
def policy():
    """Default role policy."""
    return RolePolicy()


@pytest.fixture
def events():
    """Empty event log."""
    return EventLog()


@pytest.fixture
def pipeline(clock, seed_ops):
    """In-memory pipeline with the seed graph applied."""
    pipeline = Pipeline(PatchwayConfig(), clock=clock)
    pipeline.seed(seed_ops)
    yield pipeline
    pipeline.close()
