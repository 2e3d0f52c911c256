"""
Core package.

This package contains the queue manager, graph store, role policy, event
log and the pipeline that wires them to the role runners.
"""

from patchway.core.events import EventLog
from patchway.core.graph import GraphStore, InMemoryGraphStore
from patchway.core.policy import DEFAULT_ALLOWLISTS, Role, RolePolicy, RoleToolView
from patchway.core.queue import BaseQueueManager, InMemoryQueueManager, create_queue_manager
from patchway.core.pipeline import GoalsFile, Pipeline

__all__ = [
    "EventLog",
    "GraphStore",
    "InMemoryGraphStore",
    "DEFAULT_ALLOWLISTS",
    "Role",
    "RolePolicy",
    "RoleToolView",
    "BaseQueueManager",
    "InMemoryQueueManager",
    "create_queue_manager",
    "GoalsFile",
    "Pipeline",
]
