"""
Role runners.

Each runner consumes one queue and hands its output to the next through
the queue manager:

- PlannerRunner: goals -> tasks
- ExecutorRunner: tasks -> patches
- AuditorRunner: patches -> reviews
- CommitterRunner: reviews -> canonical graph
"""

from patchway.runners.auditor import AuditorRunner, check_patch
from patchway.runners.base import BaseRunner
from patchway.runners.committer import CommitterRunner
from patchway.runners.executor import ExecutorRunner
from patchway.runners.planner import PlannerRunner

__all__ = [
    "BaseRunner",
    "PlannerRunner",
    "ExecutorRunner",
    "AuditorRunner",
    "CommitterRunner",
    "check_patch",
]
