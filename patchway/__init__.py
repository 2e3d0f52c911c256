"""
Patchway - Safe mutation pipeline for shared knowledge graphs

Moves agent-proposed graph mutations through a leased, partition-ordered
queue pipeline with four separated duties: planning, execution, auditing
and committing.
"""

__version__ = "0.1.0"
__author__ = "Patchway Team"
__license__ = "MIT"

from patchway.models.config import PatchwayConfig

__all__ = [
    "__version__",
    "PatchwayConfig",
]
