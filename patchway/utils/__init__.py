"""
Utility modules for Patchway.

This package provides common utilities:
- logger: Structured logging
- helpers: Helper functions
"""

from patchway.utils.logger import (
    get_logger,
    setup_logging,
    LogLevel,
)
from patchway.utils.helpers import (
    generate_id,
    hash_string,
    stable_hash,
    truncate_string,
    utc_now,
)

__all__ = [
    # Logger
    "get_logger",
    "setup_logging",
    "LogLevel",
    # Helpers
    "generate_id",
    "hash_string",
    "stable_hash",
    "truncate_string",
    "utc_now",
]
