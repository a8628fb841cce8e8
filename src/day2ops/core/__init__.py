"""
day2ops.core - errors, logging, settings and hashing shared by every module.

The ORM layer lives in ``day2ops.core.orm`` and is imported explicitly by the
SQL plan store so the in-memory code paths never touch SQLAlchemy.
"""

from day2ops.core.errors import (
    AuthorizationError,
    ClusterNotFoundError,
    Day2Error,
    ErrorCategory,
    InvalidTransitionError,
    MachineNotFoundError,
    MalformedOutputError,
    ResolutionError,
    SnapshotNotFoundError,
    StoreUnavailableError,
    TransientError,
)
from day2ops.core.hashing import checksum_matches, plan_checksum
from day2ops.core.logging import LogContext, configure_logging, get_logger
from day2ops.core.settings import Day2Settings, get_settings

__all__ = [
    "AuthorizationError",
    "ClusterNotFoundError",
    "Day2Error",
    "ErrorCategory",
    "InvalidTransitionError",
    "MachineNotFoundError",
    "MalformedOutputError",
    "ResolutionError",
    "SnapshotNotFoundError",
    "StoreUnavailableError",
    "TransientError",
    "checksum_matches",
    "plan_checksum",
    "LogContext",
    "configure_logging",
    "get_logger",
    "Day2Settings",
    "get_settings",
]
