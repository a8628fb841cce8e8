"""
Structured error types for day2ops.

Every failure a reconcile can hit falls into one of a handful of families, and
the family decides what happens next: transient store or remote-cluster
errors go back to the controller for a backoff retry, resolution errors mean a
referenced object is genuinely absent, protocol errors mean the remote
executor wrote output we cannot decode, and authorization errors reject a
request before any state is touched.

"Not ready yet" conditions (machine without a node, plan not yet applied,
init machine without an address) are NOT errors. Reconcilers express them as
a requeue with a fixed delay so they never show up in error-rate dashboards.

Architecture:
    ::

        ┌──────────────────────────────────────────────────────────────┐
        │                         Day2Error                             │
        │   (category, retryable, retry_after, context, cause)         │
        ├──────────────────────────────────────────────────────────────┤
        │  TransientError          ResolutionError     ProtocolError   │
        │  (retryable=True)        (RESOLUTION)        (PROTOCOL)      │
        │       │                       │                   │          │
        │  StoreUnavailable        ClusterNotFound     MalformedOutput │
        │  RemoteClusterUnavail.   MachineNotFound                     │
        │                          SnapshotNotFound                    │
        │                                                              │
        │  AuthError               ValidationError                     │
        │  (AUTH)                  (VALIDATION)                        │
        │       │                       │                              │
        │  AuthorizationError      SpecValidationError                 │
        └──────────────────────────────────────────────────────────────┘

Examples:
    >>> error = StoreUnavailableError("plan store timed out")
    >>> error.retryable
    True
    >>> MachineNotFoundError("m1", cluster="default/c1").context.metadata["machine"]
    'm1'

Tags:
    error-handling, exception-hierarchy, retry-logic, day2ops
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any


class ErrorCategory(str, Enum):
    """Coarse error family, logged with every reconcile failure."""

    # Infrastructure (usually transient)
    STORE = "STORE"                # Plan store unreachable or rejected the write
    REMOTE = "REMOTE"              # Target cluster API unreachable

    # Domain
    RESOLUTION = "RESOLUTION"      # Referenced cluster/machine/snapshot absent
    PROTOCOL = "PROTOCOL"          # Remote output could not be decoded
    VALIDATION = "VALIDATION"      # Task spec invalid
    AUTH = "AUTH"                  # Caller lacks access to the cluster
    ORCHESTRATION = "ORCHESTRATION"  # Illegal phase transition

    INTERNAL = "INTERNAL"
    UNKNOWN = "UNKNOWN"


@dataclass
class ErrorContext:
    """Structured metadata attached to an error.

    Attributes:
        controller: Name of the controller that raised the error
        namespace: Namespace of the object being reconciled
        name: Name of the object being reconciled
        plan: Plan name, when the error concerns a plan record
        machine: Target machine, when the error concerns one machine
        metadata: Any other key/value pairs
    """

    controller: str | None = None
    namespace: str | None = None
    name: str | None = None
    plan: str | None = None
    machine: str | None = None

    metadata: dict[str, Any] = field(default_factory=dict)

    _FIELDS = ("controller", "namespace", "name", "plan", "machine")

    def to_dict(self) -> dict[str, Any]:
        known = {f: getattr(self, f) for f in self._FIELDS if getattr(self, f) is not None}
        return {**known, **self.metadata}


class Day2Error(Exception):
    """
    Base exception for all day2ops errors.

    Subclasses set ``default_category`` and ``default_retryable`` so callers
    rarely have to pass them explicitly. The original exception, when there
    is one, is kept both as ``cause`` and as ``__cause__`` so tracebacks show
    the full chain.

    Examples:
        >>> error = Day2Error("unexpected state")
        >>> error.category
        <ErrorCategory.INTERNAL: 'INTERNAL'>
        >>> error.with_context(plan="restore-r1", machine="m0").context.plan
        'restore-r1'
    """

    default_category: ErrorCategory = ErrorCategory.INTERNAL
    default_retryable: bool = False

    def __init__(
        self,
        message: str,
        *,
        category: ErrorCategory | None = None,
        retryable: bool | None = None,
        retry_after: int | None = None,
        context: ErrorContext | None = None,
        cause: Exception | None = None,
    ):
        super().__init__(message)
        self.message = message
        self.category = category or self.default_category
        self.retryable = retryable if retryable is not None else self.default_retryable
        self.retry_after = retry_after
        self.context = context or ErrorContext()
        self.cause = cause

        if cause is not None:
            self.__cause__ = cause

    def with_context(self, **values: Any) -> Day2Error:
        """Fill context fields; names that are not fields land in ``metadata``."""
        for key, value in values.items():
            if key in ErrorContext._FIELDS:
                setattr(self.context, key, value)
            else:
                self.context.metadata[key] = value
        return self

    def to_dict(self) -> dict[str, Any]:
        """Flat fields for a structlog event; empty parts are left out."""
        payload: dict[str, Any] = {
            "error_type": type(self).__name__,
            "message": self.message,
            "category": self.category.value,
            "retryable": self.retryable,
        }
        optional = {
            "retry_after": self.retry_after,
            "context": self.context.to_dict() or None,
            "cause": None if self.cause is None else str(self.cause),
        }
        payload.update((k, v) for k, v in optional.items() if v is not None)
        return payload

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}({self.message!r}, category={self.category.value})"


# -- transient: retried with backoff --


class TransientError(Day2Error):
    """The store or a remote API failed; the same reconcile may succeed later."""

    default_category = ErrorCategory.STORE
    default_retryable = True


class StoreUnavailableError(TransientError):
    """The plan store could not be read or written."""

    default_category = ErrorCategory.STORE


class RemoteClusterUnavailableError(TransientError):
    """A client for the target cluster could not be obtained or used."""

    default_category = ErrorCategory.REMOTE


# -- resolution: a referenced object is absent --


class ResolutionError(Day2Error):
    """A referenced object does not exist.

    Raised while building a reconcile scope. The controller retries with its
    default backoff and the task phase does not advance.
    """

    default_category = ErrorCategory.RESOLUTION
    default_retryable = True


class ClusterNotFoundError(ResolutionError):
    """Referenced cluster does not exist."""

    def __init__(self, cluster: str, **kwargs: Any):
        super().__init__(f"failed to get cluster {cluster}", **kwargs)
        self.context.metadata["cluster"] = cluster


class MachineNotFoundError(ResolutionError):
    """Referenced machine is not part of the cluster's control plane."""

    def __init__(self, machine: str, cluster: str, **kwargs: Any):
        super().__init__(f"failed to find machine {machine} for cluster {cluster}", **kwargs)
        self.context.metadata["machine"] = machine
        self.context.metadata["cluster"] = cluster


class SnapshotNotFoundError(ResolutionError):
    """Referenced snapshot inventory or inventory entry does not exist."""

    def __init__(self, snapshot: str, **kwargs: Any):
        super().__init__(f"failed to locate snapshot named {snapshot}", **kwargs)
        self.context.metadata["snapshot"] = snapshot


# -- protocol: undecodable executor output --


class ProtocolError(Day2Error):
    """The remote executor wrote something that violates the plan protocol."""

    default_category = ErrorCategory.PROTOCOL
    default_retryable = False


class MalformedOutputError(ProtocolError):
    """Applied output could not be decompressed or deserialized."""


# -- admission --


class AuthError(Day2Error):
    """The caller may not touch the referenced cluster."""

    default_category = ErrorCategory.AUTH
    default_retryable = False


class AuthorizationError(AuthError):
    """The caller is not allowed to act on the referenced cluster."""


class ValidationError(Day2Error):
    """Invalid task specification."""

    default_category = ErrorCategory.VALIDATION
    default_retryable = False


class SpecValidationError(ValidationError):
    """A required spec field is missing or malformed."""

    def __init__(self, field_name: str, message: str | None = None, **kwargs: Any):
        super().__init__(message or f"{field_name} can't be empty", **kwargs)
        self.field_name = field_name


# -- phase machines --


class InvalidTransitionError(Day2Error):
    """Raised when an illegal phase transition is attempted.

    Phase machines only move forward one step at a time (or to Failed).
    If a legitimate transition is blocked, add it to the transition table
    explicitly instead of removing the guard.
    """

    default_category = ErrorCategory.ORCHESTRATION

    def __init__(self, current: str, target: str, enum_name: str = "Phase") -> None:
        self.current = current
        self.target = target
        super().__init__(f"Invalid {enum_name} transition: {current or '<empty>'} → {target}")


# Helpers used by the controller loop to classify anything a reconcile raised.

_TRANSIENT_BUILTINS = (ConnectionError, TimeoutError, OSError)


def is_retryable(error: Exception) -> bool:
    if isinstance(error, Day2Error):
        return error.retryable
    return isinstance(error, _TRANSIENT_BUILTINS)


def get_retry_after(error: Exception) -> int | None:
    """Delay the error asks for, overriding the backoff strategy."""
    return error.retry_after if isinstance(error, Day2Error) else None


def categorize_error(error: Exception) -> ErrorCategory:
    if isinstance(error, Day2Error):
        return error.category
    for types, category in (
        ((ConnectionError, OSError), ErrorCategory.STORE),
        ((ValueError,), ErrorCategory.VALIDATION),
    ):
        if isinstance(error, types):
            return category
    return ErrorCategory.UNKNOWN


__all__ = [
    "ErrorCategory",
    "ErrorContext",
    "Day2Error",
    "TransientError",
    "StoreUnavailableError",
    "RemoteClusterUnavailableError",
    "ResolutionError",
    "ClusterNotFoundError",
    "MachineNotFoundError",
    "SnapshotNotFoundError",
    "ProtocolError",
    "MalformedOutputError",
    "AuthError",
    "AuthorizationError",
    "ValidationError",
    "SpecValidationError",
    "InvalidTransitionError",
    "is_retryable",
    "get_retry_after",
    "categorize_error",
]
