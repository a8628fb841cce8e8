"""
ETCDSnapshotRestore - one whole-cluster restore attempt.

Phases only move one step forward, or to Failed from any in-flight phase::

    Pending → Started → Shutdown → Running → Restart → Unpause → Joining → Done
        └────────┴─────────┴─────────┴─────────┴─────────┴──────────┴──→ Failed

An empty persisted phase reads as Pending.
"""

from __future__ import annotations

from enum import Enum

from pydantic import Field, field_validator

from day2ops.core.errors import InvalidTransitionError
from day2ops.models.common import Condition, ObjectMeta, Resource

RESTORE_FINALIZER = "etcdsnapshotrestore.day2ops.io"

# Condition types
CLUSTER_PAUSED_CONDITION = "ClusterPaused"
RESTORE_COMPLETED_CONDITION = "RestoreCompleted"

# Condition reasons
PLAN_FAILED_REASON = "PlanFailed"


class RestorePhase(str, Enum):
    PENDING = "Pending"
    STARTED = "Started"
    SHUTDOWN = "Shutdown"
    RUNNING = "Running"
    AGENT_RESTART = "Restart"
    UNPAUSE = "Unpause"
    JOINING = "Joining"
    FINISHED = "Done"
    FAILED = "Failed"


RESTORE_PHASE_ORDER: tuple[RestorePhase, ...] = (
    RestorePhase.PENDING,
    RestorePhase.STARTED,
    RestorePhase.SHUTDOWN,
    RestorePhase.RUNNING,
    RestorePhase.AGENT_RESTART,
    RestorePhase.UNPAUSE,
    RestorePhase.JOINING,
    RestorePhase.FINISHED,
)

RESTORE_TERMINAL_PHASES = frozenset({RestorePhase.FINISHED, RestorePhase.FAILED})


def _build_transitions() -> dict[RestorePhase, frozenset[RestorePhase]]:
    transitions: dict[RestorePhase, frozenset[RestorePhase]] = {}
    for current, following in zip(RESTORE_PHASE_ORDER, RESTORE_PHASE_ORDER[1:]):
        transitions[current] = frozenset({following, RestorePhase.FAILED})
    for phase in RESTORE_TERMINAL_PHASES:
        transitions[phase] = frozenset()
    return transitions


RESTORE_VALID_TRANSITIONS: dict[RestorePhase, frozenset[RestorePhase]] = _build_transitions()


def validate_restore_transition(current: RestorePhase, target: RestorePhase) -> None:
    """Raise InvalidTransitionError if *current* → *target* is not allowed."""
    if target not in RESTORE_VALID_TRANSITIONS.get(current, frozenset()):
        raise InvalidTransitionError(current.value, target.value, "RestorePhase")


class ETCDSnapshotRestoreSpec(Resource):
    cluster_name: str
    etcd_machine_snapshot_name: str


class ETCDSnapshotRestoreStatus(Resource):
    phase: RestorePhase = RestorePhase.PENDING
    conditions: list[Condition] = Field(default_factory=list)

    @field_validator("phase", mode="before")
    @classmethod
    def _empty_is_pending(cls, value: object) -> object:
        return value or RestorePhase.PENDING


class ETCDSnapshotRestore(Resource):
    metadata: ObjectMeta
    spec: ETCDSnapshotRestoreSpec
    status: ETCDSnapshotRestoreStatus = Field(default_factory=ETCDSnapshotRestoreStatus)

    def transition_to(self, target: RestorePhase) -> bool:
        """Move to *target*, validating the move. Same-phase is a no-op.

        Returns:
            True if the phase changed
        """
        if self.status.phase == target:
            return False
        validate_restore_transition(self.status.phase, target)
        self.status.phase = target
        return True
