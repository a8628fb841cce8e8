"""
ETCDMachineSnapshot - one snapshot attempt on one control-plane machine.

Valid transition graph::

    ""       → Pending
    Pending  → Planning | Running | Failed
    Planning → Running | Failed
    Running  → Done | Failed
    Done     → (terminal)
    Failed   → (terminal)
"""

from __future__ import annotations

from enum import Enum

from pydantic import Field

from day2ops.core.errors import InvalidTransitionError
from day2ops.models.common import ObjectMeta, Resource

SNAPSHOT_FINALIZER = "etcdmachinesnapshot.day2ops.io"
AUTOMATIC_SNAPSHOT_ANNOTATION = "etcd.day2ops.io/automatic-snapshot"


class SnapshotPhase(str, Enum):
    EMPTY = ""
    PENDING = "Pending"
    PLANNING = "Planning"
    RUNNING = "Running"
    FAILED = "Failed"
    DONE = "Done"


SNAPSHOT_VALID_TRANSITIONS: dict[SnapshotPhase, frozenset[SnapshotPhase]] = {
    SnapshotPhase.EMPTY: frozenset({SnapshotPhase.PENDING}),
    SnapshotPhase.PENDING: frozenset({
        SnapshotPhase.PLANNING,
        SnapshotPhase.RUNNING,
        SnapshotPhase.FAILED,
    }),
    SnapshotPhase.PLANNING: frozenset({SnapshotPhase.RUNNING, SnapshotPhase.FAILED}),
    SnapshotPhase.RUNNING: frozenset({SnapshotPhase.DONE, SnapshotPhase.FAILED}),
    SnapshotPhase.DONE: frozenset(),
    SnapshotPhase.FAILED: frozenset(),
}

SNAPSHOT_TERMINAL_PHASES = frozenset({SnapshotPhase.DONE, SnapshotPhase.FAILED})


def validate_snapshot_transition(current: SnapshotPhase, target: SnapshotPhase) -> None:
    """Raise InvalidTransitionError if *current* → *target* is not allowed."""
    if target not in SNAPSHOT_VALID_TRANSITIONS.get(current, frozenset()):
        raise InvalidTransitionError(current.value, target.value, "SnapshotPhase")


class ETCDMachineSnapshotSpec(Resource):
    cluster_name: str
    machine_name: str
    location: str = ""


class ETCDMachineSnapshotStatus(Resource):
    phase: SnapshotPhase = SnapshotPhase.EMPTY
    snapshot_file_name: str | None = None
    error: str | None = None


class ETCDMachineSnapshot(Resource):
    metadata: ObjectMeta
    spec: ETCDMachineSnapshotSpec
    status: ETCDMachineSnapshotStatus = Field(default_factory=ETCDMachineSnapshotStatus)

    @property
    def automatic(self) -> bool:
        return AUTOMATIC_SNAPSHOT_ANNOTATION in self.metadata.annotations

    def transition_to(self, target: SnapshotPhase) -> bool:
        """Move to *target*, validating the move. Same-phase is a no-op.

        Returns:
            True if the phase changed
        """
        if self.status.phase == target:
            return False
        validate_snapshot_transition(self.status.phase, target)
        self.status.phase = target
        return True
