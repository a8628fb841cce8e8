"""
day2ops.models - resources read and written by the controllers.

Task resources (ETCDMachineSnapshot, ETCDSnapshotRestore) carry their phase
enums and transition tables next to them. Cluster and Machine are read-only
views of the management plane apart from the cluster pause flag.
"""

from day2ops.models.cluster import Cluster, Machine, MachineAddress, NodeRef
from day2ops.models.common import (
    Condition,
    ObjectKey,
    ObjectMeta,
    get_condition,
    is_condition_true,
    set_condition,
)
from day2ops.models.inventory import (
    ETCDSnapshotInventory,
    ETCDSnapshotInventorySpec,
    ETCDSnapshotInventoryStatus,
    LocalSnapshot,
    S3Location,
    S3Snapshot,
    SnapshotError,
    SnapshotFile,
    SnapshotFileSpec,
    SnapshotFileStatus,
)
from day2ops.models.restore import (
    RESTORE_PHASE_ORDER,
    RESTORE_VALID_TRANSITIONS,
    ETCDSnapshotRestore,
    ETCDSnapshotRestoreSpec,
    ETCDSnapshotRestoreStatus,
    RestorePhase,
    validate_restore_transition,
)
from day2ops.models.snapshot import (
    SNAPSHOT_VALID_TRANSITIONS,
    ETCDMachineSnapshot,
    ETCDMachineSnapshotSpec,
    ETCDMachineSnapshotStatus,
    SnapshotPhase,
    validate_snapshot_transition,
)

__all__ = [
    "Cluster",
    "Machine",
    "MachineAddress",
    "NodeRef",
    "Condition",
    "ObjectKey",
    "ObjectMeta",
    "get_condition",
    "is_condition_true",
    "set_condition",
    "ETCDSnapshotInventory",
    "ETCDSnapshotInventorySpec",
    "ETCDSnapshotInventoryStatus",
    "LocalSnapshot",
    "S3Location",
    "S3Snapshot",
    "SnapshotError",
    "SnapshotFile",
    "SnapshotFileSpec",
    "SnapshotFileStatus",
    "RESTORE_PHASE_ORDER",
    "RESTORE_VALID_TRANSITIONS",
    "ETCDSnapshotRestore",
    "ETCDSnapshotRestoreSpec",
    "ETCDSnapshotRestoreStatus",
    "RestorePhase",
    "validate_restore_transition",
    "SNAPSHOT_VALID_TRANSITIONS",
    "ETCDMachineSnapshot",
    "ETCDMachineSnapshotSpec",
    "ETCDMachineSnapshotStatus",
    "SnapshotPhase",
    "validate_snapshot_transition",
]
