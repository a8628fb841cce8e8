"""
day2ops.controllers - the reconcilers.

Each reconciler exposes ``name`` and ``reconcile(key) -> ReconcileResult``.
"Not ready yet" is a requeue with a fixed delay; errors are raised and left
to the runtime's backoff.
"""

from day2ops.controllers.inventory import InventoryReconciler, build_inventory_status
from day2ops.controllers.restore import RestoreReconciler, RestoreScope, restart_order
from day2ops.controllers.result import DONE, ReconcileResult
from day2ops.controllers.snapshot import SnapshotReconciler, SnapshotScope

__all__ = [
    "InventoryReconciler",
    "build_inventory_status",
    "RestoreReconciler",
    "RestoreScope",
    "restart_order",
    "DONE",
    "ReconcileResult",
    "SnapshotReconciler",
    "SnapshotScope",
]
