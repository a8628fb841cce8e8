"""
Snapshot inventory sync - republishes remote snapshot files per cluster.

Each pass lists every snapshot file in the target cluster and replaces the
cluster's ``ETCDSnapshotInventory`` wholesale. A watch on the target
cluster's snapshot files re-triggers the pass between the coarse periodic
requeues.

Tags:
    controller, inventory, sync, day2ops
"""

from __future__ import annotations

from collections.abc import Callable

from day2ops.clients.protocols import ClusterTracker, ManagementClient
from day2ops.controllers.result import DONE, ReconcileResult
from day2ops.core.logging import get_logger
from day2ops.core.settings import Day2Settings, get_settings
from day2ops.models import (
    Cluster,
    ETCDSnapshotInventory,
    ETCDSnapshotInventorySpec,
    ETCDSnapshotInventoryStatus,
    LocalSnapshot,
    ObjectKey,
    ObjectMeta,
    S3Snapshot,
    SnapshotFile,
)
from day2ops.models.cluster import SUPPORTED_CONTROL_PLANE_KINDS

logger = get_logger(__name__)


def build_inventory_status(
    files: list[SnapshotFile], node_to_machine: dict[str, str]
) -> ETCDSnapshotInventoryStatus:
    """Split ready snapshot files into local and S3 entries.

    Local entries whose node does not map to a machine are dropped.
    """
    status = ETCDSnapshotInventoryStatus()
    for snapshot_file in files:
        if not snapshot_file.ready:
            continue

        if snapshot_file.spec.s3 is not None:
            status.s3_snapshots.append(
                S3Snapshot(
                    name=snapshot_file.name,
                    location=snapshot_file.spec.location,
                    creation_time=snapshot_file.status.creation_time,
                )
            )
            continue

        machine_name = node_to_machine.get(snapshot_file.spec.node_name)
        if machine_name is None:
            logger.debug(
                "snapshot_machine_unresolved",
                snapshot=snapshot_file.name,
                node=snapshot_file.spec.node_name,
            )
            continue

        status.snapshots.append(
            LocalSnapshot(
                name=snapshot_file.name,
                location=snapshot_file.spec.location,
                machine_name=machine_name,
                creation_time=snapshot_file.status.creation_time,
            )
        )
    return status


class InventoryReconciler:
    """Reconciles clusters into their snapshot inventories.

    Args:
        enqueue: Called with the cluster key whenever a watched snapshot
            file changes; the manager points it at this controller's queue
    """

    name = "etcdsnapshotsync"

    def __init__(
        self,
        client: ManagementClient,
        tracker: ClusterTracker,
        settings: Day2Settings | None = None,
        enqueue: Callable[[ObjectKey], None] | None = None,
    ):
        self.client = client
        self.tracker = tracker
        self.settings = settings or get_settings()
        self.enqueue = enqueue

    def reconcile(self, key: ObjectKey) -> ReconcileResult:
        cluster = self.client.get_cluster(key)
        if cluster is None:
            return DONE

        if not self._syncable(cluster):
            return ReconcileResult.after(self.settings.inventory_requeue_seconds)

        if self.tracker.watch_snapshot_files(key, self._on_snapshot_file):
            logger.info("snapshot_file_watch_established", cluster=str(key))

        self.sync(cluster)
        return DONE

    def sync(self, cluster: Cluster) -> ETCDSnapshotInventory:
        """List remote snapshot files and upsert the full inventory."""
        key = cluster.metadata.key
        files = self.tracker.get_client(key).list_snapshot_files()

        node_to_machine = {
            m.node_ref.name: m.name
            for m in self.client.list_machines(key.namespace, key.name)
            if m.node_ref is not None
        }

        inventory = ETCDSnapshotInventory(
            metadata=ObjectMeta(namespace=key.namespace, name=key.name),
            spec=ETCDSnapshotInventorySpec(cluster_name=key.name),
            status=build_inventory_status(files, node_to_machine),
        )
        self.client.upsert_inventory(inventory)

        logger.info(
            "inventory_synced",
            cluster=str(key),
            snapshots=len(inventory.status.snapshots),
            s3_snapshots=len(inventory.status.s3_snapshots),
        )
        return inventory

    def _syncable(self, cluster: Cluster) -> bool:
        if cluster.paused:
            logger.info("cluster_paused_sync_skipped")
            return False
        if cluster.control_plane_kind not in SUPPORTED_CONTROL_PLANE_KINDS:
            logger.info("unsupported_control_plane", kind=cluster.control_plane_kind)
            return False
        if not cluster.control_plane_ready:
            logger.info("control_plane_not_ready")
            return False
        return True

    def _on_snapshot_file(self, cluster: ObjectKey, snapshot_file: SnapshotFile) -> None:
        logger.debug("snapshot_file_changed", cluster=str(cluster), snapshot=snapshot_file.name)
        if self.enqueue is not None:
            self.enqueue(cluster)
