"""
Interfaces the controllers consume.

``ManagementClient`` reads and writes resources on the management plane.
``ClusterTracker`` hands out clients for target clusters and manages watches
on them. ``AccessReviewer`` answers subject access reviews for the admission
gate. Concrete implementations live outside the core; in-memory ones ship in
:mod:`day2ops.clients.memory`.

Tags:
    clients, protocol, interfaces, day2ops
"""

from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass, field
from typing import Protocol, runtime_checkable

from day2ops.models import (
    Cluster,
    ETCDMachineSnapshot,
    ETCDSnapshotInventory,
    ETCDSnapshotRestore,
    Machine,
    ObjectKey,
    SnapshotFile,
)

SnapshotFileHandler = Callable[[ObjectKey, SnapshotFile], None]


@runtime_checkable
class ManagementClient(Protocol):
    """Management-plane resources.

    ``get_*`` return ``None`` for an absent resource. ``update_*`` persist
    metadata and status of a task; an update of an object whose deletion
    completed (no finalizers left) removes it.
    """

    def get_cluster(self, key: ObjectKey) -> Cluster | None: ...

    def list_clusters(self) -> list[Cluster]: ...

    def set_cluster_paused(self, key: ObjectKey, paused: bool) -> None: ...

    def list_machines(self, namespace: str, cluster_name: str) -> list[Machine]: ...

    def get_snapshot(self, key: ObjectKey) -> ETCDMachineSnapshot | None: ...

    def list_snapshots(self) -> list[ETCDMachineSnapshot]: ...

    def update_snapshot(self, snapshot: ETCDMachineSnapshot) -> None: ...

    def get_restore(self, key: ObjectKey) -> ETCDSnapshotRestore | None: ...

    def list_restores(self) -> list[ETCDSnapshotRestore]: ...

    def update_restore(self, restore: ETCDSnapshotRestore) -> None: ...

    def get_inventory(self, key: ObjectKey) -> ETCDSnapshotInventory | None: ...

    def upsert_inventory(self, inventory: ETCDSnapshotInventory) -> None: ...


@runtime_checkable
class RemoteClusterClient(Protocol):
    """Read access to one target cluster."""

    def list_snapshot_files(self) -> list[SnapshotFile]: ...


@runtime_checkable
class ClusterTracker(Protocol):
    """Clients and watches for target clusters.

    Both methods raise
    :class:`~day2ops.core.errors.RemoteClusterUnavailableError` when the
    target cluster cannot be reached.
    """

    def get_client(self, cluster: ObjectKey) -> RemoteClusterClient: ...

    def watch_snapshot_files(self, cluster: ObjectKey, handler: SnapshotFileHandler) -> bool:
        """Register *handler* for snapshot file changes on *cluster*.

        Idempotent per cluster: returns False if a watch already exists.
        """
        ...


@dataclass(frozen=True)
class SubjectAccessReview:
    """Question asked of the authorizer: may *user* do *verb* on the resource?"""

    user: str
    groups: tuple[str, ...] = ()
    verb: str = "*"
    group: str = "cluster.x-k8s.io"
    resource: str = "clusters"
    namespace: str = ""
    name: str = ""
    extra: dict[str, tuple[str, ...]] = field(default_factory=dict, compare=False, hash=False)


@runtime_checkable
class AccessReviewer(Protocol):
    def review(self, request: SubjectAccessReview) -> bool: ...
