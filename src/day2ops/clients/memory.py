"""
In-memory clients for tests and local runs.

Every object handed out is a deep copy, so controllers only change stored
state through the update methods, exactly as they would against a real API
server. Deletion follows finalizer semantics: deleting an object that still
carries finalizers only sets its deletion timestamp; the object disappears
once an update leaves it without finalizers.

Tags:
    clients, in-memory, testing, day2ops
"""

from __future__ import annotations

import threading
from collections import defaultdict
from collections.abc import Callable
from typing import TypeVar

from day2ops.clients.protocols import SnapshotFileHandler, SubjectAccessReview
from day2ops.core.errors import RemoteClusterUnavailableError
from day2ops.core.logging import get_logger
from day2ops.models import (
    Cluster,
    ETCDMachineSnapshot,
    ETCDSnapshotInventory,
    ETCDSnapshotRestore,
    Machine,
    ObjectKey,
    SnapshotFile,
)
from day2ops.models.common import Resource, utcnow

logger = get_logger(__name__)

R = TypeVar("R", bound=Resource)

ChangeHandler = Callable[[ObjectKey], None]


def _copy(obj: R) -> R:
    return obj.model_copy(deep=True)


class InMemoryManagementClient:
    """Management plane backed by dictionaries."""

    def __init__(self) -> None:
        self._lock = threading.RLock()
        self._clusters: dict[ObjectKey, Cluster] = {}
        self._machines: dict[ObjectKey, Machine] = {}
        self._snapshots: dict[ObjectKey, ETCDMachineSnapshot] = {}
        self._restores: dict[ObjectKey, ETCDSnapshotRestore] = {}
        self._inventories: dict[ObjectKey, ETCDSnapshotInventory] = {}
        self._handlers: dict[str, list[ChangeHandler]] = defaultdict(list)

    # ── Change notification ─────────────────────────────────────────

    def subscribe(self, kind: str, handler: ChangeHandler) -> None:
        """Call *handler* with the key of every externally changed object of *kind*.

        Kinds are ``"cluster"``, ``"snapshot"`` and ``"restore"``. Updates
        made by controllers through ``update_*`` are not broadcast.
        """
        self._handlers[kind].append(handler)

    def _notify(self, kind: str, key: ObjectKey) -> None:
        for handler in list(self._handlers[kind]):
            handler(key)

    # ── Clusters and machines ───────────────────────────────────────

    def add_cluster(self, cluster: Cluster) -> None:
        with self._lock:
            self._clusters[cluster.metadata.key] = _copy(cluster)
        self._notify("cluster", cluster.metadata.key)

    def get_cluster(self, key: ObjectKey) -> Cluster | None:
        with self._lock:
            cluster = self._clusters.get(key)
            return _copy(cluster) if cluster is not None else None

    def list_clusters(self) -> list[Cluster]:
        with self._lock:
            return [_copy(c) for c in self._clusters.values()]

    def set_cluster_paused(self, key: ObjectKey, paused: bool) -> None:
        with self._lock:
            cluster = self._clusters.get(key)
            if cluster is None:
                raise KeyError(str(key))
            cluster.paused = paused

    def add_machine(self, machine: Machine) -> None:
        with self._lock:
            self._machines[machine.metadata.key] = _copy(machine)

    def update_machine(self, machine: Machine) -> None:
        self.add_machine(machine)

    def remove_machine(self, key: ObjectKey) -> None:
        with self._lock:
            self._machines.pop(key, None)

    def remove_cluster(self, key: ObjectKey) -> None:
        with self._lock:
            self._clusters.pop(key, None)
        self._notify("cluster", key)

    def list_machines(self, namespace: str, cluster_name: str) -> list[Machine]:
        with self._lock:
            return [
                _copy(m)
                for key, m in sorted(self._machines.items())
                if key.namespace == namespace and m.cluster_name == cluster_name
            ]

    # ── Snapshots ───────────────────────────────────────────────────

    def create_snapshot(self, snapshot: ETCDMachineSnapshot) -> None:
        with self._lock:
            self._snapshots[snapshot.metadata.key] = _copy(snapshot)
        self._notify("snapshot", snapshot.metadata.key)

    def get_snapshot(self, key: ObjectKey) -> ETCDMachineSnapshot | None:
        with self._lock:
            snapshot = self._snapshots.get(key)
            return _copy(snapshot) if snapshot is not None else None

    def list_snapshots(self) -> list[ETCDMachineSnapshot]:
        with self._lock:
            return [_copy(s) for s in self._snapshots.values()]

    def update_snapshot(self, snapshot: ETCDMachineSnapshot) -> None:
        self._update(self._snapshots, snapshot)

    def delete_snapshot(self, key: ObjectKey) -> None:
        self._delete(self._snapshots, key)
        self._notify("snapshot", key)

    # ── Restores ────────────────────────────────────────────────────

    def create_restore(self, restore: ETCDSnapshotRestore) -> None:
        with self._lock:
            self._restores[restore.metadata.key] = _copy(restore)
        self._notify("restore", restore.metadata.key)

    def get_restore(self, key: ObjectKey) -> ETCDSnapshotRestore | None:
        with self._lock:
            restore = self._restores.get(key)
            return _copy(restore) if restore is not None else None

    def list_restores(self) -> list[ETCDSnapshotRestore]:
        with self._lock:
            return [_copy(r) for r in self._restores.values()]

    def update_restore(self, restore: ETCDSnapshotRestore) -> None:
        self._update(self._restores, restore)

    def delete_restore(self, key: ObjectKey) -> None:
        self._delete(self._restores, key)
        self._notify("restore", key)

    # ── Inventories ─────────────────────────────────────────────────

    def get_inventory(self, key: ObjectKey) -> ETCDSnapshotInventory | None:
        with self._lock:
            inventory = self._inventories.get(key)
            return _copy(inventory) if inventory is not None else None

    def upsert_inventory(self, inventory: ETCDSnapshotInventory) -> None:
        with self._lock:
            self._inventories[inventory.metadata.key] = _copy(inventory)

    # ── Helpers ─────────────────────────────────────────────────────

    def _update(self, objects: dict, obj: Resource) -> None:
        key = obj.metadata.key
        with self._lock:
            if key not in objects:
                logger.debug("update_of_missing_object", key=str(key))
                return
            if obj.metadata.deleting and not obj.metadata.finalizers:
                del objects[key]
                return
            objects[key] = _copy(obj)

    def _delete(self, objects: dict, key: ObjectKey) -> None:
        with self._lock:
            obj = objects.get(key)
            if obj is None:
                return
            if obj.metadata.finalizers:
                if obj.metadata.deletion_timestamp is None:
                    obj.metadata.deletion_timestamp = utcnow()
            else:
                del objects[key]


class InMemoryRemoteCluster:
    """Snapshot files inside one target cluster."""

    def __init__(self, key: ObjectKey):
        self.key = key
        self._lock = threading.Lock()
        self._files: dict[str, SnapshotFile] = {}
        self._handlers: list[SnapshotFileHandler] = []

    def list_snapshot_files(self) -> list[SnapshotFile]:
        with self._lock:
            return [_copy(f) for _, f in sorted(self._files.items())]

    def put_snapshot_file(self, snapshot_file: SnapshotFile) -> None:
        """Create or replace a snapshot file and notify watchers."""
        with self._lock:
            self._files[snapshot_file.name] = _copy(snapshot_file)
            handlers = list(self._handlers)
        for handler in handlers:
            handler(self.key, _copy(snapshot_file))

    def add_handler(self, handler: SnapshotFileHandler) -> None:
        with self._lock:
            self._handlers.append(handler)


class InMemoryClusterTracker:
    """Tracker over :class:`InMemoryRemoteCluster` instances created on demand."""

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._remotes: dict[ObjectKey, InMemoryRemoteCluster] = {}
        self._watched: set[ObjectKey] = set()
        self.unreachable: set[ObjectKey] = set()

    def remote(self, cluster: ObjectKey) -> InMemoryRemoteCluster:
        with self._lock:
            if cluster not in self._remotes:
                self._remotes[cluster] = InMemoryRemoteCluster(cluster)
            return self._remotes[cluster]

    def get_client(self, cluster: ObjectKey) -> InMemoryRemoteCluster:
        if cluster in self.unreachable:
            raise RemoteClusterUnavailableError(f"failed to get remote client for cluster {cluster}")
        return self.remote(cluster)

    def watch_snapshot_files(self, cluster: ObjectKey, handler: SnapshotFileHandler) -> bool:
        remote = self.get_client(cluster)
        with self._lock:
            if cluster in self._watched:
                return False
            self._watched.add(cluster)
        remote.add_handler(handler)
        logger.debug("snapshot_file_watch_started", cluster=str(cluster))
        return True


class StaticAccessReviewer:
    """Allows exactly the listed users; remembers every review it answered."""

    def __init__(self, allowed_users: set[str] | None = None):
        self.allowed_users = set(allowed_users or ())
        self.reviews: list[SubjectAccessReview] = []

    def review(self, request: SubjectAccessReview) -> bool:
        self.reviews.append(request)
        return request.user in self.allowed_users
