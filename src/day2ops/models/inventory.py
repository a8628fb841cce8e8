"""
Snapshot files reported by target clusters, and the per-cluster inventory
republished from them.

Tags:
    models, inventory, snapshot, day2ops
"""

from __future__ import annotations

from datetime import datetime

from pydantic import Field

from day2ops.models.common import ObjectMeta, Resource


# ── Remote (consumed) ────────────────────────────────────────────


class S3Location(Resource):
    bucket: str = ""
    endpoint: str = ""
    prefix: str = ""


class SnapshotError(Resource):
    message: str | None = None
    time: datetime | None = None


class SnapshotFileSpec(Resource):
    snapshot_name: str
    node_name: str
    location: str
    s3: S3Location | None = None


class SnapshotFileStatus(Resource):
    ready_to_use: bool | None = None
    error: SnapshotError | None = None
    creation_time: datetime | None = None


class SnapshotFile(Resource):
    """A snapshot file as reported by the agent inside the target cluster."""

    metadata: ObjectMeta
    spec: SnapshotFileSpec
    status: SnapshotFileStatus = Field(default_factory=SnapshotFileStatus)

    @property
    def name(self) -> str:
        return self.metadata.name

    @property
    def ready(self) -> bool:
        return bool(self.status.ready_to_use)

    @property
    def error_message(self) -> str | None:
        if self.status.error is None:
            return None
        return self.status.error.message or "snapshot failed"


# ── Inventory (produced) ─────────────────────────────────────────


class LocalSnapshot(Resource):
    name: str
    location: str
    machine_name: str
    creation_time: datetime | None = None


class S3Snapshot(Resource):
    name: str
    location: str
    creation_time: datetime | None = None


class ETCDSnapshotInventorySpec(Resource):
    cluster_name: str


class ETCDSnapshotInventoryStatus(Resource):
    snapshots: list[LocalSnapshot] = Field(default_factory=list)
    s3_snapshots: list[S3Snapshot] = Field(default_factory=list)


class ETCDSnapshotInventory(Resource):
    """All ready snapshots of one cluster. Named after the cluster."""

    metadata: ObjectMeta
    spec: ETCDSnapshotInventorySpec
    status: ETCDSnapshotInventoryStatus = Field(default_factory=ETCDSnapshotInventoryStatus)

    def find_local(self, name: str) -> LocalSnapshot | None:
        for snapshot in self.status.snapshots:
            if snapshot.name == name:
                return snapshot
        return None
