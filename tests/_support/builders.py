"""
Builders for resources and a stand-in for the remote executor.

The executor helpers do exactly what the agent on a machine does: read the
current plan bytes, run them (here: pretend), and report their checksum with
an output map.
"""

from __future__ import annotations

from datetime import UTC, datetime

from day2ops.core.hashing import plan_checksum
from day2ops.models import (
    Cluster,
    Condition,
    ETCDMachineSnapshot,
    ETCDMachineSnapshotSpec,
    ETCDSnapshotInventory,
    ETCDSnapshotInventorySpec,
    ETCDSnapshotInventoryStatus,
    ETCDSnapshotRestore,
    ETCDSnapshotRestoreSpec,
    LocalSnapshot,
    Machine,
    MachineAddress,
    NodeRef,
    ObjectMeta,
    S3Location,
    SnapshotError,
    SnapshotFile,
    SnapshotFileSpec,
    SnapshotFileStatus,
)
from day2ops.plan.codec import decode_plan, encode_output
from day2ops.plan.store import PlanStore, PlanTarget

NAMESPACE = "default"
CREATED = datetime(2026, 1, 15, 12, 0, tzinfo=UTC)


def make_cluster(name: str = "c1", **kwargs) -> Cluster:
    kwargs.setdefault("control_plane_ready", True)
    return Cluster(metadata=ObjectMeta(namespace=NAMESPACE, name=name), **kwargs)


def make_machine(
    name: str,
    cluster: str = "c1",
    *,
    ip: str | None = None,
    node: str | None = "default",
    phase: str = "Running",
    healthy: bool = False,
    control_plane: bool = True,
) -> Machine:
    """Control-plane machine, Running, with a node named after it by default."""
    return Machine(
        metadata=ObjectMeta(namespace=NAMESPACE, name=name),
        cluster_name=cluster,
        control_plane=control_plane,
        phase=phase,
        node_ref=NodeRef(name=f"node-{name}" if node == "default" else node) if node else None,
        addresses=[MachineAddress(type="InternalIP", address=ip)] if ip else [],
        conditions=[Condition(type="AgentHealthy", status="True" if healthy else "False")],
    )


def make_snapshot(
    name: str = "c1", cluster: str = "c1", machine: str = "m1", **kwargs
) -> ETCDMachineSnapshot:
    return ETCDMachineSnapshot(
        metadata=ObjectMeta(namespace=NAMESPACE, name=name, **kwargs),
        spec=ETCDMachineSnapshotSpec(cluster_name=cluster, machine_name=machine),
    )


def make_restore(
    name: str = "r1", cluster: str = "c1", snapshot: str = "snap-m0"
) -> ETCDSnapshotRestore:
    return ETCDSnapshotRestore(
        metadata=ObjectMeta(namespace=NAMESPACE, name=name),
        spec=ETCDSnapshotRestoreSpec(cluster_name=cluster, etcd_machine_snapshot_name=snapshot),
    )


def make_inventory(
    cluster: str = "c1", snapshots: list[tuple[str, str, str]] | None = None
) -> ETCDSnapshotInventory:
    """Inventory with local entries given as ``(name, location, machine)``."""
    entries = snapshots if snapshots is not None else [("snap-m0", "file:///snapshots/snap-m0", "m0")]
    return ETCDSnapshotInventory(
        metadata=ObjectMeta(namespace=NAMESPACE, name=cluster),
        spec=ETCDSnapshotInventorySpec(cluster_name=cluster),
        status=ETCDSnapshotInventoryStatus(
            snapshots=[
                LocalSnapshot(name=n, location=loc, machine_name=m, creation_time=CREATED)
                for n, loc, m in entries
            ]
        ),
    )


def make_snapshot_file(
    name: str,
    *,
    node: str = "node-m1",
    ready: bool | None = True,
    error: str | None = None,
    s3: bool = False,
    location: str | None = None,
) -> SnapshotFile:
    return SnapshotFile(
        metadata=ObjectMeta(namespace="", name=name),
        spec=SnapshotFileSpec(
            snapshot_name=name,
            node_name=node,
            location=location or (f"s3://bucket/{name}" if s3 else f"file:///snapshots/{name}"),
            s3=S3Location(bucket="bucket") if s3 else None,
        ),
        status=SnapshotFileStatus(
            ready_to_use=ready,
            error=SnapshotError(message=error) if error else None,
            creation_time=CREATED,
        ),
    )


# ── Remote executor stand-in ─────────────────────────────────────────


def execute(store: PlanStore, target: PlanTarget, outputs: dict[str, bytes] | None = None) -> None:
    """Report the current plan of *target* as applied.

    Without explicit *outputs*, every instruction reports ``ok``.
    """
    record = store.read(target)
    assert record is not None and record.plan is not None, f"no plan written for {target}"
    if outputs is None:
        outputs = {i.name: b"ok" for i in decode_plan(record.plan)}
    store.report_applied(target, plan_checksum(record.plan), encode_output(outputs))


def execute_failed(store: PlanStore, target: PlanTarget, message: str = "exit status 1") -> None:
    """Report the current plan of *target* as failed."""
    record = store.read(target)
    assert record is not None and record.plan is not None, f"no plan written for {target}"
    outputs = {i.name: message.encode() for i in decode_plan(record.plan)[:1]}
    store.report_failed(target, plan_checksum(record.plan), encode_output(outputs))


def instruction_names(store: PlanStore, target: PlanTarget) -> list[str]:
    """Names of the instructions currently in the plan for *target*."""
    record = store.read(target)
    if record is None or record.plan is None:
        return []
    return [i.name for i in decode_plan(record.plan)]
