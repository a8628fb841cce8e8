"""
Snapshot orchestrator - takes an etcd snapshot on one control-plane machine.

Phase machine (see :mod:`day2ops.models.snapshot` for the transition table)::

    ""        permit rights                                   → Pending
    Pending   apply TakeSnapshot; unfinished → Planning (5s); finished → Running
    Planning  same as Pending
    Running   poll remote snapshot files named <task>-<machine>
                ready → Done, error → Failed, absent → requeue (30s)
    Done      revoke rights
    Failed    revoke rights

A plan the remote executor reports as failed moves the task straight to
Failed with the executor's output as the error.

Tags:
    controller, snapshot, state-machine, day2ops
"""

from __future__ import annotations

from dataclasses import dataclass

from day2ops.clients.protocols import ClusterTracker, ManagementClient
from day2ops.controllers.result import DONE, ReconcileResult
from day2ops.core.errors import ClusterNotFoundError, MachineNotFoundError
from day2ops.core.logging import get_logger
from day2ops.core.settings import Day2Settings, get_settings
from day2ops.models import Cluster, ETCDMachineSnapshot, Machine, ObjectKey, SnapshotPhase
from day2ops.models.snapshot import SNAPSHOT_FINALIZER, SNAPSHOT_TERMINAL_PHASES
from day2ops.plan.instructions import take_snapshot
from day2ops.plan.planner import Planner, plan_name
from day2ops.plan.store import PlanStore

logger = get_logger(__name__)

SNAPSHOT_OPERATION = "snapshot"


@dataclass
class SnapshotScope:
    cluster: Cluster
    machines: list[Machine]
    machine: Machine
    planner: Planner


class SnapshotReconciler:
    """Reconciles ETCDMachineSnapshot tasks."""

    name = "etcdmachinesnapshot"

    def __init__(
        self,
        client: ManagementClient,
        tracker: ClusterTracker,
        store: PlanStore,
        settings: Day2Settings | None = None,
    ):
        self.client = client
        self.tracker = tracker
        self.store = store
        self.settings = settings or get_settings()

    def reconcile(self, key: ObjectKey) -> ReconcileResult:
        snapshot = self.client.get_snapshot(key)
        if snapshot is None:
            return DONE

        if snapshot.automatic:
            logger.debug("automatic_snapshot_skipped", snapshot=str(key))
            return DONE

        if snapshot.metadata.deleting:
            self._reconcile_delete(snapshot)
            return DONE

        # Status is persisted even when the reconcile raises
        try:
            snapshot.metadata.add_finalizer(SNAPSHOT_FINALIZER)
            return self._reconcile_normal(snapshot)
        finally:
            self.client.update_snapshot(snapshot)

    def scope(self, snapshot: ETCDMachineSnapshot) -> SnapshotScope:
        """Resolve the cluster, its control-plane machines and the target machine.

        Raises:
            ClusterNotFoundError: If the cluster does not exist
            MachineNotFoundError: If the machine is not a control-plane
                machine of the cluster
        """
        namespace = snapshot.metadata.namespace
        cluster_key = ObjectKey(namespace, snapshot.spec.cluster_name)

        cluster = self.client.get_cluster(cluster_key)
        if cluster is None:
            raise ClusterNotFoundError(str(cluster_key))

        machines = [
            m for m in self.client.list_machines(namespace, cluster.metadata.name) if m.control_plane
        ]
        machine = next((m for m in machines if m.name == snapshot.spec.machine_name), None)
        if machine is None:
            raise MachineNotFoundError(snapshot.spec.machine_name, str(cluster_key))

        planner = Planner(self.store, namespace, self._plan_name(snapshot), [machine.name])
        return SnapshotScope(cluster=cluster, machines=machines, machine=machine, planner=planner)

    @staticmethod
    def _plan_name(snapshot: ETCDMachineSnapshot) -> str:
        return plan_name(SNAPSHOT_OPERATION, snapshot.metadata.name)

    def _revoke(self, snapshot: ETCDMachineSnapshot) -> None:
        self.store.revoke_plan(snapshot.metadata.namespace, self._plan_name(snapshot))

    def _reconcile_normal(self, snapshot: ETCDMachineSnapshot) -> ReconcileResult:
        phase = snapshot.status.phase
        if phase in SNAPSHOT_TERMINAL_PHASES:
            self._revoke(snapshot)
            return DONE

        scope = self.scope(snapshot)

        if scope.machine.node_ref is None:
            logger.info("machine_has_no_node", machine=scope.machine.name)
            return ReconcileResult.after(self.settings.converge_requeue_seconds)

        if phase == SnapshotPhase.EMPTY:
            scope.planner.permit()
            self._transition(snapshot, SnapshotPhase.PENDING)
            return ReconcileResult.now()

        if phase in (SnapshotPhase.PENDING, SnapshotPhase.PLANNING):
            return self._create_machine_snapshot(snapshot, scope)

        return self._check_snapshot_file(snapshot, scope)

    def _create_machine_snapshot(
        self, snapshot: ETCDMachineSnapshot, scope: SnapshotScope
    ) -> ReconcileResult:
        output = scope.planner.apply(
            scope.machine.name,
            take_snapshot(snapshot.metadata.name, snapshot.spec.location or None),
        )

        if output.failed:
            self._fail(snapshot, scope, output.failure_message)
            return DONE

        if not output.finished:
            self._transition(snapshot, SnapshotPhase.PLANNING)
            return ReconcileResult.after(self.settings.plan_requeue_seconds)

        logger.info(
            "snapshot_plan_applied",
            machine=scope.machine.name,
            output={k: v.decode("utf-8", errors="replace") for k, v in output.result.items()},
        )
        self._transition(snapshot, SnapshotPhase.RUNNING)
        return ReconcileResult.now()

    def _check_snapshot_file(
        self, snapshot: ETCDMachineSnapshot, scope: SnapshotScope
    ) -> ReconcileResult:
        remote = self.tracker.get_client(scope.cluster.metadata.key)
        expected = f"{snapshot.metadata.name}-{snapshot.spec.machine_name}"

        match = next((f for f in remote.list_snapshot_files() if expected in f.name), None)
        if match is None:
            logger.info("snapshot_file_not_found", expected=expected)
            return ReconcileResult.after(self.settings.converge_requeue_seconds)

        snapshot.status.snapshot_file_name = match.name

        if match.ready:
            self._transition(snapshot, SnapshotPhase.DONE)
            scope.planner.revoke()
            return DONE

        if match.error_message is not None:
            self._fail(snapshot, scope, match.error_message)
            return DONE

        return ReconcileResult.after(self.settings.converge_requeue_seconds)

    def _fail(self, snapshot: ETCDMachineSnapshot, scope: SnapshotScope, message: str) -> None:
        snapshot.status.error = message
        self._transition(snapshot, SnapshotPhase.FAILED)
        scope.planner.revoke()

    def _transition(self, snapshot: ETCDMachineSnapshot, target: SnapshotPhase) -> None:
        previous = snapshot.status.phase
        if snapshot.transition_to(target):
            logger.info("phase_changed", previous=previous.value, phase=target.value)

    def _reconcile_delete(self, snapshot: ETCDMachineSnapshot) -> None:
        logger.info("snapshot_deleting", snapshot=snapshot.metadata.name)
        # a store error propagates and the finalizer stays until the revoke succeeds
        self._revoke(snapshot)

        if snapshot.metadata.remove_finalizer(SNAPSHOT_FINALIZER):
            self.client.update_snapshot(snapshot)
