"""
Restore orchestrator - rolls a whole cluster back to one etcd snapshot.

The snapshot comes from the cluster's inventory; the machine that took it
is the *init machine*. It is restored first and every other control-plane
machine re-registers against its internal address.

Phase handlers, one per non-terminal phase::

    Pending   pause the cluster                                   → Started
    Started   permit rights on every machine                      → Shutdown
    Shutdown  StopAgent on every machine, barrier (30s)           → Running
    Running   init: RemoveServerURL, RemoveManifests,
              RestoreFromSnapshot(location) (30s)                 → Restart
    Restart   init address missing → 10s
              init: StartAgent, must finish first (30s)
              others: RemoveServerURL, SetServerURL(init),
              RemoveETCDData, RemoveManifests, StartAgent,
              barrier over every machine (30s)                    → Unpause
    Unpause   clear the pause                                     → Joining
    Joining   every machine AgentHealthy (30s)                    → Done
    Done      revoke rights
    Failed    revoke rights

Before any non-terminal handler runs, every machine must be Running and,
up to Restart, exactly one machine must be the init machine named by the
inventory entry; otherwise the reconcile requeues without touching the
phase. Unpause and Joining no longer read the inventory, and terminal
phases resolve nothing at all.

Tags:
    controller, restore, state-machine, disaster-recovery, day2ops
"""

from __future__ import annotations

from collections.abc import Callable, Sequence
from dataclasses import dataclass

from day2ops.clients.protocols import ManagementClient
from day2ops.controllers.result import DONE, ReconcileResult
from day2ops.core.errors import ClusterNotFoundError, SnapshotNotFoundError
from day2ops.core.logging import get_logger
from day2ops.core.settings import Day2Settings, get_settings
from day2ops.models import (
    Cluster,
    ETCDSnapshotInventory,
    ETCDSnapshotRestore,
    LocalSnapshot,
    Machine,
    ObjectKey,
    RestorePhase,
    is_condition_true,
    set_condition,
)
from day2ops.models.cluster import INTERNAL_IP
from day2ops.models.restore import (
    CLUSTER_PAUSED_CONDITION,
    PLAN_FAILED_REASON,
    RESTORE_COMPLETED_CONDITION,
    RESTORE_FINALIZER,
    RESTORE_TERMINAL_PHASES,
)
from day2ops.plan.instructions import (
    remove_etcd_data,
    remove_manifests,
    remove_server_url,
    restore_from_snapshot,
    set_server_url,
    start_agent,
    stop_agent,
)
from day2ops.plan.planner import PlanOutput, Planner, plan_name
from day2ops.plan.store import PlanStore

logger = get_logger(__name__)

RESTORE_OPERATION = "restore"


def restart_order(init: Machine, machines: Sequence[Machine]) -> list[Machine]:
    """Machines in restart order: the init machine first, then the rest."""
    return [init] + [m for m in machines if m.name != init.name]


@dataclass
class RestoreScope:
    """What a phase handler works on.

    ``inventory`` and ``snapshot`` are only resolved for the phases that read
    the inventory entry; after Restart the inventory may legitimately be
    rewritten without it.
    """

    cluster: Cluster
    machines: list[Machine]
    planner: Planner
    inventory: ETCDSnapshotInventory | None = None
    snapshot: LocalSnapshot | None = None

    @property
    def init_machines(self) -> list[Machine]:
        if self.snapshot is None:
            return []
        return [m for m in self.machines if m.name == self.snapshot.machine_name]

    @property
    def init_machine(self) -> Machine:
        return self.init_machines[0]


class RestoreReconciler:
    """Reconciles ETCDSnapshotRestore tasks."""

    name = "etcdsnapshotrestore"

    def __init__(
        self,
        client: ManagementClient,
        store: PlanStore,
        settings: Day2Settings | None = None,
    ):
        self.client = client
        self.store = store
        self.settings = settings or get_settings()

        self._handlers: dict[
            RestorePhase, Callable[[ETCDSnapshotRestore, RestoreScope], ReconcileResult]
        ] = {
            RestorePhase.PENDING: self._pause,
            RestorePhase.STARTED: self._permit,
            RestorePhase.SHUTDOWN: self._shutdown,
            RestorePhase.RUNNING: self._restore_init,
            RestorePhase.AGENT_RESTART: self._restart_agents,
            RestorePhase.UNPAUSE: self._unpause,
            RestorePhase.JOINING: self._wait_joined,
        }

    def reconcile(self, key: ObjectKey) -> ReconcileResult:
        restore = self.client.get_restore(key)
        if restore is None:
            return DONE

        if restore.metadata.deleting:
            self._reconcile_delete(restore)
            return DONE

        # Status is persisted even when the reconcile raises
        try:
            restore.metadata.add_finalizer(RESTORE_FINALIZER)
            return self._reconcile_normal(restore)
        finally:
            self.client.update_restore(restore)

    def scope(self, restore: ETCDSnapshotRestore, *, with_snapshot: bool = True) -> RestoreScope:
        """Resolve the cluster, its control-plane machines and the inventory entry.

        With ``with_snapshot=False`` the inventory is not consulted.

        Raises:
            ClusterNotFoundError: If the cluster does not exist
            SnapshotNotFoundError: If the inventory or the named entry does
                not exist
        """
        namespace = restore.metadata.namespace
        cluster_key = ObjectKey(namespace, restore.spec.cluster_name)
        snapshot_name = restore.spec.etcd_machine_snapshot_name

        cluster = self.client.get_cluster(cluster_key)
        if cluster is None:
            raise ClusterNotFoundError(str(cluster_key))

        machines = [
            m for m in self.client.list_machines(namespace, cluster.metadata.name) if m.control_plane
        ]
        scope = RestoreScope(
            cluster=cluster,
            machines=machines,
            planner=Planner(
                self.store, namespace, self._plan_name(restore), [m.name for m in machines]
            ),
        )
        if not with_snapshot:
            return scope

        scope.inventory = self.client.get_inventory(cluster_key)
        if scope.inventory is None:
            raise SnapshotNotFoundError(snapshot_name).with_context(inventory=str(cluster_key))

        scope.snapshot = scope.inventory.find_local(snapshot_name)
        if scope.snapshot is None:
            raise SnapshotNotFoundError(snapshot_name).with_context(inventory=str(cluster_key))
        return scope

    @staticmethod
    def _plan_name(restore: ETCDSnapshotRestore) -> str:
        return plan_name(RESTORE_OPERATION, restore.metadata.name)

    def _revoke(self, restore: ETCDSnapshotRestore) -> None:
        """Revoke by plan name alone; needs neither cluster nor inventory."""
        self.store.revoke_plan(restore.metadata.namespace, self._plan_name(restore))

    def _reconcile_normal(self, restore: ETCDSnapshotRestore) -> ReconcileResult:
        phase = restore.status.phase
        if phase in RESTORE_TERMINAL_PHASES:
            self._revoke(restore)
            return DONE

        restored = phase in (RestorePhase.UNPAUSE, RestorePhase.JOINING)
        scope = self.scope(restore, with_snapshot=not restored)

        not_running = [m.name for m in scope.machines if not m.running]
        if not_running:
            logger.info("machines_not_running", machines=not_running)
            return ReconcileResult.after(self.settings.converge_requeue_seconds)

        if not restored and len(scope.init_machines) != 1:
            logger.info(
                "init_machine_not_unique",
                expected=scope.snapshot.machine_name,
                found=len(scope.init_machines),
            )
            return ReconcileResult.after(self.settings.converge_requeue_seconds)

        return self._handlers[phase](restore, scope)

    # ── Phase handlers ──────────────────────────────────────────────

    def _pause(self, restore: ETCDSnapshotRestore, scope: RestoreScope) -> ReconcileResult:
        self.client.set_cluster_paused(scope.cluster.metadata.key, True)
        set_condition(restore.status.conditions, CLUSTER_PAUSED_CONDITION, True, "RestoreStarted")
        self._transition(restore, RestorePhase.STARTED)
        return ReconcileResult.now()

    def _permit(self, restore: ETCDSnapshotRestore, scope: RestoreScope) -> ReconcileResult:
        scope.planner.permit()
        self._transition(restore, RestorePhase.SHUTDOWN)
        return ReconcileResult.now()

    def _shutdown(self, restore: ETCDSnapshotRestore, scope: RestoreScope) -> ReconcileResult:
        outputs = [scope.planner.apply(m.name, stop_agent()) for m in scope.machines]
        return self._advance_when_all_finished(restore, scope, outputs, RestorePhase.RUNNING)

    def _restore_init(self, restore: ETCDSnapshotRestore, scope: RestoreScope) -> ReconcileResult:
        output = scope.planner.apply(
            scope.init_machine.name,
            remove_server_url(),
            remove_manifests(),
            restore_from_snapshot(scope.snapshot.location),
        )
        return self._advance_when_all_finished(restore, scope, [output], RestorePhase.AGENT_RESTART)

    def _restart_agents(self, restore: ETCDSnapshotRestore, scope: RestoreScope) -> ReconcileResult:
        init = scope.init_machine
        address = init.address(INTERNAL_IP)
        if address is None:
            logger.info("init_machine_has_no_address", machine=init.name)
            return ReconcileResult.after(self.settings.address_requeue_seconds)

        ordered = restart_order(init, scope.machines)

        init_output = scope.planner.apply(init.name, start_agent())
        if not init_output.finished:
            return self._advance_when_all_finished(
                restore, scope, [init_output], RestorePhase.UNPAUSE
            )

        outputs = [init_output]
        for machine in ordered[1:]:
            outputs.append(
                scope.planner.apply(
                    machine.name,
                    remove_server_url(),
                    set_server_url(address),
                    remove_etcd_data(),
                    remove_manifests(),
                    start_agent(),
                )
            )
        return self._advance_when_all_finished(restore, scope, outputs, RestorePhase.UNPAUSE)

    def _unpause(self, restore: ETCDSnapshotRestore, scope: RestoreScope) -> ReconcileResult:
        self.client.set_cluster_paused(scope.cluster.metadata.key, False)
        set_condition(restore.status.conditions, CLUSTER_PAUSED_CONDITION, False, "RestoreUnpaused")
        self._transition(restore, RestorePhase.JOINING)
        return ReconcileResult.now()

    def _wait_joined(self, restore: ETCDSnapshotRestore, scope: RestoreScope) -> ReconcileResult:
        unhealthy = [m.name for m in scope.machines if not m.agent_healthy]
        if unhealthy:
            logger.info("machines_not_joined", machines=unhealthy)
            return ReconcileResult.after(self.settings.converge_requeue_seconds)

        set_condition(restore.status.conditions, RESTORE_COMPLETED_CONDITION, True, "RestoreFinished")
        self._transition(restore, RestorePhase.FINISHED)
        scope.planner.revoke()
        return DONE

    # ── Helpers ─────────────────────────────────────────────────────

    def _advance_when_all_finished(
        self,
        restore: ETCDSnapshotRestore,
        scope: RestoreScope,
        outputs: list[PlanOutput],
        target: RestorePhase,
    ) -> ReconcileResult:
        """Barrier: move to *target* only when every plan finished."""
        failed = [o for o in outputs if o.failed]
        if failed:
            self._fail(restore, scope, "; ".join(o.failure_message for o in failed))
            return DONE

        pending = [o.machine for o in outputs if not o.finished]
        if pending:
            logger.info("plans_not_applied", machines=pending, phase=restore.status.phase.value)
            return ReconcileResult.after(self.settings.converge_requeue_seconds)

        self._transition(restore, target)
        return ReconcileResult.now()

    def _fail(self, restore: ETCDSnapshotRestore, scope: RestoreScope, message: str) -> None:
        logger.warning("restore_plan_failed", message=message)
        set_condition(
            restore.status.conditions,
            RESTORE_COMPLETED_CONDITION,
            False,
            PLAN_FAILED_REASON,
            message,
        )
        if scope.cluster.paused:
            self.client.set_cluster_paused(scope.cluster.metadata.key, False)
            set_condition(
                restore.status.conditions, CLUSTER_PAUSED_CONDITION, False, "RestoreFailed"
            )
        self._transition(restore, RestorePhase.FAILED)
        scope.planner.revoke()

    def _transition(self, restore: ETCDSnapshotRestore, target: RestorePhase) -> None:
        previous = restore.status.phase
        if restore.transition_to(target):
            logger.info("phase_changed", previous=previous.value, phase=target.value)

    def _reconcile_delete(self, restore: ETCDSnapshotRestore) -> None:
        """Revoke rights and lift our pause, then let the task go.

        A store error propagates and keeps the finalizer, so the delete is
        retried until the grants are really gone.
        """
        logger.info("restore_deleting", restore=restore.metadata.name)
        self._revoke(restore)

        if is_condition_true(restore.status.conditions, CLUSTER_PAUSED_CONDITION):
            cluster_key = ObjectKey(restore.metadata.namespace, restore.spec.cluster_name)
            if self.client.get_cluster(cluster_key) is None:
                logger.info("unpause_skipped_cluster_gone", cluster=str(cluster_key))
            else:
                self.client.set_cluster_paused(cluster_key, False)
            set_condition(
                restore.status.conditions, CLUSTER_PAUSED_CONDITION, False, "RestoreDeleted"
            )

        if restore.metadata.remove_finalizer(RESTORE_FINALIZER):
            self.client.update_restore(restore)
