"""
Manager - wires the three controllers to shared clients, store and settings.

Usage::

    manager = Manager(client, tracker, store)
    manager.enqueue_all()
    manager.start_background()
    ...
    manager.stop()

Tags:
    runtime, manager, wiring, day2ops
"""

from __future__ import annotations

import threading

from day2ops.clients.protocols import ClusterTracker, ManagementClient
from day2ops.controllers.inventory import InventoryReconciler
from day2ops.controllers.restore import RestoreReconciler
from day2ops.controllers.snapshot import SnapshotReconciler
from day2ops.core.logging import get_logger
from day2ops.core.settings import Day2Settings, get_settings
from day2ops.plan.store import PlanStore
from day2ops.runtime.controller import Controller
from day2ops.runtime.retry import ExponentialBackoff

logger = get_logger(__name__)


class Manager:
    """Owns one controller per reconciler."""

    def __init__(
        self,
        client: ManagementClient,
        tracker: ClusterTracker,
        store: PlanStore,
        settings: Day2Settings | None = None,
    ):
        self.settings = settings or get_settings()
        self.client = client

        def backoff() -> ExponentialBackoff:
            return ExponentialBackoff(
                base_delay=self.settings.error_backoff_base,
                max_delay=self.settings.error_backoff_max,
            )

        self.snapshots = Controller(
            SnapshotReconciler(client, tracker, store, self.settings),
            max_workers=self.settings.max_workers,
            backoff=backoff(),
        )
        self.restores = Controller(
            RestoreReconciler(client, store, self.settings),
            max_workers=self.settings.max_workers,
            backoff=backoff(),
        )
        inventory = InventoryReconciler(client, tracker, self.settings)
        self.inventory = Controller(
            inventory,
            max_workers=self.settings.max_workers,
            backoff=backoff(),
        )
        inventory.enqueue = self.inventory.enqueue

        # In-memory and other push-capable clients announce changes
        subscribe = getattr(client, "subscribe", None)
        if callable(subscribe):
            subscribe("snapshot", self.snapshots.enqueue)
            subscribe("restore", self.restores.enqueue)
            subscribe("cluster", self.inventory.enqueue)

        self._threads: list[threading.Thread] = []

    @property
    def controllers(self) -> list[Controller]:
        return [self.snapshots, self.restores, self.inventory]

    def enqueue_all(self) -> None:
        """Queue every existing task and cluster."""
        for snapshot in self.client.list_snapshots():
            self.snapshots.enqueue(snapshot.metadata.key)
        for restore in self.client.list_restores():
            self.restores.enqueue(restore.metadata.key)
        for cluster in self.client.list_clusters():
            self.inventory.enqueue(cluster.metadata.key)

    def run_pending(self, max_iterations: int = 1000) -> int:
        """Reconcile every ready key on the calling thread until none is left.

        Delayed requeues are not waited for.

        Returns:
            Number of reconciles performed
        """
        processed = 0
        while processed < max_iterations:
            progressed = False
            for controller in self.controllers:
                if controller.process_next(timeout=0):
                    processed += 1
                    progressed = True
            if not progressed:
                break
        return processed

    def start_background(self) -> None:
        for controller in self.controllers:
            self._threads.append(controller.start_background())
        logger.info("manager_started", controllers=[c.name for c in self.controllers])

    def stop(self, timeout: float | None = 5.0) -> None:
        for controller in self.controllers:
            controller.stop()
        for thread in self._threads:
            thread.join(timeout)
        self._threads.clear()
        logger.info("manager_stopped")
