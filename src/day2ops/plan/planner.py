"""
Planner - write plans, detect completion, decode output.

A :class:`Planner` is built fresh for every reconcile from identifiers that
are already persisted on the task (namespace, plan name, machine list); it
holds no state of its own between reconciles.

Completion is checksum-gated: a plan is finished only when the SHA-256 of the
plan bytes currently in the record equals the checksum the executor reports
for the plan it ran. Restarts and duplicate writes on either side are
harmless because the comparison is always made against freshly read bytes.

Flow of :meth:`Planner.apply`::

    instructions ──encode_plan──▶ bytes ──write──▶ record.plan
                                                      │
                                          read (never trust a local copy)
                                                      │
        sha256(record.plan) == applied_checksum ? ──▶ finished, decode output
        sha256(record.plan) == failed_checksum  ? ──▶ failed, decode output
        otherwise                               ──▶ not finished (not an error)

Tags:
    plan, planner, checksum, remote-execution, day2ops
"""

from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass, field

from day2ops.core.hashing import checksum_matches
from day2ops.core.logging import get_logger
from day2ops.plan.codec import decode_output, encode_plan
from day2ops.plan.instructions import Instruction
from day2ops.plan.store import PlanStore, PlanTarget

logger = get_logger(__name__)


def plan_name(operation: str, owner: str) -> str:
    """Plan identity for *operation* run on behalf of the resource *owner*."""
    return f"{operation}-{owner}"


@dataclass(frozen=True)
class PlanOutput:
    """Result of one :meth:`Planner.apply` call for one machine."""

    machine: str
    finished: bool
    failed: bool = False
    result: dict[str, bytes] = field(default_factory=dict)

    @property
    def failure_message(self) -> str:
        """Human-readable summary of a failed plan's output."""
        parts = [
            f"{name}: {value.decode('utf-8', errors='replace').strip()}"
            for name, value in sorted(self.result.items())
            if value.strip()
        ]
        if not parts:
            return f"plan failed on machine {self.machine}"
        return "; ".join(parts)


class Planner:
    """Plans of one name across a set of machines.

    Args:
        store: Plan store holding the records and grants
        namespace: Namespace the plan records live in
        name: Plan name, usually from :func:`plan_name`
        machines: Every machine the plan may be issued to; :meth:`permit`
            and :meth:`revoke` cover all of them
    """

    def __init__(self, store: PlanStore, namespace: str, name: str, machines: Sequence[str]):
        self.store = store
        self.namespace = namespace
        self.name = name
        self.machines = list(machines)

    def target(self, machine: str) -> PlanTarget:
        return PlanTarget(self.namespace, self.name, machine)

    def apply(self, machine: str, *instructions: Instruction) -> PlanOutput:
        """Write the plan for *machine* and report whether it has been executed.

        The plan is rewritten on every call even when unchanged.

        Raises:
            StoreUnavailableError: If the store cannot be read or written
            MalformedOutputError: If the reported output cannot be decoded
        """
        target = self.target(machine)
        data = encode_plan(instructions)

        self.store.write(target, data)
        record = self.store.read(target)

        if record is None or record.plan is None:
            logger.debug("plan_not_applied", plan=self.name, machine=machine)
            return PlanOutput(machine=machine, finished=False)

        if checksum_matches(record.plan, record.applied_checksum):
            logger.debug("plan_finished", plan=self.name, machine=machine)
            return PlanOutput(
                machine=machine,
                finished=True,
                result=decode_output(record.applied_output),
            )

        if checksum_matches(record.plan, record.failed_checksum):
            logger.info("plan_failed", plan=self.name, machine=machine)
            return PlanOutput(
                machine=machine,
                finished=False,
                failed=True,
                result=decode_output(record.failed_output),
            )

        logger.debug("plan_not_applied", plan=self.name, machine=machine)
        return PlanOutput(machine=machine, finished=False)

    def permit(self) -> None:
        """Grant execution rights for every machine. Idempotent."""
        for machine in self.machines:
            self.store.grant(self.target(machine))
        logger.debug("plan_permitted", plan=self.name, machines=len(self.machines))

    def revoke(self) -> None:
        """Remove every grant of this plan, including machines no longer listed. Idempotent."""
        removed = self.store.revoke_plan(self.namespace, self.name)
        logger.debug("plan_revoked", plan=self.name, grants=removed)


__all__ = ["Planner", "PlanOutput", "plan_name"]
