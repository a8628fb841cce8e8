"""
Shared resource building blocks: object metadata and status conditions.

Resources serialize with camelCase field names (``clusterName``,
``etcdMachineSnapshotName``) and accept either form on input.

Tags:
    models, pydantic, conditions, day2ops
"""

from __future__ import annotations

from datetime import UTC, datetime
from typing import NamedTuple

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


def utcnow() -> datetime:
    """Return timezone-aware UTC datetime."""
    return datetime.now(UTC)


class Resource(BaseModel):
    """Base for every wire-shaped model."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class ObjectMeta(Resource):
    namespace: str = "default"
    name: str
    finalizers: list[str] = Field(default_factory=list)
    annotations: dict[str, str] = Field(default_factory=dict)
    deletion_timestamp: datetime | None = None

    @property
    def key(self) -> ObjectKey:
        return ObjectKey(self.namespace, self.name)

    @property
    def deleting(self) -> bool:
        return self.deletion_timestamp is not None

    def add_finalizer(self, finalizer: str) -> bool:
        """Add *finalizer*; returns True if it was missing."""
        if finalizer in self.finalizers:
            return False
        self.finalizers.append(finalizer)
        return True

    def remove_finalizer(self, finalizer: str) -> bool:
        if finalizer not in self.finalizers:
            return False
        self.finalizers.remove(finalizer)
        return True


class ObjectKey(NamedTuple):
    """``(namespace, name)`` pair identifying one resource."""

    namespace: str
    name: str

    def __str__(self) -> str:
        return f"{self.namespace}/{self.name}"

    @classmethod
    def parse(cls, value: str) -> ObjectKey:
        namespace, _, name = value.rpartition("/")
        return cls(namespace or "default", name)


class Condition(Resource):
    """One observed aspect of a resource's state."""

    type: str
    status: str = "Unknown"
    reason: str = ""
    message: str = ""
    last_transition_time: datetime = Field(default_factory=utcnow)

    @property
    def is_true(self) -> bool:
        return self.status == "True"


def get_condition(conditions: list[Condition], condition_type: str) -> Condition | None:
    for condition in conditions:
        if condition.type == condition_type:
            return condition
    return None


def is_condition_true(conditions: list[Condition], condition_type: str) -> bool:
    condition = get_condition(conditions, condition_type)
    return condition is not None and condition.is_true


def set_condition(
    conditions: list[Condition],
    condition_type: str,
    status: bool,
    reason: str = "",
    message: str = "",
) -> Condition:
    """Create or update a condition in place.

    The transition time only moves when the status actually changes.
    """
    value = "True" if status else "False"
    condition = get_condition(conditions, condition_type)
    if condition is None:
        condition = Condition(type=condition_type, status=value, reason=reason, message=message)
        conditions.append(condition)
        return condition

    if condition.status != value:
        condition.last_transition_time = utcnow()
    condition.status = value
    condition.reason = reason
    condition.message = message
    return condition
