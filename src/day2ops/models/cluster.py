"""Management-plane views of clusters and machines."""

from __future__ import annotations

from pydantic import Field

from day2ops.models.common import Condition, ObjectMeta, Resource, is_condition_true

SUPPORTED_CONTROL_PLANE_KINDS = frozenset({"RKE2ControlPlane"})

MACHINE_PHASE_RUNNING = "Running"
AGENT_HEALTHY_CONDITION = "AgentHealthy"
INTERNAL_IP = "InternalIP"


class Cluster(Resource):
    metadata: ObjectMeta
    paused: bool = False
    control_plane_ready: bool = False
    control_plane_kind: str = "RKE2ControlPlane"


class NodeRef(Resource):
    name: str


class MachineAddress(Resource):
    type: str
    address: str


class Machine(Resource):
    """A cluster machine as the management plane sees it.

    ``node_ref`` is set once the machine has joined and been assigned a node
    identity; until then no plan can be addressed to it.
    """

    metadata: ObjectMeta
    cluster_name: str
    control_plane: bool = False
    phase: str = ""
    node_ref: NodeRef | None = None
    addresses: list[MachineAddress] = Field(default_factory=list)
    conditions: list[Condition] = Field(default_factory=list)

    @property
    def name(self) -> str:
        return self.metadata.name

    @property
    def running(self) -> bool:
        return self.phase == MACHINE_PHASE_RUNNING

    @property
    def agent_healthy(self) -> bool:
        return is_condition_true(self.conditions, AGENT_HEALTHY_CONDITION)

    def address(self, address_type: str = INTERNAL_IP) -> str | None:
        """First address of *address_type*, if any."""
        for address in self.addresses:
            if address.type == address_type and address.address:
                return address.address
        return None
