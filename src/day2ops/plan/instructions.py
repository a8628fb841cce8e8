"""
Instructions - the closed set of remote commands a plan can carry.

An :class:`Instruction` is an immutable value object. Instances are never
built by hand in controller code; the factory functions below produce the
eight kinds the controllers need, and :func:`build_instruction` dispatches
over :class:`InstructionKind` for callers that hold a kind value.

Every kind runs through ``/bin/sh -c <script>`` on the target machine and
asks the executor to save its output, so the result can be inspected from
the applied output map under the instruction's name.

Examples:
    >>> take_snapshot("s1", location="/snapshots").args
    ('-c', 'rke2 etcd-snapshot save --name s1 --dir /snapshots')
    >>> set_server_url("10.0.0.5").name
    'replace-server-url'

Tags:
    plan, instruction, remote-execution, day2ops
"""

from __future__ import annotations

import shlex
from dataclasses import dataclass
from enum import Enum
from typing import Any

SHELL = "/bin/sh"

RKE2_CONFIG = "/etc/rancher/rke2/config.yaml"
RKE2_SUPERVISOR_PORT = 9345


class InstructionKind(str, Enum):
    """Kinds of remote instruction. The value is the instruction name."""

    TAKE_SNAPSHOT = "snapshot"
    STOP_AGENT = "shutdown"
    RESTORE_FROM_SNAPSHOT = "etcd-restore"
    REMOVE_MANIFESTS = "remove-server-manifests"
    REMOVE_SERVER_URL = "remove-server-url"
    SET_SERVER_URL = "replace-server-url"
    REMOVE_ETCD_DATA = "remove-etcd-db-dir"
    START_AGENT = "start-rke2"


@dataclass(frozen=True)
class Instruction:
    """One atomic unit of remote work.

    Attributes:
        name: Identifies the step in the applied output map
        command: Executable path
        args: Ordered arguments
        env: Ordered ``KEY=value`` strings
        image: Optional container image reference
        save_output: Whether the executor must capture the result
    """

    name: str
    command: str = ""
    args: tuple[str, ...] = ()
    env: tuple[str, ...] = ()
    image: str = ""
    save_output: bool = False

    @property
    def kind(self) -> InstructionKind | None:
        try:
            return InstructionKind(self.name)
        except ValueError:
            return None

    def to_dict(self) -> dict[str, Any]:
        """Wire form with fixed key order and empty fields omitted."""
        result: dict[str, Any] = {}
        if self.name:
            result["name"] = self.name
        if self.image:
            result["image"] = self.image
        if self.env:
            result["env"] = list(self.env)
        if self.args:
            result["args"] = list(self.args)
        if self.command:
            result["command"] = self.command
        if self.save_output:
            result["saveOutput"] = True
        return result

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> Instruction:
        return cls(
            name=data.get("name", ""),
            command=data.get("command", ""),
            args=tuple(data.get("args") or ()),
            env=tuple(data.get("env") or ()),
            image=data.get("image", ""),
            save_output=bool(data.get("saveOutput", False)),
        )


def _shell(kind: InstructionKind, script: str, *extra: str) -> Instruction:
    return Instruction(
        name=kind.value,
        command=SHELL,
        args=("-c", script, *extra),
        save_output=True,
    )


# =============================================================================
# FACTORIES
# =============================================================================


def take_snapshot(name: str, location: str | None = None) -> Instruction:
    """Save an etcd snapshot called *name*, optionally into *location*.

    Both values come from the task spec and are shell-quoted.
    """
    script = f"rke2 etcd-snapshot save --name {shlex.quote(name)}"
    if location:
        script += f" --dir {shlex.quote(location)}"
    return _shell(InstructionKind.TAKE_SNAPSHOT, script)


def stop_agent() -> Instruction:
    """Stop every RKE2 process on the machine (no-op when RKE2 is absent)."""
    return _shell(
        InstructionKind.STOP_AGENT,
        "if [ -z $(command -v rke2) ] && [ -z $(command -v rke2-killall.sh) ]; "
        "then echo rke2 does not appear to be installed; exit 0; "
        "else rke2-killall.sh; fi",
    )


def restore_from_snapshot(path: str) -> Instruction:
    """Reset the etcd cluster from the snapshot at *path*.

    A ``file://`` prefix is stripped since the agent expects a local path.
    """
    if path.startswith("file://"):
        path = path[len("file://"):]
    return _shell(
        InstructionKind.RESTORE_FROM_SNAPSHOT,
        "rke2 server --cluster-reset",
        f"--cluster-reset-restore-path={path}",
    )


def remove_manifests() -> Instruction:
    return _shell(
        InstructionKind.REMOVE_MANIFESTS,
        "rm -rf /var/lib/rancher/rke2/server/manifests/rke2-*.yaml",
    )


def remove_server_url() -> Instruction:
    return _shell(InstructionKind.REMOVE_SERVER_URL, f"sed -i '/^server:/d' {RKE2_CONFIG}")


def set_server_url(address: str) -> Instruction:
    """Point the agent at the supervisor running on *address*."""
    return _shell(
        InstructionKind.SET_SERVER_URL,
        f"echo 'server: https://{address}:{RKE2_SUPERVISOR_PORT}' >> {RKE2_CONFIG}",
    )


def remove_etcd_data() -> Instruction:
    return _shell(InstructionKind.REMOVE_ETCD_DATA, "rm -rf /var/lib/rancher/rke2/server/db/etcd")


def start_agent() -> Instruction:
    return _shell(InstructionKind.START_AGENT, "systemctl start rke2-server.service")


_FACTORIES = {
    InstructionKind.TAKE_SNAPSHOT: take_snapshot,
    InstructionKind.STOP_AGENT: stop_agent,
    InstructionKind.RESTORE_FROM_SNAPSHOT: restore_from_snapshot,
    InstructionKind.REMOVE_MANIFESTS: remove_manifests,
    InstructionKind.REMOVE_SERVER_URL: remove_server_url,
    InstructionKind.SET_SERVER_URL: set_server_url,
    InstructionKind.REMOVE_ETCD_DATA: remove_etcd_data,
    InstructionKind.START_AGENT: start_agent,
}

_missing = set(InstructionKind) - set(_FACTORIES)
if _missing:
    raise RuntimeError(f"instruction kinds without a factory: {sorted(k.value for k in _missing)}")


def build_instruction(kind: InstructionKind | str, *args: Any, **kwargs: Any) -> Instruction:
    """Build an instruction of *kind*, forwarding parameters to its factory.

    Raises:
        ValueError: If *kind* is not a known instruction kind
    """
    return _FACTORIES[InstructionKind(kind)](*args, **kwargs)


__all__ = [
    "Instruction",
    "InstructionKind",
    "build_instruction",
    "take_snapshot",
    "stop_agent",
    "restore_from_snapshot",
    "remove_manifests",
    "remove_server_url",
    "set_server_url",
    "remove_etcd_data",
    "start_agent",
]
