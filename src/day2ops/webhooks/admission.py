"""
Admission gate for snapshot and restore task creation.

A create request is accepted when the caller is the controller's own service
account, or when a subject access review grants the caller every verb on the
referenced cluster. Anything else is rejected before the task exists, so a
denied request never shows up as a task phase.

Usage::

    admission = SnapshotAdmission(reviewer, settings)
    admission.validate_create(AdmissionRequest(username="alice"), snapshot)

Tags:
    webhook, admission, rbac, authorization, day2ops
"""

from __future__ import annotations

from dataclasses import dataclass, field

from day2ops.clients.protocols import AccessReviewer, SubjectAccessReview
from day2ops.core.errors import AuthorizationError, SpecValidationError
from day2ops.core.logging import get_logger
from day2ops.core.settings import Day2Settings, get_settings
from day2ops.models import ETCDMachineSnapshot, ETCDSnapshotRestore

logger = get_logger(__name__)

CLUSTER_API_GROUP = "cluster.x-k8s.io"


@dataclass(frozen=True)
class AdmissionRequest:
    """The caller identity attached to an admission request."""

    username: str
    groups: tuple[str, ...] = ()
    uid: str = ""
    extra: dict[str, tuple[str, ...]] = field(default_factory=dict, compare=False, hash=False)


def validate_access(
    request: AdmissionRequest,
    cluster_name: str,
    namespace: str,
    reviewer: AccessReviewer,
    settings: Day2Settings | None = None,
) -> None:
    """Check the caller may act on the cluster.

    Raises:
        AuthorizationError: If the caller is neither the controller nor
            granted every verb on the cluster
    """
    settings = settings or get_settings()
    if request.username == settings.controller_identity:
        return

    review = SubjectAccessReview(
        user=request.username,
        groups=request.groups,
        verb="*",
        group=CLUSTER_API_GROUP,
        resource="clusters",
        namespace=namespace,
        name=cluster_name,
        extra=dict(request.extra),
    )
    if not reviewer.review(review):
        logger.info(
            "admission_denied",
            user=request.username,
            cluster=f"{namespace}/{cluster_name}",
        )
        raise AuthorizationError(
            f"user {request.username} is not allowed to access the cluster {namespace}/{cluster_name}"
        ).with_context(namespace=namespace, name=cluster_name)


class SnapshotAdmission:
    """Validates ETCDMachineSnapshot create requests."""

    def __init__(self, reviewer: AccessReviewer, settings: Day2Settings | None = None):
        self.reviewer = reviewer
        self.settings = settings or get_settings()

    def validate_create(self, request: AdmissionRequest, snapshot: ETCDMachineSnapshot) -> None:
        if not snapshot.spec.cluster_name:
            raise SpecValidationError("clusterName")
        if not snapshot.spec.machine_name:
            raise SpecValidationError("machineName")
        validate_access(
            request,
            snapshot.spec.cluster_name,
            snapshot.metadata.namespace,
            self.reviewer,
            self.settings,
        )


class RestoreAdmission:
    """Validates ETCDSnapshotRestore create requests."""

    def __init__(self, reviewer: AccessReviewer, settings: Day2Settings | None = None):
        self.reviewer = reviewer
        self.settings = settings or get_settings()

    def validate_create(self, request: AdmissionRequest, restore: ETCDSnapshotRestore) -> None:
        if not restore.spec.cluster_name:
            raise SpecValidationError("clusterName")
        if not restore.spec.etcd_machine_snapshot_name:
            raise SpecValidationError("etcdMachineSnapshotName")
        validate_access(
            request,
            restore.spec.cluster_name,
            restore.metadata.namespace,
            self.reviewer,
            self.settings,
        )
