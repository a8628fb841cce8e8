"""
Tests for snapshot and restore admission.
"""

import pytest

from day2ops.core.errors import AuthorizationError, SpecValidationError
from day2ops.webhooks.admission import (
    AdmissionRequest,
    RestoreAdmission,
    SnapshotAdmission,
    validate_access,
)
from tests._support.builders import make_restore, make_snapshot

CONTROLLER = "system:serviceaccount:day2ops-system:day2ops-manager"


class TestValidateAccess:
    def test_controller_bypasses_review(self, reviewer, settings):
        validate_access(AdmissionRequest(username=CONTROLLER), "c1", "default", reviewer, settings)
        assert reviewer.reviews == []

    def test_allowed_user(self, reviewer, settings):
        validate_access(
            AdmissionRequest(username="alice", groups=("ops",)), "c1", "default", reviewer, settings
        )

        (review,) = reviewer.reviews
        assert review.user == "alice"
        assert review.groups == ("ops",)
        assert review.verb == "*"
        assert review.group == "cluster.x-k8s.io"
        assert review.resource == "clusters"
        assert (review.namespace, review.name) == ("default", "c1")

    def test_denied_user(self, reviewer, settings):
        with pytest.raises(AuthorizationError) as exc_info:
            validate_access(AdmissionRequest(username="mallory"), "c1", "default", reviewer, settings)

        assert "mallory" in exc_info.value.message
        assert "default/c1" in exc_info.value.message
        assert exc_info.value.retryable is False

    def test_other_service_account_reviewed(self, reviewer, settings):
        with pytest.raises(AuthorizationError):
            validate_access(
                AdmissionRequest(username="system:serviceaccount:other:day2ops-manager"),
                "c1",
                "default",
                reviewer,
                settings,
            )


class TestSnapshotAdmission:
    def test_valid(self, reviewer, settings):
        SnapshotAdmission(reviewer, settings).validate_create(
            AdmissionRequest(username="alice"), make_snapshot()
        )

    def test_empty_cluster_name(self, reviewer, settings):
        with pytest.raises(SpecValidationError, match="clusterName can't be empty"):
            SnapshotAdmission(reviewer, settings).validate_create(
                AdmissionRequest(username="alice"), make_snapshot(cluster="")
            )
        assert reviewer.reviews == []

    def test_empty_machine_name(self, reviewer, settings):
        with pytest.raises(SpecValidationError, match="machineName"):
            SnapshotAdmission(reviewer, settings).validate_create(
                AdmissionRequest(username="alice"), make_snapshot(machine="")
            )

    def test_denied(self, reviewer, settings):
        with pytest.raises(AuthorizationError):
            SnapshotAdmission(reviewer, settings).validate_create(
                AdmissionRequest(username="bob"), make_snapshot()
            )


class TestRestoreAdmission:
    def test_valid(self, reviewer, settings):
        RestoreAdmission(reviewer, settings).validate_create(
            AdmissionRequest(username="alice"), make_restore()
        )

    def test_empty_snapshot_name(self, reviewer, settings):
        with pytest.raises(SpecValidationError, match="etcdMachineSnapshotName"):
            RestoreAdmission(reviewer, settings).validate_create(
                AdmissionRequest(username="alice"), make_restore(snapshot="")
            )

    def test_controller_allowed(self, reviewer, settings):
        RestoreAdmission(reviewer, settings).validate_create(
            AdmissionRequest(username=CONTROLLER), make_restore()
        )
