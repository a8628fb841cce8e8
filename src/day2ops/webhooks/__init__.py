"""Admission checks for task creation."""

from day2ops.webhooks.admission import (
    AdmissionRequest,
    RestoreAdmission,
    SnapshotAdmission,
    validate_access,
)

__all__ = ["AdmissionRequest", "RestoreAdmission", "SnapshotAdmission", "validate_access"]
