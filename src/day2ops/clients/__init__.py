"""Management-plane, target-cluster and authorization clients."""

from day2ops.clients.memory import (
    InMemoryClusterTracker,
    InMemoryManagementClient,
    InMemoryRemoteCluster,
    StaticAccessReviewer,
)
from day2ops.clients.protocols import (
    AccessReviewer,
    ClusterTracker,
    ManagementClient,
    RemoteClusterClient,
    SubjectAccessReview,
)

__all__ = [
    "InMemoryClusterTracker",
    "InMemoryManagementClient",
    "InMemoryRemoteCluster",
    "StaticAccessReviewer",
    "AccessReviewer",
    "ClusterTracker",
    "ManagementClient",
    "RemoteClusterClient",
    "SubjectAccessReview",
]
