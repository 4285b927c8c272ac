"""
tempcluster - Disposable database clusters for integration tests

Launches N database server processes on one host, optionally wires them
into a replica set, waits until they respond, and removes every process
and byte of data on stop().
"""

__version__ = "1.0.0"
__author__ = "tempcluster contributors"

from tempcluster.cluster import (
    ClusterEvent,
    ClusterManager,
    FilesystemError,
    InitiationFailure,
    LaunchFailure,
    Phase,
    ReadinessTimeout,
)
from tempcluster.core.config import ClusterConfig

__all__ = [
    "ClusterManager",
    "ClusterConfig",
    "ClusterEvent",
    "Phase",
    "LaunchFailure",
    "ReadinessTimeout",
    "InitiationFailure",
    "FilesystemError",
    "__version__",
]
