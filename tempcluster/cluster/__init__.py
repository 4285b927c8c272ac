"""Cluster orchestration: processes, topology bootstrap and lifecycle."""

from tempcluster.cluster.errors import (
    ClusterError,
    ClusterStateError,
    FilesystemError,
    InitiationFailure,
    LaunchFailure,
    ReadinessTimeout,
)
from tempcluster.cluster.filesystem import FilesystemProvisioner
from tempcluster.cluster.manager import ClusterManager
from tempcluster.cluster.models import (
    ClusterEvent,
    ClusterState,
    ExitRecord,
    NodeProcess,
    NodeSpec,
    Phase,
)
from tempcluster.cluster.naming import ClusterNamer
from tempcluster.cluster.output import ConsoleSink, FileSink, OutputSink
from tempcluster.cluster.probe import ReadinessProbe
from tempcluster.cluster.shell import ShellClient
from tempcluster.cluster.status import StatusChecker
from tempcluster.cluster.supervisor import ProcessSupervisor
from tempcluster.cluster.topology import TopologyInitializer

__all__ = [
    # Facade
    "ClusterManager",
    # Components
    "ClusterNamer",
    "FilesystemProvisioner",
    "ProcessSupervisor",
    "ReadinessProbe",
    "TopologyInitializer",
    "StatusChecker",
    "ShellClient",
    # Output
    "OutputSink",
    "FileSink",
    "ConsoleSink",
    # Models
    "ClusterEvent",
    "ClusterState",
    "ExitRecord",
    "NodeProcess",
    "NodeSpec",
    "Phase",
    # Errors
    "ClusterError",
    "ClusterStateError",
    "FilesystemError",
    "InitiationFailure",
    "LaunchFailure",
    "ReadinessTimeout",
]
