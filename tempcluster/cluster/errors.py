"""
Cluster error taxonomy.

All failures surface to the start()/stop() caller unmodified.
"""

from __future__ import annotations

from pathlib import Path
from typing import Optional, Sequence, Union

from tempcluster.cluster.models import ExitRecord, Phase


class ClusterError(Exception):
    """
    Base exception for cluster lifecycle errors.

    ``phase`` is the lifecycle phase the cluster was in when the error
    surfaced; ClusterManager fills it in if the raiser did not.
    """

    def __init__(
        self,
        message: str,
        cause: Optional[BaseException] = None,
        phase: Optional[Phase] = None,
    ):
        self.message = message
        self.cause = cause
        self.phase = phase
        super().__init__(message)


class LaunchFailure(ClusterError):
    """One or more nodes exited before the cluster settled."""

    def __init__(
        self,
        message: str,
        exits: Sequence[ExitRecord] = (),
        cause: Optional[Exception] = None,
    ):
        self.exits = list(exits)
        if self.exits:
            message = message + ": " + "; ".join(e.describe() for e in self.exits)
        super().__init__(message, cause=cause)


class ReadinessTimeout(LaunchFailure):
    """Nodes were still not accepting connections when the timeout elapsed."""

    def __init__(self, pending: Sequence[str], timeout: float):
        self.pending = list(pending)
        self.timeout = timeout
        super().__init__(
            f"Instances not reachable after {timeout}s: {', '.join(self.pending)}"
        )


class InitiationFailure(ClusterError):
    """A bootstrap or status command failed."""

    def __init__(
        self,
        message: str,
        output: str = "",
        command: Optional[Sequence[str]] = None,
        returncode: Optional[int] = None,
        cause: Optional[Exception] = None,
    ):
        self.output = output
        self.command = list(command) if command else []
        self.returncode = returncode
        super().__init__(message, cause=cause)


class FilesystemError(ClusterError):
    """Directory creation or removal failed."""

    def __init__(
        self,
        message: str,
        path: Union[str, Path],
        cause: Optional[Exception] = None,
    ):
        self.path = Path(path)
        super().__init__(message, cause=cause)


class ClusterStateError(ClusterError):
    """Lifecycle operation requested in a phase that does not allow it."""
    pass
