"""
tempcluster - Core Data Models

Cluster lifecycle state machine, node descriptions and process exit records.
"""

from __future__ import annotations

import asyncio
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Any, Optional


class Phase(Enum):
    """
    Cluster lifecycle phases.

    State transitions:
    CREATED -> LAUNCHING -> INITIALIZING -> READY
                   |             |           |
                   v             v           |
                 FAILED <--------+           |
                   |                         |
                   v                         v
               STOPPING <----------------- (any non-terminal)
                   |
                   v
                STOPPED

    INITIALIZING is only entered by multi-node clusters.
    """
    CREATED = "created"
    LAUNCHING = "launching"
    INITIALIZING = "initializing"
    READY = "ready"
    FAILED = "failed"
    STOPPING = "stopping"
    STOPPED = "stopped"

    def can_transition_to(self, target: "Phase") -> bool:
        """Validate phase transition."""
        valid_transitions = {
            Phase.CREATED: {Phase.LAUNCHING, Phase.STOPPING},
            Phase.LAUNCHING: {Phase.INITIALIZING, Phase.READY, Phase.FAILED, Phase.STOPPING},
            Phase.INITIALIZING: {Phase.READY, Phase.FAILED, Phase.STOPPING},
            Phase.READY: {Phase.STOPPING},
            Phase.FAILED: {Phase.STOPPING},  # Cleanup only
            Phase.STOPPING: {Phase.STOPPED},
            Phase.STOPPED: set(),
        }
        return target in valid_transitions.get(self, set())


class ClusterEvent(str, Enum):
    """Lifecycle notifications a ClusterManager emits."""
    INSTANCES_LAUNCHED = "instances_launched"
    READY = "ready"
    STOPPED = "stopped"


@dataclass(frozen=True)
class NodeSpec:
    """Where and how a single node listens."""
    index: int
    port: int
    data_dir: Path
    bind_host: str = "127.0.0.1"

    @property
    def host(self) -> str:
        return f"{self.bind_host}:{self.port}"

    @classmethod
    def for_index(
        cls,
        index: int,
        start_port: int,
        base_folder: Path,
        bind_host: str = "127.0.0.1",
    ) -> "NodeSpec":
        return cls(
            index=index,
            port=start_port + index,
            data_dir=Path(base_folder) / f"data{index}",
            bind_host=bind_host,
        )


@dataclass(frozen=True)
class ExitRecord:
    """How a node process terminated."""
    pid: int
    exit_code: Optional[int]
    signal: Optional[int]

    @classmethod
    def from_returncode(cls, pid: int, returncode: int) -> "ExitRecord":
        """asyncio reports death-by-signal as a negative return code."""
        if returncode < 0:
            return cls(pid=pid, exit_code=None, signal=-returncode)
        return cls(pid=pid, exit_code=returncode, signal=None)

    def describe(self) -> str:
        return f"{self.pid} exited with code {self.exit_code}, signal: {self.signal}"

    def to_dict(self) -> dict[str, Any]:
        return {
            "pid": self.pid,
            "exit_code": self.exit_code,
            "signal": self.signal,
        }


@dataclass
class NodeProcess:
    """A spawned node and, once it has terminated, its exit record."""
    spec: NodeSpec
    process: asyncio.subprocess.Process
    exit: Optional[ExitRecord] = None
    exited: asyncio.Event = field(default_factory=asyncio.Event)

    @property
    def pid(self) -> int:
        return self.process.pid

    @property
    def host(self) -> str:
        return self.spec.host

    @property
    def running(self) -> bool:
        return self.exit is None

    def record_exit(self, returncode: int) -> ExitRecord:
        """Record termination; later calls keep the first record."""
        if self.exit is None:
            self.exit = ExitRecord.from_returncode(self.pid, returncode)
        self.exited.set()
        return self.exit


@dataclass
class ClusterState:
    """Mutable state owned by a single ClusterManager."""
    name: str
    phase: Phase = Phase.CREATED
    hosts: list[str] = field(default_factory=list)
    nodes: list[NodeProcess] = field(default_factory=list)
