"""
tempcluster Cluster Manager

Facade composing naming, provisioning, process supervision, replica set
bootstrap and the status check into start() / stop(), with lifecycle
notifications for callers.
"""

from __future__ import annotations

import asyncio
import tempfile
from collections import defaultdict
from pathlib import Path
from typing import Any, Callable, Mapping, Optional, Union

import structlog

from tempcluster.cluster.errors import ClusterError, ClusterStateError, FilesystemError
from tempcluster.cluster.filesystem import FilesystemProvisioner
from tempcluster.cluster.models import (
    ClusterEvent,
    ClusterState,
    NodeProcess,
    NodeSpec,
    Phase,
)
from tempcluster.cluster.naming import ClusterNamer
from tempcluster.cluster.output import ConsoleSink, FileSink, OutputSink
from tempcluster.cluster.shell import ShellClient
from tempcluster.cluster.status import StatusChecker
from tempcluster.cluster.supervisor import ProcessSupervisor
from tempcluster.cluster.topology import TopologyInitializer
from tempcluster.core.config import ClusterConfig, get_config

logger = structlog.get_logger(__name__)


class ClusterManager:
    """
    A disposable cluster of database server processes.

    With one instance it is a plain host; with more it is a replica set
    whose first node is initiated and the rest added to it.

    Usage:
        async with ClusterManager(num_instances=3, start_port=28000) as cluster:
            hosts = cluster.get_hosts()

    start() and stop() must not run concurrently on one instance.
    """

    def __init__(
        self,
        config: Optional[Union[ClusterConfig, Mapping[str, Any]]] = None,
        namer: Optional[ClusterNamer] = None,
        filesystem: Optional[FilesystemProvisioner] = None,
        supervisor: Optional[ProcessSupervisor] = None,
        sink: Optional[OutputSink] = None,
        **overrides: Any,
    ):
        # Caller settings layer on the given config or the module default
        if isinstance(config, ClusterConfig):
            base, settings = config, None
        else:
            base, settings = get_config(), config
        if settings or overrides:
            config = ClusterConfig.merged({**base.model_dump(), **(settings or {})}, **overrides)
        else:
            config = base
        self.config = config

        self.namer = namer or ClusterNamer()
        self._state = ClusterState(name=self.namer.generate())
        self.base_folder = Path(
            config.base_folder or Path(tempfile.gettempdir()) / self._state.name
        )

        self.filesystem = filesystem or FilesystemProvisioner()
        self.supervisor = supervisor or ProcessSupervisor(config, filesystem=self.filesystem)

        self.sink = sink or (ConsoleSink() if config.verbose else FileSink(self.base_folder))
        self.client = ShellClient(config.client_binary, self.sink, host=config.bind_host)
        self.topology = TopologyInitializer(config, self.client, self.base_folder)
        self.status_checker = StatusChecker(self.client, replica_set=config.is_replica_set)

        self._listeners: dict[ClusterEvent, list[Callable]] = defaultdict(list)
        self._status_output: Optional[str] = None

    # === Properties ===

    @property
    def name(self) -> str:
        return self._state.name

    @property
    def phase(self) -> Phase:
        return self._state.phase

    @property
    def nodes(self) -> list[NodeProcess]:
        return list(self._state.nodes)

    @property
    def status_output(self) -> Optional[str]:
        """Raw payload of the last status check."""
        return self._status_output

    @property
    def connection_string(self) -> str:
        uri = "mongodb://" + ",".join(self._state.hosts)
        if self.config.is_replica_set:
            uri += f"/?replicaSet={self.name}"
        return uri

    def get_hosts(self) -> list[str]:
        """Node endpoints as "ip:port", in launch order."""
        return list(self._state.hosts)

    # === Notifications ===

    def on(self, event: Union[ClusterEvent, str], callback: Callable) -> None:
        """Register a callback (sync or async) for a lifecycle event."""
        self._listeners[ClusterEvent(event)].append(callback)

    def off(self, event: Union[ClusterEvent, str], callback: Callable) -> None:
        """Remove a previously registered callback."""
        listeners = self._listeners[ClusterEvent(event)]
        if callback in listeners:
            listeners.remove(callback)

    async def _emit(self, event: ClusterEvent) -> None:
        for callback in list(self._listeners[event]):
            try:
                result = callback(self)
                if asyncio.iscoroutine(result):
                    await result
            except Exception as e:
                logger.warning("Listener failed", cluster_event=event.value, error=str(e))

    # === Lifecycle ===

    async def start(self) -> None:
        """
        Launch all nodes, bootstrap the replica set and confirm status.

        Raises:
            LaunchFailure: A node exited or never became reachable
            InitiationFailure: A bootstrap or status command failed
            FilesystemError: The data directories could not be created
            ClusterStateError: The cluster was already started

        On any failure, cancellation included, every launched node is
        killed before the error propagates and the phase is FAILED.
        """
        if self._state.phase != Phase.CREATED:
            raise ClusterStateError(f"Cannot start cluster in phase {self._state.phase.value}")

        multi = self.config.is_replica_set
        self._set_phase(Phase.LAUNCHING)
        logger.info(
            "Initialise replica set" if multi else "Initialise single host",
            name=self.name,
            instances=self.config.num_instances,
            base_folder=str(self.base_folder),
        )

        try:
            await self._launch_instances()
            await self._emit(ClusterEvent.INSTANCES_LAUNCHED)

            if multi:
                self._set_phase(Phase.INITIALIZING)
                await self.topology.initialize(self.name)

            self._status_output = await self.status_checker.check(self._state.nodes[0].spec)

        except BaseException as e:
            # Includes cancellation: no node may outlive a failed start
            await self._fail(e)
            raise

        self._set_phase(Phase.READY)
        logger.info(
            "Replica set ready" if multi else "Host ready",
            name=self.name,
            hosts=self._state.hosts,
        )
        await self._emit(ClusterEvent.READY)

    async def stop(self) -> None:
        """
        Kill every node, wait for each to exit, then delete all data.

        Safe from any phase and safe to call twice; never raises.
        """
        if self._state.phase in (Phase.STOPPING, Phase.STOPPED):
            return

        self._set_phase(Phase.STOPPING)
        logger.info(
            "Stopping replica set" if self.config.is_replica_set else "Stopping host",
            name=self.name,
        )

        await self.supervisor.kill_all(self._state.nodes)

        try:
            self.filesystem.purge(self.base_folder)
        except FilesystemError as e:
            logger.error("Failed to remove base folder", path=str(e.path), error=str(e))

        self._set_phase(Phase.STOPPED)
        await self._emit(ClusterEvent.STOPPED)

    async def _launch_instances(self) -> None:
        self.filesystem.ensure_dir(self.base_folder)
        cluster_name = self.name if self.config.is_replica_set else None

        for index in range(self.config.num_instances):
            spec = NodeSpec.for_index(
                index,
                self.config.start_port,
                self.base_folder,
                bind_host=self.config.bind_host,
            )
            node = await self.supervisor.launch(spec, cluster_name, hosts=self._state.hosts)
            self._state.nodes.append(node)

        await self.supervisor.await_settled(self._state.nodes, self.config.ready_timeout)

    async def _fail(self, error: BaseException) -> None:
        """Mark the cluster failed and kill any sibling that did start."""
        if isinstance(error, ClusterError) and error.phase is None:
            error.phase = self._state.phase

        self._set_phase(Phase.FAILED)
        logger.error(
            "Cluster failed to start",
            name=self.name,
            error=str(error) or type(error).__name__,
        )

        # Data stays on disk for diagnostics until stop()
        await self.supervisor.kill_all(self._state.nodes)

    def _set_phase(self, target: Phase) -> None:
        current = self._state.phase
        if not current.can_transition_to(target):
            raise ClusterStateError(
                f"Invalid phase transition: {current.value} -> {target.value}"
            )
        self._state.phase = target
        logger.debug("Cluster phase changed", name=self.name, phase=target.value)

    # === Context Manager ===

    async def __aenter__(self) -> "ClusterManager":
        try:
            await self.start()
        except BaseException:
            await self.stop()
            raise
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        await self.stop()
