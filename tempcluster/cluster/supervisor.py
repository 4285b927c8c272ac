"""
tempcluster Process Supervisor

Lifecycle management for database server processes:
- Spawn one server per node with port, data directory and replica flags
- Observe every process exit and record pid, exit code and signal
- Poll freshly launched nodes until they accept connections
- Terminate nodes and wait for genuine process exit
"""

from __future__ import annotations

import asyncio
from typing import Optional, Sequence

import structlog

from tempcluster.cluster.errors import LaunchFailure, ReadinessTimeout
from tempcluster.cluster.filesystem import FilesystemProvisioner
from tempcluster.cluster.models import ExitRecord, NodeProcess, NodeSpec
from tempcluster.cluster.probe import ReadinessProbe
from tempcluster.core.config import ClusterConfig

logger = structlog.get_logger(__name__)


class ProcessSupervisor:
    """
    Spawns and kills node processes.

    Each launched node gets a watcher task that records its ExitRecord
    whenever the process terminates, immediately (bad arguments, port in
    use) or much later.
    """

    def __init__(
        self,
        config: ClusterConfig,
        filesystem: Optional[FilesystemProvisioner] = None,
        probe: Optional[ReadinessProbe] = None,
    ):
        self.config = config
        self.filesystem = filesystem or FilesystemProvisioner()
        self.probe = probe or ReadinessProbe(
            connect_timeout=config.probe_connect_timeout,
            initial_delay=config.probe_initial_delay,
            max_delay=config.probe_max_delay,
        )

        # Watcher and output forwarding tasks
        self._tasks: set[asyncio.Task] = set()

    def build_command(self, spec: NodeSpec, cluster_name: Optional[str] = None) -> list[str]:
        """Server command line for one node."""
        command = [
            self.config.server_binary,
            "--port",
            str(spec.port),
            "--dbpath",
            str(spec.data_dir),
            *self.config.storage_flags,
            "--oplogSize",
            str(self.config.oplog_size_mb),
        ]
        if cluster_name:
            command += ["--replSet", cluster_name]
        return command

    async def launch(
        self,
        spec: NodeSpec,
        cluster_name: Optional[str] = None,
        hosts: Optional[list[str]] = None,
    ) -> NodeProcess:
        """
        Start one server process.

        Args:
            spec: Node port and data directory
            cluster_name: Replica set name; omitted for a single host
            hosts: Endpoint list the new node's "ip:port" is appended to

        Returns:
            The running NodeProcess

        Raises:
            FilesystemError: If the data directory cannot be created
            LaunchFailure: If the server binary cannot be executed
        """
        self.filesystem.ensure_dir(spec.data_dir)

        command = self.build_command(spec, cluster_name)
        logger.info("Launching instance", index=spec.index, command=" ".join(command))

        output = asyncio.subprocess.PIPE if self.config.verbose else asyncio.subprocess.DEVNULL
        try:
            process = await asyncio.create_subprocess_exec(
                *command,
                stdin=asyncio.subprocess.DEVNULL,
                stdout=output,
                stderr=asyncio.subprocess.STDOUT if self.config.verbose else output,
            )
        except OSError as e:
            raise LaunchFailure(
                f"Cannot execute {self.config.server_binary}: {e}",
                cause=e,
            )

        node = NodeProcess(spec=spec, process=process)
        self._track(self._watch_exit(node))
        if self.config.verbose:
            self._track(self._forward_output(node))

        if hosts is not None:
            hosts.append(spec.host)

        logger.info(
            "Launched instance",
            pid=process.pid,
            port=spec.port,
            folder=str(spec.data_dir),
        )
        return node

    async def await_settled(
        self,
        nodes: Sequence[NodeProcess],
        timeout: Optional[float] = None,
    ) -> None:
        """
        Wait until every node accepts connections and has stayed up for
        at least ``min_settle`` seconds.

        A reachable port alone does not prove the node is ours: another
        process may already hold it while our node exits with "address
        in use". The settle window gives such a node time to die.

        Raises:
            LaunchFailure: As soon as any node has exited, with one
                ExitRecord per exited node
            ReadinessTimeout: If some nodes are still unreachable after
                ``timeout`` seconds
        """
        timeout = self.config.ready_timeout if timeout is None else timeout
        loop = asyncio.get_running_loop()
        started = loop.time()
        deadline = started + timeout
        pending = list(nodes)
        delays = self.probe.delays()

        while True:
            self._raise_if_exited(nodes)

            alive = await asyncio.gather(*(self.probe.is_alive(node) for node in pending))
            pending = [node for node, ok in zip(pending, alive) if not ok]

            if not pending:
                settle = started + self.config.min_settle - loop.time()
                if settle > 0:
                    logger.debug("Waiting for instances to settle", delay=round(settle, 3))
                    await asyncio.sleep(settle)

                self._raise_if_exited(nodes)
                logger.info("All instances reachable", count=len(nodes))
                return

            remaining = deadline - loop.time()
            if remaining <= 0:
                self._raise_if_exited(nodes)
                raise ReadinessTimeout([node.host for node in pending], timeout)

            await asyncio.sleep(min(next(delays), remaining))

    async def kill_all(self, nodes: Sequence[NodeProcess]) -> None:
        """
        Terminate every node and wait for each to actually exit.

        Nodes that already exited resolve immediately, so calling this
        again on a stopped set is a no-op.
        """
        await asyncio.gather(*(self._kill(node) for node in nodes))

    async def _kill(self, node: NodeProcess) -> None:
        if node.exit is not None:
            return

        logger.debug("Stopping instance", pid=node.pid, host=node.host)
        try:
            node.process.terminate()
        except ProcessLookupError:
            pass  # Exited between the check and the signal

        try:
            await asyncio.wait_for(node.exited.wait(), timeout=self.config.kill_timeout)
        except asyncio.TimeoutError:
            logger.warning(
                "Instance did not terminate gracefully, killing",
                pid=node.pid,
                timeout=self.config.kill_timeout,
            )
            try:
                node.process.kill()
            except ProcessLookupError:
                pass
            await node.exited.wait()

    def _raise_if_exited(self, nodes: Sequence[NodeProcess]) -> None:
        exits: list[ExitRecord] = [node.exit for node in nodes if node.exit is not None]
        if exits:
            for record in exits:
                logger.error(
                    "Instance exited during launch",
                    pid=record.pid,
                    exit_code=record.exit_code,
                    signal=record.signal,
                )
            raise LaunchFailure("Some instances failed to launch", exits)

    async def _watch_exit(self, node: NodeProcess) -> None:
        returncode = await node.process.wait()
        record = node.record_exit(returncode)
        logger.debug(
            "Instance exited",
            pid=record.pid,
            exit_code=record.exit_code,
            signal=record.signal,
        )

    async def _forward_output(self, node: NodeProcess) -> None:
        stream = node.process.stdout
        if stream is None:
            return

        while True:
            line = await stream.readline()
            if not line:
                break
            text = line.decode("utf-8", errors="replace").rstrip()
            if text:
                logger.debug("Instance output", port=node.spec.port, output=text)

    def _track(self, coro) -> asyncio.Task:
        task = asyncio.create_task(coro)
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)
        return task
