"""
Replica set bootstrap.

Runs against the first node only, in a fixed order:
1. rs.initiate() naming the set, with node 0 as the sole member
2. wait for node 0 to become primary
3. rs.add() each remaining node in ascending index order
4. settle delay while the new configuration propagates

Each command is wrapped so a reply without ``ok`` makes the client
exit nonzero.
"""

from __future__ import annotations

import asyncio
import json
from pathlib import Path

import structlog

from tempcluster.cluster.errors import FilesystemError
from tempcluster.cluster.shell import ShellClient
from tempcluster.core.config import ClusterConfig

logger = structlog.get_logger(__name__)

SETUP_SCRIPT = "setup.js"
SETUP_OUTPUT = "setup-output.txt"

_PRELUDE = """\
function assertOk(res, what) {
  printjson(res);
  if (!res || !res.ok) {
    print(what + " failed");
    quit(1);
  }
}
"""


class TopologyInitializer:
    """Builds and executes the replica set bootstrap against node 0."""

    def __init__(self, config: ClusterConfig, client: ShellClient, base_folder: Path):
        self.config = config
        self.client = client
        self.base_folder = Path(base_folder)

    @property
    def seed_host(self) -> str:
        return f"{self.config.bind_host}:{self.config.start_port}"

    def member_hosts(self) -> list[str]:
        """Hosts added after initiate, in ascending index order."""
        return [
            f"{self.config.bind_host}:{self.config.start_port + i}"
            for i in range(1, self.config.num_instances)
        ]

    def initiate_command(self, name: str) -> str:
        rs_config = {"_id": name, "members": [{"_id": 1, "host": self.seed_host}]}
        return f'assertOk(rs.initiate({json.dumps(rs_config)}), "rs.initiate");'

    def wait_for_primary_command(self) -> str:
        timeout_ms = int(self.config.primary_wait_timeout * 1000)
        return (
            f"var deadline = Date.now() + {timeout_ms}; "
            "while (!db.isMaster().ismaster) { "
            'if (Date.now() > deadline) { print("Timed out waiting for primary"); quit(1); } '
            "sleep(100); "
            "}"
        )

    def add_command(self, host: str) -> str:
        return f'assertOk(rs.add({json.dumps(host)}), {json.dumps("rs.add " + host)});'

    def build_commands(self, name: str) -> list[str]:
        """Bootstrap statements in execution order."""
        return [
            self.initiate_command(name),
            self.wait_for_primary_command(),
            *(self.add_command(host) for host in self.member_hosts()),
        ]

    def build_script(self, name: str) -> str:
        return _PRELUDE + "\n".join(self.build_commands(name)) + "\n"

    async def initialize(self, name: str) -> str:
        """
        Bootstrap the replica set.

        Returns:
            Captured client output

        Raises:
            InitiationFailure: If any step fails; nothing is retried
        """
        logger.info(
            "Initialising replica set",
            name=name,
            seed=self.seed_host,
            members=self.member_hosts(),
            mode=self.config.bootstrap_mode,
        )

        if self.config.bootstrap_mode == "eval":
            output = await self._run_eval(name)
        else:
            output = await self._run_script(name)

        if self.config.topology_settle_delay > 0:
            logger.debug("Waiting for topology to settle", delay=self.config.topology_settle_delay)
            await asyncio.sleep(self.config.topology_settle_delay)

        return output

    async def _run_script(self, name: str) -> str:
        script_path = self.base_folder / SETUP_SCRIPT
        logger.debug("Creating shell script", path=str(script_path))
        try:
            script_path.write_text(self.build_script(name), encoding="utf-8")
        except OSError as e:
            raise FilesystemError(f"Cannot write {script_path}: {e}", script_path, cause=e)

        return await self.client.run_script(self.config.start_port, script_path, SETUP_OUTPUT)

    async def _run_eval(self, name: str) -> str:
        # One client call per statement; each waits for the previous one
        outputs = []
        for statement in self.build_commands(name):
            outputs.append(
                await self.client.evaluate(
                    self.config.start_port,
                    _PRELUDE + statement,
                    SETUP_OUTPUT,
                )
            )
        return "".join(outputs)
