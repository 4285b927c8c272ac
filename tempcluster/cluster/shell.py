"""
Runs the database administrative client as a one-shot subprocess.
"""

from __future__ import annotations

import asyncio
from pathlib import Path
from typing import Sequence

import structlog

from tempcluster.cluster.errors import InitiationFailure
from tempcluster.cluster.output import OutputSink

logger = structlog.get_logger(__name__)


class ShellClient:
    """
    Thin wrapper around the client binary (``mongo`` by default).

    Every invocation captures combined stdout/stderr, hands it to the
    output sink and raises InitiationFailure on a nonzero exit.
    """

    def __init__(
        self,
        binary: str,
        sink: OutputSink,
        host: str = "127.0.0.1",
    ):
        self.binary = binary
        self.sink = sink
        self.host = host

    def command(self, port: int, *args: str) -> list[str]:
        return [self.binary, "--host", self.host, "--port", str(port), *args]

    async def run_script(self, port: int, script_path: Path, output_name: str) -> str:
        """Execute a script file against the node listening on ``port``."""
        return await self._run(self.command(port, str(script_path)), output_name)

    async def evaluate(self, port: int, expression: str, output_name: str) -> str:
        """Evaluate a single expression against the node listening on ``port``."""
        return await self._run(self.command(port, "--eval", expression), output_name)

    async def _run(self, command: Sequence[str], output_name: str) -> str:
        logger.debug("Executing client command", command=" ".join(command))

        try:
            process = await asyncio.create_subprocess_exec(
                *command,
                stdin=asyncio.subprocess.DEVNULL,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.STDOUT,
            )
        except OSError as e:
            raise InitiationFailure(
                f"Cannot run {self.binary}: {e}",
                command=command,
                cause=e,
            )

        stdout, _ = await process.communicate()
        output = stdout.decode("utf-8", errors="replace") if stdout else ""
        self.sink.write(output_name, output)

        if process.returncode != 0:
            logger.error(
                "Client command failed",
                command=" ".join(command),
                returncode=process.returncode,
            )
            raise InitiationFailure(
                f"{self.binary} exited with code {process.returncode}",
                output=output,
                command=command,
                returncode=process.returncode,
            )

        return output
