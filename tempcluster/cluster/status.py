"""One-shot administrative status query."""

from __future__ import annotations

import structlog

from tempcluster.cluster.models import NodeSpec
from tempcluster.cluster.shell import ShellClient

logger = structlog.get_logger(__name__)

STATUS_OUTPUT = "status-output.txt"

REPLICA_SET_STATUS = "JSON.stringify(rs.status());"
HOST_STATUS = "JSON.stringify(db.serverStatus({repl: 0}).ok);"


class StatusChecker:
    """
    Confirms the cluster responds to an administrative query.

    Only the success of the call is treated as readiness; the payload
    is returned raw and never parsed into a health state.
    """

    def __init__(self, client: ShellClient, replica_set: bool = True):
        self.client = client
        self.replica_set = replica_set

    @property
    def expression(self) -> str:
        return REPLICA_SET_STATUS if self.replica_set else HOST_STATUS

    async def check(self, node: NodeSpec) -> str:
        """
        Query the given node (normally node 0).

        Raises:
            InitiationFailure: If the client fails or exits nonzero
        """
        logger.info(
            "Checking replica status" if self.replica_set else "Checking host status",
            host=node.host,
        )
        return await self.client.evaluate(node.port, self.expression, STATUS_OUTPUT)
