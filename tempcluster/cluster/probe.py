"""
Liveness probing for freshly launched nodes.

A node counts as alive once its port accepts TCP connections. Polling
backs off exponentially between attempts, bounded by a maximum delay.
"""

from __future__ import annotations

import asyncio
from typing import Iterator

import structlog

from tempcluster.cluster.models import NodeProcess

logger = structlog.get_logger(__name__)


class ReadinessProbe:
    """TCP connect probe with exponential backoff between polls."""

    def __init__(
        self,
        connect_timeout: float = 1.0,
        initial_delay: float = 0.1,
        max_delay: float = 2.0,
        multiplier: float = 2.0,
    ):
        self.connect_timeout = connect_timeout
        self.initial_delay = initial_delay
        self.max_delay = max_delay
        self.multiplier = multiplier

    def delays(self) -> Iterator[float]:
        """Yield successive poll delays: initial, initial*m, ... capped at max."""
        delay = self.initial_delay
        while True:
            yield min(delay, self.max_delay)
            # Once capped the delay stays put
            if delay < self.max_delay:
                delay *= self.multiplier

    async def is_alive(self, node: NodeProcess) -> bool:
        """Check whether the node's port accepts connections."""
        if not node.running:
            return False

        try:
            _, writer = await asyncio.wait_for(
                asyncio.open_connection(node.spec.bind_host, node.spec.port),
                timeout=self.connect_timeout,
            )
        except (OSError, asyncio.TimeoutError):
            return False

        writer.close()
        try:
            await writer.wait_closed()
        except OSError:
            pass

        logger.debug("Instance reachable", host=node.host, pid=node.pid)
        return True
