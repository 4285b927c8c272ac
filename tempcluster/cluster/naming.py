"""Cluster name generation."""

from __future__ import annotations

import random
import time


class ClusterNamer:
    """
    Generates replica set names unique enough for concurrently running
    clusters on one host: a bounded random integer plus a nanosecond
    timestamp.
    """

    def __init__(self, prefix: str = "rs", max_random: int = 1000):
        self.prefix = prefix
        self.max_random = max_random

    def generate(self) -> str:
        return f"{self.prefix}_{random.randrange(self.max_random)}_{time.time_ns()}"
