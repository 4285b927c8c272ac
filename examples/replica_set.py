"""
Start a three-member replica set, print its endpoints, then tear it down.

Requires mongod and mongo on PATH.
"""

import asyncio

from tempcluster import ClusterEvent, ClusterManager
from tempcluster.core.logging import setup_cluster_logging


async def main() -> None:
    setup_cluster_logging(verbose=True, use_colors=True)

    cluster = ClusterManager(numInstances=3, startPort=28000)
    cluster.on(ClusterEvent.INSTANCES_LAUNCHED, lambda c: print("instances launched"))
    cluster.on(ClusterEvent.READY, lambda c: print("ready:", c.connection_string))

    async with cluster:
        for host in cluster.get_hosts():
            print(host)


if __name__ == "__main__":
    asyncio.run(main())
