"""Core configuration and logging for tempcluster."""

from tempcluster.core.config import ClusterConfig, get_config, set_config
from tempcluster.core.logging import setup_cluster_logging, setup_logging

__all__ = [
    "ClusterConfig",
    "get_config",
    "set_config",
    "setup_logging",
    "setup_cluster_logging",
]
