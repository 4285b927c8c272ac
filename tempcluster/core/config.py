"""
tempcluster Configuration

Cluster settings with:
- Environment-based defaults (TEMPCLUSTER_ prefix)
- Type-safe, immutable settings with Pydantic
- Caller overrides merged atop defaults (snake_case or camelCase keys)
"""

from __future__ import annotations

from pathlib import Path
from typing import Any, Literal, Mapping, Optional

from pydantic import Field, field_validator, model_validator
from pydantic_settings import BaseSettings


MAX_PORT = 65535

# camelCase option names accepted by ClusterConfig.merged()
_CAMEL_CASE_KEYS = {
    "numInstances": "num_instances",
    "startPort": "start_port",
    "baseFolder": "base_folder",
    "logToConsole": "verbose",
    "useColors": "use_colors",
}


class ClusterConfig(BaseSettings):
    """
    Configuration for one disposable cluster.

    Loads defaults from environment variables prefixed with TEMPCLUSTER_
    (e.g., TEMPCLUSTER_START_PORT=28000). Instances are immutable.
    """

    # Topology
    num_instances: int = 3
    start_port: int = 27117
    base_folder: Optional[Path] = None  # Defaults to <tempdir>/<cluster name>
    bind_host: str = "127.0.0.1"

    # Output
    verbose: bool = False
    use_colors: bool = False

    # External programs
    server_binary: str = "mongod"
    client_binary: str = "mongo"
    oplog_size_mb: int = 128
    storage_flags: list[str] = Field(default_factory=lambda: ["--smallfiles"])

    # Readiness poll
    ready_timeout: float = 30.0
    min_settle: float = 1.5  # Nodes must stay up this long after launch
    probe_initial_delay: float = 0.1
    probe_max_delay: float = 2.0
    probe_connect_timeout: float = 1.0

    # Replica set bootstrap
    bootstrap_mode: Literal["script", "eval"] = "script"
    primary_wait_timeout: float = 30.0
    topology_settle_delay: float = 3.0

    # Shutdown
    kill_timeout: float = 10.0

    model_config = {
        "env_prefix": "TEMPCLUSTER_",
        "case_sensitive": False,
        "frozen": True,
    }

    @field_validator("num_instances")
    @classmethod
    def check_num_instances(cls, v: int) -> int:
        if v < 1:
            raise ValueError("num_instances must be at least 1")
        return v

    @field_validator("base_folder", mode="before")
    @classmethod
    def ensure_path(cls, v: Any) -> Optional[Path]:
        """Ensure value is converted to Path."""
        if isinstance(v, str):
            return Path(v)
        return v

    @field_validator(
        "ready_timeout",
        "min_settle",
        "probe_initial_delay",
        "probe_max_delay",
        "probe_connect_timeout",
        "primary_wait_timeout",
        "topology_settle_delay",
        "kill_timeout",
    )
    @classmethod
    def check_non_negative(cls, v: float) -> float:
        if v < 0:
            raise ValueError("durations must not be negative")
        return v

    @model_validator(mode="after")
    def check_port_range(self) -> "ClusterConfig":
        last_port = self.start_port + self.num_instances - 1
        if self.start_port < 1 or last_port > MAX_PORT:
            raise ValueError(
                f"port range {self.start_port}-{last_port} is outside 1-{MAX_PORT}"
            )
        return self

    @property
    def is_replica_set(self) -> bool:
        return self.num_instances > 1

    @classmethod
    def merged(
        cls,
        overrides: Optional[Mapping[str, Any]] = None,
        **kwargs: Any,
    ) -> "ClusterConfig":
        """
        Build a config from caller overrides layered on the defaults.

        Keys may use either the snake_case field names or the camelCase
        option names (numInstances, startPort, baseFolder, logToConsole,
        useColors). None values are ignored so callers can pass optional
        arguments straight through.
        """
        values: dict[str, Any] = {}
        for source in (overrides or {}, kwargs):
            for key, value in source.items():
                if value is None:
                    continue
                values[_CAMEL_CASE_KEYS.get(key, key)] = value
        return cls(**values)


# Global configuration instance (lazy loaded)
_config: Optional[ClusterConfig] = None


def get_config() -> ClusterConfig:
    """Get the default cluster configuration."""
    global _config
    if _config is None:
        _config = ClusterConfig()
    return _config


def set_config(config: Optional[ClusterConfig]) -> None:
    """Set the default cluster configuration (None resets to the environment defaults)."""
    global _config
    _config = config
