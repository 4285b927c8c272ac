"""
Tests for cluster configuration.
"""

from __future__ import annotations

import logging
from pathlib import Path

import pytest
from pydantic import ValidationError

from tempcluster.core.config import ClusterConfig, get_config, set_config
from tempcluster.core.logging import setup_cluster_logging


class TestClusterConfig:
    """Test defaults, overrides and validation."""

    def test_defaults(self):
        config = ClusterConfig()

        assert config.num_instances == 3
        assert config.start_port == 27117
        assert config.base_folder is None
        assert config.verbose is False
        assert config.use_colors is False
        assert config.server_binary == "mongod"
        assert config.client_binary == "mongo"
        assert config.oplog_size_mb == 128
        assert config.bootstrap_mode == "script"
        assert config.is_replica_set

    def test_merged_accepts_camel_case(self):
        config = ClusterConfig.merged({
            "numInstances": 1,
            "startPort": 28000,
            "baseFolder": "/tmp/somewhere",
            "logToConsole": True,
            "useColors": True,
        })

        assert config.num_instances == 1
        assert config.start_port == 28000
        assert config.base_folder == Path("/tmp/somewhere")
        assert config.verbose is True
        assert config.use_colors is True
        assert not config.is_replica_set

    def test_merged_ignores_none(self):
        config = ClusterConfig.merged(num_instances=None, start_port=29000)

        assert config.num_instances == 3
        assert config.start_port == 29000

    def test_kwargs_override_mapping(self):
        config = ClusterConfig.merged({"startPort": 28000}, start_port=28100)
        assert config.start_port == 28100

    def test_rejects_zero_instances(self):
        with pytest.raises(ValidationError):
            ClusterConfig(num_instances=0)

    def test_rejects_port_overflow(self):
        with pytest.raises(ValidationError):
            ClusterConfig(num_instances=3, start_port=65534)

    def test_rejects_negative_timeout(self):
        with pytest.raises(ValidationError):
            ClusterConfig(ready_timeout=-1)

    def test_rejects_unknown_bootstrap_mode(self):
        with pytest.raises(ValidationError):
            ClusterConfig(bootstrap_mode="telepathy")

    def test_immutable(self):
        config = ClusterConfig()
        with pytest.raises(ValidationError):
            config.num_instances = 5

    def test_environment_defaults(self, monkeypatch):
        monkeypatch.setenv("TEMPCLUSTER_START_PORT", "30000")
        monkeypatch.setenv("TEMPCLUSTER_SERVER_BINARY", "/opt/mongo/bin/mongod")

        config = ClusterConfig()

        assert config.start_port == 30000
        assert config.server_binary == "/opt/mongo/bin/mongod"

    def test_global_config(self):
        custom = ClusterConfig(start_port=31000)
        set_config(custom)
        try:
            assert get_config() is custom
        finally:
            set_config(None)

        assert get_config().start_port == 27117


class TestLogging:
    def test_verbose_enables_debug(self):
        setup_cluster_logging(verbose=True, use_colors=False)
        assert logging.getLogger().level == logging.DEBUG

        setup_cluster_logging(verbose=False, use_colors=False, json_output=True)
        assert logging.getLogger().level == logging.WARNING
