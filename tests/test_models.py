"""
Tests for the cluster data models.
"""

from __future__ import annotations

import signal
from pathlib import Path

from tempcluster.cluster.errors import LaunchFailure, ReadinessTimeout
from tempcluster.cluster.models import ClusterEvent, ExitRecord, NodeSpec, Phase


class TestPhase:
    """Test lifecycle state machine."""

    def test_forward_transitions(self):
        assert Phase.CREATED.can_transition_to(Phase.LAUNCHING)
        assert Phase.LAUNCHING.can_transition_to(Phase.INITIALIZING)
        assert Phase.LAUNCHING.can_transition_to(Phase.READY)
        assert Phase.INITIALIZING.can_transition_to(Phase.READY)
        assert Phase.INITIALIZING.can_transition_to(Phase.FAILED)
        assert Phase.STOPPING.can_transition_to(Phase.STOPPED)

    def test_stop_from_any_live_phase(self):
        for phase in (Phase.CREATED, Phase.LAUNCHING, Phase.INITIALIZING, Phase.READY, Phase.FAILED):
            assert phase.can_transition_to(Phase.STOPPING)

    def test_no_backward_transitions(self):
        assert not Phase.READY.can_transition_to(Phase.LAUNCHING)
        assert not Phase.INITIALIZING.can_transition_to(Phase.LAUNCHING)
        assert not Phase.FAILED.can_transition_to(Phase.READY)
        assert not Phase.STOPPED.can_transition_to(Phase.STOPPING)
        assert not Phase.CREATED.can_transition_to(Phase.READY)

    def test_failed_only_moves_to_cleanup(self):
        assert [p for p in Phase if Phase.FAILED.can_transition_to(p)] == [Phase.STOPPING]
        assert [p for p in Phase if Phase.STOPPED.can_transition_to(p)] == []

    def test_event_values(self):
        assert ClusterEvent("instances_launched") is ClusterEvent.INSTANCES_LAUNCHED
        assert ClusterEvent.READY.value == "ready"
        assert ClusterEvent.STOPPED.value == "stopped"


class TestNodeSpec:
    def test_for_index(self):
        spec = NodeSpec.for_index(2, 28000, Path("/tmp/rs_1"))

        assert spec.port == 28002
        assert spec.data_dir == Path("/tmp/rs_1/data2")
        assert spec.host == "127.0.0.1:28002"


class TestExitRecord:
    def test_normal_exit(self):
        record = ExitRecord.from_returncode(1234, 3)

        assert record.exit_code == 3
        assert record.signal is None
        assert record.describe() == "1234 exited with code 3, signal: None"

    def test_killed_by_signal(self):
        record = ExitRecord.from_returncode(1234, -signal.SIGKILL)

        assert record.exit_code is None
        assert record.signal == signal.SIGKILL
        assert record.to_dict() == {"pid": 1234, "exit_code": None, "signal": signal.SIGKILL}

    def test_launch_failure_message_lists_exits(self):
        error = LaunchFailure("Some instances failed to launch", [ExitRecord(10, 1, None)])

        assert error.exits[0].pid == 10
        assert "10 exited with code 1" in str(error)

    def test_readiness_timeout_is_launch_failure(self):
        error = ReadinessTimeout(["127.0.0.1:28000"], 5.0)

        assert isinstance(error, LaunchFailure)
        assert error.pending == ["127.0.0.1:28000"]
        assert error.exits == []
