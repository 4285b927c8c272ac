"""
Shared fixtures: fake server and client executables plus free ports.

The fake ``mongod`` listens on --port until SIGTERM. Environment
variables steer it:
- FAKE_MONGOD_CRASH_PORTS: comma-separated ports that exit(3) at once
- FAKE_MONGOD_NO_LISTEN: never open the port
- FAKE_MONGOD_IGNORE_TERM: ignore SIGTERM (needs SIGKILL)

The fake ``mongo`` appends one JSON line per invocation to
FAKE_MONGO_LOG and exits 1 when FAKE_MONGO_FAIL_MATCH occurs in its
arguments or script.
"""

from __future__ import annotations

import json
import os
import random
import socket
import stat
import sys
from pathlib import Path

import pytest

# Add project root to path
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from tempcluster.core.config import ClusterConfig


FAKE_SERVER = '''\
import json
import os
import signal
import socket
import sys
import time

args = sys.argv[1:]
port = int(args[args.index("--port") + 1])
dbpath = args[args.index("--dbpath") + 1]

with open(os.path.join(dbpath, "cmdline.json"), "w") as f:
    json.dump(args, f)

crash_ports = [p for p in os.environ.get("FAKE_MONGOD_CRASH_PORTS", "").split(",") if p]
if str(port) in crash_ports:
    sys.stderr.write("address already in use\\n")
    sys.exit(3)

if os.environ.get("FAKE_MONGOD_IGNORE_TERM"):
    signal.signal(signal.SIGTERM, signal.SIG_IGN)
else:
    signal.signal(signal.SIGTERM, lambda *_: sys.exit(0))

print("waiting for connections on port %d" % port, flush=True)

if os.environ.get("FAKE_MONGOD_NO_LISTEN"):
    while True:
        time.sleep(0.1)

server = socket.socket(socket.AF_INET, socket.SOCK_STREAM)
server.setsockopt(socket.SOL_SOCKET, socket.SO_REUSEADDR, 1)
server.bind(("127.0.0.1", port))
server.listen(16)
while True:
    conn, _ = server.accept()
    conn.close()
'''

FAKE_CLIENT = '''\
import json
import os
import sys

args = sys.argv[1:]
script = None
for arg in args:
    if arg.endswith(".js") and os.path.exists(arg):
        with open(arg) as f:
            script = f.read()

log_path = os.environ.get("FAKE_MONGO_LOG")
if log_path:
    with open(log_path, "a") as f:
        f.write(json.dumps({"argv": args, "script": script}) + "\\n")

match = os.environ.get("FAKE_MONGO_FAIL_MATCH")
if match and (match in " ".join(args) or (script and match in script)):
    print("{ \\"ok\\" : 0, \\"errmsg\\" : \\"fake failure\\" }")
    sys.exit(1)

print("{ \\"ok\\" : 1 }")
'''


def _write_executable(path: Path, body: str) -> Path:
    path.write_text(f"#!{sys.executable}\n{body}")
    path.chmod(path.stat().st_mode | stat.S_IXUSR | stat.S_IXGRP | stat.S_IXOTH)
    return path


def _port_free(port: int) -> bool:
    with socket.socket(socket.AF_INET, socket.SOCK_STREAM) as s:
        try:
            s.bind(("127.0.0.1", port))
        except OSError:
            return False
    return True


def find_free_ports(count: int) -> int:
    """Return the first port of ``count`` consecutive free ports."""
    for _ in range(200):
        start = random.randint(20000, 60000)
        if all(_port_free(start + i) for i in range(count)):
            return start
    raise RuntimeError("No free port range found")


@pytest.fixture
def fake_bin(tmp_path) -> Path:
    bin_dir = tmp_path / "bin"
    bin_dir.mkdir()
    _write_executable(bin_dir / "mongod", FAKE_SERVER)
    _write_executable(bin_dir / "mongo", FAKE_CLIENT)
    return bin_dir


@pytest.fixture
def client_log(tmp_path, monkeypatch) -> Path:
    log_path = tmp_path / "mongo-calls.jsonl"
    monkeypatch.setenv("FAKE_MONGO_LOG", str(log_path))
    return log_path


@pytest.fixture
def read_client_calls(client_log):
    def read() -> list[dict]:
        if not client_log.exists():
            return []
        return [json.loads(line) for line in client_log.read_text().splitlines() if line]
    return read


@pytest.fixture
def make_config(tmp_path, fake_bin):
    """Build a fast ClusterConfig that runs the fake binaries."""

    def make(num_instances: int = 3, **overrides) -> ClusterConfig:
        values = {
            "num_instances": num_instances,
            "start_port": find_free_ports(num_instances),
            "base_folder": tmp_path / "cluster",
            "server_binary": str(fake_bin / "mongod"),
            "client_binary": str(fake_bin / "mongo"),
            "ready_timeout": 10.0,
            "min_settle": 0.2,
            "probe_initial_delay": 0.05,
            "probe_max_delay": 0.2,
            "topology_settle_delay": 0.0,
            "kill_timeout": 5.0,
        }
        values.update(overrides)
        return ClusterConfig(**values)

    return make
