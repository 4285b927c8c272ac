"""
tempcluster Command Line Interface

Starts a disposable cluster in the foreground and removes it on exit.
"""

from __future__ import annotations

import argparse
import asyncio
import signal
import sys
from typing import Optional, Sequence

from tempcluster.cluster import ClusterError, ClusterManager
from tempcluster.core.config import ClusterConfig
from tempcluster.core.logging import setup_cluster_logging


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="tempcluster",
        description="Disposable database clusters for integration testing",
    )

    subparsers = parser.add_subparsers(dest="command", help="Available commands")

    up_parser = subparsers.add_parser("up", help="Start a cluster and keep it running until interrupted")
    up_parser.add_argument("--instances", type=int, help="Number of instances (default 3)")
    up_parser.add_argument("--port", type=int, help="First port to allocate (default 27117)")
    up_parser.add_argument("--base-folder", help="Folder for instance data (default: temp dir)")
    up_parser.add_argument("--server", help="Server binary (default mongod)")
    up_parser.add_argument("--client", help="Client binary (default mongo)")
    up_parser.add_argument("--mode", choices=["script", "eval"], help="Bootstrap delivery")
    up_parser.add_argument("--timeout", type=float, help="Seconds to wait for instances to accept connections")
    up_parser.add_argument("--verbose", action="store_true", default=None, help="Log progress")
    up_parser.add_argument("--colors", action="store_true", default=None, help="Colourise console output")
    up_parser.add_argument("--json-logs", action="store_true", help="Render logs as JSON")

    return parser


def config_from_args(args: argparse.Namespace) -> ClusterConfig:
    """Map parsed `up` arguments onto a ClusterConfig; unset options keep defaults."""
    return ClusterConfig.merged(
        num_instances=args.instances,
        start_port=args.port,
        base_folder=args.base_folder,
        server_binary=args.server,
        client_binary=args.client,
        bootstrap_mode=args.mode,
        ready_timeout=args.timeout,
        verbose=args.verbose,
        use_colors=args.colors,
    )


def main(argv: Optional[Sequence[str]] = None) -> int:
    """Main CLI entry point."""
    parser = build_parser()
    args = parser.parse_args(argv)

    if args.command is None:
        parser.print_help()
        return 0

    if args.command == "up":
        config = config_from_args(args)
        setup_cluster_logging(config.verbose, config.use_colors, json_output=args.json_logs)
        return asyncio.run(cmd_up(config))

    return 0


async def cmd_up(config: ClusterConfig) -> int:
    """Run a cluster until SIGINT/SIGTERM, then stop it."""
    stop_requested = asyncio.Event()
    loop = asyncio.get_running_loop()
    for sig in (signal.SIGINT, signal.SIGTERM):
        loop.add_signal_handler(sig, stop_requested.set)

    cluster = ClusterManager(config)
    try:
        started = await start_or_interrupt(cluster, stop_requested)
    except ClusterError as e:
        print(f"Error: {e}", file=sys.stderr)
        await cluster.stop()
        return 1

    if not started:
        await cluster.stop()
        print("Cluster stopped")
        return 130

    print(f"Cluster {cluster.name} ready")
    for host in cluster.get_hosts():
        print(f"  {host}")
    print(f"Connection string: {cluster.connection_string}")
    print("Press Ctrl-C to stop")

    try:
        await stop_requested.wait()
    finally:
        await cluster.stop()

    print("Cluster stopped")
    return 0


async def start_or_interrupt(cluster: ClusterManager, stop_requested: asyncio.Event) -> bool:
    """
    Start the cluster unless a stop is requested first.

    Returns:
        True once the cluster is ready, False if startup was interrupted

    Raises:
        ClusterError: If startup itself failed
    """
    start_task = asyncio.create_task(cluster.start())
    interrupt = asyncio.create_task(stop_requested.wait())
    try:
        await asyncio.wait({start_task, interrupt}, return_when=asyncio.FIRST_COMPLETED)
    finally:
        interrupt.cancel()

    if start_task.done():
        start_task.result()
        return True

    print("Interrupted during startup, stopping cluster", file=sys.stderr)
    start_task.cancel()
    try:
        await start_task
    except asyncio.CancelledError:
        # start() has already killed its nodes
        pass
    return False


if __name__ == "__main__":
    sys.exit(main())
