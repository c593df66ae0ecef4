"""CLI: pmc-watch list, servers, action, rename, logs, watch, ui, config validate."""

from __future__ import annotations

import argparse
import asyncio
import logging
import sys
from dataclasses import replace

from .. import __version__
from ..client.feeds import DaemonFeed
from ..client.http import DaemonClient
from ..client.log_tail import LogTailController
from ..client.servers import fetch_overview, sort_overview
from ..config import load_config, validate_config
from ..core.formatting import bytes_to_size, describe_duration
from ..core.log_search import LogSearchIndex
from ..types import (
    ACTION_METHODS,
    DaemonMetricsFrame,
    LogChannel,
    LogSnapshot,
    PmcWatchConfig,
    PmcWatchError,
    Settings,
    StreamState,
)

logger = logging.getLogger(__name__)


def _make_client(settings: Settings) -> DaemonClient:
    return DaemonClient(settings)


def _load(args) -> PmcWatchConfig:
    try:
        config = load_config(args.config)
    except (PmcWatchError, FileNotFoundError) as e:
        print(f"Error loading config: {e}", file=sys.stderr)
        sys.exit(1)
    if args.token:
        config.settings = config.settings.with_token(args.token)
    if args.url:
        config.settings = replace(config.settings, base_url=args.url.rstrip("/"))
    if args.server:
        config.default_server = args.server
    return config


def _run(coro) -> None:
    """Run one command coroutine; daemon errors exit with status 1."""
    try:
        asyncio.run(coro)
    except PmcWatchError as e:
        logger.debug("Command failed", exc_info=True)
        print(f"Error: {e}", file=sys.stderr)
        sys.exit(1)
    except KeyboardInterrupt:
        pass


def cmd_list(args):
    """List processes on the selected server."""
    config = _load(args)

    async def run():
        async with _make_client(config.settings) as client:
            processes = await client.list_processes(config.default_server)
        if not processes:
            print("No processes.")
            return
        print(f"{'ID':>4} {'Name':<24} {'Status':<8} {'PID':>7} {'CPU':>7} {'Memory':>9} {'Uptime':>8} {'Restarts':>8}")
        print("-" * 83)
        for p in processes:
            print(
                f"{p.id:>4} {p.name:<24} {p.status:<8} {str(p.pid or '-'):>7} "
                f"{p.cpu:>7} {p.mem:>9} {p.uptime:>8} {p.restarts:>8}"
            )

    _run(run())


def cmd_servers(args):
    """Show every daemon with its version badge."""
    config = _load(args)

    async def run():
        async with _make_client(config.settings) as client:
            overview = await fetch_overview(client, config.client_version or __version__)
        print(f"{'Server':<16} {'Version':<10} {'Status':<9} {'CPU':>8} {'Memory':>10} {'Uptime':<12}")
        print("-" * 70)
        for entry in sort_overview(overview):
            metrics = entry.metrics
            if not entry.reachable:
                print(f"{entry.name:<16} {metrics.version.pkg:<10} {entry.status.value:<9} {'offline':>8}")
                continue
            print(
                f"{entry.name:<16} {metrics.version.pkg:<10} {entry.status.value:<9} "
                f"{(metrics.cpu_percent or 0):>7.2f}% {bytes_to_size(metrics.memory_usage):>10} "
                f"{describe_duration(metrics.daemon.uptime):<12}"
            )

    _run(run())


def cmd_action(args):
    """Run restart, stop, delete or flush on one process."""
    config = _load(args)

    async def run():
        async with _make_client(config.settings) as client:
            await client.action(args.id, args.method, config.default_server)
        print(f"{args.method} sent to process {args.id}")

    _run(run())


def cmd_rename(args):
    config = _load(args)

    async def run():
        async with _make_client(config.settings) as client:
            await client.rename(args.id, args.name, config.default_server)
        print(f"Renamed process {args.id} to {args.name}")

    _run(run())


def _print_new_lines(previous: list[str], current: list[str], search: LogSearchIndex) -> None:
    # A shorter or rewritten log means it was rotated; print it again in full.
    if len(current) >= len(previous) and current[: len(previous)] == previous:
        new = current[len(previous):]
    else:
        new = current
    for line in search.filter(new):
        print(line)


def cmd_logs(args):
    """Print a process log, optionally filtered and followed."""
    config = _load(args)
    search = LogSearchIndex()
    search.set_query(args.filter or "")

    async def run():
        async with _make_client(config.settings) as client:
            tail = LogTailController.for_process(
                client,
                args.id,
                config.default_server,
                channel=LogChannel(args.channel) if args.channel else config.logs.default_channel,
                poll_interval=config.logs.poll_interval,
            )
            snapshot = await tail.fetch()
            if tail.last_error is not None:
                raise tail.last_error
            _print_new_lines([], snapshot.lines, search)
            if not args.follow:
                return

            printed = list(snapshot.lines)

            def on_snapshot(snapshot: LogSnapshot) -> None:
                nonlocal printed
                if snapshot.stale:
                    return
                _print_new_lines(printed, snapshot.lines, search)
                printed = list(snapshot.lines)

            tail.snapshot.subscribe(on_snapshot)
            tail.set_live(True)
            try:
                await asyncio.Event().wait()
            finally:
                await tail.aclose()

    _run(run())


def _format_metrics(server: str, frame: DaemonMetricsFrame) -> str:
    return (
        f"{server}: cpu {(frame.cpu_percent or 0):.2f}%  "
        f"memory {bytes_to_size(frame.memory_usage)}  "
        f"processes {frame.daemon.process_count or 0}"
    )


def cmd_watch(args):
    """Stream daemon metrics to stdout until interrupted."""
    config = _load(args)
    server = config.default_server

    async def run():
        async with _make_client(config.settings) as client:
            feed = DaemonFeed.create(
                client,
                server,
                retry_delay=config.stream.retry_delay,
                capacity=config.charts.buffer_capacity,
            )

            def on_frame(frame: DaemonMetricsFrame | None) -> None:
                if frame is not None:
                    print(_format_metrics(server, frame), flush=True)

            def on_state(state: StreamState) -> None:
                if state is StreamState.RETRYING:
                    print(
                        f"{server}: connection lost, retrying in {config.stream.retry_delay:g}s",
                        file=sys.stderr,
                    )

            feed.latest.subscribe(on_frame)
            feed.state.subscribe(on_state)
            feed.start()
            try:
                await asyncio.Event().wait()
            finally:
                await feed.aclose()

    _run(run())


def cmd_ui(args):
    """Launch the terminal UI."""
    from ..tui.app import run_ui

    config = _load(args)
    run_ui(config, server=args.server, process_id=args.process)


def cmd_config_validate(args):
    """Validate the config file."""
    config = _load(args)
    errors = validate_config(config)
    if errors:
        print("Config validation errors:")
        for err in errors:
            print(f"  - {err}")
        sys.exit(1)
    print("Config is valid.")
    print(f"  Daemon: {config.settings.base_url}")
    print(f"  Token: {'set' if config.settings.token else 'not set'}")
    print(f"  Retry delay: {config.stream.retry_delay:g}s")
    print(f"  Log poll interval: {config.logs.poll_interval:g}s")
    print(f"  Chart buffer: {config.charts.buffer_capacity} samples")

    async def check():
        async with _make_client(config.settings) as client:
            return await client.check_token()

    if not asyncio.run(check()):
        print(
            f"Error: daemon at {config.settings.base_url} rejected the token or is unreachable",
            file=sys.stderr,
        )
        sys.exit(1)
    print("  Token accepted by daemon.")


def main(argv: list[str] | None = None):
    parser = argparse.ArgumentParser(
        prog="pmc-watch",
        description="Live telemetry and log tailing for the pmc process daemon",
    )
    parser.add_argument("--config", "-c", help="Path to config file")
    parser.add_argument("--server", "-s", help="Server name (default: local)")
    parser.add_argument("--url", help="Daemon base URL, overrides config")
    parser.add_argument("--token", help="Daemon token, overrides config")
    parser.add_argument("--verbose", "-v", action="store_true", help="Enable debug logging")

    subparsers = parser.add_subparsers(dest="command")

    # list
    subparsers.add_parser("list", help="List processes")

    # servers
    subparsers.add_parser("servers", help="Show local and remote daemons")

    # action
    action_parser = subparsers.add_parser("action", help="Run a lifecycle action on a process")
    action_parser.add_argument("id", type=int, help="Process id")
    action_parser.add_argument("method", choices=ACTION_METHODS, help="Action to run")

    # rename
    rename_parser = subparsers.add_parser("rename", help="Rename a process")
    rename_parser.add_argument("id", type=int, help="Process id")
    rename_parser.add_argument("name", help="New name")

    # logs
    logs_parser = subparsers.add_parser("logs", help="Print a process log")
    logs_parser.add_argument("id", type=int, help="Process id")
    logs_parser.add_argument(
        "--channel", choices=[c.value for c in LogChannel], help="stdout or stderr"
    )
    logs_parser.add_argument("--filter", "-f", help="Only lines matching this query")
    logs_parser.add_argument("--follow", action="store_true", help="Keep polling for new lines")

    # watch
    subparsers.add_parser("watch", help="Stream daemon metrics")

    # ui
    ui_parser = subparsers.add_parser("ui", help="Interactive terminal UI")
    ui_parser.add_argument("--process", "-p", type=int, help="Open a process view directly")

    # config validate
    config_parser = subparsers.add_parser("config", help="Config operations")
    config_sub = config_parser.add_subparsers(dest="config_command")
    config_sub.add_parser("validate", help="Validate config file")

    args = parser.parse_args(argv)

    if args.verbose:
        logging.basicConfig(
            level=logging.DEBUG,
            format="%(asctime)s %(levelname)s %(name)s: %(message)s",
        )

    if not args.command:
        parser.print_help()
        sys.exit(1)

    if args.command == "list":
        cmd_list(args)
    elif args.command == "servers":
        cmd_servers(args)
    elif args.command == "action":
        cmd_action(args)
    elif args.command == "rename":
        cmd_rename(args)
    elif args.command == "logs":
        cmd_logs(args)
    elif args.command == "watch":
        cmd_watch(args)
    elif args.command == "ui":
        cmd_ui(args)
    elif args.command == "config":
        if args.config_command == "validate":
            cmd_config_validate(args)
        else:
            print("Usage: pmc-watch config validate")
            sys.exit(1)


if __name__ == "__main__":
    main()
