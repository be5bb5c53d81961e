"""
Command-line interface for the livemonitor telemetry pipeline.

Runs the monitoring controller headless against one dashboard backend and
logs a summary line plus the current insights after every applied poll
cycle, until the requested duration elapses or SIGINT/SIGTERM arrives.
"""

import argparse
import asyncio
import logging
import signal
import sys
import tomllib
from dataclasses import replace
from pathlib import Path
from typing import List, Optional

from ..config import get_config, set_config_path
from ..models.config import AppConfig
from ..models.runtime import DashboardSnapshot
from ..monitoring import MonitoringController
from ..validation import (
    ValidationError,
    handle_cli_error,
    validate_base_url,
    validate_positive_float,
)

logger = logging.getLogger(__name__)

LOG_FORMAT = "%(asctime)s [%(levelname)-5.5s] %(name)s:%(filename)s:%(lineno)d\t %(message)s"


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="livemonitor",
        description="Aggregate live system telemetry from a dashboard backend.",
    )
    parser.add_argument("-c", "--config", type=Path, help="Path to config.toml (default: conf/config.toml).")
    parser.add_argument("--base-url", type=str, help="Backend root URL, overrides monitor.server.base_url.")
    parser.add_argument("--token", type=str, help="Auth token for protected routes and the event stream.")
    parser.add_argument("--interval", type=float, help="Poll interval in seconds.")
    parser.add_argument(
        "--duration",
        type=float,
        default=0.0,
        help="Stop after this many seconds (0 runs until SIGINT/SIGTERM).",
    )
    parser.add_argument(
        "--local-resources",
        action="store_true",
        help="Sample CPU/memory/disk of this host instead of the resources endpoint.",
    )
    parser.add_argument("--no-stream", action="store_true", help="Do not subscribe to the live event stream.")
    parser.add_argument("-v", "--verbose", action="store_true", help="Enable debug logging.")
    return parser


def apply_overrides(app_config: AppConfig, args: argparse.Namespace) -> AppConfig:
    """
    Merge command-line overrides into the loaded configuration.

    Raises:
        ValidationError: If an override value is invalid
    """
    changes = {}
    if args.base_url:
        changes["base_url"] = validate_base_url(args.base_url, field_name="--base-url")
    if args.token is not None:
        changes["auth_token"] = args.token
    if args.interval is not None:
        interval = validate_positive_float(args.interval, min_value=0.1, field_name="--interval")
        changes["interval_seconds"] = interval
        changes["fallback_interval_seconds"] = min(app_config.monitor.fallback_interval_seconds, interval)
    if args.local_resources:
        changes["resources_source"] = "local"
    if args.no_stream:
        changes["stream_enabled"] = False

    if not changes:
        return app_config
    return replace(app_config, monitor=replace(app_config.monitor, **changes))


def format_summary(snapshot: DashboardSnapshot) -> str:
    """One-line description of a dashboard snapshot."""
    kpis = snapshot.kpis
    latest = kpis.latest
    resources = (
        f"cpu {latest.cpu_pct:.1f}% mem {latest.mem_pct:.1f}% disk {latest.disk_pct:.1f}%"
        if latest is not None
        else "no resource samples"
    )
    stale = sorted(name for name, metric in snapshot.metrics.items() if metric.stale)
    parts = [
        resources,
        f"trend cpu={kpis.cpu_trend.value} mem={kpis.memory_trend.value}",
        f"high-confidence {kpis.high_confidence_rate * 100:.1f}%",
        f"events {len(snapshot.recent_events)}",
        f"stream {snapshot.channel_state.value}",
        f"interval {snapshot.poll_interval:g}s",
    ]
    if stale:
        parts.append(f"stale: {', '.join(stale)}")
    return " | ".join(parts)


def log_snapshot(snapshot: DashboardSnapshot) -> None:
    if snapshot.banner:
        logger.warning(snapshot.banner)
    logger.info(format_summary(snapshot))
    for insight in snapshot.insights:
        logger.info(f"  [{insight.severity.value}] {insight.title}: {insight.detail}")


async def run_monitor(app_config: AppConfig, duration: float = 0.0) -> DashboardSnapshot:
    """
    Run the controller until `duration` elapses or a shutdown signal arrives.

    Returns:
        The final dashboard snapshot
    """
    shutdown = asyncio.Event()
    loop = asyncio.get_running_loop()

    def request_shutdown(signum: int) -> None:
        if shutdown.is_set():
            logger.warning("Shutdown already in progress. Please be patient.")
            return
        logger.info(f"Signal {signal.strsignal(signum)} received. Initiating graceful shutdown...")
        shutdown.set()

    registered: List[int] = []
    for signum in (signal.SIGINT, signal.SIGTERM):
        try:
            loop.add_signal_handler(signum, request_shutdown, signum)
            registered.append(signum)
        except (NotImplementedError, RuntimeError):
            logger.debug(f"Cannot install handler for {signal.strsignal(signum)} on this platform")

    controller = MonitoringController(app_config, on_update=log_snapshot)
    try:
        async with controller:
            try:
                await asyncio.wait_for(shutdown.wait(), timeout=duration if duration > 0 else None)
            except asyncio.TimeoutError:
                logger.info(f"Requested duration of {duration:g}s elapsed")
    finally:
        for signum in registered:
            loop.remove_signal_handler(signum)

    return controller.snapshot()


def main_cli(argv: Optional[List[str]] = None) -> None:
    """
    Main command-line entry point.

    Raises:
        SystemExit: On configuration or argument errors
    """
    args = build_parser().parse_args(argv)

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format=LOG_FORMAT,
        datefmt="%Y-%m-%d %H:%M:%S",
        stream=sys.stdout,
    )

    if args.config is not None:
        set_config_path(args.config)

    try:
        app_config = get_config()
    except (FileNotFoundError, ValidationError, tomllib.TOMLDecodeError) as e:
        handle_cli_error(error=e, context="configuration loading", exit_code=1, logger=logger)

    try:
        app_config = apply_overrides(app_config, args)
        duration = validate_positive_float(args.duration, min_value=0.0, field_name="--duration")
    except ValidationError as e:
        handle_cli_error(error=e, context="argument validation", exit_code=2, logger=logger)

    logger.info(
        f"Starting livemonitor for {app_config.monitor.base_url} "
        f"(interval {app_config.monitor.interval_seconds:g}s, "
        f"stream {'on' if app_config.monitor.stream_enabled else 'off'})"
    )
    final = asyncio.run(run_monitor(app_config, duration))
    logger.info(f"Monitoring finished: {format_summary(final)}")
