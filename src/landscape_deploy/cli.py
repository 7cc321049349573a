from __future__ import annotations

import argparse
import logging
import os
import signal
import sys
import threading
from pathlib import Path
from typing import Optional, Sequence

from .config import DEFAULT_CONFIG, ConfigError, DeployConfig, load_config, load_credentials
from .executors import Executor
from .landscape import LandscapeClient, LandscapeError
from .notify import SlackNotifier
from .runner import DeploymentInterrupted, DeploymentRunner, DeploymentTimeout
from .types import ActivityReport

logger = logging.getLogger(__name__)

EPILOG = """\
Examples:

  $ landscape-deploy --script 28 --tag ply-servers --dev
  $ landscape-deploy --help
"""

COLUMNS = ("computer_name", "computer_id", "activity_id", "activity_status")


class Ansi:
    GREEN = "\033[92m"
    YELLOW = "\033[93m"
    RED = "\033[91m"
    BLUE = "\033[94m"
    RESET = "\033[0m"


STATUS_COLORS = {
    "succeeded": Ansi.GREEN,
    "failed": Ansi.RED,
    "canceled": Ansi.BLUE,
}


def colorize(text: str, color: Optional[str]) -> str:
    if not color:
        return text
    if not sys.stdout.isatty() or os.environ.get("NO_COLOR"):
        return text
    return f"{color}{text}{Ansi.RESET}"


def parse_args(argv: Optional[Sequence[str]] = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        prog="landscape-deploy",
        description="Executes the specified script in Landscape, on a specified group of servers.",
        epilog=EPILOG,
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    parser.add_argument(
        "-s",
        "--script",
        type=int,
        required=True,
        metavar="ID",
        help="the ID of the Landscape script to execute",
    )
    parser.add_argument(
        "-t",
        "--tag",
        required=True,
        metavar="NAME",
        help="the group of servers on which to execute the script",
    )
    parser.add_argument("-d", "--dev", action="store_true", help="use the DEV/PLY instance of Landscape")
    parser.add_argument(
        "--config",
        type=Path,
        default=DEFAULT_CONFIG,
        help=f"Path to landscape-deploy config file (default: {DEFAULT_CONFIG})",
    )
    parser.add_argument(
        "--log-level",
        default="INFO",
        help="Python logging level (default: INFO)",
    )
    args = parser.parse_args(argv)
    if not args.tag.strip():
        parser.error("--tag must not be empty")
    return args


def configure_logging(level: str) -> None:
    logging.basicConfig(
        level=getattr(logging, level.upper(), logging.INFO),
        format="%(levelname)s %(name)s - %(message)s",
    )


def build_client(cfg: DeployConfig, *, dev: bool) -> LandscapeClient:
    credentials = load_credentials(cfg, dev=dev)
    executor = Executor(env=credentials.as_env(), timeout=cfg.command_timeout)
    return LandscapeClient(executor, cfg.landscape_api)


def build_notifier(cfg: DeployConfig) -> SlackNotifier:
    return SlackNotifier(
        cfg.webhook_url,
        username=cfg.webhook_username,
        channel=cfg.webhook_channel,
        icon_emoji=cfg.webhook_icon,
    )


def main(argv: Optional[Sequence[str]] = None) -> int:
    args = parse_args(argv)
    configure_logging(args.log_level)

    try:
        cfg = load_config(args.config)
        client = build_client(cfg, dev=args.dev)
    except ConfigError as exc:
        print(colorize(f"Configuration failed: {exc}", Ansi.RED), file=sys.stderr)
        return 1

    instance = "DEV" if args.dev else "TST"
    logger.info("Running '--tag %s --script %s' on Landscape %s", args.tag, args.script, instance)

    stop_event = threading.Event()
    _install_sigterm(stop_event)
    runner = DeploymentRunner(
        client,
        build_notifier(cfg),
        poll_interval=cfg.poll_interval,
        poll_timeout=cfg.poll_timeout,
        stop_event=stop_event,
        report_callback=print_report,
    )
    try:
        outcome = runner.run(args.tag, args.script)
    except (DeploymentInterrupted, KeyboardInterrupt):
        print(colorize("Deployment interrupted", Ansi.YELLOW), file=sys.stderr)
        return 130
    except (LandscapeError, DeploymentTimeout) as exc:
        if logging.getLogger().isEnabledFor(logging.DEBUG):
            raise
        print(colorize(f"Deployment failed: {exc}", Ansi.RED), file=sys.stderr)
        return 1

    return 0 if outcome.is_clean_exit else 1


def format_report(report: ActivityReport) -> str:
    rows = [[str(getattr(record, column)) for column in COLUMNS] for record in report]
    widths = [len(column) for column in COLUMNS]
    for row in rows:
        widths = [max(width, len(cell)) for width, cell in zip(widths, row)]

    def line(cells: Sequence[str]) -> str:
        return " | ".join(cell.ljust(width) for cell, width in zip(cells, widths)).rstrip()

    lines = [line(COLUMNS), "-+-".join("-" * width for width in widths)]
    for row in rows:
        text = line(row)
        lines.append(colorize(text, STATUS_COLORS.get(row[-1], Ansi.YELLOW)))
    return "\n".join(lines)


def print_report(report: ActivityReport) -> None:
    print(format_report(report), flush=True)


def _install_sigterm(stop_event: threading.Event) -> None:
    if threading.current_thread() is not threading.main_thread():
        return
    signal.signal(signal.SIGTERM, _sigterm_handler(stop_event))


def _sigterm_handler(stop_event: threading.Event):
    def handler(signum, frame):
        stop_event.set()
        # Unwinds blocking landscape-api calls too; main maps it to exit 130.
        raise KeyboardInterrupt

    return handler


if __name__ == "__main__":
    raise SystemExit(main())
