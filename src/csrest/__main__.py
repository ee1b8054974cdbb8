"""
Command line entry point.

Usage:
    # List beacons
    python -m csrest beacons

    # List tasks, optionally for one beacon
    python -m csrest tasks
    python -m csrest tasks --bid 1234567890

    # Show one task
    python -m csrest task 2c1f6a1e

    # Run a shell command and wait for its output
    python -m csrest shell 1234567890 "whoami" --wait --timeout 120

    # Wait for an existing task
    python -m csrest wait 2c1f6a1e

Connection settings come from config/config.yaml, CSREST_* environment
variables (a .env file in the project root is loaded first) and the
command line flags, in increasing priority. Results are printed to stdout
as JSON; logs go to stderr.

Ctrl+C cancels the running request or wait; a second Ctrl+C cancels all tasks.
"""

import argparse
import asyncio
import json
import logging
import os
import signal
import sys
from pathlib import Path
from typing import Any

from dotenv import load_dotenv
from pydantic import BaseModel

from config.config import ClientConfig, load_config
from core.errors.exceptions import CSRestError, RequestCancelledError
from core.logging.context import set_log_context
from core.logging.setup import generate_trace_id, get_logger, setup_logging
from csrest.client import CSRestClient

# __main__.py is at src/csrest/__main__.py, so root is 3 levels up
PROJECT_ROOT = Path(__file__).parent.parent.parent

EXIT_OK = 0
EXIT_ERROR = 1
EXIT_CONFIG = 2
EXIT_CANCELLED = 130

# Placeholder logger until setup_logging() is called in main()
logger = logging.getLogger(__name__)


def parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        prog="csrest",
        description="Team server REST API client",
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )

    parser.add_argument(
        "--config",
        type=str,
        default=None,
        help="Path to a YAML config file (default: src/config/config.yaml)",
    )
    parser.add_argument("--host", type=str, default=None, help="Team server host")
    parser.add_argument("--port", type=int, default=None, help="Team server REST port")
    parser.add_argument("--username", type=str, default=None, help="Operator name")
    parser.add_argument(
        "--insecure",
        action="store_true",
        help="Skip TLS certificate verification (self-signed team servers)",
    )
    parser.add_argument(
        "--log-level",
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
        default="WARNING",
        help="Console logging level (default: WARNING)",
    )
    parser.add_argument(
        "--log-dir",
        type=str,
        default=None,
        help="Log directory path (default: from LOG_DIR env var or ./logs)",
    )
    parser.add_argument(
        "--log-to-file",
        action="store_true",
        help="Also write JSON logs to a rotating file under the log directory. "
        "Can also be set via LOG_TO_FILE environment variable.",
    )

    subparsers = parser.add_subparsers(dest="command", required=True)

    subparsers.add_parser("beacons", help="List beacons")

    tasks = subparsers.add_parser("tasks", help="List task summaries")
    tasks.add_argument("--bid", type=str, default=None, help="Only tasks of this beacon")
    tasks.add_argument(
        "--detail",
        action="store_true",
        help="Include task results (requires --bid)",
    )

    task = subparsers.add_parser("task", help="Show one task with its results")
    task.add_argument("task_id")

    shell = subparsers.add_parser("shell", help="Run a shell command on a beacon")
    shell.add_argument("bid")
    shell.add_argument("shell_command", metavar="command")
    shell.add_argument("--wait", action="store_true", help="Wait for the task to finish")
    _add_wait_arguments(shell)

    wait = subparsers.add_parser("wait", help="Wait for a task to finish")
    wait.add_argument("task_id")
    _add_wait_arguments(wait)

    return parser.parse_args(argv)


def _add_wait_arguments(parser: argparse.ArgumentParser) -> None:
    parser.add_argument(
        "--timeout",
        type=float,
        default=None,
        help="Seconds to wait for a terminal status (default: csrest.tasks.timeout_seconds)",
    )
    parser.add_argument(
        "--poll-interval",
        type=float,
        default=None,
        help="Seconds between task polls (default: csrest.tasks.poll_interval_seconds)",
    )


def build_overrides(args: argparse.Namespace) -> dict[str, Any]:
    """Command line flags that were given, as config overrides."""
    overrides: dict[str, Any] = {}
    if args.host:
        overrides["host"] = args.host
    if args.port:
        overrides["port"] = args.port
    if args.username:
        overrides["username"] = args.username
    if args.insecure:
        overrides["verify_ssl"] = False
    return overrides


def to_jsonable(value: Any) -> Any:
    if isinstance(value, BaseModel):
        return value.model_dump(mode="json", by_alias=True, exclude_none=True)
    if isinstance(value, list):
        return [to_jsonable(item) for item in value]
    return value


def setup_signal_handlers(loop: asyncio.AbstractEventLoop, cancel_event: asyncio.Event) -> None:
    """First Ctrl+C sets the cancel event; a second one cancels every task.

    Signal handlers are not supported on Windows; KeyboardInterrupt is used instead.
    """

    def handle_signal(sig):
        if not cancel_event.is_set():
            logger.info("Received signal, cancelling", extra={"signal": sig.name})
            cancel_event.set()
        else:
            logger.warning("Received second signal, forcing immediate shutdown...")
            for task in asyncio.all_tasks(loop):
                task.cancel()

    if sys.platform == "win32":
        logger.debug("Signal handlers not supported on Windows, using KeyboardInterrupt")
        return

    for sig in (signal.SIGINT, signal.SIGTERM):
        loop.add_signal_handler(sig, lambda s=sig: handle_signal(s))


async def run_command(
    client: CSRestClient,
    args: argparse.Namespace,
    cancel_event: asyncio.Event,
) -> Any:
    """Dispatch one subcommand; returns the value to print."""
    if args.command == "beacons":
        return await client.list_beacons(cancel_event=cancel_event)

    if args.command == "tasks":
        if args.bid and args.detail:
            return await client.get_beacon_tasks_detail(args.bid, cancel_event=cancel_event)
        if args.bid:
            return await client.get_beacon_tasks_summary(args.bid, cancel_event=cancel_event)
        return await client.list_tasks(cancel_event=cancel_event)

    if args.command == "task":
        set_log_context(task_id=args.task_id)
        return await client.get_task(args.task_id, cancel_event=cancel_event)

    if args.command == "shell":
        set_log_context(beacon_id=args.bid)
        response = await client.execute_shell(
            args.bid, args.shell_command, cancel_event=cancel_event
        )
        if not args.wait:
            return response
        if response is None or not response.task_id:
            raise CSRestError("server did not return a task id to wait for")
        return await client.wait_for_task_completion(
            response.task_id,
            args.timeout,
            poll_interval=args.poll_interval,
            cancel_event=cancel_event,
        )

    if args.command == "wait":
        return await client.wait_for_task_completion(
            args.task_id,
            args.timeout,
            poll_interval=args.poll_interval,
            cancel_event=cancel_event,
        )

    raise ValueError(f"Unknown command: {args.command}")


async def run(args: argparse.Namespace, config: ClientConfig) -> int:
    cancel_event = asyncio.Event()
    setup_signal_handlers(asyncio.get_running_loop(), cancel_event)

    try:
        async with CSRestClient.from_config(config) as client:
            await client.login(
                config.username,
                config.password,
                config.duration_ms,
                cancel_event=cancel_event,
            )
            result = await run_command(client, args, cancel_event)
    except RequestCancelledError:
        logger.warning("Cancelled")
        return EXIT_CANCELLED
    except ValueError as e:
        # Bad command line values (e.g. a non-positive --poll-interval)
        logger.error("Invalid arguments: %s", e, extra={"operation": args.command})
        return EXIT_CONFIG
    except CSRestError as e:
        logger.error(
            "Command failed: %s",
            e,
            extra={
                "operation": args.command,
                "error_category": e.category.value,
                "is_retryable": e.is_retryable,
            },
        )
        return EXIT_ERROR

    json.dump(to_jsonable(result), sys.stdout, indent=2)
    sys.stdout.write("\n")
    return EXIT_OK


def main(argv: list[str] | None = None) -> int:
    load_dotenv(PROJECT_ROOT / ".env")

    global logger
    args = parse_args(argv)

    log_dir = Path(args.log_dir or os.getenv("LOG_DIR", "logs"))
    log_to_file = args.log_to_file or os.getenv("LOG_TO_FILE", "false").lower() in (
        "true",
        "1",
        "yes",
    )
    setup_logging(
        name="csrest",
        log_dir=log_dir,
        console_level=getattr(logging, args.log_level),
        log_to_file=log_to_file,
    )
    logger = get_logger(__name__)
    set_log_context(operation=args.command, trace_id=generate_trace_id())

    try:
        config = load_config(
            Path(args.config) if args.config else None,
            overrides=build_overrides(args),
        )
    except (FileNotFoundError, ValueError) as e:
        logger.error("Configuration error: %s", e)
        return EXIT_CONFIG

    try:
        return asyncio.run(run(args, config))
    except (KeyboardInterrupt, asyncio.CancelledError):
        logger.warning("Interrupted")
        return EXIT_CANCELLED


if __name__ == "__main__":
    sys.exit(main())
