"""CLI entry point for recorder-proxy.

Sends single requests to a configured recorder service, mainly for
diagnosing connectivity and inspecting responses.
"""

from __future__ import annotations

import argparse
import asyncio
import json
import sys
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

import httpx

from recorder_proxy.config_loader import ConfigError, get_target, load_runtime_config
from recorder_proxy.errors import ProxyError, TargetUnreachableError
from recorder_proxy.logging_setup import configure_logging
from recorder_proxy.models import TargetConfig
from recorder_proxy.proxy import RestProxyBase, close_shared_clients


EXIT_OK = 0
EXIT_ERROR = 1
EXIT_UNREACHABLE = 3

LOG_LEVELS = ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL")


def positive_float(value: str) -> float:
    """Parse and validate a positive float value.

    Raises:
        argparse.ArgumentTypeError: If value is not a positive number.
    """
    try:
        result = float(value)
    except ValueError:
        raise argparse.ArgumentTypeError(f"Invalid number '{value}'.")
    if result <= 0:
        raise argparse.ArgumentTypeError(f"Value must be positive, got {result}.")
    return result


def parse_param(value: str) -> tuple[str, str]:
    """Parse NAME=VALUE format.

    Raises:
        argparse.ArgumentTypeError: If format is invalid.
    """
    if "=" not in value:
        raise argparse.ArgumentTypeError(
            f"Invalid format '{value}'. Expected NAME=VALUE (e.g., 'channelType=Television')"
        )
    name, param_value = value.split("=", 1)
    if not name:
        raise argparse.ArgumentTypeError(f"Invalid format '{value}'. Name cannot be empty.")
    return (name, param_value)


def parse_json_body(value: str) -> Any:
    """Parse a JSON document given on the command line."""
    try:
        return json.loads(value)
    except json.JSONDecodeError as e:
        raise argparse.ArgumentTypeError(f"Invalid JSON body: {e}")


@dataclass
class CallArgs:
    """Parsed arguments for call mode."""

    config: Path
    target: str
    method: str
    url: str
    args: list[str] = field(default_factory=list)
    params: list[tuple[str, str]] = field(default_factory=list)
    body: Any = None
    result: bool = False
    timeout: float | None = None
    log_level: str | None = None


@dataclass
class TargetsArgs:
    """Parsed arguments for targets mode."""

    config: Path


def build_parser() -> argparse.ArgumentParser:
    """Build the argument parser with call and targets subcommands."""
    parser = argparse.ArgumentParser(
        prog="recorder-proxy",
        description="Send requests to a recorder REST service.",
    )

    subparsers = parser.add_subparsers(dest="command", required=True, help="Mode")

    call_parser = subparsers.add_parser(
        "call",
        help="Send one request and print the decoded JSON response",
    )
    call_parser.add_argument(
        "--config",
        type=Path,
        required=True,
        help="Path to runtime config YAML",
    )
    call_parser.add_argument(
        "--target",
        type=str,
        required=True,
        help="Name of the target (must exist in config)",
    )
    call_parser.add_argument(
        "method",
        type=str.upper,
        help="HTTP method (GET, POST, PUT, DELETE, ...)",
    )
    call_parser.add_argument(
        "url",
        type=str,
        help="URL template relative to the base URL, e.g. 'Scheduler/ScheduleById/{0}'",
    )
    call_parser.add_argument(
        "args",
        nargs="*",
        default=[],
        help="Positional values for {0}, {1}, ... placeholders",
    )
    call_parser.add_argument(
        "--param",
        type=parse_param,
        action="append",
        default=[],
        metavar="NAME=VALUE",
        dest="params",
        help="Append a query parameter (can be repeated)",
    )
    call_parser.add_argument(
        "--body",
        type=parse_json_body,
        default=None,
        metavar="JSON",
        help="JSON request body",
    )
    call_parser.add_argument(
        "--result",
        action="store_true",
        default=False,
        help="Response is a {result, errorMessage} envelope; print only the result",
    )
    call_parser.add_argument(
        "--timeout",
        type=positive_float,
        default=None,
        metavar="SECONDS",
        help="Override the target's request timeout",
    )
    call_parser.add_argument(
        "--log-level",
        type=str.upper,
        choices=LOG_LEVELS,
        default=None,
        help="Override the configured log level",
    )

    targets_parser = subparsers.add_parser(
        "targets",
        help="List the targets defined in a config file",
    )
    targets_parser.add_argument(
        "--config",
        type=Path,
        required=True,
        help="Path to runtime config YAML",
    )

    return parser


def parse_args(args: list[str] | None = None) -> CallArgs | TargetsArgs:
    """Parse command-line arguments and return typed args dataclass.

    Raises:
        SystemExit: If arguments are invalid (argparse behavior).
    """
    parser = build_parser()
    namespace = parser.parse_args(args)

    if namespace.command == "call":
        return CallArgs(
            config=namespace.config,
            target=namespace.target,
            method=namespace.method,
            url=namespace.url,
            args=namespace.args or [],
            params=namespace.params or [],
            body=namespace.body,
            result=namespace.result,
            timeout=namespace.timeout,
            log_level=namespace.log_level,
        )
    return TargetsArgs(config=namespace.config)


def main(argv: list[str] | None = None) -> int:
    """Main entry point."""
    try:
        parsed = parse_args(argv)

        if isinstance(parsed, CallArgs):
            return run_call(parsed)
        return run_targets(parsed)

    except KeyboardInterrupt:
        print("\nInterrupted", file=sys.stderr)
        return EXIT_ERROR


def run_targets(args: TargetsArgs) -> int:
    """Run targets mode."""
    try:
        config = load_runtime_config(args.config)
    except ConfigError as e:
        print(f"Error loading config: {e}", file=sys.stderr)
        return EXIT_ERROR

    for name, target in config.targets.items():
        print(f"{name}\t{target.base_url}")
    return EXIT_OK


def run_call(args: CallArgs) -> int:
    """Run call mode."""
    try:
        config = load_runtime_config(args.config)
        target = get_target(config, args.target)
    except ConfigError as e:
        print(f"Error loading config: {e}", file=sys.stderr)
        return EXIT_ERROR

    configure_logging(args.log_level or config.logging.level)

    if args.timeout is not None:
        target = target.model_copy(update={"timeout": args.timeout})

    return asyncio.run(send_call(target, args))


async def send_call(
    target: TargetConfig,
    args: CallArgs,
    client: httpx.AsyncClient | None = None,
) -> int:
    """Send the request described by ``args`` and print the outcome.

    Returns:
        Process exit code.
    """
    proxy = RestProxyBase(target, client=client)
    try:
        request = proxy.new_request(args.method, args.url, *args.args)
        for name, value in args.params:
            request.add_parameter(name, value)
        if args.body is not None:
            request.add_body(args.body, proxy.strategy)

        try:
            if args.result:
                value = await proxy.execute_result(request, Any)
            else:
                value = await proxy.execute_typed(request, Any)
        except TargetUnreachableError as e:
            print(f"Recorder not reachable at {proxy.base_url}: {e}", file=sys.stderr)
            return EXIT_UNREACHABLE
        except ProxyError as e:
            print(f"Error: {e}", file=sys.stderr)
            return EXIT_ERROR

        print(json.dumps(value, indent=2))
        return EXIT_OK
    finally:
        await close_shared_clients()


if __name__ == "__main__":
    sys.exit(main())
