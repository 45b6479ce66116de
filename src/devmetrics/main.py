"""Application entry point for the developer metrics aggregator."""

from __future__ import annotations

import asyncio
import json
import logging
import sys
from typing import Any, Dict, Optional, Sequence

from .cli import parse_args
from .config import load_config
from .errors import ApiError, AuthenticationError, ConfigurationError
from .service import DashboardContext, DashboardService
from .stats import generate_report

logger = logging.getLogger(__name__)

EXIT_OK = 0
EXIT_UNEXPECTED = 1
EXIT_CONFIGURATION = 2
EXIT_AUTHENTICATION = 3
EXIT_API = 4


def configure_logging(verbose: bool = False) -> None:
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.INFO,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
        stream=sys.stderr,
    )


async def run_command(service: DashboardService, args: Any) -> Optional[Dict[str, Any]]:
    """Execute one CLI command; returns the bundle to print, if any."""
    try:
        if args.command == "developers":
            return await service.fetch_developer_metrics(args.time_range)
        if args.command == "pull-requests":
            return await service.fetch_change_request_analytics()
        if args.command == "sprints":
            return await service.fetch_sprint_analytics()
        if args.command == "seats":
            return await service.fetch_seat_analytics(args.time_range)
        if args.command == "clear-cache":
            service.clear_cache()
            return None
        raise ValueError(f"Unknown command: {args.command}")
    finally:
        await service.context.fetcher.drain()


def render(bundle: Dict[str, Any], args: Any) -> str:
    if args.output_format == "text" and args.command == "developers":
        return generate_report(bundle, args.time_range.value)
    return json.dumps(bundle, indent=2, default=str)


def orchestrate(argv: Optional[Sequence[str]] = None) -> int:
    """Run the full CLI flow and return a process exit code.

    Flow:
    1) Parse CLI args.
    2) Load and validate environment configuration.
    3) Build the service context.
    4) Run the command and print its result.
    """
    try:
        args = parse_args(argv)
        configure_logging(args.verbose)
        config = load_config()
        service = DashboardService(DashboardContext.from_config(config))
        bundle = asyncio.run(run_command(service, args))
    except AuthenticationError as exc:
        print(f"ERROR: {exc}", file=sys.stderr)
        return EXIT_AUTHENTICATION
    except ConfigurationError as exc:
        print(f"ERROR: {exc}", file=sys.stderr)
        return EXIT_CONFIGURATION
    except ApiError as exc:
        print(f"ERROR: {exc}", file=sys.stderr)
        for message in exc.messages:
            print(f"  - {message}", file=sys.stderr)
        return EXIT_API
    except Exception as exc:
        logger.exception("Unexpected failure")
        print(f"ERROR: Unexpected failure: {exc}", file=sys.stderr)
        return EXIT_UNEXPECTED

    if bundle is not None:
        print(render(bundle, args))
    else:
        print("Cache cleared.")
    return EXIT_OK


def main() -> None:
    """Console script entry point."""
    raise SystemExit(orchestrate())


if __name__ == "__main__":
    main()
