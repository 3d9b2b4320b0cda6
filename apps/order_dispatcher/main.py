"""
Order dispatcher entry point.

Usage:
    sarkhati mofid
    sarkhati all
    sarkhati bidar --test
    sarkhati alvand --test --curl

Exit Codes:
    0: Clean or interrupted run
    2: Usage error
    3: At least one selected broker failed session construction
"""

import argparse
import asyncio
import logging
import signal
import sys

from apps.order_dispatcher.orchestrator import Orchestrator, build_sessions
from config.settings import get_settings
from libs.brokers.identity import BrokerName
from libs.common.logging import configure_logging

logger = logging.getLogger(__name__)

SERVICE_NAME = "sarkhati"
ALL_BROKERS = "all"

EXIT_OK = 0
EXIT_CONFIG_ERROR = 3


def parse_arguments(argv: list[str] | None = None) -> argparse.Namespace:
    """
    Parse command-line arguments.

    Example:
        >>> args = parse_arguments(["mofid", "--test"])
        >>> args.broker, args.test
        ('mofid', True)
    """
    parser = argparse.ArgumentParser(
        prog=SERVICE_NAME,
        description="Send configured orders to broker APIs in continuous batches",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  # Continuous mode for one broker (Ctrl+C to stop)
  sarkhati mofid

  # Every broker with a config file, concurrently
  sarkhati all

  # Send one batch and exit
  sarkhati bmi --test

  # Print curl commands instead of sending
  sarkhati danayan --test --curl

Exit codes:
  0: Success or interrupted
  2: Usage error
  3: Configuration error
        """,
    )
    parser.add_argument(
        "broker",
        choices=[broker.value for broker in BrokerName] + [ALL_BROKERS],
        help="Broker to run, or 'all'",
    )
    parser.add_argument("--test", action="store_true", help="Send one batch, then exit")
    parser.add_argument(
        "--curl",
        action="store_true",
        help="Print curl commands instead of sending (requires --test)",
    )
    parser.add_argument(
        "--config-dir",
        type=str,
        default=None,
        help="Directory holding config_<broker>.json (default: SARKHATI_CONFIG_DIR or .)",
    )
    parser.add_argument(
        "--log-level",
        type=str,
        default=None,
        help="Log level (default: SARKHATI_LOG_LEVEL or INFO)",
    )

    args = parser.parse_args(argv)
    if args.curl and not args.test:
        parser.error("--curl can only be used together with --test")
    return args


def selected_brokers(choice: str) -> list[BrokerName]:
    """Expand the CLI broker argument to the brokers to run."""
    if choice == ALL_BROKERS:
        return list(BrokerName)
    return [BrokerName.parse(choice)]


def install_signal_handlers(stop_event: asyncio.Event) -> None:
    """Set the stop signal on SIGINT/SIGTERM."""
    loop = asyncio.get_running_loop()
    for sig in (signal.SIGINT, signal.SIGTERM):
        try:
            loop.add_signal_handler(sig, stop_event.set)
        except NotImplementedError:
            # Windows: Ctrl+C still raises KeyboardInterrupt
            logger.warning(f"Signal handler for {sig.name} not supported on this platform")


async def main(argv: list[str] | None = None) -> int:
    """
    Run the dispatcher.

    Returns:
        Exit code:
        - 0: Clean or interrupted run
        - 3: At least one selected broker failed session construction
    """
    args = parse_arguments(argv)
    settings = get_settings()

    try:
        configure_logging(
            service_name=SERVICE_NAME, log_level=args.log_level or settings.log_level
        )
    except ValueError as e:
        print(f"Configuration Error: {e}", file=sys.stderr)
        return EXIT_CONFIG_ERROR

    if args.test:
        if args.curl:
            logger.info("Test mode with curl preview: commands are printed, nothing is sent")
        else:
            logger.info("Test mode: one batch per broker, then exit")

    sessions, failures = build_sessions(
        selected_brokers(args.broker),
        args.config_dir or settings.config_dir,
        test_mode=args.test,
        curl_only=args.curl,
        default_failure_backoff_ms=settings.default_failure_backoff_ms,
    )

    if sessions:
        stop_event = asyncio.Event()
        install_signal_handlers(stop_event)
        orchestrator = Orchestrator(
            sessions,
            timeout=settings.http_timeout_seconds,
            snippet_chars=settings.body_snippet_chars,
        )
        await orchestrator.run(stop_event)

    if failures:
        logger.error(
            f"{len(failures)} broker session(s) failed to start",
            extra={"failed_brokers": [failure.broker.value for failure in failures]},
        )
        return EXIT_CONFIG_ERROR
    return EXIT_OK


def run() -> None:
    """Console script entry point."""
    sys.exit(asyncio.run(main()))


if __name__ == "__main__":
    run()
