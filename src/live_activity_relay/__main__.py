"""CLI entry point for the Live Activity Relay.

Usage:
    python -m live_activity_relay [options]
"""

from __future__ import annotations

import argparse
import asyncio
import logging
import logging.config
import sys
from typing import NoReturn

from pydantic import ValidationError

from live_activity_relay import __version__
from live_activity_relay.config import Settings, clear_settings_cache, get_settings
from live_activity_relay.server import RelayServer, serve
from live_activity_relay.service import LiveActivityService

APP_NAME = "Live Activity Relay"
APP_VERSION = __version__

# Exit codes
EXIT_SUCCESS = 0
EXIT_ERROR = 1
EXIT_CONFIG_ERROR = 2
EXIT_INTERRUPTED = 130


def create_parser() -> argparse.ArgumentParser:
    """Create the argument parser for the CLI.

    Returns:
        Configured ArgumentParser instance.
    """
    parser = argparse.ArgumentParser(
        prog="live-activity-relay",
        description="Relay live activity market updates to a push gateway.",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  python -m live_activity_relay                     Run the HTTP relay
  python -m live_activity_relay --config-check      Validate config and exit
  python -m live_activity_relay --dry-run           Log pushes instead of sending
  python -m live_activity_relay --max-concurrent 20 Raise the per-batch send limit
        """,
    )

    parser.add_argument(
        "--version",
        action="version",
        version=f"%(prog)s {APP_VERSION}",
    )
    parser.add_argument(
        "--config-check",
        action="store_true",
        help="Validate configuration and exit without serving",
    )
    parser.add_argument(
        "--log-level",
        choices=["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"],
        default=None,
        help="Override logging level (default: from settings)",
    )
    parser.add_argument(
        "--dry-run",
        action="store_true",
        help="Log gateway requests instead of sending them",
    )
    parser.add_argument(
        "--port",
        type=int,
        default=None,
        help="Override HTTP port (default: from settings)",
    )
    parser.add_argument(
        "--max-concurrent",
        type=int,
        default=None,
        help="Override concurrent gateway requests per batch (default: from settings)",
    )

    return parser


def configure_logging(level: str) -> None:
    """Configure process-wide logging.

    Args:
        level: Logging level string (DEBUG, INFO, etc.)
    """
    config = {
        "version": 1,
        "disable_existing_loggers": False,
        "formatters": {
            "standard": {
                "format": "%(asctime)s [%(levelname)s] %(name)s: %(message)s",
                "datefmt": "%Y-%m-%d %H:%M:%S",
            },
            "detailed": {
                "format": (
                    "%(asctime)s [%(levelname)s] %(name)s (%(filename)s:%(lineno)d): %(message)s"
                ),
                "datefmt": "%Y-%m-%d %H:%M:%S",
            },
        },
        "handlers": {
            "console": {
                "class": "logging.StreamHandler",
                "level": level,
                "formatter": "detailed" if level == "DEBUG" else "standard",
                "stream": "ext://sys.stdout",
            },
        },
        "root": {
            "level": level,
            "handlers": ["console"],
        },
        "loggers": {
            "httpx": {"level": "WARNING"},
            "httpcore": {"level": "WARNING"},
            "aiohttp.access": {"level": "WARNING"},
            "sqlalchemy.engine": {"level": "WARNING"},
        },
    }
    logging.config.dictConfig(config)


def print_config_summary(settings: Settings) -> None:
    """Print a summary of the configuration.

    Args:
        settings: Application settings.
    """
    summary = settings.redacted_summary()
    print(f"{APP_NAME} v{APP_VERSION}")
    print("Configuration:")
    print(f"  Gateway: {settings.gateway.url}")
    print(f"  Credentials: {'configured' if settings.gateway.enabled else 'not configured'}")
    print(f"  APNs production: {settings.gateway.apns_production}")
    print(f"  Database: {summary['database_url']}")
    print(f"  HTTP: {summary['http']}")
    print(f"  Max concurrent: {summary['max_concurrent']}")
    print(f"  Log Level: {summary['log_level']}")
    print(f"  Dry Run: {summary['dry_run']}")
    print()


def validate_config() -> Settings | None:
    """Validate and load configuration.

    Returns:
        Settings instance if valid, None if invalid.
    """
    try:
        clear_settings_cache()
        return get_settings()
    except ValidationError as e:
        print("Configuration validation failed:", file=sys.stderr)
        for error in e.errors():
            field = ".".join(str(loc) for loc in error["loc"])
            msg = error["msg"]
            print(f"  {field}: {msg}", file=sys.stderr)
        return None


def run_config_check(settings: Settings) -> int:
    """Report configuration problems that would fail a batch.

    Args:
        settings: Validated settings.

    Returns:
        EXIT_SUCCESS, or EXIT_CONFIG_ERROR if sends could not be delivered.
    """
    print("Configuration is valid!")
    print()
    print_config_summary(settings)

    if settings.gateway.enabled:
        print("  Gateway credentials: configured")
    elif settings.dry_run:
        print("  Gateway credentials: not configured (dry run)")
    else:
        print("  Gateway credentials: missing - set PUSH_APP_KEY and PUSH_MASTER_SECRET")
        return EXIT_CONFIG_ERROR

    if settings.database.enabled:
        print("  Content store: configured")
    else:
        print("  Content store: not configured (requests must carry content)")

    print()
    print("All checks passed. Ready to run.")
    return EXIT_SUCCESS


async def run_server(settings: Settings) -> int:
    """Serve until a shutdown signal arrives.

    Args:
        settings: Application settings.

    Returns:
        Exit code.
    """
    logger = logging.getLogger(__name__)
    service = LiveActivityService.from_settings(settings)
    server = RelayServer(service)

    try:
        await serve(server, settings.http_host, settings.http_port)
        return EXIT_SUCCESS
    except KeyboardInterrupt:
        logger.info("Interrupted by user")
        return EXIT_INTERRUPTED
    except Exception as e:
        logger.exception("Server failed: %s", e)
        return EXIT_ERROR


def main(argv: list[str] | None = None) -> NoReturn:
    """Main entry point for the CLI.

    Args:
        argv: Command line arguments (defaults to sys.argv[1:]).
    """
    parser = create_parser()
    args = parser.parse_args(argv)

    settings = validate_config()
    if settings is None:
        sys.exit(EXIT_CONFIG_ERROR)

    overrides: dict[str, object] = {}
    if args.dry_run:
        overrides["dry_run"] = True
    if args.port is not None:
        if not 1 <= args.port <= 65535:
            parser.error("--port must be between 1 and 65535")
        overrides["http_port"] = args.port
    if args.max_concurrent is not None:
        if args.max_concurrent <= 0:
            parser.error("--max-concurrent must be positive")
        overrides["max_concurrent"] = args.max_concurrent
    if overrides:
        settings = settings.model_copy(update=overrides)

    log_level = args.log_level or settings.log_level
    configure_logging(log_level)

    if args.config_check:
        sys.exit(run_config_check(settings))

    print_config_summary(settings)

    exit_code = asyncio.run(run_server(settings))
    sys.exit(exit_code)


if __name__ == "__main__":
    main()
