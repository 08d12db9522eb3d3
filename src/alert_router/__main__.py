"""CLI entry point for Alert Router.

This module provides the main entry point for sending an alert from the
command line.

Usage:
    python -m alert_router --alert alert.json [options]
"""

from __future__ import annotations

import argparse
import asyncio
import json
import logging
import logging.config
import sys
from pathlib import Path
from typing import Any, NoReturn

from pydantic import ValidationError

from alert_router import __version__
from alert_router.alerter import (
    AlertService,
    ConfigurationError,
    MemoryStatefulness,
    RedisStatefulness,
    Statefulness,
    default_providers,
    file_loader,
    load_config_file,
)
from alert_router.config import Settings, clear_settings_cache, get_settings

# Application info
APP_NAME = "Alert Router"
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
        prog="alert-router",
        description="Route an alert to email, SMS and chat contacts by subscription.",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  python -m alert_router --alert alert.json            Send an alert
  echo '{...}' | python -m alert_router --alert -       Read the alert from stdin
  python -m alert_router --config-check                Validate config and exit
  python -m alert_router --alert alert.json --dry-run  Route without sending
        """,
    )

    parser.add_argument(
        "--version",
        action="version",
        version=f"%(prog)s {APP_VERSION}",
    )

    parser.add_argument(
        "--alert",
        metavar="PATH",
        default=None,
        help="Alert input document (JSON); '-' reads from stdin",
    )

    parser.add_argument(
        "--config",
        metavar="PATH",
        type=Path,
        default=None,
        help="Alerting configuration document (default: ALERTING_CONFIG_PATH)",
    )

    parser.add_argument(
        "--config-check",
        action="store_true",
        help="Validate settings and the alerting configuration, then exit",
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
        help="Route the alert and log the sends without contacting any channel",
    )

    return parser


def configure_logging(level: str) -> None:
    """Configure logging for the application.

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
                "stream": "ext://sys.stderr",
            },
        },
        "root": {
            "level": level,
            "handlers": ["console"],
        },
        # Quieter logging for noisy libraries
        "loggers": {
            "httpx": {"level": "WARNING"},
            "httpcore": {"level": "WARNING"},
            "aiosmtplib": {"level": "WARNING"},
        },
    }
    logging.config.dictConfig(config)


def print_config_summary(settings: Settings, config_path: Path | None) -> None:
    """Print a summary of the configuration.

    Args:
        settings: Application settings.
        config_path: Effective alerting configuration path.
    """
    summary = settings.redacted_summary()
    print(f"{APP_NAME} v{APP_VERSION}")
    print("Configuration:")
    print(f"  Alerting config: {config_path or '(not set)'}")
    print(f"  Dedup store: {summary['redis_url']}")
    print(f"  Log Level: {summary['log_level']}")
    print(f"  Email: {'enabled' if summary['email_enabled'] == 'True' else 'disabled'}")
    print(f"  SMS: {'enabled' if summary['sms_enabled'] == 'True' else 'disabled'}")
    print()


def validate_config() -> Settings | None:
    """Validate and load process settings.

    Returns:
        Settings instance if valid, None if invalid.
    """
    try:
        # Clear cache to force reload
        clear_settings_cache()
        return get_settings()
    except ValidationError as e:
        print("Configuration validation failed:", file=sys.stderr)
        for error in e.errors():
            field = ".".join(str(loc) for loc in error["loc"])
            msg = error["msg"]
            print(f"  {field}: {msg}", file=sys.stderr)
        return None


def run_config_check(settings: Settings, config_path: Path | None) -> int:
    """Validate the alerting configuration document and exit.

    Args:
        settings: Validated settings.
        config_path: Alerting configuration document to check.

    Returns:
        Exit code (0 for success).
    """
    print_config_summary(settings, config_path)

    if config_path is None:
        print("No alerting configuration set (ALERTING_CONFIG_PATH or --config).", file=sys.stderr)
        return EXIT_CONFIG_ERROR

    try:
        config = load_config_file(config_path)
    except ConfigurationError as e:
        print(f"Alerting configuration is invalid: {e}", file=sys.stderr)
        return EXIT_CONFIG_ERROR

    print("Alerting configuration is valid!")
    print(f"  Contacts: {len(config.contacts)}")
    print(f"  Subscriptions: {len(config.subscriptions)}")
    print(f"  Handler groups: {len(config.handler_groups)}")
    dedup = config.deduplicate
    print(f"  Dedup window: {dedup.window_seconds}s ({len(dedup.specifics)} overrides)")
    print()
    print("All checks passed. Ready to send.")
    return EXIT_SUCCESS


def read_alert(source: str) -> Any:
    """Read an alert input document from a file or stdin ('-').

    Raises:
        ValueError: If the document is not valid JSON.
        OSError: If the file cannot be read.
    """
    text = sys.stdin.read() if source == "-" else Path(source).read_text(encoding="utf-8")
    try:
        return json.loads(text)
    except json.JSONDecodeError as e:
        raise ValueError(f"Alert input is not valid JSON: {e}") from e


def create_store(settings: Settings) -> Statefulness:
    """Create the dedup store: Redis when configured, otherwise in memory."""
    if settings.redis.url:
        return RedisStatefulness.from_url(settings.redis.url)
    logging.getLogger(__name__).warning(
        "REDIS_URL not set, duplicate suppression only applies within this process"
    )
    return MemoryStatefulness()


async def run_alert(
    settings: Settings,
    config_path: Path,
    document: Any,
    dry_run: bool,
) -> int:
    """Handle a single alert.

    Args:
        settings: Application settings.
        config_path: Alerting configuration document.
        document: Parsed alert input document.
        dry_run: Whether to skip contacting channel backends.

    Returns:
        Exit code.
    """
    service = AlertService(
        loader=file_loader(config_path),
        providers=default_providers(),
        store=create_store(settings),
        settings=settings,
        dry_run=dry_run,
    )
    try:
        result = await service.handle_raw(document)
    finally:
        await service.close()

    print(result.summary)
    return EXIT_SUCCESS if result.success else EXIT_ERROR


def main(argv: list[str] | None = None) -> NoReturn:
    """Main entry point for the CLI.

    Args:
        argv: Command line arguments (defaults to sys.argv[1:]).
    """
    parser = create_parser()
    args = parser.parse_args(argv)

    # Validate configuration first
    settings = validate_config()
    if settings is None:
        sys.exit(EXIT_CONFIG_ERROR)

    # Determine effective log level
    log_level = args.log_level or settings.log_level
    configure_logging(log_level)

    config_path = args.config or settings.alerting.config_path

    # Config check mode
    if args.config_check:
        sys.exit(run_config_check(settings, config_path))

    if args.alert is None:
        parser.error("--alert is required unless --config-check is given")
    if config_path is None:
        print("No alerting configuration set (ALERTING_CONFIG_PATH or --config).", file=sys.stderr)
        sys.exit(EXIT_CONFIG_ERROR)

    try:
        document = read_alert(args.alert)
    except (OSError, ValueError) as e:
        print(f"Could not read alert: {e}", file=sys.stderr)
        sys.exit(EXIT_ERROR)

    dry_run = args.dry_run or settings.dry_run

    try:
        exit_code = asyncio.run(run_alert(settings, config_path, document, dry_run))
    except KeyboardInterrupt:
        exit_code = EXIT_INTERRUPTED
    sys.exit(exit_code)


if __name__ == "__main__":
    main()
