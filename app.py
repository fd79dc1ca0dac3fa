#!/usr/bin/env python3
"""
Listing Monitor - Main Application Entry Point.

============================================================
SINGLE ENTRYPOINT
============================================================
- serve:  REST API plus the lifecycle runtime (uvicorn)
- worker: lifecycle runtime only, until SIGINT/SIGTERM

Timers are rebuilt from the database on every start, so the
process can be stopped and restarted safely.

============================================================
USAGE
============================================================
    python app.py --mode serve --port 8000
    python app.py --mode worker --log-format text
    python app.py --mode serve --dry-run     # mock exchange

Configuration comes from the environment (or a .env file),
see core/config.py.

============================================================
"""

import argparse
import asyncio
import json
import logging
import signal
import sys
from typing import List, Optional

from core.config import Settings
from core.exceptions import ConfigurationError
from exchange_gateway import MockGateway


# ============================================================
# LOGGING SETUP
# ============================================================

def setup_logging(level: str = "INFO", log_format: str = "text") -> None:
    """
    Configure the root logger.

    Args:
        level: Log level
        log_format: Output format (json or text)
    """
    log_level = getattr(logging, level.upper(), logging.INFO)

    if log_format == "json":
        formatter = logging.Formatter(
            json.dumps({
                "timestamp": "%(asctime)s",
                "level": "%(levelname)s",
                "logger": "%(name)s",
                "message": "%(message)s",
            })
        )
    else:
        formatter = logging.Formatter("%(asctime)s | %(levelname)-8s | %(name)s | %(message)s")

    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(formatter)

    root_logger = logging.getLogger()
    root_logger.setLevel(log_level)
    root_logger.handlers = [handler]


# ============================================================
# CLI
# ============================================================

def create_parser() -> argparse.ArgumentParser:
    """Create the argument parser."""
    parser = argparse.ArgumentParser(
        prog="listing-monitor",
        description="New listing monitor for MEXC spot pairs",
    )

    parser.add_argument(
        "--mode", "-m",
        choices=["serve", "worker"],
        default="serve",
        help="Runtime mode (default: serve)",
    )
    parser.add_argument(
        "--dry-run",
        action="store_true",
        help="Use the in-memory mock exchange instead of MEXC",
    )

    http_group = parser.add_argument_group("HTTP Options")
    http_group.add_argument("--host", default="0.0.0.0", help="Bind address (default: 0.0.0.0)")
    http_group.add_argument("--port", type=int, default=8000, help="Bind port (default: 8000)")

    logging_group = parser.add_argument_group("Logging Options")
    logging_group.add_argument(
        "--log-level",
        choices=["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"],
        default=None,
        help="Logging level (default: LOG_LEVEL or INFO)",
    )
    logging_group.add_argument(
        "--log-format",
        choices=["json", "text"],
        default="text",
        help="Logging format (default: text)",
    )

    return parser


# ============================================================
# RUN MODES
# ============================================================

def build_runtime(settings: Settings, dry_run: bool):
    from lifecycle.runtime import ListingRuntime

    gateway = MockGateway(poll_config=settings.price_poll) if dry_run else None
    return ListingRuntime(settings, gateway=gateway)


async def run_worker(settings: Settings, dry_run: bool) -> int:
    """Run the lifecycle runtime until a shutdown signal arrives."""
    logger = logging.getLogger(__name__)
    runtime = build_runtime(settings, dry_run)
    stop = asyncio.Event()

    loop = asyncio.get_running_loop()
    if sys.platform != "win32":
        for sig in (signal.SIGTERM, signal.SIGINT):
            loop.add_signal_handler(sig, stop.set)

    await runtime.start()
    logger.info("Worker running (press Ctrl+C to stop)...")
    try:
        await stop.wait()
    except (KeyboardInterrupt, asyncio.CancelledError):
        logger.info("Interrupted by user")
    finally:
        await runtime.stop()
    return 0


def run_server(settings: Settings, dry_run: bool, host: str, port: int) -> int:
    import uvicorn

    from dashboard.main import create_app

    app = create_app(build_runtime(settings, dry_run))
    uvicorn.run(app, host=host, port=port, log_config=None)
    return 0


def main(argv: Optional[List[str]] = None) -> int:
    """Main entry point."""
    args = create_parser().parse_args(argv)

    try:
        settings = Settings.from_env()
        if not args.dry_run:
            settings.require_credentials()
    except ConfigurationError as e:
        print(f"Error: {e.message}", file=sys.stderr)
        return 1

    setup_logging(args.log_level or settings.log_level, args.log_format)

    if args.mode == "worker":
        return asyncio.run(run_worker(settings, args.dry_run))
    return run_server(settings, args.dry_run, args.host, args.port)


# ============================================================
# ENTRY POINT
# ============================================================

if __name__ == "__main__":
    sys.exit(main())
