"""
Canonical entry point for airmon_server package.

Usage:
    airmon-server --environment development api
    airmon-server --environment development setup-db
    airmon-server monitor --device-id demo-fake-001 --live
"""

import argparse
import logging
import os
import sys

import uvicorn
from airmon_core.config.environments import get_settings
from airmon_core.domain.models import Period


def setup_logging(config) -> None:
    """Set up logging configuration."""
    logging.basicConfig(
        level=getattr(logging, config.LOG_LEVEL.upper(), logging.INFO),
        format="%(asctime)s %(levelname)s %(message)s",
    )
    return None


def run_api_server(args: argparse.Namespace) -> None:
    """Run the FastAPI server."""
    config = get_settings()
    setup_logging(config)
    log = logging.getLogger(__name__)

    # Override with command line arguments
    host = args.host or config.API_HOST
    port = args.port or config.API_PORT
    reload = args.reload and args.environment != "production"

    log.info("Starting API server...")
    log.info(f"Environment: {args.environment}")
    log.info(f"Host: {host}")
    log.info(f"Port: {port}")
    log.info(f"Reload: {reload}")

    uvicorn.run(
        "airmon_server.adapters.api.main:app",
        host=host,
        port=port,
        reload=reload,
        log_level=config.LOG_LEVEL.lower(),
    )
    return None


def setup_database(args: argparse.Namespace) -> None:
    """Create the readings table."""
    from airmon_server.adapters.db.session import Base, create_engine_for
    from airmon_server.adapters.db.sqlalchemy_models import SensorReadingORM  # noqa: F401

    config = get_settings()
    setup_logging(config)
    log = logging.getLogger(__name__)

    log.info(f"Setting up database for {args.environment} environment...")
    log.info(f"Database URL: {config.DATABASE_URL}")

    engine = create_engine_for(config.DATABASE_URL)
    Base.metadata.create_all(bind=engine)
    log.info("Database setup completed successfully")
    return None


def run_monitor(args: argparse.Namespace) -> None:
    """Poll one device and print its latest bucket until interrupted."""
    from airmon_server.monitor import live_monitor, series_monitor

    config = get_settings()
    setup_logging(config)

    if not args.device_id:
        raise SystemExit("monitor needs --device-id")

    feed = None
    if args.live:
        feed, poller = live_monitor(config, args.device_id)
        feed.start()
    else:
        poller = series_monitor(config, args.device_id, Period(args.period))

    poller.poll_once()
    poller.start()
    try:
        while poller.is_alive():
            poller.join(1.0)
    except KeyboardInterrupt:
        pass
    finally:
        poller.stop()
        if feed is not None:
            feed.stop()
    return None


def main() -> None:
    """Main entry point for airmon_server commands."""
    parser = argparse.ArgumentParser(description="Facility Air Monitor - API and database setup")
    parser.add_argument(
        "--environment",
        choices=["production", "development", "testing"],
        default="development",
        help="Environment to run in",
    )
    parser.add_argument(
        "command",
        choices=["api", "setup-db", "monitor"],
        help="Command to run",
    )
    parser.add_argument("--host", help="Host to bind to (overrides config)")
    parser.add_argument("--port", type=int, help="Port to bind to (overrides config)")
    parser.add_argument(
        "--reload", action="store_true", help="Enable auto-reload (development only)"
    )
    parser.add_argument("--device-id", help="Device to follow (monitor only)")
    parser.add_argument(
        "--period",
        choices=[p.value for p in Period],
        default=Period.ONE_HOUR.value,
        help="Historical period to follow (monitor only)",
    )
    parser.add_argument("--live", action="store_true", help="Follow the rolling live window")

    args = parser.parse_args()

    # Set environment variable for config
    os.environ["AIRMON_ENV"] = args.environment

    if args.command == "api":
        run_api_server(args)
    elif args.command == "setup-db":
        setup_database(args)
    elif args.command == "monitor":
        run_monitor(args)
    else:
        parser.print_help()
        sys.exit(1)


if __name__ == "__main__":
    main()
