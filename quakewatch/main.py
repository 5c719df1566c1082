"""Service Entry Point.

Loads configuration, wires the orchestrator into the scheduler and serves
the read API. The scheduler runs in a background thread; the API runs in
the foreground under uvicorn.
"""

import argparse
import json
import logging
import os
import sys
import threading

import uvicorn

from quakewatch.api_handler import create_app
from quakewatch.core.config import Config, validate_config
from quakewatch.orchestrator import Orchestrator
from quakewatch.scheduler import Scheduler
from quakewatch.shell.config_loader import load_config, load_config_from_env


# Configure logging
log_level = os.environ.get("LOG_LEVEL", "INFO").upper()
logging.basicConfig(
    level=getattr(logging, log_level, logging.INFO),
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)
logger = logging.getLogger(__name__)


DEFAULT_PORT = 3000


def _get_config(config_path: str | None = None) -> Config:
    """Load configuration from file or environment."""
    config_path = config_path or os.environ.get("CONFIG_PATH")

    if config_path:
        return load_config(config_path)
    elif os.environ.get("FCM_PROJECT_ID") or os.environ.get("FIRESTORE_DATABASE"):
        # Simple env-based config
        return load_config_from_env()
    else:
        # Try default config path
        return load_config()


def _log_banner(config: Config) -> None:
    logger.info("Multi-source earthquake aggregator")
    for feed in config.feeds:
        logger.info(
            "  %s%s: %s",
            feed.source.value,
            "" if feed.enabled else " (disabled)",
            feed.url,
        )
    logger.info("Polling interval: %s seconds", config.poll_interval_seconds)


def _parse_args(argv: list[str] | None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Multi-source earthquake ingestion service")
    parser.add_argument("--config", help="Path to YAML config file")
    parser.add_argument("--once", action="store_true", help="Run a single tick and exit")
    parser.add_argument("--no-api", action="store_true", help="Run the scheduler only")
    parser.add_argument("--host", default="0.0.0.0", help="API bind address")
    parser.add_argument(
        "--port",
        type=int,
        default=int(os.environ.get("PORT", DEFAULT_PORT)),
        help="API port",
    )
    return parser.parse_args(argv)


def main(argv: list[str] | None = None) -> int:
    """Run the service.

    Returns:
        Process exit code
    """
    args = _parse_args(argv)
    config = _get_config(args.config)

    validation = validate_config(config)
    for warning in validation.warnings:
        logger.warning("Config %s: %s", warning.field, warning.message)
    if not validation.valid:
        for error in validation.critical_errors:
            logger.error("Config %s: %s", error.field, error.message)
        return 1

    _log_banner(config)

    orchestrator = Orchestrator(config)

    if args.once:
        result = orchestrator.process()
        print(json.dumps(result.to_dict(), indent=2))
        return 0 if result.success else 2

    scheduler = Scheduler(orchestrator.process, config.poll_interval_seconds)

    if args.no_api:
        try:
            scheduler.run()
        except KeyboardInterrupt:
            scheduler.stop()
        return 0

    worker = threading.Thread(target=scheduler.run, name="scheduler", daemon=True)
    worker.start()

    app = create_app(orchestrator.firestore_client, page_size=config.page_size)
    try:
        uvicorn.run(app, host=args.host, port=args.port)
    finally:
        scheduler.stop()

    return 0


if __name__ == "__main__":
    sys.exit(main())
