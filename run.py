#!/usr/bin/env python3
"""
Entry point script to run the content scanner.

This script should be run from the project root directory:
    python run.py

Environment variables:
    APP_HOST: Host to bind to (default: 0.0.0.0)
    APP_PORT: Port to bind to (default: 8080)
    APP_READ_TIMEOUT: Seconds to wait for a request to be read (default: 60)
    APP_SHUTDOWN_TIMEOUT: Seconds in-flight requests get on shutdown (default: 10)
    LOG_FILE_LOCATION: Optional rotating log file
"""
import asyncio
import logging
import signal

from hypercorn.asyncio import serve
from hypercorn.config import Config

from common.config.config import (
    APP_HOST,
    APP_PORT,
    APP_READ_TIMEOUT,
    APP_SHUTDOWN_TIMEOUT,
)
from common.telemetry.app_logger import StandardAppLogger, configure_logging

logger = logging.getLogger(__name__)


async def main() -> None:
    from application.app import create_app

    app_logger = StandardAppLogger()
    app = create_app(app_logger=app_logger)

    config = Config()
    config.bind = [f"{APP_HOST}:{APP_PORT}"]
    config.read_timeout = APP_READ_TIMEOUT
    config.graceful_timeout = APP_SHUTDOWN_TIMEOUT

    # Block until SIGINT/SIGTERM, then let hypercorn drain in-flight requests
    shutdown_event = asyncio.Event()
    loop = asyncio.get_running_loop()
    for sig in (signal.SIGINT, signal.SIGTERM):
        loop.add_signal_handler(sig, shutdown_event.set)

    logger.info(f"Starting Server on {APP_HOST}:{APP_PORT}")
    try:
        await serve(app, config, shutdown_trigger=shutdown_event.wait)
    except Exception as e:
        app_logger.log_fatal(e)
        raise
    logger.info("Shutting down")


if __name__ == "__main__":
    configure_logging()
    asyncio.run(main())
