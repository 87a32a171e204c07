import logging
from typing import Optional

from quart import Quart
from werkzeug.exceptions import RequestEntityTooLarge

from application.routes import search_bp
from application.routes.common.request_body import BODY_TOO_LARGE
from application.routes.common.response import APIResponse
from application.routes.search import EXTENSION_KEY
from application.services.cache.result_cache import (
    RedisResultStore,
    ResultCache,
    create_redis_client,
)
from application.services.search_service import SearchService
from common.config.config import (
    APP_READ_TIMEOUT,
    APP_WRITE_TIMEOUT,
    MAX_REQUEST_BODY_BYTES,
)
from common.telemetry.app_logger import AppLogger, StandardAppLogger

logger = logging.getLogger(__name__)


def create_app(
    result_cache: Optional[ResultCache] = None,
    app_logger: Optional[AppLogger] = None,
) -> Quart:
    """Build the Quart application.

    Args:
        result_cache: Pre-built cache façade; when omitted a redis-backed one is
            created when the server starts and closed when it stops
        app_logger: Telemetry sink shared by the services

    Returns:
        Configured Quart app
    """
    app = Quart(__name__)
    # Anything above the body limit is rejected by the route; this only stops
    # Quart from buffering much larger bodies first.
    app.config["MAX_CONTENT_LENGTH"] = MAX_REQUEST_BODY_BYTES * 2
    app.config["BODY_TIMEOUT"] = APP_READ_TIMEOUT
    app.config["RESPONSE_TIMEOUT"] = APP_WRITE_TIMEOUT

    app_logger = app_logger or StandardAppLogger()
    app.extensions[EXTENSION_KEY] = {
        "app_logger": app_logger,
        "result_cache": result_cache,
    }

    app.register_blueprint(search_bp)

    @app.errorhandler(RequestEntityTooLarge)
    async def handle_body_too_large(error: RequestEntityTooLarge):
        return APIResponse.error(BODY_TOO_LARGE, 413)

    @app.before_serving
    async def startup() -> None:
        services = app.extensions[EXTENSION_KEY]
        if services["result_cache"] is not None:
            return

        logger.info("Initializing redis result cache...")
        store = RedisResultStore(create_redis_client())
        services["redis_store"] = store
        services["result_cache"] = ResultCache(
            store=store,
            search_service=SearchService(app_logger=app_logger),
            app_logger=app_logger,
        )
        logger.info("Content scanner initialized")

    @app.after_serving
    async def shutdown() -> None:
        """Cleanup on shutdown."""
        logger.info("Shutting down application...")
        services = app.extensions[EXTENSION_KEY]
        store: Optional[RedisResultStore] = services.pop("redis_store", None)
        if store is not None:
            await store.close()
            services["result_cache"] = None

        app_logger.flush()
        app_logger.close()
        logger.info("Application shutdown complete")

    return app
