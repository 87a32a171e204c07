"""
Search routes.

POST / runs (or serves from cache) a content search across an Azure DevOps
organization. GET /health is the liveness probe.
"""

import logging

from quart import Blueprint, current_app, request
from quart.typing import ResponseReturnValue

from application.routes.common.request_body import (
    BODY_TOO_LARGE,
    RequestBodyError,
    decode_search_criteria,
)
from application.routes.common.response import APIResponse
from application.services.cache.result_cache import ResultCache
from common.config.config import MAX_REQUEST_BODY_BYTES
from common.exception.exceptions import RemoteUnavailable
from common.telemetry.app_logger import AppLogger

logger = logging.getLogger(__name__)

search_bp = Blueprint("search", __name__)

EXTENSION_KEY = "content_scanner"

CONTENT_TYPE_REQUIRED = "Content-Type header is not application/json"
ORG_REQUIRED = "Org header is required"
PAT_REQUIRED = "PAT header is required"


def _result_cache() -> ResultCache:
    return current_app.extensions[EXTENSION_KEY]["result_cache"]


def _app_logger() -> AppLogger:
    return current_app.extensions[EXTENSION_KEY]["app_logger"]


@search_bp.route("/", methods=["POST"])
async def search() -> ResponseReturnValue:
    """Search an organization's files for lines matching the posted criteria."""
    if request.mimetype != "application/json":
        return APIResponse.error(CONTENT_TYPE_REQUIRED, 415)

    organization = request.headers.get("Org", "")
    if not organization:
        return APIResponse.error(ORG_REQUIRED, 400)

    personal_access_token = request.headers.get("PAT", "")
    if not personal_access_token:
        return APIResponse.error(PAT_REQUIRED, 400)

    if (request.content_length or 0) > MAX_REQUEST_BODY_BYTES:
        return APIResponse.error(BODY_TOO_LARGE, 413)

    body = await request.get_data(cache=False)
    try:
        criteria = decode_search_criteria(body)
    except RequestBodyError as e:
        return APIResponse.error(e.message, e.status_code)

    app_logger = _app_logger()
    try:
        payload = await _result_cache().get_or_compute(
            organization, personal_access_token, criteria
        )
    except RemoteUnavailable as e:
        app_logger.log_error(e)
        return APIResponse.error(e.message, 503)
    except Exception as e:
        app_logger.log_error(e)
        logger.exception(f"Search failed for organization {organization}")
        return APIResponse.internal_error()

    return APIResponse.json_bytes(payload)


@search_bp.route("/health", methods=["GET"])
async def health() -> ResponseReturnValue:
    """Liveness probe."""
    return APIResponse.empty(200)
