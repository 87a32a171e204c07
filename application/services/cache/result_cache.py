"""
Result cache façade.

Serves a stored serialized result for a repeated search; otherwise runs the
scan, stores its JSON for CACHE_TTL_SECONDS and returns it. Cache failures are
logged and never fail the request.
"""

import logging
from typing import Optional

from redis import asyncio as aioredis
from redis.exceptions import RedisError

from application.models.search_models import SearchCriteria
from application.services.search_service import SearchService
from common.config.config import (
    CACHE_TTL_SECONDS,
    REDIS_HOST,
    REDIS_PASSWORD,
    REDIS_PORT,
    REDIS_SSL,
)
from common.exception.exceptions import CacheUnavailable
from common.telemetry.app_logger import AppLogger

logger = logging.getLogger(__name__)


def build_cache_key(organization: str, criteria: SearchCriteria) -> str:
    """Concatenate the organization and the three patterns.

    There is no delimiter, so ("ab", "c") and ("a", "bc") share a key. The
    format is kept so entries written by earlier deployments stay valid.
    """
    return (
        f"{organization}{criteria.project_name_pattern}"
        f"{criteria.file_name_pattern}{criteria.content_pattern}"
    )


def create_redis_client(
    host: str = REDIS_HOST,
    port: int = REDIS_PORT,
    password: str = REDIS_PASSWORD,
    ssl: bool = REDIS_SSL,
) -> aioredis.Redis:
    return aioredis.Redis(
        host=host,
        port=port,
        password=password or None,
        db=0,
        ssl=ssl,
    )


class RedisResultStore:
    """get/set over redis, raising CacheUnavailable for any redis failure."""

    def __init__(self, client: aioredis.Redis):
        self.client = client

    async def get(self, key: str) -> Optional[bytes]:
        try:
            value = await self.client.get(key)
        except (RedisError, OSError) as e:
            raise CacheUnavailable(f"unable to read from redis: {e}") from e
        if isinstance(value, str):
            return value.encode("utf-8")
        return value

    async def set(self, key: str, value: bytes, ttl_seconds: int) -> None:
        try:
            await self.client.set(key, value, ex=ttl_seconds)
        except (RedisError, OSError) as e:
            raise CacheUnavailable(f"unable to write to redis: {e}") from e

    async def close(self) -> None:
        await self.client.aclose()


class ResultCache:
    """Memoizes serialized search results per (organization, criteria)."""

    def __init__(
        self,
        store: RedisResultStore,
        search_service: SearchService,
        app_logger: AppLogger,
        ttl_seconds: int = CACHE_TTL_SECONDS,
    ):
        self.store = store
        self.search_service = search_service
        self.app_logger = app_logger
        self.ttl_seconds = ttl_seconds

    async def get_or_compute(
        self, organization: str, personal_access_token: str, criteria: SearchCriteria
    ) -> bytes:
        """Return the serialized result tree for the search.

        Raises:
            RemoteUnavailable, RemoteError, InvalidPattern: From the scan on a miss
        """
        key = build_cache_key(organization, criteria)

        cached = await self._read(key)
        if cached is not None:
            self.app_logger.log_info(f"Cache Hit for {key}")
            return cached

        self.app_logger.log_info(f"Cache miss for {key}")
        results = await self.search_service.search(
            organization, personal_access_token, criteria
        )
        payload = results.to_json_bytes()

        # Partial results are served but not pinned for the whole TTL
        if results.warnings:
            logger.info(f"Not caching partial result for {key}")
        else:
            await self._write(key, payload)

        return payload

    async def _read(self, key: str) -> Optional[bytes]:
        try:
            return await self.store.get(key)
        except CacheUnavailable as e:
            self.app_logger.log_error(e)
            logger.warning(f"Cache read failed, treating as miss: {e}")
            return None

    async def _write(self, key: str, payload: bytes) -> None:
        try:
            await self.store.set(key, payload, self.ttl_seconds)
        except CacheUnavailable as e:
            self.app_logger.log_error(e)
            logger.warning(f"Cache write failed, result not cached: {e}")
