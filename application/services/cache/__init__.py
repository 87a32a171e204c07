from application.services.cache.result_cache import (
    RedisResultStore,
    ResultCache,
    build_cache_key,
)

__all__ = ["RedisResultStore", "ResultCache", "build_cache_key"]
