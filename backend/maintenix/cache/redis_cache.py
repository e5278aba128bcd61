import json
import logging
import os
from typing import Any

import redis
from fastapi.encoders import jsonable_encoder


logger = logging.getLogger(__name__)

QUEUE_STATUS_PREFIX = "integration:queue"
JOB_STATS_PREFIX = "integration:stats"

_client: redis.Redis | None = None


def redis_url() -> str:
    return os.getenv("REDIS_URL") or f"redis://{os.getenv('REDIS_HOST', 'redis')}:{os.getenv('REDIS_PORT', '6379')}/0"


def get_redis() -> redis.Redis | None:
    global _client
    if _client is not None:
        return _client
    if os.getenv("DISABLE_CACHE", "0") == "1":
        return None
    try:
        _client = redis.Redis.from_url(redis_url(), socket_connect_timeout=1)
        _client.ping()
        return _client
    except redis.RedisError:
        logger.info("Redis unavailable, cache disabled")
        _client = None
        return None


def make_key(prefix: str, company_id: int | None, params: dict[str, Any] | None = None) -> str:
    parts = [prefix]
    if company_id is not None:
        parts.append(f"company={company_id}")
    params = params or {}
    for k in sorted(params.keys()):
        parts.append(f"{k}={params[k]}")
    return "|".join(parts)


def cache_get(key: str) -> Any | None:
    client = get_redis()
    if client is None:
        return None
    try:
        raw = client.get(key)
    except redis.RedisError:
        return None
    if not raw:
        return None
    try:
        return json.loads(raw)
    except ValueError:
        return None


def cache_set(key: str, value: Any, ttl_seconds: int) -> None:
    client = get_redis()
    if client is None:
        return
    payload = json.dumps(jsonable_encoder(value))
    try:
        client.setex(key, ttl_seconds, payload)
    except redis.RedisError:
        logger.warning("Could not write cache key %s", key)


def cache_delete(key: str) -> None:
    client = get_redis()
    if client is None:
        return
    try:
        client.delete(key)
    except redis.RedisError:
        logger.warning("Could not delete cache key %s", key)


def cache_invalidate_prefix(prefix: str) -> None:
    client = get_redis()
    if client is None:
        return
    try:
        for key in client.scan_iter(match=f"{prefix}*", count=200):
            client.delete(key)
    except redis.RedisError:
        logger.warning("Could not invalidate cache prefix %s", prefix)


def invalidate_company_import_cache(company_id: int) -> None:
    """Cola y estadisticas dejan de ser validas al subir o terminar jobs."""
    cache_delete(make_key(QUEUE_STATUS_PREFIX, company_id))
    # con separador final para no borrar company=10 al invalidar company=1
    cache_invalidate_prefix(make_key(JOB_STATS_PREFIX, company_id) + "|")
