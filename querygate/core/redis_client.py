"""
Shared Redis client (used by the Redis publish transport).

All Redis connections go through this module so the process holds a single
client. ``get_redis()`` returns None when the initial ping fails.
"""

import logging
import threading

import redis

from querygate.core.config import settings

_LOG = logging.getLogger(__name__)

_lock = threading.Lock()
_client: "redis.Redis | None" = None
_tried = False


def get_redis() -> "redis.Redis | None":
    """Return the shared bytes-mode client, creating it on first use."""
    global _client, _tried
    if _tried:
        return _client
    with _lock:
        if _tried:
            return _client
        _tried = True
        _client = _create_client()
        return _client


def _create_client() -> "redis.Redis | None":
    try:
        r = redis.Redis.from_url(
            settings.REDIS_URL,
            decode_responses=False,
            socket_connect_timeout=2,
            socket_timeout=2,
        )
        r.ping()
        return r
    except redis.RedisError as e:
        _LOG.warning("Redis unavailable at %s: %s", settings.REDIS_URL, e)
        return None


def reset() -> None:
    """Drop the cached client so the next ``get_redis()`` reconnects."""
    global _client, _tried
    with _lock:
        client, _client, _tried = _client, None, False
    if client is not None:
        try:
            client.close()
        except redis.RedisError:
            pass


def ping() -> bool:
    """True if the shared client answers PING."""
    client = get_redis()
    if client is None:
        return False
    try:
        return bool(client.ping())
    except redis.RedisError:
        return False
