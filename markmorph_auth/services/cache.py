"""
Internal service API for the shared key-value cache.

OTP codes, pending signups, rate-limit counters, username lookups and revoked
refresh tokens all live here under disjoint key prefixes. Every operation
raises :class:`.CacheUnavailable` when Redis cannot be reached or times out;
callers decide whether that is fatal or a cache miss.
"""

from typing import Optional, Any
from functools import wraps
import logging

import redis
from redis.cluster import RedisCluster

from ..exceptions import CacheUnavailable

logger = logging.getLogger(__name__)

_DELETE_IF_EQUALS = """
if redis.call('GET', KEYS[1]) == ARGV[1] then
    return redis.call('DEL', KEYS[1])
end
return 0
"""

_POP = """
local value = redis.call('GET', KEYS[1])
if value then
    redis.call('DEL', KEYS[1])
end
return value
"""


def _unavailable_on_error(func: Any) -> Any:
    @wraps(func)
    def inner(self: 'CacheStore', *args: Any, **kwargs: Any) -> Any:
        try:
            return func(self, *args, **kwargs)
        except (redis.exceptions.ConnectionError,
                redis.exceptions.TimeoutError,
                redis.exceptions.RedisClusterException) as e:
            logger.error('Cache %s failed: %s', func.__name__, e)
            raise CacheUnavailable(f'Cache unavailable: {e}') from e
    return inner


class CacheStore(object):
    """
    Manages a connection to Redis.

    The client instance is thread safe and connections are attached at the
    time a command is executed. This class provides a container for the
    connection and the handful of operations the core relies on.
    """

    def __init__(self, connection: redis.Redis) -> None:
        self.r = connection
        self._delete_if_equals = self.r.register_script(_DELETE_IF_EQUALS)
        self._pop = self.r.register_script(_POP)

    @classmethod
    def from_config(cls, config: dict) -> 'CacheStore':
        """Open a connection using application configuration."""
        timeout = float(config.get('REDIS_TIMEOUT', 2.0))
        url = config.get('REDIS_URL')
        if url:
            logger.debug('New Redis connection from URL')
            connection = redis.Redis.from_url(
                url, decode_responses=True,
                socket_timeout=timeout, socket_connect_timeout=timeout
            )
            return cls(connection)

        host = config.get('REDIS_HOST', 'localhost')
        port = int(config.get('REDIS_PORT', '6379'))
        logger.debug('New Redis connection at %s, port %s', host, port)
        if str(config.get('REDIS_CLUSTER', '0')) == '1':
            connection = RedisCluster(host=host, port=port,
                                      decode_responses=True,
                                      socket_timeout=timeout)
        else:
            connection = redis.Redis(
                host=host, port=port,
                db=int(config.get('REDIS_DATABASE', '0')),
                decode_responses=True,
                socket_timeout=timeout, socket_connect_timeout=timeout
            )
        return cls(connection)

    @_unavailable_on_error
    def get(self, key: str) -> Optional[str]:
        """Get the value stored at ``key``, or ``None``."""
        value: Optional[str] = self.r.get(key)
        return value

    @_unavailable_on_error
    def set(self, key: str, value: str, ttl: int) -> None:
        """Store ``value`` at ``key``, expiring after ``ttl`` seconds."""
        self.r.set(key, value, ex=ttl)

    @_unavailable_on_error
    def delete(self, key: str) -> bool:
        """Delete ``key``; returns ``True`` if something was deleted."""
        return bool(self.r.delete(key))

    @_unavailable_on_error
    def incr(self, key: str) -> int:
        """Atomically increment the integer at ``key``."""
        return int(self.r.incr(key))

    @_unavailable_on_error
    def expire(self, key: str, ttl: int) -> None:
        """Set the time-to-live of ``key``."""
        self.r.expire(key, ttl)

    @_unavailable_on_error
    def ttl(self, key: str) -> int:
        """
        Get the remaining time-to-live of ``key`` in seconds.

        Returns -2 if the key does not exist and -1 if it has no expiry.
        """
        return int(self.r.ttl(key))

    @_unavailable_on_error
    def pop(self, key: str) -> Optional[str]:
        """Get and delete ``key`` in one server-side script."""
        value: Optional[str] = self._pop(keys=[key])
        return value

    @_unavailable_on_error
    def delete_if_equals(self, key: str, value: str) -> bool:
        """
        Delete ``key`` only if it currently holds ``value``.

        The comparison and the delete run as one script on the server, so of
        several concurrent callers with the right value exactly one gets
        ``True``.
        """
        return bool(self._delete_if_equals(keys=[key], args=[value]))


def init_app(app: Any) -> None:
    """Set default configuration parameters for an application instance."""
    app.config.setdefault('REDIS_HOST', 'localhost')
    app.config.setdefault('REDIS_PORT', '6379')
    app.config.setdefault('REDIS_DATABASE', '0')
    app.config.setdefault('REDIS_CLUSTER', '0')
    app.config.setdefault('REDIS_TIMEOUT', 2.0)
