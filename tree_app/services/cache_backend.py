"""
Cache backends and the fail-open wrapper the tree cache talks to
"""

import json
import threading
import time
from abc import ABC, abstractmethod
from fnmatch import fnmatchcase

import redis

from tree_app.services.exceptions import CacheUnavailableError
from tree_app.shared.circuit_breaker import CircuitBreaker
from tree_app.shared.logging_config import get_project_logger


logger = get_project_logger(__name__)

DELETE_CHUNK_SIZE = 500
MAX_PAYLOAD_BYTES = 5 * 1024 * 1024


class CacheBackend(ABC):
    """Atomic per-key string store with TTL. Failures raise CacheUnavailableError."""

    @abstractmethod
    def get(self, key: str) -> str | None:
        pass

    @abstractmethod
    def set(self, key: str, value: str, ttl_seconds: int):
        pass

    @abstractmethod
    def delete(self, keys: list[str]) -> int:
        pass

    @abstractmethod
    def delete_pattern(self, pattern: str) -> int:
        """Delete every key matching a glob-style pattern"""


class RedisCacheBackend(CacheBackend):
    """Redis backend; the same server family the Celery broker runs on"""

    def __init__(self, url: str, socket_timeout: float = 0.5, client: redis.Redis | None = None):
        self.client = client or redis.Redis.from_url(
            url,
            socket_timeout=socket_timeout,
            socket_connect_timeout=socket_timeout,
            decode_responses=True,
        )

    def get(self, key: str) -> str | None:
        try:
            return self.client.get(key)
        except redis.RedisError as e:
            raise CacheUnavailableError(f"Redis GET failed: {e}") from e

    def set(self, key: str, value: str, ttl_seconds: int):
        try:
            self.client.set(key, value, ex=ttl_seconds)
        except redis.RedisError as e:
            raise CacheUnavailableError(f"Redis SET failed: {e}") from e

    def delete(self, keys: list[str]) -> int:
        deleted = 0
        try:
            for start in range(0, len(keys), DELETE_CHUNK_SIZE):
                chunk = keys[start:start + DELETE_CHUNK_SIZE]
                if chunk:
                    deleted += self.client.delete(*chunk)
        except redis.RedisError as e:
            raise CacheUnavailableError(f"Redis DEL failed: {e}") from e
        return deleted

    def delete_pattern(self, pattern: str) -> int:
        try:
            batch = []
            deleted = 0
            for key in self.client.scan_iter(match=pattern, count=DELETE_CHUNK_SIZE):
                batch.append(key)
                if len(batch) >= DELETE_CHUNK_SIZE:
                    deleted += self.client.delete(*batch)
                    batch = []
            if batch:
                deleted += self.client.delete(*batch)
            return deleted
        except redis.RedisError as e:
            raise CacheUnavailableError(f"Redis SCAN/DEL failed: {e}") from e


class InMemoryCacheBackend(CacheBackend):
    """Process-local backend for development and tests"""

    def __init__(self, clock=time.monotonic):
        self._entries: dict[str, tuple[str, float]] = {}
        self._lock = threading.Lock()
        self._clock = clock

    def get(self, key: str) -> str | None:
        with self._lock:
            entry = self._entries.get(key)
            if entry is None:
                return None
            value, expires_at = entry
            if expires_at <= self._clock():
                del self._entries[key]
                return None
            return value

    def set(self, key: str, value: str, ttl_seconds: int):
        with self._lock:
            self._entries[key] = (value, self._clock() + ttl_seconds)

    def delete(self, keys: list[str]) -> int:
        with self._lock:
            return sum(1 for key in keys if self._entries.pop(key, None) is not None)

    def delete_pattern(self, pattern: str) -> int:
        with self._lock:
            matched = [key for key in self._entries if fnmatchcase(key, pattern)]
            for key in matched:
                del self._entries[key]
            return len(matched)

    def keys(self) -> list[str]:
        with self._lock:
            return sorted(self._entries)


class ResilientCache:
    """
    JSON cache that never fails its caller.

    Every backend error is logged and turned into a miss (reads) or a False
    return (writes). A circuit breaker stops hammering a backend that keeps
    failing; while it is open calls are skipped without touching the backend.
    """

    def __init__(self, backend: CacheBackend, breaker: CircuitBreaker | None = None,
                 max_payload_bytes: int = MAX_PAYLOAD_BYTES):
        self.backend = backend
        self.breaker = breaker or CircuitBreaker('tree-cache')
        self.max_payload_bytes = max_payload_bytes

    def _call(self, operation: str, func, default):
        if not self.breaker.allow_request():
            logger.debug(f"Cache {operation} skipped: circuit open")
            return default
        try:
            result = func()
        except CacheUnavailableError as e:
            self.breaker.record_failure()
            logger.warning(f"Cache {operation} failed, continuing without cache: {e}")
            return default
        self.breaker.record_success()
        return result

    def get_json(self, key: str) -> dict | None:
        raw = self._call(f"get {key}", lambda: self.backend.get(key), None)
        if raw is None:
            return None
        try:
            return json.loads(raw)
        except ValueError as e:
            logger.warning(f"Discarding unreadable cache entry {key}: {e}")
            self.remove([key])
            return None

    def set_json(self, key: str, value: dict, ttl_seconds: int) -> bool:
        payload = json.dumps(value, separators=(',', ':'), sort_keys=True)
        size = len(payload.encode('utf-8'))
        if size > self.max_payload_bytes:
            logger.warning(f"Not caching {key}: payload of {size} bytes exceeds {self.max_payload_bytes}")
            return False

        def _set():
            self.backend.set(key, payload, ttl_seconds)
            return True

        return self._call(f"set {key}", _set, False)

    def remove(self, keys: list[str]) -> bool:
        def _remove():
            self.backend.delete(keys)
            return True

        return self._call(f"remove of {len(keys)} keys", _remove, False)

    def remove_pattern(self, pattern: str) -> int:
        return self._call(f"remove pattern {pattern}", lambda: self.backend.delete_pattern(pattern), 0)


def build_cache_backend(url: str | None, socket_timeout: float = 0.5) -> CacheBackend:
    """Redis when a URL is configured, otherwise a process-local store"""
    if url:
        return RedisCacheBackend(url, socket_timeout=socket_timeout)
    logger.info("No TREE_CACHE_URL configured, using in-memory tree cache")
    return InMemoryCacheBackend()
