"""
Tests for cache backends and the fail-open cache wrapper
"""

from unittest.mock import Mock, patch

import pytest
import redis

from tree_app.services.cache_backend import (
    CacheBackend,
    InMemoryCacheBackend,
    RedisCacheBackend,
    ResilientCache,
    build_cache_backend,
)
from tree_app.services.exceptions import CacheUnavailableError
from tree_app.shared.circuit_breaker import CircuitBreaker, CircuitBreakerState


class FakeClock:
    def __init__(self):
        self.now = 0.0

    def __call__(self):
        return self.now


@pytest.fixture
def failing_backend():
    backend = Mock(spec=CacheBackend)
    error = CacheUnavailableError('connection refused')
    backend.get.side_effect = error
    backend.set.side_effect = error
    backend.delete.side_effect = error
    backend.delete_pattern.side_effect = error
    return backend


class TestInMemoryCacheBackend:
    """Process-local backend"""

    def test_set_and_get(self):
        backend = InMemoryCacheBackend()
        backend.set('a', 'value', 60)

        assert backend.get('a') == 'value'
        assert backend.get('missing') is None

    def test_entries_expire(self):
        clock = FakeClock()
        backend = InMemoryCacheBackend(clock=clock)
        backend.set('a', 'value', 10)

        clock.now = 9.9
        assert backend.get('a') == 'value'
        clock.now = 10
        assert backend.get('a') is None
        assert backend.keys() == []

    def test_delete_and_pattern(self):
        backend = InMemoryCacheBackend()
        for key in ('pedigree:org1:p', 'family:org1:p', 'family:org2:p'):
            backend.set(key, '{}', 60)

        assert backend.delete(['pedigree:org1:p', 'nope']) == 1
        assert backend.delete_pattern('*:org1:*') == 1
        assert backend.keys() == ['family:org2:p']


class TestRedisCacheBackend:
    """Redis client errors surface as CacheUnavailableError"""

    def test_get_error_wrapped(self):
        client = Mock()
        client.get.side_effect = redis.ConnectionError('down')
        backend = RedisCacheBackend('redis://localhost:6379/2', client=client)

        with pytest.raises(CacheUnavailableError):
            backend.get('key')

    def test_set_uses_ttl(self):
        client = Mock()
        backend = RedisCacheBackend('redis://localhost:6379/2', client=client)

        backend.set('key', 'value', 120)

        client.set.assert_called_once_with('key', 'value', ex=120)

    def test_delete_pattern_scans(self):
        client = Mock()
        client.scan_iter.return_value = iter(['a', 'b'])
        client.delete.return_value = 2
        backend = RedisCacheBackend('redis://localhost:6379/2', client=client)

        assert backend.delete_pattern('*:org:*') == 2
        client.delete.assert_called_once_with('a', 'b')

    def test_delete_empty_list(self):
        client = Mock()
        backend = RedisCacheBackend('redis://localhost:6379/2', client=client)

        assert backend.delete([]) == 0
        client.delete.assert_not_called()

    def test_build_backend_selects_by_url(self):
        assert isinstance(build_cache_backend(''), InMemoryCacheBackend)
        with patch('tree_app.services.cache_backend.redis.Redis.from_url') as from_url:
            backend = build_cache_backend('redis://cache:6379/3', socket_timeout=0.25)
        assert isinstance(backend, RedisCacheBackend)
        from_url.assert_called_once_with('redis://cache:6379/3', socket_timeout=0.25,
                                         socket_connect_timeout=0.25, decode_responses=True)


class TestResilientCache:
    """Backend failures never reach the caller"""

    def test_json_round_trip(self):
        cache = ResilientCache(InMemoryCacheBackend())

        assert cache.set_json('k', {'b': 1, 'a': [1, 2]}, 60) is True
        assert cache.get_json('k') == {'a': [1, 2], 'b': 1}

    def test_failures_are_misses(self, failing_backend):
        cache = ResilientCache(failing_backend)

        assert cache.get_json('k') is None
        assert cache.set_json('k', {'a': 1}, 60) is False
        assert cache.remove(['k']) is False
        assert cache.remove_pattern('*') == 0

    def test_breaker_opens_and_skips_backend(self, failing_backend):
        """After the threshold the backend is not called at all"""
        breaker = CircuitBreaker('test', threshold=2, recovery_timeout_sec=30, clock=FakeClock())
        cache = ResilientCache(failing_backend, breaker)

        cache.get_json('a')
        cache.get_json('b')
        assert breaker.state == CircuitBreakerState.OPEN

        cache.get_json('c')
        assert failing_backend.get.call_count == 2

    def test_failure_logged_as_warning(self, failing_backend):
        cache = ResilientCache(failing_backend)

        with patch('tree_app.services.cache_backend.logger') as mock_logger:
            cache.get_json('k')

        mock_logger.warning.assert_called_once()

    def test_oversized_payload_not_written(self):
        backend = InMemoryCacheBackend()
        cache = ResilientCache(backend, max_payload_bytes=64)

        assert cache.set_json('big', {'data': 'x' * 100}, 60) is False
        assert backend.keys() == []

    def test_corrupt_entry_discarded(self):
        backend = InMemoryCacheBackend()
        backend.set('k', 'not json', 60)
        cache = ResilientCache(backend)

        assert cache.get_json('k') is None
        assert backend.get('k') is None
