"""Circuit breaker storage and listener."""
from datetime import datetime, timedelta, timezone
from unittest.mock import MagicMock, patch

import pybreaker

from settlement.services import circuit_breaker as cb


class FakeRedis:
    def __init__(self):
        self.data = {}

    def get(self, key):
        return self.data.get(key)

    def set(self, key, value, ex=None):
        self.data[key] = str(value)

    def incr(self, key):
        self.data[key] = str(int(self.data.get(key, 0)) + 1)

    def expire(self, key, seconds):
        pass

    def delete(self, key):
        self.data.pop(key, None)


def _fail(breaker):
    def boom():
        raise ConnectionError("down")

    try:
        breaker.call(boom)
    except (ConnectionError, pybreaker.CircuitBreakerError):
        pass


class TestRedisStorage:
    def test_state_counter_and_opened_at(self):
        storage = cb.RedisCircuitBreakerStorage("gateway:test", client=FakeRedis())
        assert storage.state == pybreaker.STATE_CLOSED
        assert storage.counter == 0

        storage.increment_counter()
        storage.increment_counter()
        assert storage.counter == 2
        storage.reset_counter()
        assert storage.counter == 0

        storage.state = pybreaker.STATE_OPEN
        assert storage.state == pybreaker.STATE_OPEN

        opened = datetime(2025, 1, 1, 12, 0, tzinfo=timezone.utc)
        storage.opened_at = opened
        assert storage.opened_at == opened

    def test_success_counter(self):
        storage = cb.RedisCircuitBreakerStorage("gateway:success", client=FakeRedis())
        assert storage.success_counter == 0
        storage.increment_success_counter()
        assert storage.success_counter == 1
        storage.reset_success_counter()
        assert storage.success_counter == 0

    def test_breaker_opens_through_redis_storage(self):
        storage = cb.RedisCircuitBreakerStorage("gateway:redis", client=FakeRedis())
        breaker = pybreaker.CircuitBreaker(fail_max=2, reset_timeout=60, state_storage=storage)

        for _ in range(2):
            _fail(breaker)
        assert storage.state == pybreaker.STATE_OPEN

    def test_half_open_breaker_closes_after_a_success(self):
        storage = cb.RedisCircuitBreakerStorage("gateway:recover", client=FakeRedis())
        breaker = pybreaker.CircuitBreaker(fail_max=1, reset_timeout=60, state_storage=storage)

        _fail(breaker)
        assert storage.state == pybreaker.STATE_OPEN

        # reset_timeout has elapsed
        storage.opened_at = storage.opened_at - timedelta(seconds=120)

        assert breaker.call(lambda: "ok") == "ok"
        assert storage.state == pybreaker.STATE_CLOSED
        assert breaker.current_state == pybreaker.STATE_CLOSED


def test_get_circuit_breaker_is_cached_and_in_memory_without_redis():
    with patch.object(cb.settings, "redis_url", None):
        first = cb.get_circuit_breaker("gateway:cached")
        second = cb.get_circuit_breaker("gateway:cached")
    assert first is second
    assert first.current_state == pybreaker.STATE_CLOSED


def test_listener_logs_state_change():
    listener = cb.CircuitBreakerListener("gateway:log")
    with patch.object(cb.logger, "warning") as warning:
        listener.state_change(MagicMock(), pybreaker.STATE_CLOSED, pybreaker.STATE_OPEN)
    assert warning.call_args.args[0] == "circuit_breaker_state_change"
    assert warning.call_args.kwargs["extra"]["new_state"] == pybreaker.STATE_OPEN
