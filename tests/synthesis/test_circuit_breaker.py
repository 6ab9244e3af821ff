"""
Unit tests for the Redis-backed pybreaker storage (Redis replaced by a dict double).
"""
import unittest
from datetime import datetime, timedelta

import pybreaker

from teachkit.services.circuit_breaker import CircuitBreakerListener, RedisCircuitBreakerStorage


class _DictRedis:
    """The handful of Redis commands the storage uses."""

    def __init__(self):
        self.data: dict[str, str] = {}

    def get(self, key):
        return self.data.get(key)

    def set(self, key, value, ex=None):
        self.data[key] = str(value)

    def incr(self, key):
        self.data[key] = str(int(self.data.get(key, 0)) + 1)
        return int(self.data[key])

    def expire(self, key, seconds):
        return True

    def delete(self, key):
        self.data.pop(key, None)


def _breaker(client, name="synthesis_test", fail_max=2):
    return pybreaker.CircuitBreaker(
        fail_max=fail_max,
        reset_timeout=60,
        state_storage=RedisCircuitBreakerStorage(name, client=client),
        listeners=[CircuitBreakerListener(name)],
    )


def _boom():
    raise RuntimeError("backend down")


class TestRedisCircuitBreakerStorage(unittest.TestCase):
    def test_defaults(self):
        storage = RedisCircuitBreakerStorage("x", client=_DictRedis())
        self.assertEqual(storage.state, pybreaker.STATE_CLOSED)
        self.assertEqual(storage.counter, 0)
        self.assertIsNone(storage.opened_at)

    def test_counter(self):
        storage = RedisCircuitBreakerStorage("x", client=_DictRedis())
        storage.increment_counter()
        storage.increment_counter()
        self.assertEqual(storage.counter, 2)
        storage.reset_counter()
        self.assertEqual(storage.counter, 0)

    def test_opens_after_fail_max_and_state_is_shared(self):
        client = _DictRedis()
        breaker = _breaker(client)
        for _ in range(2):
            with self.assertRaises((RuntimeError, pybreaker.CircuitBreakerError)):
                breaker.call(_boom)
        self.assertEqual(client.data["cb:synthesis_test:state"], pybreaker.STATE_OPEN)

        # A second process sees the same open circuit and fails fast
        other = _breaker(client)
        with self.assertRaises(pybreaker.CircuitBreakerError):
            other.call(lambda: "ok")

    def test_breakers_are_isolated_by_name(self):
        client = _DictRedis()
        image = _breaker(client, name="synthesis_image", fail_max=1)
        with self.assertRaises((RuntimeError, pybreaker.CircuitBreakerError)):
            image.call(_boom)

        audio = _breaker(client, name="synthesis_audio")
        self.assertEqual(audio.call(lambda: "ok"), "ok")

    def test_half_open_breaker_closes_after_success(self):
        client = _DictRedis()
        breaker = _breaker(client, fail_max=1)
        with self.assertRaises((RuntimeError, pybreaker.CircuitBreakerError)):
            breaker.call(_boom)
        self.assertEqual(breaker.current_state, pybreaker.STATE_OPEN)

        # Move the opening past reset_timeout so the next call is the trial call
        opened_at = datetime.fromisoformat(client.data["cb:synthesis_test:opened_at"])
        client.data["cb:synthesis_test:opened_at"] = (opened_at - timedelta(seconds=120)).isoformat()

        self.assertEqual(breaker.call(lambda: "ok"), "ok")
        self.assertEqual(breaker.current_state, pybreaker.STATE_CLOSED)
        self.assertEqual(client.data["cb:synthesis_test:state"], pybreaker.STATE_CLOSED)

        # Closed again: one more failure is counted, not an instant re-open
        breaker = _breaker(client, fail_max=2)
        with self.assertRaises(RuntimeError):
            breaker.call(_boom)
        self.assertEqual(breaker.current_state, pybreaker.STATE_CLOSED)

    def test_success_counter(self):
        storage = RedisCircuitBreakerStorage("x", client=_DictRedis())
        storage.increment_success_counter()
        self.assertEqual(storage.success_counter, 1)
        storage.reset_success_counter()
        self.assertEqual(storage.success_counter, 0)
