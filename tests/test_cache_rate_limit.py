"""In-process TTL cache and the request rate limiter."""

import threading

import pytest

from eventreg.exceptions import TooManyRequests
from eventreg.utils.cache import TTLCache
from eventreg.utils.rate_limit import RateLimiter


class FakeClock:
    def __init__(self):
        self.now = 1000.0

    def __call__(self):
        return self.now

    def advance(self, seconds):
        self.now += seconds


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def store(clock):
    return TTLCache(default_ttl=60, clock=clock)


class TestTTLCache:
    def test_get_missing(self, store):
        assert store.get("nope") is None

    def test_expired_entry_is_evicted_on_read(self, store, clock):
        store.set("k", "v", ttl=10)
        clock.advance(11)

        assert store.get("k") is None
        assert len(store) == 0

    def test_set_overwrites_value_and_ttl(self, store, clock):
        store.set("k", 1, ttl=5)
        clock.advance(4)
        store.set("k", 2, ttl=5)
        clock.advance(4)

        assert store.get("k") == 2

    def test_delete_pattern(self, store):
        store.set("student:list:{\"page\": 1}", "a")
        store.set("student:list:{\"page\": 2}", "b")
        store.set("student:1", "c")

        removed = store.delete_pattern("student:list:*")

        assert removed == 2
        assert store.get("student:1") == "c"

    def test_sweep_drops_only_expired(self, store, clock):
        store.set("short", 1, ttl=1)
        store.set("long", 2, ttl=100)
        clock.advance(5)

        assert store.sweep() == 1
        assert len(store) == 1
        assert store.get("long") == 2

    def test_concurrent_writers(self):
        store = TTLCache()

        def writer(n):
            for i in range(200):
                store.set(f"{n}:{i}", i)

        threads = [threading.Thread(target=writer, args=(n,)) for n in range(8)]
        for t in threads:
            t.start()
        for t in threads:
            t.join()

        assert len(store) == 8 * 200


class TestRateLimiter:
    def test_allows_up_to_limit_then_rejects(self, store):
        limiter = RateLimiter(max_requests=3, window_seconds=60, store=store)

        for _ in range(3):
            limiter.hit("rate_limit:1.2.3.4:GET:/students")

        with pytest.raises(TooManyRequests) as exc:
            limiter.hit("rate_limit:1.2.3.4:GET:/students")
        assert exc.value.retry_after == 60
        assert exc.value.status_code == 429

    def test_keys_are_independent(self, store):
        limiter = RateLimiter(max_requests=1, window_seconds=60, store=store)

        limiter.hit("rate_limit:1.2.3.4:GET:/students")
        limiter.hit("rate_limit:5.6.7.8:GET:/students")
        limiter.hit("rate_limit:1.2.3.4:POST:/students")

    def test_window_resets(self, store, clock):
        limiter = RateLimiter(max_requests=1, window_seconds=60, store=store)
        limiter.hit("k")
        with pytest.raises(TooManyRequests):
            limiter.hit("k")

        clock.advance(61)

        limiter.hit("k")

    def test_defaults_come_from_settings(self, monkeypatch):
        from eventreg.config import settings

        monkeypatch.setattr(settings, "RATE_LIMIT_MAX_REQUESTS", 7)
        monkeypatch.setattr(settings, "RATE_LIMIT_WINDOW_SECONDS", 30)

        limiter = RateLimiter()

        assert (limiter.limit, limiter.window) == (7, 30)

    def test_students_router_is_limited(self, client, monkeypatch):
        from eventreg.config import settings

        monkeypatch.setattr(settings, "RATE_LIMIT_MAX_REQUESTS", 2)

        statuses = [client.get("/students").status_code for _ in range(3)]

        assert statuses == [200, 200, 429]
