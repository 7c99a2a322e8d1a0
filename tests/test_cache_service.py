import threading

from services.cache_service import TTLCache


class FakeClock:
    def __init__(self, now=0.0):
        self.now = now

    def __call__(self):
        return self.now


def test_get_within_ttl_returns_stored_value():
    clock = FakeClock()
    cache = TTLCache(ttl_seconds=5, clock=clock)
    value = {"price": 1.5}
    cache.put("addr", value)

    clock.now = 4.9
    assert cache.get("addr") is value


def test_get_after_ttl_returns_none_but_stale_survives():
    clock = FakeClock()
    cache = TTLCache(ttl_seconds=5, clock=clock)
    cache.put("addr", {"price": 1.5})

    clock.now = 5.0
    assert cache.get("addr") is None
    assert cache.get_stale("addr") == {"price": 1.5}


def test_missing_key():
    cache = TTLCache()
    assert cache.get("nope") is None
    assert cache.get_stale("nope") is None


def test_capacity_evicts_oldest_written():
    clock = FakeClock()
    cache = TTLCache(ttl_seconds=5, max_entries=100, clock=clock)
    for i in range(101):
        clock.now = i * 0.001
        cache.put(f"addr-{i}", i)

    assert len(cache) == 100
    assert "addr-0" not in cache
    assert "addr-100" in cache


def test_rewrite_refreshes_recency():
    cache = TTLCache(max_entries=2)
    cache.put("a", 1)
    cache.put("b", 2)
    cache.put("a", 3)
    cache.put("c", 4)

    assert "b" not in cache
    assert cache.get_stale("a") == 3
    assert len(cache) == 2


def test_concurrent_writers_keep_bound():
    cache = TTLCache(max_entries=50)

    def writer(offset):
        for i in range(200):
            cache.put(f"{offset}-{i}", i)

    threads = [threading.Thread(target=writer, args=(n,)) for n in range(4)]
    for thread in threads:
        thread.start()
    for thread in threads:
        thread.join()

    assert len(cache) == 50
