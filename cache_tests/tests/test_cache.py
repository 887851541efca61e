import re

import pytest

from query_cache.cache import QueryCache
from query_cache.config import CacheConfig
from query_cache.errors import ValidationError
from query_cache.models import WarmEntry


def _cache(**overrides) -> QueryCache:
    overrides.setdefault("cleanup_interval", 0)
    return QueryCache(CacheConfig(**overrides))


def test_set_then_get_and_has(clock):
    c = _cache()

    c.set("k", {"score": 0.7})

    assert c.get("k") == {"score": 0.7}
    assert c.has("k") is True
    assert "k" in c


def test_get_missing_returns_default(clock):
    c = _cache()

    assert c.get("nope") is None
    assert c.get("nope", "fallback") == "fallback"


def test_cached_none_is_distinguishable_with_default(clock):
    c = _cache()
    marker = object()

    c.set("k", None)

    assert c.get("k", marker) is None


def test_delete(clock):
    c = _cache()
    c.set("k", 1)

    assert c.delete("k") is True
    assert c.delete("k") is False
    assert c.get("k") is None
    assert c.has("k") is False


def test_default_ttl_boundaries(clock):
    c = _cache(default_ttl=10.0)
    t0 = clock.now
    c.set("k", "v")

    clock.now = t0 + 9.5
    assert c.get("k") == "v"

    # Still live at exactly inserted_at + ttl
    clock.now = t0 + 10.0
    assert c.get("k") == "v"

    clock.now = t0 + 10.5
    assert c.get("k") is None
    assert c.size() == 0


def test_custom_ttl_shorter_than_default(clock):
    c = _cache(default_ttl=100.0)
    c.set("k", "v", ttl=5.0)

    clock.advance(4.9)
    assert c.has("k") is True

    clock.advance(0.2)
    assert c.has("k") is False


def test_custom_ttl_longer_than_default(clock):
    c = _cache(default_ttl=10.0)
    c.set("k", "v", ttl=50.0)

    clock.advance(30.0)
    assert c.get("k") == "v"

    clock.advance(20.1)
    assert c.get("k") is None


def test_custom_ttl_keeps_access_time_after_insertion(clock):
    c = _cache(default_ttl=10.0)
    c.set("k", "v", ttl=50.0)

    entry = c._store["k"]
    assert entry.last_accessed_at >= entry.inserted_at


def test_non_positive_ttl_rejected(clock):
    c = _cache()

    with pytest.raises(ValidationError):
        c.set("k", "v", ttl=0)
    with pytest.raises(ValidationError):
        c.set("k", "v", ttl=-1)


@pytest.mark.parametrize("ttl", [float("nan"), float("inf")])
def test_non_finite_ttl_rejected(clock, ttl):
    c = _cache()

    with pytest.raises(ValidationError):
        c.set("k", "v", ttl=ttl)
    assert c.has("k") is False


def test_capacity_evicts_least_recently_used(clock):
    c = _cache(max_size=3)

    for key in ("a", "b", "c", "d"):
        c.set(key, key)
        clock.advance(1.0)

    assert c.size() == 3
    assert sorted(c.keys()) == ["b", "c", "d"]


def test_read_refreshes_recency(clock):
    c = _cache(max_size=3)
    for key in ("a", "b", "c"):
        c.set(key, key)
        clock.advance(1.0)

    assert c.get("a") == "a"
    clock.advance(1.0)
    c.set("d", "d")

    assert c.has("a") is True
    assert c.has("b") is False
    assert c.has("c") is True
    assert c.has("d") is True


def test_has_does_not_refresh_recency(clock):
    c = _cache(max_size=2)
    c.set("a", 1)
    clock.advance(1.0)
    c.set("b", 2)
    clock.advance(1.0)

    assert c.has("a") is True
    c.set("c", 3)

    assert sorted(c.keys()) == ["b", "c"]


def test_overwrite_at_capacity_does_not_evict(clock):
    c = _cache(max_size=2)
    c.set("a", 1)
    clock.advance(1.0)
    c.set("b", 2)
    clock.advance(1.0)

    c.set("a", 10)

    assert c.size() == 2
    assert c.get("a") == 10
    assert c.get("b") == 2


def test_overwrite_resets_metadata(clock):
    c = _cache()
    c.set("a", 1)
    c.get("a")
    c.get("a")
    clock.advance(5.0)

    c.set("a", 2)

    entry = c._store["a"]
    assert entry.hit_count == 0
    assert entry.inserted_at == clock.now
    assert entry.last_accessed_at == clock.now


def test_get_updates_hit_count_and_access_time(clock):
    c = _cache()
    c.set("a", 1)
    clock.advance(3.0)

    c.get("a")
    c.get("a")

    entry = c._store["a"]
    assert entry.hit_count == 2
    assert entry.last_accessed_at == clock.now


def test_stats_count_every_get(clock):
    c = _cache(default_ttl=10.0)
    assert c.get_stats().hit_rate == 0.0

    c.set("a", 1)
    c.get("a")
    c.get("a")
    c.get("missing")
    clock.advance(11.0)
    c.get("a")  # expired

    stats = c.get_stats()
    assert stats.total_hits == 2
    assert stats.total_misses == 2
    assert stats.total_hits + stats.total_misses == 4
    assert stats.hit_rate == 0.5


def test_has_does_not_touch_stats(clock):
    c = _cache()
    c.set("a", 1)

    c.has("a")
    c.has("missing")

    stats = c.get_stats()
    assert stats.total_hits == 0
    assert stats.total_misses == 0
    assert c._store["a"].hit_count == 0


def test_stats_disabled(clock):
    c = _cache(enable_stats=False)
    c.set("a", 1)
    c.get("a")
    c.get("b")

    stats = c.get_stats()
    assert stats.total_hits == 0
    assert stats.total_misses == 0
    assert stats.hit_rate == 0.0
    assert stats.size == 1


def test_invalidate_substring(clock):
    c = _cache()
    for key in ("foo:1", "bar:foo", "xfoox", "bar:2"):
        c.set(key, key)

    assert c.invalidate("foo") == 3
    assert c.keys() == ["bar:2"]


def test_invalidate_regex(clock):
    c = _cache()
    for key in ("student:1:risk", "student:22:risk", "asset:1:forecast"):
        c.set(key, key)

    assert c.invalidate(re.compile(r"^student:\d+:risk$")) == 2
    assert c.keys() == ["asset:1:forecast"]


def test_invalidate_rejects_other_types(clock):
    c = _cache()

    with pytest.raises(ValidationError):
        c.invalidate(42)


def test_invalidate_prefix_matches_anywhere_in_key(clock):
    c = _cache()
    for key in ("student:1", "report:student:2", "asset:3"):
        c.set(key, key)

    assert c.invalidate_prefix("student:") == 2
    assert c.keys() == ["asset:3"]


def test_clear_resets_store_and_counters(clock):
    c = _cache()
    c.set("a", 1)
    c.get("a")
    c.get("b")

    c.clear()

    stats = c.get_stats()
    assert c.size() == 0
    assert stats.total_hits == 0
    assert stats.total_misses == 0


def test_keys_and_size_include_unswept_expired(clock):
    c = _cache(default_ttl=10.0)
    c.set("a", 1)
    c.set("b", 2)
    clock.advance(11.0)

    assert sorted(c.keys()) == ["a", "b"]
    assert c.size() == 2
    assert len(c) == 2

    assert c.has("a") is False
    assert c.size() == 1


def test_warm_populates_absent_and_keeps_live(clock):
    c = _cache()
    c.set("live", "original")
    c.get("live")

    c.warm(
        [
            WarmEntry(key="live", data="replacement"),
            ("fresh", 1),
            {"key": "other", "data": 2},
        ]
    )

    assert c.get("live") == "original"
    assert c._store["live"].hit_count == 2
    assert c.get("fresh") == 1
    assert c.get("other") == 2


def test_warm_replaces_expired(clock):
    c = _cache(default_ttl=10.0)
    c.set("a", "old")
    clock.advance(11.0)

    c.warm([("a", "new")])

    assert c.get("a") == "new"


def test_warm_rejects_malformed_entries(clock):
    c = _cache()

    with pytest.raises(ValidationError):
        c.warm([{"key": "a"}])
    with pytest.raises(ValidationError):
        c.warm(["a"])


def test_cleanup_removes_only_expired(clock):
    c = _cache(default_ttl=10.0)
    c.set("default", 1)
    c.set("short", 2, ttl=2.0)
    c.set("long", 3, ttl=60.0)
    clock.advance(11.0)

    assert c.cleanup() == 2
    assert c.keys() == ["long"]


def test_destroyed_cache_is_inert(clock):
    c = _cache()
    c.set("a", 1)

    c.destroy()
    c.set("b", 2)
    c.warm([("c", 3)])

    assert c.destroyed is True
    assert c.get("a") is None
    assert c.get("b", "default") == "default"
    assert c.has("b") is False
    assert c.size() == 0
    assert c.get_stats().total_misses == 0


def test_eviction_scenario(clock):
    c = _cache(default_ttl=100.0, max_size=2, enable_stats=True)

    c.set("a", 1)
    clock.advance(1.0)
    c.set("b", 2)
    clock.advance(1.0)
    c.set("c", 3)

    assert sorted(c.keys()) == ["b", "c"]

    assert c.get("b") == 2
    assert c.get_stats().total_hits == 1

    assert c.get("a") is None
    assert c.get_stats().total_misses == 1

    assert c.get_stats().as_dict() == {
        "total_hits": 1,
        "total_misses": 1,
        "hit_rate": 0.5,
        "total_entries": 2,
        "size": 2,
    }


def test_no_sweep_without_running_loop():
    c = QueryCache(CacheConfig(cleanup_interval=5.0))
    c.set("a", 1)

    assert c._cleanup_task is None
    assert c.start_cleanup() is False


def test_eviction_follows_recency_when_timestamps_tie(clock):
    c = _cache(max_size=3)
    for key in ("a", "b", "c"):
        c.set(key, key)

    c.get("a")
    c.set("b", "b2")
    c.set("d", "d")

    assert sorted(c.keys()) == ["a", "b", "d"]
