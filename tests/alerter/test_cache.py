"""Tests for the in-process post cache."""

from __future__ import annotations

from arena_token_monitor.alerter.cache import PostCache
from arena_token_monitor.alerter.models import Channel, PostKey


class FakeClock:
    def __init__(self) -> None:
        self.now = 1000.0

    def __call__(self) -> float:
        return self.now


class TestPostCache:
    """Tests for PostCache."""

    def test_mark_and_lookup(self) -> None:
        cache = PostCache(60, clock=FakeClock())
        assert not cache.is_posted("k")

        cache.mark("k", "champion")

        entry = cache.get("k")
        assert entry is not None
        assert entry.posted is True
        assert entry.post_type == "champion"
        assert cache.is_posted("k")

    def test_entries_expire(self) -> None:
        clock = FakeClock()
        cache = PostCache(60, clock=clock)
        cache.mark("k", "regular")

        clock.now += 59
        assert cache.is_posted("k")

        clock.now += 1
        assert not cache.is_posted("k")
        assert len(cache) == 0

    def test_purge_expired(self) -> None:
        clock = FakeClock()
        cache = PostCache(60, clock=clock)
        cache.mark("old", "regular")
        clock.now += 30
        cache.mark("new", "regular")
        clock.now += 30

        assert cache.purge_expired() == 1
        assert cache.keys() == ["new"]

    def test_clear(self) -> None:
        cache = PostCache(clock=FakeClock())
        cache.mark("a", "regular")
        cache.clear()
        assert len(cache) == 0


class TestPostKey:
    """Tests for launch idempotency keys."""

    def test_cache_key_is_normalized(self) -> None:
        key = PostKey("0xABC", "0xDeAdBeEf", "MoOn")

        assert key.cache_key(Channel.ARENA) == "arena-post-0xABC-0xdeadbeef-moon"
        assert key.cache_key(Channel.DISCORD) == "discord-post-0xABC-0xdeadbeef-moon"

    def test_equal_keys(self) -> None:
        assert PostKey("0x1", "0xAA", "X") == PostKey("0x1", "0xaa", "x")
