"""Tests for recordkit.cache: MemoryCache and FileCache."""

import logging

import pytest

from recordkit import CountCache, FileCache, MemoryCache


class Clock:

    def __init__(self, now=1000.0):
        self.now = now

    def __call__(self):
        return self.now


@pytest.fixture(params=["memory", "file"])
def cache_and_clock(request, tmp_path):
    clock = Clock()
    if request.param == "memory":
        return MemoryCache(clock=clock), clock
    return FileCache(tmp_path / "cache", clock=clock), clock


def test_implements_protocol(cache_and_clock):
    cache, _ = cache_and_clock
    assert isinstance(cache, CountCache)


def test_set_get_delete(cache_and_clock):
    cache, _ = cache_and_clock
    assert cache.get("missing") is None
    assert cache.set("key", {"total": 3}, 60) is True
    assert cache.get("key") == {"total": 3}
    assert cache.has("key")
    assert cache.delete("key") is True
    assert cache.delete("key") is False
    assert cache.get("key") is None


def test_expiry(cache_and_clock):
    cache, clock = cache_and_clock
    cache.set("key", 42, 300)
    clock.now += 299
    assert cache.get("key") == 42
    clock.now += 2
    assert cache.get("key") is None


def test_remember(cache_and_clock):
    cache, clock = cache_and_clock
    calls = []

    def compute():
        calls.append(1)
        return 7

    assert cache.remember("key", 10, compute) == 7
    assert cache.remember("key", 10, compute) == 7
    assert len(calls) == 1
    clock.now += 11
    assert cache.remember("key", 10, compute) == 7
    assert len(calls) == 2


def test_clear(cache_and_clock):
    cache, _ = cache_and_clock
    cache.set("a", 1, 10)
    cache.set("b", 2, 10)
    assert cache.clear() is True
    assert cache.get("a") is None
    assert cache.get("b") is None


def test_file_cache_layout_and_cleanup(tmp_path):
    clock = Clock()
    cache = FileCache(tmp_path / "nested" / "cache", clock=clock)
    cache.set("short", 1, 10)
    cache.set("long", 2, 1000)
    assert len(list((tmp_path / "nested" / "cache").glob("*.cache"))) == 2
    clock.now += 100
    assert cache.cleanup() == 1
    assert cache.get("long") == 2


def test_file_cache_discards_unreadable_entries(tmp_path, caplog):
    cache = FileCache(tmp_path)
    cache.set("key", 1, 10)
    path = next(tmp_path.glob("*.cache"))
    path.write_text("{not json", encoding="utf-8")
    with caplog.at_level(logging.WARNING, logger="recordkit"):
        assert cache.get("key") is None
    assert "unreadable" in caplog.text
    assert not path.exists()
