import pytest

from bdayfeed.cache import FeedCache, NotReadyError


class FakeClock:
    def __init__(self) -> None:
        self.now = 1000.0

    def __call__(self) -> float:
        return self.now


def test_empty_cache_is_not_ready() -> None:
    cache = FeedCache()

    assert cache.get() is None
    with pytest.raises(NotReadyError):
        cache.require()


def test_set_then_get_returns_document() -> None:
    cache = FeedCache()
    cache.set("BEGIN:VCALENDAR\r\nEND:VCALENDAR\r\n")

    assert cache.require() == "BEGIN:VCALENDAR\r\nEND:VCALENDAR\r\n"
    assert cache.updated_at is not None


def test_set_replaces_previous_document() -> None:
    cache = FeedCache()
    cache.set("first")
    cache.set("second")

    assert cache.get() == "second"


def test_entry_expires_after_ttl() -> None:
    clock = FakeClock()
    cache = FeedCache(ttl_seconds=60, clock=clock)
    cache.set("feed")

    clock.now += 59
    assert cache.get() == "feed"

    clock.now += 1
    assert cache.get() is None
    with pytest.raises(NotReadyError):
        cache.require()


def test_new_document_restarts_ttl() -> None:
    clock = FakeClock()
    cache = FeedCache(ttl_seconds=60, clock=clock)
    cache.set("old")
    clock.now += 50
    cache.set("new")
    clock.now += 50

    assert cache.get() == "new"


def test_zero_ttl_never_expires() -> None:
    clock = FakeClock()
    cache = FeedCache(ttl_seconds=0, clock=clock)
    cache.set("feed")
    clock.now += 10 ** 9

    assert cache.get() == "feed"
