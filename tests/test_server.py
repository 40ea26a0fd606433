from datetime import datetime
from zoneinfo import ZoneInfo

import pytest
from aiohttp.test_utils import TestClient, TestServer

from bdayfeed.cache import FeedCache
from bdayfeed.cardav_client import FetchError
from bdayfeed.feed import FeedSynthesizer
from bdayfeed.refresher import RefreshService
from bdayfeed.server import create_app

ALICE = "BEGIN:VCARD\r\nVERSION:3.0\r\nFN:Alice\r\nBDAY:1990-06-15\r\nEND:VCARD\r\n"


def make_service(cache: FeedCache, responses: list) -> RefreshService:
    def fetch():
        response = responses.pop(0)
        if isinstance(response, Exception):
            raise response
        return response

    return RefreshService(
        fetch,
        cache,
        FeedSynthesizer(),
        now=lambda: datetime(2024, 6, 1, tzinfo=ZoneInfo("Europe/Berlin")),
    )


@pytest.mark.asyncio
async def test_feed_is_not_found_before_first_refresh() -> None:
    async with TestClient(TestServer(create_app(FeedCache()))) as client:
        response = await client.get("/calendar.ics")

        assert response.status == 404
        assert await response.text() == "Calendar not found"


@pytest.mark.asyncio
async def test_feed_is_served_as_calendar() -> None:
    cache = FeedCache()
    cache.set("BEGIN:VCALENDAR\r\nEND:VCALENDAR\r\n")

    async with TestClient(TestServer(create_app(cache))) as client:
        response = await client.get("/calendar.ics")

        assert response.status == 200
        assert response.headers["Content-Type"] == "text/calendar; charset=utf-8"
        assert await response.text() == "BEGIN:VCALENDAR\r\nEND:VCALENDAR\r\n"


@pytest.mark.asyncio
async def test_feed_path_is_configurable() -> None:
    cache = FeedCache()
    cache.set("feed")

    async with TestClient(TestServer(create_app(cache, "/birthdays.ics"))) as client:
        assert (await client.get("/birthdays.ics")).status == 200
        assert (await client.get("/calendar.ics")).status == 404


@pytest.mark.asyncio
async def test_empty_refresh_serves_empty_calendar() -> None:
    cache = FeedCache()
    service = make_service(cache, [[]])
    await service.refresh()

    async with TestClient(TestServer(create_app(cache))) as client:
        response = await client.get("/calendar.ics")

        assert response.status == 200
        body = await response.text()
        assert "BEGIN:VCALENDAR" in body
        assert "BEGIN:VEVENT" not in body


@pytest.mark.asyncio
async def test_failed_refresh_keeps_serving_previous_feed() -> None:
    cache = FeedCache()
    service = make_service(cache, [[ALICE], FetchError("server down")])

    async with TestClient(TestServer(create_app(cache))) as client:
        await service.refresh()
        first = await (await client.get("/calendar.ics")).text()

        await service.refresh()
        response = await client.get("/calendar.ics")

        assert response.status == 200
        assert await response.text() == first
        assert "Alice" in first
