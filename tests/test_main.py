from pathlib import Path

import pytest

from bdayfeed import main
from bdayfeed.cardav_client import FetchError

ALICE = "BEGIN:VCARD\r\nVERSION:3.0\r\nFN:Alice\r\nBDAY:--0615\r\nEND:VCARD\r\n"


@pytest.fixture(autouse=True)
def feed_env(monkeypatch):
    monkeypatch.setenv("TIMEZONE", "Europe/Berlin")
    monkeypatch.delenv("CALENDAR_NAME", raising=False)


@pytest.mark.asyncio
async def test_refresh_once_writes_calendar_file(monkeypatch, tmp_path: Path) -> None:
    monkeypatch.setattr(main, "fetch_records", lambda: [ALICE])
    output = tmp_path / "birthdays.ics"

    assert await main.refresh_once(str(output)) is True

    document = output.read_text(encoding="utf-8")
    assert document.startswith("BEGIN:VCALENDAR")
    assert "Alice" in document


@pytest.mark.asyncio
async def test_refresh_once_reports_fetch_failure(monkeypatch, tmp_path: Path) -> None:
    def failing_fetch():
        raise FetchError("server down")

    monkeypatch.setattr(main, "fetch_records", failing_fetch)
    output = tmp_path / "birthdays.ics"

    assert await main.refresh_once(str(output)) is False
    assert not output.exists()
