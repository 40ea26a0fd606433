"""
Refresh cycle: fetch contacts, build the feed, store it in the cache
"""

import asyncio
import logging
from datetime import datetime
from typing import Callable, List, Optional
from zoneinfo import ZoneInfo

from bdayfeed.cache import FeedCache
from bdayfeed.cardav_client import FetchError
from bdayfeed.contacts import extract_all
from bdayfeed.feed import FeedSynthesizer

logger = logging.getLogger(__name__)


class RefreshService:
    """Runs one refresh at a time and keeps the last good feed on failure"""

    def __init__(
        self,
        fetch_records: Callable[[], List[str]],
        cache: FeedCache,
        synthesizer: FeedSynthesizer,
        timezone_name: str = 'Europe/Berlin',
        leap_day_rule: str = 'feb28',
        now: Optional[Callable[[], datetime]] = None,
    ):
        self.fetch_records = fetch_records
        self.cache = cache
        self.synthesizer = synthesizer
        self.tz = ZoneInfo(timezone_name)
        self.leap_day_rule = leap_day_rule
        self._now = now or (lambda: datetime.now(self.tz))
        self._lock = asyncio.Lock()
        self.last_success: Optional[datetime] = None
        self.last_error: Optional[str] = None

    @property
    def in_progress(self) -> bool:
        return self._lock.locked()

    def build_feed(self, records: List[str]) -> str:
        """Turn raw vCards into a feed document, relative to the current day"""
        today = self._now().date()
        contacts = extract_all(records, today, self.leap_day_rule)
        return self.synthesizer.synthesize(contacts)

    async def refresh(self) -> bool:
        if self._lock.locked():
            logger.info("Refresh already in progress, skipping this trigger")
            return False

        async with self._lock:
            logger.info("Fetching contacts...")
            loop = asyncio.get_running_loop()
            try:
                records = await loop.run_in_executor(None, self.fetch_records)
            except FetchError as e:
                self.last_error = str(e)
                logger.error(f"Error fetching contacts, keeping previous calendar: {e}")
                return False

            document = self.build_feed(records)
            self.cache.set(document)
            self.last_success = self._now()
            self.last_error = None
            logger.info(f"Calendar rebuilt from {len(records)} contacts and stored in cache")
            return True
