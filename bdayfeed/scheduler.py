"""
Scheduling service for periodic feed refreshes
"""

import asyncio
import logging
from datetime import datetime, timedelta
from zoneinfo import ZoneInfo
from croniter import croniter

logger = logging.getLogger(__name__)


class SchedulerService:
    """Service to trigger refreshes on a cron schedule or a fixed interval"""

    def __init__(self, refresh_func, sync_schedule='0 */3 * * *', sync_interval_hours=0,
                 startup_delay=0, timezone_name='Europe/Berlin'):
        self.refresh_func = refresh_func
        self.sync_schedule = sync_schedule
        self.sync_interval_hours = sync_interval_hours
        self.startup_delay = startup_delay
        self.tz = ZoneInfo(timezone_name)
        self.running = True
        self._stop_event = None

    @classmethod
    def from_config(cls, refresh_func, config):
        return cls(
            refresh_func,
            sync_schedule=config['sync_schedule'],
            sync_interval_hours=config['sync_interval_hours'],
            startup_delay=config['startup_delay'],
            timezone_name=config['timezone'],
        )

    def next_run_time(self, now: datetime) -> datetime:
        """Calculate next refresh time from the interval or the cron schedule"""
        if self.sync_interval_hours > 0:
            return now + timedelta(hours=self.sync_interval_hours)
        try:
            cron = croniter(self.sync_schedule, now)
            return cron.get_next(datetime)
        except (ValueError, KeyError) as e:
            logger.error(f"Invalid cron schedule '{self.sync_schedule}': {e}")
            # Fallback to hourly
            return now + timedelta(hours=1)

    def stop(self):
        logger.info("Stopping scheduler...")
        self.running = False
        if self._stop_event is not None:
            self._stop_event.set()

    async def _wait(self, seconds: float):
        """Sleep until the timeout elapses or stop() is called"""
        try:
            await asyncio.wait_for(self._stop_event.wait(), timeout=max(seconds, 0))
        except asyncio.TimeoutError:
            pass

    async def _perform_refresh(self):
        try:
            success = await self.refresh_func()
            if success:
                logger.info("Refresh completed successfully")
            else:
                logger.warning("Refresh did not update the calendar")
            return success
        except Exception as e:
            logger.exception(f"Refresh failed: {e}")
            return False

    async def run(self):
        """Run the initial refresh, then one refresh per scheduled trigger until stopped"""
        self._stop_event = asyncio.Event()
        if not self.running:
            return

        if self.sync_interval_hours > 0:
            logger.info(f"Refresh interval: every {self.sync_interval_hours} hours")
        else:
            logger.info(f"Refresh schedule: {self.sync_schedule} ({self.tz.key})")

        if self.startup_delay > 0:
            logger.info(f"Waiting {self.startup_delay} seconds before starting...")
            await self._wait(self.startup_delay)

        if not self.running:
            logger.info("Shutdown requested during startup delay")
            return

        logger.info("Running initial refresh...")
        await self._perform_refresh()

        while self.running:
            now = datetime.now(self.tz)
            next_time = self.next_run_time(now)
            logger.info(f"Next refresh: {next_time.strftime('%Y-%m-%d %H:%M:%S %Z')}")
            await self._wait((next_time - now).total_seconds())
            if not self.running:
                break
            await self._perform_refresh()

        logger.info("Scheduler stopped")
