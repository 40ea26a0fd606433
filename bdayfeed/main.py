#!/usr/bin/env python3
"""
CardDAV Birthday Calendar Feed
Main entry point with scheduling and argument parsing
"""

import os
import sys
import signal
import asyncio
import logging
import argparse
from datetime import datetime
from zoneinfo import ZoneInfo

from bdayfeed import __version__
from bdayfeed.cache import FeedCache
from bdayfeed.cardav_client import CardDAVClient, FetchError
from bdayfeed.contacts import extract_all
from bdayfeed.feed import FeedSynthesizer
from bdayfeed.refresher import RefreshService
from bdayfeed.scheduler import SchedulerService
from bdayfeed.server import create_app, start_server
from bdayfeed.config import (
    load_environment,
    setup_logging,
    validate_environment,
    get_cardav_config,
    get_feed_config,
    get_server_config,
    get_scheduler_config,
)

BANNER = """
╔══════════════════════════════════════════════════════════════╗
║                                                              ║
║              🎂 Birthday Calendar Feed 🎂                    ║
║            CardDAV contacts as an iCalendar feed             ║
║                                                              ║
╚══════════════════════════════════════════════════════════════╝
"""

logger = logging.getLogger(__name__)


def print_banner():
    """Print the ASCII art banner"""
    print(BANNER)
    print(f"Version: {__version__}")
    print(f"Started: {datetime.now().strftime('%Y-%m-%d %H:%M:%S')}")
    print("─" * 62)
    print()


def fetch_records():
    """Connect to the CardDAV server and return all raw vCards"""
    config = get_cardav_config()
    client = CardDAVClient(
        config['server_url'],
        config['username'],
        config['password'],
        timeout=config['timeout'],
    )
    return client.get_records()


def build_refresher(cache):
    feed_config = get_feed_config()
    return RefreshService(
        fetch_records,
        cache,
        FeedSynthesizer.from_config(feed_config),
        timezone_name=feed_config['timezone'],
        leap_day_rule=feed_config['leap_day_rule'],
    )


def diagnose_cardav():
    """Diagnostic function to test CardDAV connectivity and birthday parsing"""
    config = get_cardav_config()
    feed_config = get_feed_config()

    print("Testing CardDAV connectivity and addressbook discovery:")
    print(f"Base URL: {config['server_url']}")
    print(f"Username: {config['username']}")
    print("-" * 60)

    try:
        client = CardDAVClient(config['server_url'], config['username'], config['password'],
                               timeout=config['timeout'])
        print("✓ Authentication successful!")
        print(f"✓ Found {len(client.addressbook_urls)} addressbooks:")
        for i, ab_url in enumerate(client.addressbook_urls, 1):
            print(f"  {i}. {ab_url}")

        records = client.get_records()
        today = datetime.now(ZoneInfo(feed_config['timezone'])).date()
        contacts = extract_all(records, today, feed_config['leap_day_rule'])
        print(f"✓ {len(records)} vCards, {len(contacts)} with a valid birthday")
        for contact in contacts:
            age = contact.age if contact.age is not None else '?'
            print(f"  - {contact.full_name} ({contact.birthday.isoformat()}) next {contact.next_occurrence}, turns {age}")
        return True

    except FetchError as e:
        print(f"✗ Error: {e}")
        return False


def health_check():
    """Health check function"""
    logger.info("Performing health check...")

    if not validate_environment():
        return False

    if os.getenv('HEALTH_CHECK_CONNECTIVITY', 'false').lower() == 'true':
        logger.info("Testing connectivity as part of health check...")
        return diagnose_cardav()

    logger.info("Health check passed")
    return True


async def refresh_once(output=None):
    """Build the calendar once and write it to a file or stdout"""
    cache = FeedCache(ttl_seconds=0)
    refresher = build_refresher(cache)
    if not await refresher.refresh():
        return False

    document = cache.require()
    if output:
        with open(output, 'w', encoding='utf-8', newline='') as f:
            f.write(document)
        logger.info(f"Calendar written to {output}")
    else:
        sys.stdout.write(document)
    return True


async def run_daemon():
    """Serve the feed over HTTP and refresh it on schedule until interrupted"""
    server_config = get_server_config()
    cache = FeedCache(ttl_seconds=server_config['cache_ttl_hours'] * 3600)
    refresher = build_refresher(cache)
    scheduler = SchedulerService.from_config(refresher.refresh, get_scheduler_config())

    loop = asyncio.get_running_loop()
    for signum in (signal.SIGTERM, signal.SIGINT):
        loop.add_signal_handler(signum, scheduler.stop)

    app = create_app(cache, server_config['feed_path'])
    runner = await start_server(app, server_config['host'], server_config['port'])
    logger.info(f"Serving calendar at {server_config['feed_path']}")
    try:
        await scheduler.run()
    finally:
        await runner.cleanup()


def main():
    """Main function with argument parsing"""
    parser = argparse.ArgumentParser(description='Birthday calendar feed service')
    parser.add_argument('--diagnose', action='store_true', help='Run diagnostics')
    parser.add_argument('--health-check', action='store_true', help='Run health check')
    parser.add_argument('--once', action='store_true', help='Build the calendar once and exit')
    parser.add_argument('--output', help='File to write the calendar to with --once (default: stdout)')
    parser.add_argument('--no-banner', action='store_true', help='Skip ASCII art banner')

    args = parser.parse_args()

    load_environment()
    setup_logging()

    if not args.no_banner and not args.once:
        print_banner()

    if not validate_environment():
        sys.exit(1)

    if args.health_check:
        success = health_check()
        sys.exit(0 if success else 1)

    if args.diagnose:
        success = diagnose_cardav()
        sys.exit(0 if success else 1)

    if args.once:
        success = asyncio.run(refresh_once(args.output))
        sys.exit(0 if success else 1)

    asyncio.run(run_daemon())
    sys.exit(0)


if __name__ == "__main__":
    main()
