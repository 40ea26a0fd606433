"""
Configuration management and environment validation
"""

import os
import logging
import re
from datetime import time
from typing import Optional
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from dotenv import load_dotenv

from bdayfeed.birthday import LEAP_DAY_RULES
from bdayfeed.feed import (
    DEFAULT_DESCRIPTION_NO_AGE_TEMPLATE,
    DEFAULT_DESCRIPTION_TEMPLATE,
    DEFAULT_TITLE_NO_AGE_TEMPLATE,
    DEFAULT_TITLE_TEMPLATE,
)

_TIME_PATTERN = re.compile(r'^(\d{1,2}):(\d{2})$')


def load_environment(env_file: Optional[str] = None) -> bool:
    """Load variables from a .env file. Variables already set in the environment win."""
    return load_dotenv(env_file or os.getenv('ENV_FILE', '.env'))


def setup_logging():
    """Setup logging configuration from environment variables"""
    log_level = os.getenv('LOG_LEVEL', 'INFO').upper()
    log_to_file = os.getenv('LOG_TO_FILE', 'false').lower() == 'true'
    log_file = os.getenv('LOG_FILE', '/var/log/bdayfeed/feed.log')
    debug_mode = os.getenv('DEBUG', 'false').lower() == 'true'

    if debug_mode:
        log_level = 'DEBUG'

    detailed_formatter = logging.Formatter(
        '%(asctime)s - %(name)s - %(levelname)s - %(message)s'
    )
    simple_formatter = logging.Formatter(
        '%(asctime)s - %(levelname)s - %(message)s'
    )

    handlers = []

    console_handler = logging.StreamHandler()
    console_handler.setFormatter(simple_formatter)
    handlers.append(console_handler)

    if log_to_file:
        try:
            os.makedirs(os.path.dirname(log_file), exist_ok=True)
            file_handler = logging.FileHandler(log_file)
            file_handler.setFormatter(detailed_formatter)
            handlers.append(file_handler)
        except OSError as e:
            print(f"Warning: Could not create log file: {e}")

    logging.basicConfig(
        level=getattr(logging, log_level, logging.INFO),
        handlers=handlers
    )

    # Suppress some noisy third-party loggers unless in debug mode
    if not debug_mode:
        logging.getLogger('requests').setLevel(logging.WARNING)
        logging.getLogger('urllib3').setLevel(logging.WARNING)
        logging.getLogger('aiohttp.access').setLevel(logging.WARNING)


def parse_time_string(value: str) -> time:
    """Parse HH:MM into a time, raising ValueError when malformed"""
    match = _TIME_PATTERN.match(value.strip())
    if not match:
        raise ValueError(f"Time must be in HH:MM format: {value!r}")
    hour, minute = int(match.group(1)), int(match.group(2))
    if hour > 23 or minute > 59:
        raise ValueError(f"Time must be a valid 24-hour time: {value!r}")
    return time(hour, minute)


def validate_environment():
    """Validate required environment variables"""
    logger = logging.getLogger(__name__)

    required_vars = [
        'CARDAV_SERVER_URL',
        'CARDAV_USERNAME',
        'CARDAV_PASSWORD',
    ]

    missing_vars = [var for var in required_vars if not os.getenv(var)]

    if missing_vars:
        logger.error(f"Missing required environment variables: {', '.join(missing_vars)}")
        return False

    timezone_name = os.getenv('TIMEZONE', 'Europe/Berlin')
    try:
        ZoneInfo(timezone_name)
    except (ZoneInfoNotFoundError, ValueError):
        logger.error(f"Unknown timezone: {timezone_name}")
        return False

    leap_day_rule = os.getenv('LEAP_DAY_RULE', 'feb28').strip().lower()
    if leap_day_rule not in LEAP_DAY_RULES:
        logger.error(f"LEAP_DAY_RULE must be one of {', '.join(LEAP_DAY_RULES)}, got: {leap_day_rule}")
        return False

    try:
        parse_time_string(os.getenv('BIRTHDAY_ALARM_TIME', '08:00'))
        int(os.getenv('PORT', '3000'))
        float(os.getenv('CACHE_TTL_HOURS', '24'))
    except ValueError as e:
        logger.error(f"Invalid configuration value: {e}")
        return False

    logger.info("Environment validation passed")
    return True


def get_cardav_config():
    """Get CardDAV connection settings from environment"""
    return {
        'server_url': os.getenv('CARDAV_SERVER_URL'),
        'username': os.getenv('CARDAV_USERNAME'),
        'password': os.getenv('CARDAV_PASSWORD'),
        'timeout': float(os.getenv('REQUEST_TIMEOUT', '10')),
    }


def get_feed_config():
    """Get calendar feed configuration from environment"""
    return {
        'calendar_name': os.getenv('CALENDAR_NAME', 'Geburtstage'),
        'timezone': os.getenv('TIMEZONE', 'Europe/Berlin'),
        'alarm_time': parse_time_string(os.getenv('BIRTHDAY_ALARM_TIME', '08:00')),
        'event_title_template': os.getenv('BIRTHDAY_EVENT_TITLE', DEFAULT_TITLE_TEMPLATE),
        'event_description_template': os.getenv('BIRTHDAY_EVENT_DESCRIPTION', DEFAULT_DESCRIPTION_TEMPLATE),
        'event_title_no_age_template': os.getenv('BIRTHDAY_EVENT_TITLE_NO_AGE', DEFAULT_TITLE_NO_AGE_TEMPLATE),
        'event_description_no_age_template': os.getenv('BIRTHDAY_EVENT_DESCRIPTION_NO_AGE', DEFAULT_DESCRIPTION_NO_AGE_TEMPLATE),
        'event_category': os.getenv('BIRTHDAY_EVENT_CATEGORY', 'Birthday'),
        'leap_day_rule': os.getenv('LEAP_DAY_RULE', 'feb28').strip().lower(),
    }


def get_server_config():
    """Get HTTP server and cache configuration from environment"""
    return {
        'host': os.getenv('HOST', '0.0.0.0'),
        'port': int(os.getenv('PORT', '3000')),
        'feed_path': os.getenv('FEED_PATH', '/calendar.ics'),
        'cache_ttl_hours': float(os.getenv('CACHE_TTL_HOURS', '24')),
    }


def get_scheduler_config():
    """Get scheduler configuration from environment"""
    return {
        'sync_schedule': os.getenv('SYNC_SCHEDULE', '0 */3 * * *'),
        'sync_interval_hours': float(os.getenv('SYNC_INTERVAL_HOURS', '0')),
        'startup_delay': int(os.getenv('STARTUP_DELAY', '0')),
        'timezone': os.getenv('TIMEZONE', 'Europe/Berlin'),
    }
