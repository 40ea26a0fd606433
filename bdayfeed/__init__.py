"""
Birthday Feed Package
CardDAV contacts published as an iCalendar birthday feed
"""

__version__ = "1.0.0"
__description__ = "CardDAV birthdays served as an iCalendar feed"

from bdayfeed.birthday import Birthday, NormalizationError, next_occurrence, normalize
from bdayfeed.cache import FeedCache, NotReadyError
from bdayfeed.cardav_client import CardDAVClient, FetchError
from bdayfeed.contacts import ContactOccurrence, extract, extract_all
from bdayfeed.feed import FeedSynthesizer
from bdayfeed.refresher import RefreshService
from bdayfeed.scheduler import SchedulerService

__all__ = [
    'Birthday',
    'NormalizationError',
    'next_occurrence',
    'normalize',
    'FeedCache',
    'NotReadyError',
    'CardDAVClient',
    'FetchError',
    'ContactOccurrence',
    'extract',
    'extract_all',
    'FeedSynthesizer',
    'RefreshService',
    'SchedulerService',
]
