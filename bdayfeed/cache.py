"""
In-memory cache for the last generated feed
"""

import logging
import time
from datetime import datetime
from typing import Callable, Optional

logger = logging.getLogger(__name__)


class NotReadyError(LookupError):
    """No feed has been generated yet, or the last one has expired"""


class FeedCache:
    """Holds the most recent feed document until it expires"""

    def __init__(self, ttl_seconds: float = 24 * 60 * 60, clock: Callable[[], float] = time.monotonic):
        self.ttl_seconds = ttl_seconds
        self._clock = clock
        self._document = None
        self._stored_at = None
        self.updated_at: Optional[datetime] = None

    def _expired(self) -> bool:
        if self.ttl_seconds <= 0:
            return False
        return self._clock() - self._stored_at >= self.ttl_seconds

    def get(self) -> Optional[str]:
        if self._document is None:
            return None
        if self._expired():
            logger.warning(f"Cached feed from {self.updated_at} expired after {self.ttl_seconds}s")
            self._document = None
            self._stored_at = None
            return None
        return self._document

    def set(self, document: str):
        self._document = document
        self._stored_at = self._clock()
        self.updated_at = datetime.now()

    def require(self) -> str:
        document = self.get()
        if document is None:
            raise NotReadyError('Calendar not available yet')
        return document
