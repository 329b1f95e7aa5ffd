# domain_health.py
"""
Per-host failure tracking. After three consecutive failures a host is skipped
for bulk work (harvested detail pages, external sites) for the rest of the
24 hour window.
"""
import logging
import threading
from datetime import datetime, timedelta
from typing import Callable, Dict, Optional
from urllib.parse import urlparse

import requests
from pydantic import BaseModel

from cache import utcnow
from errors import RateLimitError, RendererError

logger = logging.getLogger(__name__)

FAILURE_THRESHOLD = 3
HEALTH_TTL = timedelta(hours=24)

FAILURE_503 = "503"
FAILURE_429 = "429"
FAILURE_TIMEOUT = "timeout"
FAILURE_OTHER = "other"


class DomainHealth(BaseModel):
    success_count: int = 0
    failure_count: int = 0
    consecutive_failures: int = 0
    last_failure_kind: Optional[str] = None
    last_checked_at: Optional[datetime] = None


def hostname(url: str) -> str:
    try:
        return (urlparse(url).hostname or "").lower()
    except ValueError:
        return ""


def failure_kind(exc: Exception) -> str:
    if isinstance(exc, RateLimitError):
        return FAILURE_429
    if isinstance(exc, requests.Timeout) or isinstance(exc.__cause__, requests.Timeout):
        return FAILURE_TIMEOUT
    if isinstance(exc, RendererError) and exc.status_code == 503:
        return FAILURE_503
    if "timeout" in str(exc).lower():
        return FAILURE_TIMEOUT
    return FAILURE_OTHER


class DomainHealthTracker:
    def __init__(self, clock: Callable[[], datetime] = utcnow,
                 threshold: int = FAILURE_THRESHOLD, ttl: timedelta = HEALTH_TTL):
        self.clock = clock
        self.threshold = threshold
        self.ttl = ttl
        self._hosts: Dict[str, DomainHealth] = {}
        self._lock = threading.Lock()

    def _entry(self, host: str) -> DomainHealth:
        entry = self._hosts.get(host)
        now = self.clock()
        if entry is None or (entry.last_checked_at and now - entry.last_checked_at > self.ttl):
            entry = DomainHealth()
            self._hosts[host] = entry
        entry.last_checked_at = now
        return entry

    def record_success(self, url: str) -> None:
        host = hostname(url)
        with self._lock:
            entry = self._entry(host)
            entry.success_count += 1
            entry.consecutive_failures = 0

    def record_failure(self, url: str, kind: str = FAILURE_OTHER) -> None:
        host = hostname(url)
        with self._lock:
            entry = self._entry(host)
            entry.failure_count += 1
            entry.consecutive_failures += 1
            entry.last_failure_kind = kind
            if entry.consecutive_failures == self.threshold:
                logger.warning("Domain %s marked unhealthy after %d failures (%s)", host, self.threshold, kind)

    def should_skip(self, url: str) -> bool:
        host = hostname(url)
        with self._lock:
            entry = self._hosts.get(host)
            if entry is None or entry.last_checked_at is None:
                return False
            if self.clock() - entry.last_checked_at > self.ttl:
                return False
            return entry.consecutive_failures >= self.threshold

    def get(self, url: str) -> Optional[DomainHealth]:
        with self._lock:
            entry = self._hosts.get(hostname(url))
            return entry.model_copy() if entry else None
