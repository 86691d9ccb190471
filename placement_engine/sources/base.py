from __future__ import annotations

import re
from abc import ABC, abstractmethod
from datetime import datetime, timedelta, timezone
from urllib.parse import urlsplit, urlunsplit

from placement_engine.models import ExternalJob

_RELATIVE = re.compile(r"(\d+)\+?\s*(minute|hour|day|week|month)s?\s+ago", re.IGNORECASE)
_UNIT_DAYS = {"minute": 1 / 1440, "hour": 1 / 24, "day": 1, "week": 7, "month": 30}


def parse_posted_at(value: object, now: datetime | None = None) -> str | None:
    """ISO timestamp from an absolute date or a "3 days ago" style string; None if unparseable."""
    if value in (None, ""):
        return None
    now = now or datetime.now(timezone.utc)
    if isinstance(value, (int, float)) and not isinstance(value, bool):
        try:
            return datetime.fromtimestamp(value, tz=timezone.utc).isoformat()
        except (OverflowError, OSError, ValueError):
            return None
    text = str(value).strip()
    try:
        return datetime.fromisoformat(text.replace("Z", "+00:00")).isoformat()
    except ValueError:
        pass
    m = _RELATIVE.search(text)
    if m:
        days = int(m.group(1)) * _UNIT_DAYS[m.group(2).lower()]
        return (now - timedelta(days=days)).isoformat()
    if text.lower() in ("today", "just posted", "just now"):
        return now.isoformat()
    return None


class JobSearchBase(ABC):
    name = "unknown"

    @abstractmethod
    def search(self, query: str, location: str | None, limit: int) -> list[ExternalJob]:
        """Return at most ``limit`` jobs; raise UpstreamUnavailable on any provider failure."""


def canonical_url(url: str | None) -> str:
    """Dedup key for external jobs: trimmed, lower-case scheme/host, no fragment or trailing slash."""
    if not url:
        return ""
    parts = urlsplit(url.strip())
    if not parts.scheme or not parts.netloc:
        return url.strip()
    path = parts.path.rstrip("/")
    return urlunsplit((parts.scheme.lower(), parts.netloc.lower(), path, parts.query, ""))
