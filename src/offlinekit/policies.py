"""Admission and expiration policies applied around cache writes and reads.

Admission is an ordered chain of filters, each ``Response -> Response | None``;
``None`` means the response must not be stored. Expiration is age based only:
an entry older than ``max_age_seconds`` is treated as absent.
"""

from __future__ import annotations

from collections.abc import Callable, Iterable, Sequence
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import TYPE_CHECKING

import structlog

if TYPE_CHECKING:
    from offlinekit.cache import NamedCache
    from offlinekit.models.cache import CacheEntry
    from offlinekit.models.http import Response

log = structlog.get_logger()

ResponseFilter = Callable[["Response"], "Response | None"]

DEFAULT_CACHEABLE_STATUSES = (0, 200)


def cacheable_status(statuses: Iterable[int] = DEFAULT_CACHEABLE_STATUSES) -> ResponseFilter:
    """Admit only responses whose status is in ``statuses``.

    Status 0 stands for an opaque cross-origin response, whose real status
    cannot be inspected.
    """
    allowed = frozenset(statuses)

    def _filter(response: Response) -> Response | None:
        return response if response.status in allowed else None

    return _filter


def admit(response: Response, filters: Sequence[ResponseFilter]) -> Response | None:
    """Run ``response`` through ``filters`` in order. ``None`` means rejected."""
    current: Response | None = response
    for response_filter in filters:
        current = response_filter(current)
        if current is None:
            return None
    return current


@dataclass(frozen=True)
class ExpirationPolicy:
    """Age-based eviction for one named cache. ``None`` disables it."""

    max_age_seconds: int | None = None

    def is_expired(self, entry: CacheEntry, now: datetime) -> bool:
        if self.max_age_seconds is None:
            return False
        return (now - entry.stored_at).total_seconds() > self.max_age_seconds

    async def prune(self, cache: NamedCache, now: datetime) -> int:
        """Remove every expired entry of ``cache``. Returns the number removed."""
        if self.max_age_seconds is None:
            return 0
        cutoff = now - timedelta(seconds=self.max_age_seconds)
        removed = await cache.delete_older_than(cutoff)
        if removed:
            log.info("cache_pruned", cache=cache.name, removed=removed)
        return removed
