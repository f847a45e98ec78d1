from __future__ import annotations

from offlinekit.models.cache import CacheEntry
from offlinekit.models.http import InterceptedRequest, RequestMode, Response

__all__ = [
    # http
    "InterceptedRequest",
    "RequestMode",
    "Response",
    # cache
    "CacheEntry",
]
