"""Structural interfaces the strategies and the worker depend on.

``Fetcher`` satisfies ``NetworkProtocol``; tests may pass any object with a
matching ``fetch`` coroutine.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Protocol

if TYPE_CHECKING:
    from offlinekit.models.http import InterceptedRequest, Response


class NetworkProtocol(Protocol):
    async def fetch(self, request: InterceptedRequest) -> Response:
        """Return the network response or raise ``OfflineKitError(NETWORK_FAILURE)``."""
        ...
