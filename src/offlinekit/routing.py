"""Route matching: the ordered table that picks a strategy for a request.

Routes are evaluated top to bottom and the first match wins, so a request
that satisfies several predicates only ever reaches the first one declared.
No match means the request is not handled by any strategy.
"""

from __future__ import annotations

from collections.abc import Callable, Iterable
from dataclasses import dataclass
from typing import TYPE_CHECKING

from offlinekit.policies import ExpirationPolicy, cacheable_status
from offlinekit.strategies import CacheFirst, StaleWhileRevalidate, Strategy

if TYPE_CHECKING:
    from offlinekit.config import RouteSettings
    from offlinekit.models.http import InterceptedRequest
    from offlinekit.protocols import NetworkProtocol

RequestPredicate = Callable[["InterceptedRequest"], bool]


def is_navigation(request: InterceptedRequest) -> bool:
    return request.is_navigation


def destination_in(destinations: Iterable[str]) -> RequestPredicate:
    wanted = frozenset(destinations)

    def _predicate(request: InterceptedRequest) -> bool:
        return request.destination in wanted

    return _predicate


@dataclass(frozen=True)
class Route:
    name: str
    matches: RequestPredicate
    strategy: Strategy
    cache_name: str
    method: str = "GET"

    def applies_to(self, request: InterceptedRequest) -> bool:
        return request.method == self.method and self.matches(request)


class Router:
    def __init__(self, routes: Iterable[Route] = ()) -> None:
        self._routes: list[Route] = list(routes)

    @property
    def routes(self) -> tuple[Route, ...]:
        return tuple(self._routes)

    def register(self, route: Route) -> None:
        """Append ``route``; it is consulted after every route already registered."""
        self._routes.append(route)

    def match(self, request: InterceptedRequest) -> Route | None:
        for route in self._routes:
            if route.applies_to(request):
                return route
        return None


def build_default_routes(settings: RouteSettings, network: NetworkProtocol) -> list[Route]:
    """Pages cache-first with a max age, then static assets stale-while-revalidate."""
    filters = [cacheable_status(settings.cacheable_statuses)]
    return [
        Route(
            name="pages",
            matches=is_navigation,
            strategy=CacheFirst(
                network,
                response_filters=filters,
                expiration=ExpirationPolicy(settings.page_max_age_seconds),
            ),
            cache_name=settings.page_cache_name,
        ),
        Route(
            name="assets",
            matches=destination_in(settings.asset_destinations),
            strategy=StaleWhileRevalidate(
                network,
                response_filters=filters,
                expiration=ExpirationPolicy(settings.asset_max_age_seconds),
            ),
            cache_name=settings.asset_cache_name,
        ),
    ]
