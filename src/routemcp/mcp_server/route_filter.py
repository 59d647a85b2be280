from __future__ import annotations

from collections.abc import Callable, Iterable

from routemcp.models import HTTPMethod, RouteDescriptor

RoutePredicate = Callable[[RouteDescriptor], object]


class RouteFilter:
    """Decides which registered routes are offered as tools.

    Applied on every catalogue read; the registry itself is never modified.
    """

    def __init__(
        self,
        skip_head_routes: bool = True,
        skip_options_routes: bool = True,
        predicate: RoutePredicate | None = None,
    ) -> None:
        self.skip_head_routes: bool = skip_head_routes
        self.skip_options_routes: bool = skip_options_routes
        self.predicate: RoutePredicate | None = predicate

    def accepts(self, route: RouteDescriptor) -> bool:
        if self.skip_head_routes and HTTPMethod.HEAD.value in route.methods:
            return False
        if self.skip_options_routes and HTTPMethod.OPTIONS.value in route.methods:
            return False
        if self.predicate is not None and not self.predicate(route):
            return False
        return True

    def filter_routes(self, routes: Iterable[RouteDescriptor]) -> list[RouteDescriptor]:
        return [route for route in routes if self.accepts(route)]
