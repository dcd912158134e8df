"""
Index of the full path templates mounted on the app.

The index is filled while the route tree is mounted, so it knows the
template of every route under its final prefix without asking FastAPI how
it stores included routers.
"""

from dataclasses import dataclass
from typing import Callable, FrozenSet, Iterator, List, Optional, Pattern, Set

from fastapi import APIRouter, Request
from fastapi.routing import APIRoute
from starlette.routing import compile_path


@dataclass(frozen=True)
class RouteTemplate:
    path: str
    methods: FrozenSet[str]
    name: str
    endpoint: Callable
    include_in_schema: bool
    regex: Pattern

    @classmethod
    def from_route(cls, prefix: str, route: APIRoute) -> "RouteTemplate":
        path = prefix + route.path
        regex, _, _ = compile_path(path)
        return cls(
            path=path,
            methods=frozenset(route.methods or ()),
            name=route.name,
            endpoint=route.endpoint,
            include_in_schema=route.include_in_schema,
            regex=regex,
        )

    def matches(self, path: str) -> bool:
        return self.regex.match(path) is not None


def request_route_path(request: Request) -> str:
    """Request path relative to the app, as route templates see it."""
    path = request.url.path
    root_path = request.scope.get("root_path", "")
    if root_path and path.startswith(root_path):
        path = path[len(root_path):]
    return path


class RouteIndex:
    """Route templates in mount order."""

    def __init__(self):
        self._templates: List[RouteTemplate] = []

    def __iter__(self) -> Iterator[RouteTemplate]:
        return iter(self._templates)

    def __len__(self) -> int:
        return len(self._templates)

    def add_router(self, prefix: str, router: APIRouter) -> None:
        for route in router.routes:
            if isinstance(route, APIRoute):
                self._templates.append(RouteTemplate.from_route(prefix, route))

    def match(self, path: str) -> List[RouteTemplate]:
        return [template for template in self._templates if template.matches(path)]

    def allowed_methods(self, path: str) -> Set[str]:
        methods: Set[str] = set()
        for template in self.match(path):
            methods.update(template.methods)
        return methods

    def template_for(self, endpoint: Callable, path: str) -> Optional[str]:
        """Template of the route serving ``path`` through ``endpoint``.

        One router can be mounted under several prefixes; the request path
        tells the mounts apart.
        """
        for template in self._templates:
            if template.endpoint == endpoint and template.matches(path):
                return template.path
        return None

    def resolve(self, request: Request) -> str:
        """Template of the route that matched ``request``."""
        route = request.scope.get("route")
        path = request_route_path(request)
        template = self.template_for(getattr(route, "endpoint", None), path)
        if template is not None:
            return template
        return getattr(route, "path", path)
