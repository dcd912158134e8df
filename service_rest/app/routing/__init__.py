"""
Route tree construction for the REST entry point.
"""

from .index import RouteIndex, RouteTemplate
from .table import RouterTable
from .topology import (
    RouteGroup,
    build_route_tree,
    build_sharded_router,
    build_unsharded_router,
    mount_topology,
)

__all__ = [
    "RouteGroup",
    "RouteIndex",
    "RouteTemplate",
    "RouterTable",
    "build_route_tree",
    "build_sharded_router",
    "build_unsharded_router",
    "mount_topology",
]
