"""
Routing topology: version, then shard, then resource.

The topology is an explicit tree of named route groups built once at
startup. Mounting flattens it: every resource router is included on the
app exactly once per position in the tree, under its full prefix and with
the guards and finalizer it inherits from its ancestors. Nothing is
mutated after the app is handed to the server.
"""

from dataclasses import dataclass, field
from typing import Iterator, List, Optional, Sequence, Tuple

from fastapi import APIRouter, Depends, FastAPI, HTTPException, Request
from fastapi.responses import RedirectResponse

from shared.logging import get_logger
from service_rest.app.domain import AuthenticationGate
from service_rest.app.routing.index import RouteIndex, request_route_path
from service_rest.app.routing.table import RouterTable
from service_rest.app.transport import finalized as finalizer

logger = get_logger("rest.routing")

ALL_METHODS = ["GET", "HEAD", "POST", "PUT", "PATCH", "DELETE", "OPTIONS"]

# (prefix, router attribute, finalized)
UNSHARDED_MOUNTS: Sequence[Tuple[str, str, bool]] = (
    ("/block", "block", False),
    ("/transaction", "transaction", False),
    ("/stakingTransaction", "staking_transaction", False),
    ("/address", "address", False),
    ("/internalTransaction", "internal_transaction", False),
    ("/logs", "logs", False),
    ("/erc20", "erc20", True),
    ("/erc721", "erc721", True),
    ("/erc1155", "erc1155", True),
)

SHARD_INDEPENDENT_MOUNTS: Sequence[Tuple[str, str]] = (
    ("/signature", "signature"),
    ("/price", "price"),
    ("/metrics", "metrics"),
)


@dataclass
class RouteGroup:
    """Named node of the route tree.

    A leaf carries a resource router; an inner node carries children. Guards
    and the finalizer apply to the node and everything below it. A group
    with ``not_found_fallback`` answers unmatched paths under its prefix
    itself, after its guards have run.
    """

    name: str
    prefix: str = ""
    router: Optional[APIRouter] = None
    children: List["RouteGroup"] = field(default_factory=list)
    dependencies: List = field(default_factory=list)
    finalized: bool = False
    not_found_fallback: bool = False


@dataclass(frozen=True)
class MountPoint:
    """A resource router at its final position in the tree."""

    name: str
    prefix: str
    router: APIRouter
    dependencies: Tuple
    finalized: bool

    def include_dependencies(self) -> List:
        return [*self.dependencies, *(finalizer if self.finalized else [])]


@dataclass(frozen=True)
class FallbackPoint:
    name: str
    prefix: str
    dependencies: Tuple


def build_unsharded_router(routers: RouterTable) -> RouteGroup:
    """Resources whose data lives in one shard."""
    return RouteGroup(
        name="unsharded",
        children=[
            RouteGroup(name=name, prefix=prefix, router=getattr(routers, name), finalized=is_finalized)
            for prefix, name, is_finalized in UNSHARDED_MOUNTS
        ],
    )


def _shard_independent(routers: RouterTable, json_rpc_enabled: bool) -> List[RouteGroup]:
    groups = [
        RouteGroup(name=name, prefix=prefix, router=getattr(routers, name), finalized=True)
        for prefix, name in SHARD_INDEPENDENT_MOUNTS
    ]
    if json_rpc_enabled:
        groups.append(RouteGroup(name="rpc", prefix="/rpc", router=routers.rpc, finalized=True))
    return groups


def build_sharded_router(routers: RouterTable, json_rpc_enabled: bool) -> RouteGroup:
    """Mount the unsharded group under ``/shard/{shardID}`` next to the
    shard-independent resources.

    Signature, price, metrics and JSON-RPC do not depend on the shard; they
    answer both at the group level and inside the shard scope, where
    ``shardID`` is bound but ignored.
    """
    if not json_rpc_enabled:
        logger.debug("RPC API is disabled")

    shard_scope = RouteGroup(
        name="shard",
        prefix="/shard/{shardID}",
        children=[build_unsharded_router(routers), *_shard_independent(routers, json_rpc_enabled)],
        finalized=True,
    )
    return RouteGroup(
        name="sharded",
        children=[shard_scope, *_shard_independent(routers, json_rpc_enabled)],
    )


def build_route_tree(routers: RouterTable, gate: AuthenticationGate, json_rpc_enabled: bool) -> RouteGroup:
    """The whole application tree.

    ``routers.metrics``, ``routers.api`` and ``routers.admin`` must already
    be set.
    """
    return RouteGroup(
        name="app",
        children=[
            RouteGroup(
                name="v0",
                prefix="/v0",
                children=[build_sharded_router(routers, json_rpc_enabled)],
                dependencies=[Depends(gate.verify_api_key)],
                not_found_fallback=True,
            ),
            RouteGroup(name="metrics", prefix="/metrics", router=routers.metrics, finalized=True),
            RouteGroup(name="api", prefix="/api", router=routers.api, finalized=True),
            RouteGroup(
                name="admin",
                prefix="/admin",
                router=routers.admin,
                dependencies=[Depends(gate.verify_admin_api_key)],
                finalized=True,
                not_found_fallback=True,
            ),
        ],
    )


def walk(group: RouteGroup, prefix: str = "", dependencies: Tuple = (), finalized: bool = False,
         path: Tuple[str, ...] = ()) -> Iterator:
    """Yield mount points depth-first, each fallback after its subtree."""
    prefix = prefix + group.prefix
    dependencies = dependencies + tuple(group.dependencies)
    finalized = finalized or group.finalized
    path = path + (group.name,)
    name = ".".join(path)

    if group.router is not None:
        yield MountPoint(name, prefix, group.router, dependencies, finalized)
    for child in group.children:
        yield from walk(child, prefix, dependencies, finalized, path)
    if group.not_found_fallback:
        yield FallbackPoint(name, prefix, dependencies)


def _not_found_router(index: RouteIndex) -> APIRouter:
    """Catch-all for a guarded prefix.

    Requests reach it only once the prefix's guards have passed, so an
    unauthenticated caller cannot tell which routes exist. It still tells an
    authenticated caller about a wrong method or a trailing slash.
    """
    router = APIRouter()

    async def not_found(request: Request):
        path = request_route_path(request)
        allowed = index.allowed_methods(path)
        if allowed and request.method not in allowed:
            raise HTTPException(
                status_code=405,
                detail="Method Not Allowed",
                headers={"Allow": ", ".join(sorted(allowed))},
            )

        alternate = path.rstrip("/") if path.endswith("/") else path + "/"
        if index.match(alternate):
            url_path = request.url.path
            toggled = url_path.rstrip("/") if url_path.endswith("/") else url_path + "/"
            return RedirectResponse(url=str(request.url.replace(path=toggled)))

        raise HTTPException(status_code=404, detail="Not Found")

    router.add_api_route("", not_found, methods=ALL_METHODS, include_in_schema=False)
    router.add_api_route("/{path:path}", not_found, methods=ALL_METHODS, include_in_schema=False)
    return router


def mount_topology(app: FastAPI, routers: RouterTable, gate: AuthenticationGate,
                   json_rpc_enabled: bool) -> RouteIndex:
    """Mount the whole route tree on ``app`` and index its templates."""
    index = RouteIndex()
    fallback = _not_found_router(index)

    for point in walk(build_route_tree(routers, gate, json_rpc_enabled)):
        if isinstance(point, FallbackPoint):
            app.include_router(fallback, prefix=point.prefix, dependencies=list(point.dependencies))
            continue
        app.include_router(point.router, prefix=point.prefix, dependencies=point.include_dependencies())
        index.add_router(point.prefix, point.router)
        logger.debug("Mounted router", group=point.name, prefix=point.prefix, finalized=point.finalized)

    app.state.route_index = index
    logger.debug("Routing topology mounted", routes=len(index))
    return index
