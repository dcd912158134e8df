"""
Helpers for building apps with recording resource routers.
"""

from typing import Any, Dict, List

from fastapi import APIRouter, Request

from shared.config import RestConfig
from service_rest.app.routing import RouterTable

API_KEY = "data-key-123"
ADMIN_KEY = "admin-key-456"

RESOURCES = (
    "block",
    "transaction",
    "staking_transaction",
    "address",
    "internal_transaction",
    "signature",
    "logs",
    "price",
    "erc20",
    "erc721",
    "erc1155",
    "rpc",
)


def make_config(**overrides) -> RestConfig:
    """Build an isolated configuration with known credentials."""
    values: Dict[str, Any] = {
        "api_keys": [API_KEY],
        "admin_api_keys": [ADMIN_KEY],
        "rest_host": "127.0.0.1",
        "rest_port": 0,
        "log_level": "warning",
    }
    values.update(overrides)
    return RestConfig(**values)


class Sentinel:
    """Records every handler invocation."""

    def __init__(self):
        self.calls: List[Dict[str, Any]] = []

    def record(self, resource: str, request: Request) -> Dict[str, Any]:
        call = {
            "resource": resource,
            "shardID": request.path_params.get("shardID"),
            "item": request.path_params.get("item"),
            "json_body": getattr(request.state, "json_body", None),
        }
        self.calls.append(call)
        return call


def sentinel_router(resource: str, sentinel: Sentinel) -> APIRouter:
    router = APIRouter()

    @router.api_route("", methods=["GET", "POST"])
    async def root(request: Request):
        return sentinel.record(resource, request)

    @router.api_route("/{item}", methods=["GET", "POST"])
    async def item(request: Request):
        return sentinel.record(resource, request)

    return router


def sentinel_routers(sentinel: Sentinel, **overrides) -> RouterTable:
    routers = {name: sentinel_router(name, sentinel) for name in RESOURCES}
    routers.update(overrides)
    return RouterTable(**routers)


