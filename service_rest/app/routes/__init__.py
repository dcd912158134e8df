"""
Routers owned by the REST entry point itself.

Resource routers (blocks, transactions, tokens, JSON-RPC...) are supplied
from outside; these are the defaults for metrics, the generic API and admin.
"""

from .admin import build_admin_router
from .api import build_api_router
from .metrics import build_metrics_router

__all__ = [
    "build_admin_router",
    "build_api_router",
    "build_metrics_router",
]
