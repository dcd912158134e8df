"""
REST entry point of the chain-data API.
"""

from dataclasses import replace
from typing import Optional

from fastapi import FastAPI

from shared.base_service import BaseService
from shared.config import RestConfig
from shared.metrics import MetricsCollector
from service_rest.app.domain import AuthenticationGate
from service_rest.app.middleware import install_policy_middleware
from service_rest.app.ratelimit import FixedWindowRateLimiter
from service_rest.app.routes import build_admin_router, build_api_router, build_metrics_router
from service_rest.app.routing import RouterTable, mount_topology


class RestService(BaseService):
    """Policy middleware, credential guards and the versioned route tree."""

    def __init__(self, config: Optional[RestConfig] = None, routers: Optional[RouterTable] = None,
                 metrics: Optional[MetricsCollector] = None,
                 rate_limiter: Optional[FixedWindowRateLimiter] = None):
        self._routers = routers if routers is not None else RouterTable()
        self._rate_limiter_override = rate_limiter
        super().__init__("rest", config, metrics)

        self.gate = AuthenticationGate(self.config, self.metrics)
        self.routers = replace(
            self._routers,
            metrics=self._routers.metrics if self._routers.metrics is not None else build_metrics_router(self.metrics),
            api=self._routers.api if self._routers.api is not None else build_api_router(self.config),
            admin=self._routers.admin if self._routers.admin is not None else build_admin_router(self.rate_limiter),
        )
        self.route_index = mount_topology(self.app, self.routers, self.gate, self.config.json_rpc_enabled)

        # Expose service instance via app state for introspection/testing
        self.app.state.rest_service = self

    def _setup_middleware(self):
        if self.config.rate_limiter_enabled:
            self.rate_limiter = self._rate_limiter_override or FixedWindowRateLimiter.from_config(self.config)
        else:
            self.rate_limiter = None

        install_policy_middleware(self.app, self.config, self.rate_limiter, self.metrics)
        super()._setup_middleware()

    async def on_shutdown(self):
        if self.rate_limiter is not None:
            await self.rate_limiter.close()


def create_app(config: Optional[RestConfig] = None, routers: Optional[RouterTable] = None,
               metrics: Optional[MetricsCollector] = None,
               rate_limiter: Optional[FixedWindowRateLimiter] = None) -> FastAPI:
    """Create FastAPI application."""
    service = RestService(config, routers, metrics=metrics, rate_limiter=rate_limiter)
    return service.app
