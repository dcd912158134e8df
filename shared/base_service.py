"""
Base service class for the chain-data REST API.
"""

from contextlib import asynccontextmanager
from typing import Optional
import time

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse
from starlette.middleware.base import BaseHTTPMiddleware

from shared.config import RestConfig, get_config
from shared.errors import ApiError
from shared.logging import clear_context, configure_logging, get_logger, set_request_id
from shared.metrics import MetricsCollector, get_metrics_collector


class RequestContextMiddleware(BaseHTTPMiddleware):
    """Assigns a request id, times the request and logs its outcome."""

    def __init__(self, app, logger, metrics: MetricsCollector):
        super().__init__(app)
        self.logger = logger
        self.metrics = metrics

    async def dispatch(self, request: Request, call_next):
        request_id = set_request_id(request.headers.get("X-Request-ID"))
        start_time = time.time()

        try:
            response = await call_next(request)
            duration = time.time() - start_time

            self.metrics.record_http_request(
                method=request.method,
                status_code=response.status_code,
                duration=duration
            )
            self.logger.info(
                "HTTP request",
                method=request.method,
                path=request.url.path,
                status_code=response.status_code,
                duration_ms=round(duration * 1000, 2)
            )

            response.headers["X-Request-ID"] = request_id
            return response

        except Exception as e:
            self.logger.error(
                "Request error",
                method=request.method,
                path=request.url.path,
                error=str(e),
                duration_ms=round((time.time() - start_time) * 1000, 2)
            )
            raise
        finally:
            clear_context()


class BaseService:
    """Base service class with common functionality."""

    def __init__(self, service_name: str, config: Optional[RestConfig] = None,
                 metrics: Optional[MetricsCollector] = None):
        self.service_name = service_name
        self.config = config if config is not None else get_config()
        self.logger = get_logger(service_name)
        self.metrics = metrics if metrics is not None else get_metrics_collector(service_name)

        configure_logging(service_name, self.config.log_level)

        self.app = self._create_app()
        self.app.state.metrics = self.metrics
        self.app.state.config = self.config

        self._setup_middleware()
        self._setup_error_handlers()

    def _create_app(self) -> FastAPI:
        """Create FastAPI application."""
        return FastAPI(
            title=f"{self.service_name.title()} Service",
            description=f"Chain data API - {self.service_name.title()} Service",
            version="1.0.0",
            docs_url="/docs" if self.config.env == "local" else None,
            redoc_url="/redoc" if self.config.env == "local" else None,
            openapi_url="/openapi.json" if self.config.env == "local" else None,
            lifespan=self._lifespan,
        )

    @asynccontextmanager
    async def _lifespan(self, app: FastAPI):
        yield
        await self.on_shutdown()

    async def on_shutdown(self):
        """Release resources. Override in subclasses."""
        return None

    def _setup_middleware(self):
        """Set up middleware.

        Registered last, so it wraps everything a subclass installed before
        calling up.
        """
        self.app.add_middleware(RequestContextMiddleware, logger=self.logger, metrics=self.metrics)

    def _setup_error_handlers(self):
        """Set up error handlers."""

        @self.app.exception_handler(ApiError)
        async def api_error_handler(request: Request, exc: ApiError):
            """Handle ApiError."""
            self.logger.warning(
                "Request rejected",
                code=exc.code,
                message=exc.message,
                details=exc.details
            )
            return JSONResponse(
                status_code=exc.status_code,
                content=exc.to_response().model_dump()
            )

        @self.app.exception_handler(Exception)
        async def general_exception_handler(request: Request, exc: Exception):
            """Handle general exceptions."""
            self.logger.error("Unhandled exception", error=str(exc), exc_info=True)
            return JSONResponse(
                status_code=500,
                content={
                    "code": "INTERNAL_ERROR",
                    "message": "Internal server error",
                    "details": {}
                }
            )
