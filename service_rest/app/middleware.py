"""
Policy middleware applied to every request before route matching.
"""

import json
from typing import Optional

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.middleware.gzip import GZipMiddleware
from fastapi.responses import JSONResponse
from starlette.middleware.base import BaseHTTPMiddleware

from shared.config import RestConfig
from shared.errors import ApiError, MalformedRequest, PayloadTooLarge
from shared.logging import get_logger
from shared.metrics import MetricsCollector
from service_rest.app.ratelimit import FixedWindowRateLimiter, RateLimitMiddleware

logger = get_logger("rest.middleware")

IDENTITY_HEADERS = ("server", "x-powered-by")


def error_response(error: ApiError) -> JSONResponse:
    return JSONResponse(status_code=error.status_code, content=error.to_response().model_dump())


def _is_json(content_type: Optional[str]) -> bool:
    if not content_type:
        return False
    media_type = content_type.split(";", 1)[0].strip().lower()
    return media_type == "application/json" or media_type.endswith("+json")


def _has_body(request: Request) -> bool:
    return "transfer-encoding" in request.headers or request.headers.get("content-length", "0") not in ("", "0")


class JSONBodyMiddleware(BaseHTTPMiddleware):
    """Decodes JSON request bodies before they reach a handler.

    Only objects and arrays are accepted at the top level. The decoded value
    is left on ``request.state.json_body``.
    """

    def __init__(self, app, limit_bytes: int):
        super().__init__(app)
        self.limit_bytes = limit_bytes

    async def dispatch(self, request: Request, call_next):
        if not (_has_body(request) and _is_json(request.headers.get("content-type"))):
            return await call_next(request)

        declared = request.headers.get("content-length")
        if declared and declared.isdigit() and int(declared) > self.limit_bytes:
            return error_response(PayloadTooLarge(details={"limit_bytes": self.limit_bytes}))

        body = await request.body()
        if len(body) > self.limit_bytes:
            return error_response(PayloadTooLarge(details={"limit_bytes": self.limit_bytes}))

        stripped = body.strip()
        if not stripped:
            request.state.json_body = {}
            return await call_next(request)

        if stripped[:1] not in (b"{", b"["):
            return error_response(MalformedRequest("JSON body must be an object or an array"))

        try:
            request.state.json_body = json.loads(body)
        except ValueError as exc:
            logger.info("Malformed JSON body", path=request.url.path, error=str(exc))
            return error_response(MalformedRequest(details={"error": str(exc)}))

        return await call_next(request)


class ServerIdentityMiddleware(BaseHTTPMiddleware):
    """Strips headers that name the HTTP framework behind the API."""

    async def dispatch(self, request: Request, call_next):
        response = await call_next(request)
        for header in IDENTITY_HEADERS:
            if header in response.headers:
                del response.headers[header]
        return response


def install_policy_middleware(app: FastAPI, config: RestConfig,
                              rate_limiter: Optional[FixedWindowRateLimiter] = None,
                              metrics: Optional[MetricsCollector] = None) -> None:
    """Register the policy middleware on ``app``.

    Starlette runs the last registered middleware first, so registration
    goes innermost to outermost. Resulting request order: compression,
    CORS, identity suppression, JSON body parsing, rate limiting.
    """
    if rate_limiter is not None:
        logger.info("Init REST API rate limiter with params", **config.rate_limiter_params)
        app.add_middleware(
            RateLimitMiddleware,
            rate_limiter=rate_limiter,
            metrics=metrics,
            trust_proxy=config.trust_proxy,
        )
    else:
        logger.info("REST API rate limiter is disabled in config [API_RATE_LIMITER_IS_ENABLED]")

    app.add_middleware(JSONBodyMiddleware, limit_bytes=config.json_body_limit_bytes)
    app.add_middleware(ServerIdentityMiddleware)

    # Public read API: any origin may call it
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_methods=["*"],
        allow_headers=["*"],
    )
    app.add_middleware(GZipMiddleware, minimum_size=config.gzip_minimum_size)
