"""
API key guards for the REST entry point.
"""

import hmac
from typing import Iterable, Optional

from fastapi import Request, Security
from fastapi.security import APIKeyHeader, APIKeyQuery

from shared.config import RestConfig
from shared.errors import AuthenticationError, AuthorizationError
from shared.logging import get_logger
from shared.metrics import MetricsCollector

API_KEY_HEADER = "X-API-Key"
API_KEY_QUERY = "apikey"

api_key_header = APIKeyHeader(name=API_KEY_HEADER, auto_error=False)
api_key_query = APIKeyQuery(name=API_KEY_QUERY, auto_error=False)


class ApiKeyVerifier:
    """FastAPI dependency that lets a request through only with a known key.

    The key is read from the ``X-API-Key`` header, falling back to the
    ``apikey`` query parameter. A missing key is a 401, an unknown key a 403.
    """

    def __init__(self, guard: str, keys: Iterable[str], metrics: Optional[MetricsCollector] = None):
        self.guard = guard
        self._keys = tuple(key for key in keys if key)
        self.metrics = metrics
        self.logger = get_logger(f"rest.auth.{guard}")

        if not self._keys:
            self.logger.warning("No keys configured, every request to this guard will be rejected", guard=guard)

    def is_authorized(self, api_key: str) -> bool:
        # Compare against every key so timing does not reveal a partial match
        matched = False
        for known in self._keys:
            if hmac.compare_digest(api_key.encode("utf-8"), known.encode("utf-8")):
                matched = True
        return matched

    def _reject(self, request: Request, reason: str, error):
        if self.metrics:
            self.metrics.record_auth_failure(self.guard, reason)
        self.logger.warning(
            "API key rejected",
            guard=self.guard,
            reason=reason,
            path=request.url.path,
        )
        raise error

    async def __call__(
        self,
        request: Request,
        header_key: Optional[str] = Security(api_key_header),
        query_key: Optional[str] = Security(api_key_query),
    ) -> None:
        api_key = header_key or query_key
        if not api_key:
            self._reject(request, "missing", AuthenticationError(
                f"{API_KEY_HEADER} header or {API_KEY_QUERY} query parameter required"
            ))

        if not self.is_authorized(api_key):
            self._reject(request, "invalid", AuthorizationError("Invalid API key"))


class AuthenticationGate:
    """The two independent guards: data API keys and admin keys."""

    def __init__(self, config: RestConfig, metrics: Optional[MetricsCollector] = None):
        self.verify_api_key = ApiKeyVerifier("api", config.api_keys, metrics)
        self.verify_admin_api_key = ApiKeyVerifier("admin", config.admin_api_keys, metrics)
