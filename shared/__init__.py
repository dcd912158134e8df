"""
Shared utilities for the chain-data REST API.

This package aggregates common building blocks consumed by the service:

- config: Service configuration via pydantic-settings
- logging: Structured logging with request correlation
- metrics: Prometheus metrics helpers
- errors: Canonical error types and responses
- base_service: FastAPI app skeleton with request logging and error handlers

Do not import from service_* packages into shared/.
"""
