"""
Shared error handling for the chain-data REST API.
"""

from typing import Dict, Any, Optional
from pydantic import BaseModel, Field

from shared.logging import request_id_var


class ErrorResponse(BaseModel):
    """Standard error response format."""

    trace_id: Optional[str] = None
    code: str
    message: str
    details: Dict[str, Any] = Field(default_factory=dict)


class ApiError(Exception):
    """Base exception for the REST entry point."""

    status_code: int = 400

    def __init__(self, code: str, message: str, details: Optional[Dict[str, Any]] = None,
                 status_code: Optional[int] = None):
        self.code = code
        self.message = message
        self.details = details or {}
        if status_code is not None:
            self.status_code = status_code
        super().__init__(message)

    def to_response(self) -> ErrorResponse:
        """Convert to error response."""
        return ErrorResponse(
            trace_id=request_id_var.get(),
            code=self.code,
            message=self.message,
            details=self.details
        )


class ConfigurationError(ApiError):
    """Startup errors, e.g. a port that cannot be bound."""

    status_code = 500

    def __init__(self, message: str = "Invalid configuration", details: Optional[Dict[str, Any]] = None):
        super().__init__("CONFIGURATION_ERROR", message, details)


class AuthenticationError(ApiError):
    """No credential was presented."""

    status_code = 401

    def __init__(self, message: str = "Authentication failed", details: Optional[Dict[str, Any]] = None):
        super().__init__("AUTHENTICATION_ERROR", message, details)


class AuthorizationError(ApiError):
    """A credential was presented but is not accepted."""

    status_code = 403

    def __init__(self, message: str = "Authorization failed", details: Optional[Dict[str, Any]] = None):
        super().__init__("AUTHORIZATION_ERROR", message, details)


class MalformedRequest(ApiError):
    """Request body could not be decoded."""

    status_code = 400

    def __init__(self, message: str = "Malformed request body", details: Optional[Dict[str, Any]] = None):
        super().__init__("MALFORMED_REQUEST", message, details)


class PayloadTooLarge(ApiError):
    """Request body exceeds the configured limit."""

    status_code = 413

    def __init__(self, message: str = "Request body too large", details: Optional[Dict[str, Any]] = None):
        super().__init__("PAYLOAD_TOO_LARGE", message, details)


class RateLimitExceeded(ApiError):
    """Rate limiting errors."""

    status_code = 429

    def __init__(self, message: str = "Too many requests, please try again later.",
                 details: Optional[Dict[str, Any]] = None):
        super().__init__("RATE_LIMIT_ERROR", message, details)
