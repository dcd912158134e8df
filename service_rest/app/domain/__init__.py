"""
Domain utilities for the REST entry point.

Holds the credential guards that sit in front of the versioned data API
and the admin surface.
"""

from .api_keys import ApiKeyVerifier, AuthenticationGate

__all__ = [
    "ApiKeyVerifier",
    "AuthenticationGate",
]
