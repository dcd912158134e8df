"""
Admin router: inspect and reset rate limit windows.
"""

from dataclasses import asdict
from typing import Optional

from fastapi import APIRouter, Response

from shared.logging import get_logger
from service_rest.app.ratelimit import FixedWindowRateLimiter

logger = get_logger("rest.admin")


def build_admin_router(rate_limiter: Optional[FixedWindowRateLimiter] = None) -> APIRouter:
    router = APIRouter()

    @router.get("/rate-limit/{client_id}")
    async def rate_limit_status(client_id: str):
        """Current window of a client."""
        if rate_limiter is None:
            return {"client_id": client_id, "enabled": False}

        status = await rate_limiter.get_rate_limit_status(client_id)
        payload = asdict(status)
        payload.pop("error", None)
        payload.update({"client_id": client_id, "enabled": True})
        return payload

    @router.delete("/rate-limit/{client_id}", status_code=204)
    async def reset_rate_limit(client_id: str):
        """Start a fresh window for a client."""
        if rate_limiter is not None:
            await rate_limiter.reset_rate_limit(client_id)
        else:
            logger.info("Rate limit reset requested while limiter is disabled", client_id=client_id)
        return Response(status_code=204)

    return router
