"""
Generic API router: service status and route listing.
"""

from datetime import datetime, timezone

from fastapi import APIRouter, Request

from shared.config import RestConfig


def _format_iso(value: datetime) -> str:
    return value.isoformat(timespec="milliseconds").replace("+00:00", "Z")


def build_api_router(config: RestConfig) -> APIRouter:
    router = APIRouter()

    @router.get("/status")
    async def api_status():
        """API status endpoint."""
        return {
            "status": "operational",
            "service": config.service_name,
            "version": "1.0.0",
            "features": {
                "rate_limiter": config.rate_limiter_enabled,
                "json_rpc": config.json_rpc_enabled,
            },
        }

    @router.get("/routes")
    async def list_routes(request: Request):
        """Return metadata for registered API routes."""
        routes_payload = []
        for route in request.app.state.route_index:
            if not route.include_in_schema:
                continue
            methods = sorted(m for m in (route.methods or set()) if m not in {"HEAD", "OPTIONS"})
            routes_payload.append({
                "path": route.path,
                "methods": methods,
                "name": route.name,
            })

        routes_payload.sort(key=lambda item: item["path"])
        return {
            "count": len(routes_payload),
            "routes": routes_payload,
            "generated_at": _format_iso(datetime.now(timezone.utc)),
        }

    return router
