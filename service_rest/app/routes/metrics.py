"""
Metrics exposition router.
"""

from fastapi import APIRouter, Response

from shared.metrics import MetricsCollector


def build_metrics_router(metrics: MetricsCollector) -> APIRouter:
    """Expose the collector's registry in the Prometheus text format."""
    router = APIRouter()

    @router.get("", include_in_schema=False)
    async def metrics_endpoint():
        body, content_type = metrics.render()
        return Response(content=body, media_type=content_type)

    return router
