"""
Transport finalizer for mounted routers.
"""

from typing import AsyncIterator

from fastapi import Depends, Request

from shared.logging import get_logger

logger = get_logger("rest.transport")


async def transport(request: Request) -> AsyncIterator[None]:
    """Runs after the matched handler of a finalized router.

    The route tree attaches it once per mounted router, however many
    finalized groups the router sits in.
    """
    outcome = "ok"
    try:
        yield
    except Exception:
        outcome = "error"
        raise
    finally:
        index = getattr(request.app.state, "route_index", None)
        if index is not None:
            template = index.resolve(request)
        else:
            template = getattr(request.scope.get("route"), "path", request.url.path)
        metrics = getattr(request.app.state, "metrics", None)
        if metrics is not None:
            metrics.record_route(template, request.method, outcome)
        logger.debug("Request finalized", route=template, method=request.method, outcome=outcome)


finalized = [Depends(transport)]
