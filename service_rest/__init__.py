"""
REST entry point of the chain-data API.

Structure:
- app.main: FastAPI app factory and middleware wiring.
- app.server: listener lifecycle (start, close).
- app.middleware: compression, CORS, JSON body and header policies.
- app.ratelimit: fixed-window limiter and its middleware.
- app.domain: API key guards.
- app.routing: router table and the version/shard/resource tree.
- app.routes: metrics, generic API and admin routers.
"""
