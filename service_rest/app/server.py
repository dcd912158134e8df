"""
Lifecycle of the REST listener.

``start_rest_server`` builds the app, binds the port and serves it from a
background task. The returned ``ServerHandle`` is the only way to stop it.
"""

import asyncio
import contextlib
import socket
from enum import Enum
from typing import Iterator, Optional

import uvicorn

from shared.config import RestConfig, get_config
from shared.errors import ConfigurationError
from shared.logging import get_logger
from shared.metrics import MetricsCollector
from service_rest.app.main import create_app
from service_rest.app.routing import RouterTable

logger = get_logger("rest.server")


class ServerState(str, Enum):
    UNSTARTED = "unstarted"
    LISTENING = "listening"
    CLOSED = "closed"
    FAILED = "failed"


class EmbeddedServer(uvicorn.Server):
    """uvicorn server that leaves process signals to its host.

    ``ServerHandle.close`` is the only way to stop it; a process that wants
    SIGINT/SIGTERM to stop the API wires them to ``close`` itself.
    """

    @contextlib.contextmanager
    def capture_signals(self) -> Iterator[None]:
        yield


class ServerHandle:
    """Owns the bound socket and the uvicorn server serving it."""

    def __init__(self, server: Optional[EmbeddedServer] = None, sock: Optional[socket.socket] = None,
                 task: Optional[asyncio.Task] = None, error: Optional[ConfigurationError] = None):
        self._server = server
        self._sock = sock
        self._task = task
        self.error = error
        self.state = ServerState.FAILED if error is not None else ServerState.UNSTARTED
        self.host: Optional[str] = None
        self.port: Optional[int] = None
        if sock is not None:
            self.host, self.port = sock.getsockname()[:2]

    @property
    def url(self) -> Optional[str]:
        if self.port is None:
            return None
        host = "localhost" if self.host in ("0.0.0.0", "::", "127.0.0.1") else self.host
        return f"http://{host}:{self.port}"

    async def close(self) -> None:
        """Stop accepting connections and let in-flight requests drain.

        Closing a handle that is not listening does nothing.
        """
        if self.state is not ServerState.LISTENING:
            logger.debug("REST API close requested while not listening", state=self.state.value)
            return

        self._server.should_exit = True
        try:
            await self._task
        finally:
            self._sock.close()
            self.state = ServerState.CLOSED
            logger.info("REST API stopped", port=self.port)

    async def wait_closed(self) -> None:
        """Wait until the server stops, whoever stopped it."""
        if self._task is None:
            return
        await asyncio.shield(self._task)
        if self.state is ServerState.LISTENING:
            self._sock.close()
            self.state = ServerState.CLOSED


def _bind_socket(host: str, port: int) -> socket.socket:
    family = socket.AF_INET6 if ":" in host else socket.AF_INET
    sock = socket.socket(family, socket.SOCK_STREAM)
    try:
        sock.setsockopt(socket.SOL_SOCKET, socket.SO_REUSEADDR, 1)
        sock.bind((host, port))
    except OSError:
        sock.close()
        raise
    sock.set_inheritable(True)
    return sock


async def start_rest_server(config: Optional[RestConfig] = None, routers: Optional[RouterTable] = None,
                            metrics: Optional[MetricsCollector] = None) -> Optional[ServerHandle]:
    """Start the REST API.

    Returns ``None`` when the REST API is disabled. A port that cannot be
    bound is logged and yields a handle in the ``FAILED`` state; the process
    is left running.
    """
    config = config if config is not None else get_config()
    if not config.rest_enabled:
        logger.debug("REST API is disabled")
        return None

    # Every router is mounted before the socket exists
    app = create_app(config, routers, metrics=metrics)

    logger.info("REST API starting...")
    try:
        sock = _bind_socket(config.rest_host, config.rest_port)
    except OSError as exc:
        error = ConfigurationError(
            f"Could not bind REST API to {config.rest_host}:{config.rest_port}",
            details={"host": config.rest_host, "port": config.rest_port, "cause": str(exc)},
        )
        logger.error("Error when starting up API", code=error.code, **error.details)
        return ServerHandle(error=error)

    server = EmbeddedServer(uvicorn.Config(
        app,
        log_level=config.log_level.lower(),
        log_config=None,
        access_log=False,
        server_header=False,
    ))
    task = asyncio.create_task(server.serve(sockets=[sock]))
    handle = ServerHandle(server, sock, task)

    while not server.started:
        if task.done():
            sock.close()
            cause = task.exception() if not task.cancelled() else None
            handle.error = ConfigurationError(
                "REST API failed during startup",
                details={"port": handle.port, "cause": str(cause) if cause else "startup aborted"},
            )
            handle.state = ServerState.FAILED
            logger.error("Error when starting up API", code=handle.error.code, **handle.error.details)
            return handle
        await asyncio.sleep(0.01)

    handle.state = ServerState.LISTENING
    logger.info(f"REST API listening at {handle.url}")
    return handle
