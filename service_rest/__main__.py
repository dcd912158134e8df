"""
Run the REST API until it is stopped by a signal.
"""

import asyncio
import signal
import sys

from shared.config import RestConfig, get_config
from shared.logging import configure_logging, get_logger
from service_rest.app.server import ServerHandle, ServerState, start_rest_server

logger = get_logger("rest.main")

STOP_SIGNALS = (signal.SIGINT, signal.SIGTERM)


def _stop_on_signals(handle: ServerHandle) -> None:
    loop = asyncio.get_running_loop()

    def stop(sig: signal.Signals) -> None:
        logger.info("Shutting down REST API", signal=sig.name)
        for stop_signal in STOP_SIGNALS:
            loop.remove_signal_handler(stop_signal)
        loop.create_task(handle.close())

    for sig in STOP_SIGNALS:
        loop.add_signal_handler(sig, stop, sig)


async def serve(config: RestConfig) -> int:
    handle = await start_rest_server(config)
    if handle is None:
        return 0
    if handle.state is ServerState.FAILED:
        return 1
    _stop_on_signals(handle)
    await handle.wait_closed()
    return 0


def main() -> int:
    config = get_config()
    configure_logging(config.service_name, config.log_level)
    return asyncio.run(serve(config))


if __name__ == "__main__":
    sys.exit(main())
