import asyncio
import logging
import logging.config
import signal
import ssl
from typing import Any

import uvloop
from hypercorn import Config
from hypercorn.asyncio import serve

from ecfr_proxy.app import create_app
from ecfr_proxy.cache import Caches
from ecfr_proxy.config import Settings, load_settings
from ecfr_proxy.refresh import CacheRefresher
from ecfr_proxy.services import TitleService
from ecfr_proxy.upstream import EcfrClient, build_http_client

logging.config.fileConfig("logging.conf")
logger = logging.getLogger("ecfr")

shutdown_event = asyncio.Event()


def _shutdown_signal_handler(*_: Any) -> None:
    logger.info("Shutdown signal received, shutting down gracefully")
    shutdown_event.set()


# For reporting SSL errors
def _exception_handler(loop, context):
    exception = context.get("exception")
    if isinstance(exception, ssl.SSLError):
        pass  # Handshake failure
    else:
        loop.default_exception_handler(context)


def configure_loop(loop: asyncio.AbstractEventLoop):
    loop.set_debug(False)  # Disable asyncio debug logs
    for sig in [signal.SIGTERM, signal.SIGINT]:
        loop.add_signal_handler(sig, _shutdown_signal_handler, sig)
    loop.set_exception_handler(_exception_handler)
    return loop


def configure_hypercorn(settings: Settings):
    config = Config()
    config.bind = [f"{settings.host}:{settings.port}"]
    # Hypercorn logs
    config.loglevel = "CRITICAL"
    config.use_reloader = False
    config.accesslog = None  # Access logs
    config.errorlog = None  # Error logs
    config.access_logger = logging.getLogger("hypercorn.access")
    config.error_logger = logging.getLogger("hypercorn.error")
    config.graceful_timeout = 120
    return config


async def start():
    settings = load_settings()
    config = configure_hypercorn(settings)
    loop = asyncio.get_running_loop()

    # Use a common async http client for all upstream requests
    client = build_http_client(settings.upstream_timeout)
    configure_loop(loop)

    caches = Caches.from_settings(settings)
    title_service = TitleService(EcfrClient(client, settings.upstream_timeout), caches, settings)
    refresher = CacheRefresher(title_service, settings)

    try:
        refresher.start()
        app = create_app(title_service)
        logger.info("Starting eCFR proxy on port %s", settings.port)
        await serve(app, config, shutdown_trigger=shutdown_event.wait)
    except RuntimeError as e:
        logger.error("RuntimeError: %s", e)
    finally:
        await refresher.stop()
        if not client.is_closed:
            await client.aclose()
            logger.info("Client closed")


if __name__ == "__main__":
    uvloop.run(start())
