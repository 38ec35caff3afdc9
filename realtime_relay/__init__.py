# Uvicorn application factory <https://www.uvicorn.org/#application-factories>
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

from fastapi import FastAPI

from realtime_relay.logging import logger
from realtime_relay.relay import RealtimeRelay
from realtime_relay.routing import collect_subrouters
from realtime_relay.settings import Settings, load_settings

__version__ = "1.0.0"


def application(
    settings: Settings | None = None, relay: RealtimeRelay | None = None
) -> FastAPI:
    """
    Initializes and configures the relay FastAPI application.

    The application carries:
    - The RealtimeRelay instance on ``app.state.relay``, started and
      stopped by the application lifespan
    - The relay WebSocket endpoint on ``/``
    - Diagnostics routes: ``/health``, ``/sessions`` and ``/metrics``

    Args:
        settings: Relay configuration; loaded from the environment when
            omitted, which raises ConfigurationError if the upstream
            credential is missing.
        relay: Pre-built relay (tests inject one with a fake connector).

    Returns:
        FastAPI: The configured application.
    """
    if relay is None:
        relay = RealtimeRelay(settings or load_settings())

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncIterator[None]:
        logger.info("Application startup initiated")
        await relay.start()
        try:
            yield
        finally:
            await relay.stop()
            logger.info("Application shutdown complete")

    app = FastAPI(
        title="Realtime relay",
        description="WebSocket relay to an upstream realtime API",
        version=__version__,
        lifespan=lifespan,
    )
    app.state.relay = relay
    app.include_router(collect_subrouters())

    return app
