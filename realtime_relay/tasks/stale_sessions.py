from asyncio import CancelledError, sleep

from realtime_relay.logging import logger
from realtime_relay.registry import SessionRegistry


async def stale_session_task(
    registry: SessionRegistry, max_age_seconds: float, interval_seconds: float
) -> None:
    """
    Periodically reports sessions that have been open suspiciously long.

    Every ``interval_seconds`` the registry snapshot is checked and a warning
    is logged for each session older than ``max_age_seconds``. Sessions are
    never closed from here; the warning is the diagnostic.
    """
    while True:
        try:
            await sleep(interval_seconds)

            for info in registry.stale(max_age_seconds):
                logger.warning(
                    f"Session {info.id} open for {info.age_seconds:.0f}s "
                    f"(state: {info.state}, upstream connected: {info.upstream_connected})"
                )

        except CancelledError:
            logger.info("Stale session monitor cancelled!")
            raise
