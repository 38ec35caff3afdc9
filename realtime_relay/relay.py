import asyncio

from starlette.websockets import WebSocket

from realtime_relay.constants import REASON_NOT_ACCEPTING, WS_TRY_AGAIN_LATER_CODE
from realtime_relay.logging import logger
from realtime_relay.registry import SessionRegistry
from realtime_relay.session import Connector, RelaySession
from realtime_relay.settings import Settings
from realtime_relay.tasks.stale_sessions import stale_session_task
from realtime_relay.upstream import UpstreamConnector
from realtime_relay.utils.metrics import MetricsCollector


class RealtimeRelay:
    """
    Accepts client WebSockets and runs one RelaySession per connection.

    The relay is an explicit instance configured with Settings; it owns its
    SessionRegistry and UpstreamConnector and has a start/stop lifecycle
    driven by the application lifespan.

    Args:
        settings: Relay configuration.
        connector: Upstream connector; built from settings when omitted.
        registry: Session registry; a fresh one when omitted.
    """

    def __init__(
        self,
        settings: Settings,
        connector: Connector | None = None,
        registry: SessionRegistry | None = None,
    ) -> None:
        self.settings = settings
        self.connector = connector or UpstreamConnector.from_settings(settings)
        self.registry = registry or SessionRegistry()
        self.accepting = False
        self._tasks: list[asyncio.Task] = []

    async def start(self) -> None:
        """Start accepting sessions and the stale session monitor."""
        self.accepting = True
        self._tasks.append(
            asyncio.create_task(
                stale_session_task(
                    self.registry,
                    self.settings.STALE_SESSION_SECONDS,
                    self.settings.STALE_SESSION_CHECK_INTERVAL_SECONDS,
                )
            )
        )
        logger.info("Relay started, accepting sessions")

    async def stop(self) -> None:
        """
        Stop accepting sessions and close every live session.

        Sessions are told to stop (clients see 1001) and given
        SHUTDOWN_TIMEOUT_SECONDS to reach CLOSED; background tasks are then
        cancelled.
        """
        logger.info("Relay shutdown initiated")
        self.accepting = False

        sessions = self.registry.sessions()
        if sessions:
            logger.info(f"Closing {len(sessions)} active sessions")
            for session in sessions:
                session.request_stop()
            try:
                await asyncio.wait_for(
                    asyncio.gather(*(s.wait_closed() for s in sessions)),
                    timeout=self.settings.SHUTDOWN_TIMEOUT_SECONDS,
                )
            except TimeoutError:
                logger.warning(
                    f"{len(self.registry)} sessions still open after "
                    f"{self.settings.SHUTDOWN_TIMEOUT_SECONDS}s"
                )

        if self._tasks:
            for task in self._tasks:
                task.cancel()
            await asyncio.gather(*self._tasks, return_exceptions=True)
            self._tasks.clear()

        logger.info("Relay shutdown complete")

    def create_session(self, websocket: WebSocket) -> RelaySession:
        """Create a CONNECTING session for an accepted client and register it."""
        session = RelaySession(
            websocket,
            self.connector,
            self.registry,
            max_message_size=self.settings.MAX_MESSAGE_SIZE_BYTES,
            backlog_size=self.settings.PENDING_MESSAGE_LIMIT,
            close_timeout=self.settings.CLOSE_TIMEOUT_SECONDS,
            write_timeout=self.settings.WRITE_TIMEOUT_SECONDS,
        )
        self.registry.register(session)
        return session

    async def serve_client(self, websocket: WebSocket) -> None:
        """
        Handle one client connection from upgrade to teardown.

        Accepts the upgrade, then either rejects it with 1013 when the relay
        is not accepting, or runs a new session to completion.
        """
        await websocket.accept()

        if not self.accepting:
            MetricsCollector.record_connection_rejected("not_accepting")
            await websocket.close(
                code=WS_TRY_AGAIN_LATER_CODE, reason=REASON_NOT_ACCEPTING
            )
            return

        session = self.create_session(websocket)
        client = websocket.client
        logger.info(
            f"Session {session.id} accepted from "
            f"{f'{client.host}:{client.port}' if client else 'unknown peer'}"
        )

        error = await session.run()
        if error is not None:
            logger.warning(
                f"Session {session.id} ended with {type(error).__name__}: {error}"
            )
