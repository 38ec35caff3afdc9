"""
Relay session lifecycle.

A RelaySession owns exactly one client socket and at most one upstream
socket, and moves through CONNECTING -> ACTIVE -> CLOSING -> CLOSED. Each
socket is served by its own task; the first task to finish, or an explicit
stop request, ends the session and tears down both sockets.
"""

import asyncio
import uuid
from datetime import UTC, datetime
from typing import Protocol

from starlette.websockets import WebSocket, WebSocketDisconnect, WebSocketState
from websockets.asyncio.client import ClientConnection

from realtime_relay.constants import (
    REASON_SHUTTING_DOWN,
    WS_GOING_AWAY_CODE,
    WS_NORMAL_CLOSURE_CODE,
)
from realtime_relay.exceptions import (
    ForwardingError,
    RelayError,
    SessionStateError,
    UpstreamConnectError,
    UpstreamFailure,
)
from realtime_relay.forwarder import MessageForwarder
from realtime_relay.logging import logger, set_log_context
from realtime_relay.registry import SessionRegistry
from realtime_relay.schemas.session import SessionInfo, SessionState
from realtime_relay.utils.metrics import MetricsCollector

_TRANSITIONS: dict[SessionState, frozenset[SessionState]] = {
    SessionState.CONNECTING: frozenset({SessionState.ACTIVE, SessionState.CLOSING}),
    SessionState.ACTIVE: frozenset({SessionState.CLOSING}),
    SessionState.CLOSING: frozenset({SessionState.CLOSED}),
    SessionState.CLOSED: frozenset(),
}


class Connector(Protocol):
    async def connect(self, session_id: str) -> ClientConnection: ...


class RelaySession:
    """
    Paired client/upstream connection and its lifecycle state.

    Args:
        client: Accepted client WebSocket; only this session writes to it.
        connector: Opens the upstream socket; called at most once.
        registry: Registry the session was registered in; the session
            removes itself on reaching CLOSED.
        max_message_size: Largest frame forwarded in either direction.
        backlog_size: Client frames queued while connecting.
        close_timeout: Bound on closing the client socket.
        write_timeout: Bound on a single upstream write.
    """

    def __init__(
        self,
        client: WebSocket,
        connector: Connector,
        registry: SessionRegistry,
        *,
        max_message_size: int,
        backlog_size: int,
        close_timeout: float = 5.0,
        write_timeout: float = 10.0,
    ) -> None:
        self.id = uuid.uuid4().hex
        self.state = SessionState.CONNECTING
        self.client = client
        self.upstream: ClientConnection | None = None
        self.created_at = datetime.now(UTC)
        self.error: RelayError | None = None
        self.outcome: str | None = None

        self._connector = connector
        self._registry = registry
        self._close_timeout = close_timeout
        self._forwarder = MessageForwarder(
            self.id,
            client,
            max_message_size=max_message_size,
            backlog_size=backlog_size,
            write_timeout=write_timeout,
        )
        self._started = False
        self._connect_attempted = False
        self._stop_requested = asyncio.Event()
        self._closed = asyncio.Event()

    def __repr__(self) -> str:
        return f"RelaySession(id={self.id!r}, state={self.state})"

    def info(self) -> SessionInfo:
        return SessionInfo(
            id=self.id,
            state=self.state,
            created_at=self.created_at,
            age_seconds=(datetime.now(UTC) - self.created_at).total_seconds(),
            upstream_connected=self.upstream is not None,
        )

    def request_stop(self) -> None:
        """Ask the session to tear down; the client is closed with 1001."""
        self._stop_requested.set()

    async def wait_closed(self) -> None:
        await self._closed.wait()

    def _transition(self, new_state: SessionState) -> None:
        if new_state is self.state and new_state in (
            SessionState.CLOSING,
            SessionState.CLOSED,
        ):
            return
        if new_state not in _TRANSITIONS[self.state]:
            raise SessionStateError(
                f"Invalid session transition {self.state} -> {new_state}"
            )
        logger.debug(f"Session {self.id} {self.state} -> {new_state}")
        self.state = new_state

    async def _open_upstream(self) -> ClientConnection:
        if self._connect_attempted:
            raise SessionStateError(f"Session {self.id} already has an upstream")
        self._connect_attempted = True
        return await self._connector.connect(self.id)

    async def run(self) -> RelayError | None:
        """
        Drive the session from CONNECTING to CLOSED.

        Returns:
            The classified error that ended the session, or None when
            either peer closed normally or the relay stopped the session.

        Raises:
            SessionStateError: If the session was already run.
        """
        if self._started:
            raise SessionStateError(f"Session {self.id} was already started")
        self._started = True
        set_log_context(session_id=self.id)

        reader = asyncio.create_task(self._forwarder.read_client())
        stop = asyncio.create_task(self._stop_requested.wait())
        connect = asyncio.create_task(self._open_upstream())
        roles: dict[asyncio.Task, str] = {
            reader: "client_closed",
            stop: "shutdown",
        }

        try:
            done, _ = await asyncio.wait(
                {reader, stop, connect}, return_when=asyncio.FIRST_COMPLETED
            )

            if reader in done or stop in done:
                # Client left or relay stopping: never promote to ACTIVE
                self._finish(done, roles)
            elif connect.exception() is not None:
                self._connect_failed(connect.exception())
            else:
                self.upstream = connect.result()
                self._transition(SessionState.ACTIVE)
                self._forwarder.activate()

                upstream_writer = asyncio.create_task(
                    self._forwarder.pump_upstream(self.upstream)
                )
                client_writer = asyncio.create_task(
                    self._forwarder.pump_client(self.upstream)
                )
                roles[upstream_writer] = "upstream_closed"
                roles[client_writer] = "upstream_closed"

                done, _ = await asyncio.wait(
                    roles.keys(), return_when=asyncio.FIRST_COMPLETED
                )
                self._finish(done, roles)
        finally:
            await self._teardown(list(roles), connect)

        return self.error

    def _connect_failed(self, exc: BaseException) -> None:
        """Record a failed connect; unclassified errors count as NETWORK."""
        if not isinstance(exc, RelayError):
            logger.error(
                f"Session {self.id} upstream connect failed unexpectedly",
                exc_info=(type(exc), exc, exc.__traceback__),
            )
            exc = UpstreamConnectError(
                UpstreamFailure.NETWORK, f"Unexpected connect error: {exc!r}"
            )
        self.error = exc
        self.outcome = exc.outcome

    def _finish(
        self, done: set[asyncio.Task], roles: dict[asyncio.Task, str]
    ) -> None:
        """Record the error and outcome from the first finished tasks."""
        for task in done:
            if task.cancelled():
                continue
            exc = task.exception()
            if exc is None:
                continue
            if not isinstance(exc, RelayError):
                logger.error(
                    f"Session {self.id} failed unexpectedly",
                    exc_info=(type(exc), exc, exc.__traceback__),
                )
                exc = ForwardingError(f"Unexpected error: {exc!r}")
            self.error = exc
            self.outcome = exc.outcome
            return

        # No errors: the stop signal wins, then whichever peer closed
        finished = sorted(
            roles[task] for task in done if task in roles and not task.cancelled()
        )
        if not finished or "shutdown" in finished:
            self.outcome = "shutdown"
        else:
            self.outcome = finished[0]

    async def _discard_unpromoted(self, connect: asyncio.Task) -> None:
        """Close an upstream socket whose connect won a race with teardown."""
        if connect.cancelled() or connect.exception() is not None:
            return
        upstream = connect.result()
        if upstream is self.upstream:
            return
        logger.debug(f"Session {self.id} discarding upstream opened after client left")
        await upstream.close(code=WS_NORMAL_CLOSURE_CODE)

    async def _teardown(self, tasks: list[asyncio.Task], connect: asyncio.Task) -> None:
        """CLOSING: stop all tasks, close both sockets, then reach CLOSED."""
        self._transition(SessionState.CLOSING)

        for task in (*tasks, connect):
            task.cancel()
        await asyncio.gather(*tasks, connect, return_exceptions=True)
        await self._discard_unpromoted(connect)

        if self.outcome is None:
            # Cancelled from outside, e.g. by the server on shutdown
            self.outcome = "shutdown"

        if self.upstream is not None:
            await self.upstream.close(code=WS_NORMAL_CLOSURE_CODE)

        if self.error is not None:
            await self._close_client(self.error.close_code, self.error.reason)
        elif self.outcome == "shutdown":
            await self._close_client(WS_GOING_AWAY_CODE, REASON_SHUTTING_DOWN)
        else:
            await self._close_client(WS_NORMAL_CLOSURE_CODE)

        self._transition(SessionState.CLOSED)
        self._registry.unregister(self.id)
        self._closed.set()

        duration = (datetime.now(UTC) - self.created_at).total_seconds()
        MetricsCollector.record_session_finished(self.outcome, duration)

        dropped = self._forwarder.pending
        logger.info(
            f"Session {self.id} closed ({self.outcome}) after {duration:.1f}s"
            + (f", discarded {dropped} queued frames" if dropped else "")
        )

    async def _close_client(self, code: int, reason: str | None = None) -> None:
        if (
            self.client.client_state != WebSocketState.CONNECTED
            or self.client.application_state != WebSocketState.CONNECTED
        ):
            return

        try:
            await asyncio.wait_for(
                self.client.close(code=code, reason=reason),
                timeout=self._close_timeout,
            )
        except TimeoutError:
            logger.warning(
                f"Session {self.id} client close timed out after {self._close_timeout}s"
            )
        except (WebSocketDisconnect, RuntimeError, OSError) as exc:
            # WebSocketDisconnect / OSError: transport already gone
            # RuntimeError: close raced with the client's own close
            logger.debug(f"Session {self.id} client close failed: {exc!r}")
