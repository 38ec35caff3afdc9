"""
Frame forwarding between a client socket and its upstream socket.

Frames are opaque: text frames are forwarded as ``str`` and binary frames
as ``bytes``, never parsed or modified. Client frames pass through a single
bounded FIFO drained by a single consumer, and upstream frames are written
by a single loop, so arrival order is preserved in each direction.
"""

import asyncio

from starlette import status
from starlette.websockets import WebSocket, WebSocketDisconnect
from websockets.asyncio.client import ClientConnection
from websockets.exceptions import ConnectionClosedError, ConnectionClosedOK

from realtime_relay.constants import (
    CLIENT_TO_UPSTREAM,
    UPSTREAM_TO_CLIENT,
    WS_MESSAGE_TOO_BIG_CODE,
)
from realtime_relay.exceptions import (
    BacklogOverflowError,
    ForwardingError,
    OversizedMessageError,
)
from realtime_relay.logging import logger
from realtime_relay.utils.metrics import MetricsCollector

Frame = str | bytes


def frame_size(frame: Frame) -> int:
    """Payload size in bytes; text frames are measured as UTF-8."""
    if isinstance(frame, bytes):
        return len(frame)
    if frame.isascii():
        return len(frame)
    return len(frame.encode("utf-8"))


class MessageForwarder:
    """
    Pumps frames in both directions for one session.

    Client frames read while the session is still connecting are queued
    without waiting; once the queue is full the session is rejected with
    BacklogOverflowError. After ``activate()`` the reader waits for queue
    space instead, which propagates backpressure to the client.

    Args:
        session_id: Id of the owning session (logging only).
        client: The accepted client WebSocket.
        max_message_size: Largest frame accepted in either direction.
        backlog_size: Capacity of the client-to-upstream queue.
        write_timeout: Bound on a single upstream write.
    """

    def __init__(
        self,
        session_id: str,
        client: WebSocket,
        *,
        max_message_size: int,
        backlog_size: int,
        write_timeout: float = 10.0,
    ) -> None:
        self.session_id = session_id
        self.client = client
        self.max_message_size = max_message_size
        self.write_timeout = write_timeout
        self._queue: asyncio.Queue[Frame] = asyncio.Queue(maxsize=backlog_size)
        self._active = False

    @property
    def pending(self) -> int:
        """Number of client frames not yet written upstream."""
        return self._queue.qsize()

    def activate(self) -> None:
        self._active = True

    def _check_size(self, frame: Frame, direction: str) -> int:
        size = frame_size(frame)
        if size > self.max_message_size:
            raise OversizedMessageError(size, self.max_message_size, direction)
        return size

    async def read_client(self) -> int:
        """
        Read client frames into the upstream queue until the client leaves.

        Returns:
            The close code the client disconnected with.

        Raises:
            OversizedMessageError: A frame exceeded the size limit.
            BacklogOverflowError: The queue filled up before activation.
        """
        while True:
            message = await self.client.receive()

            if message["type"] == "websocket.disconnect":
                code = int(message.get("code") or status.WS_1000_NORMAL_CLOSURE)
                if code == WS_MESSAGE_TOO_BIG_CODE:
                    # The server's own frame limit fired before ours could
                    raise OversizedMessageError(
                        None, self.max_message_size, CLIENT_TO_UPSTREAM
                    )
                logger.debug(f"Client disconnected with code {code}")
                return code

            text = message.get("text")
            frame: Frame = text if text is not None else message.get("bytes", b"")
            self._check_size(frame, CLIENT_TO_UPSTREAM)

            if self._active:
                await self._queue.put(frame)
                continue

            try:
                self._queue.put_nowait(frame)
            except asyncio.QueueFull:
                raise BacklogOverflowError(
                    f"More than {self._queue.maxsize} frames received "
                    f"before upstream was ready"
                ) from None

    async def pump_upstream(self, upstream: ClientConnection) -> None:
        """
        Write queued client frames to upstream in arrival order.

        Returns when upstream closes normally. A write that does not finish
        within ``write_timeout`` fails the session.

        Raises:
            ForwardingError: Upstream write failed or timed out.
        """
        while True:
            frame = await self._queue.get()
            try:
                async with asyncio.timeout(self.write_timeout):
                    await upstream.send(frame)
            except TimeoutError as exc:
                raise ForwardingError(
                    f"Upstream write timed out after {self.write_timeout}s",
                    CLIENT_TO_UPSTREAM,
                ) from exc
            except ConnectionClosedOK:
                logger.debug("Upstream closed while sending")
                return
            except ConnectionClosedError as exc:
                raise ForwardingError(
                    f"Upstream write failed: {exc}", CLIENT_TO_UPSTREAM
                ) from exc

            MetricsCollector.record_frame_forwarded(
                CLIENT_TO_UPSTREAM, frame_size(frame)
            )

    async def pump_client(self, upstream: ClientConnection) -> None:
        """
        Write upstream frames to the client in arrival order.

        Returns when upstream closes normally.

        Raises:
            OversizedMessageError: Upstream sent a frame over the size limit.
            ForwardingError: Upstream dropped abnormally or a client write
                failed.
        """
        try:
            async for frame in upstream:
                size = self._check_size(frame, UPSTREAM_TO_CLIENT)
                try:
                    if isinstance(frame, str):
                        await self.client.send_text(frame)
                    else:
                        await self.client.send_bytes(frame)
                except (WebSocketDisconnect, RuntimeError, OSError) as exc:
                    # WebSocketDisconnect / OSError: client transport gone
                    # RuntimeError: client socket already closed
                    raise ForwardingError(
                        f"Client write failed: {exc!r}", UPSTREAM_TO_CLIENT
                    ) from exc

                MetricsCollector.record_frame_forwarded(UPSTREAM_TO_CLIENT, size)
        except ConnectionClosedError as exc:
            if exc.sent is not None and exc.sent.code == WS_MESSAGE_TOO_BIG_CODE:
                raise OversizedMessageError(
                    None, self.max_message_size, UPSTREAM_TO_CLIENT
                ) from exc
            raise ForwardingError(
                f"Upstream connection lost: {exc}", UPSTREAM_TO_CLIENT
            ) from exc

        logger.debug("Upstream closed normally")
