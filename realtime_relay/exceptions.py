"""
Custom exception classes for the relay.

Every session-ending failure is classified into one of these errors. Each
class carries the WebSocket close code and reason the client observes, and
an outcome label used for metrics, so the caller deciding on logging and
exit policy never has to inspect exception messages.
"""

from enum import StrEnum

from realtime_relay.constants import (
    CLIENT_TO_UPSTREAM,
    WS_BAD_GATEWAY_CODE,
    WS_INTERNAL_ERROR_CODE,
    WS_MESSAGE_TOO_BIG_CODE,
    WS_TRY_AGAIN_LATER_CODE,
)


class RelayError(Exception):
    """
    Base class for classified relay errors.

    Attributes:
        close_code: WebSocket close code sent to the client.
        reason: Close reason sent to the client.
        outcome: Label recorded in session metrics.
    """

    close_code: int = WS_INTERNAL_ERROR_CODE
    reason: str = "internal error"
    outcome: str = "error"

    def __init__(self, message: str | None = None) -> None:
        super().__init__(message or self.reason)


class ConfigurationError(RelayError):
    """
    Required configuration is missing or invalid.

    Raised at process startup only. The relay never binds its listener
    when this error occurs.
    """

    outcome = "configuration_error"


class UpstreamFailure(StrEnum):
    """Classification of a failed upstream connect attempt."""

    NETWORK = "network"
    AUTHENTICATION = "authentication"
    PROTOCOL = "protocol"
    TIMEOUT = "timeout"


_UPSTREAM_REASONS = {
    UpstreamFailure.NETWORK: "upstream unavailable",
    UpstreamFailure.AUTHENTICATION: "upstream rejected credentials",
    UpstreamFailure.PROTOCOL: "upstream protocol mismatch",
    UpstreamFailure.TIMEOUT: "upstream connect timeout",
}


class UpstreamConnectError(RelayError):
    """
    The upstream connection for a session could not be established.

    Local to one session and never retried automatically.
    """

    close_code = WS_BAD_GATEWAY_CODE
    outcome = "upstream_unavailable"

    def __init__(self, kind: UpstreamFailure, message: str | None = None):
        self.kind = kind
        super().__init__(message or self.reason)

    @property
    def reason(self) -> str:  # type: ignore[override]
        return _UPSTREAM_REASONS[self.kind]


class ForwardingError(RelayError):
    """
    Reading or writing a frame failed mid-session.

    Both sockets are torn down; partial frames are never replayed.
    """

    close_code = WS_INTERNAL_ERROR_CODE
    reason = "forwarding error"
    outcome = "forwarding_error"

    def __init__(
        self, message: str | None = None, direction: str = CLIENT_TO_UPSTREAM
    ) -> None:
        self.direction = direction
        super().__init__(message)


class OversizedMessageError(RelayError):
    """A frame exceeded the configured maximum size."""

    close_code = WS_MESSAGE_TOO_BIG_CODE
    reason = "message too big"
    outcome = "oversized_message"

    def __init__(
        self, size: int | None, limit: int, direction: str = CLIENT_TO_UPSTREAM
    ) -> None:
        self.size = size
        self.limit = limit
        self.direction = direction
        received = f"{size} bytes" if size is not None else "frame"
        super().__init__(f"{received} exceeds limit of {limit} bytes")


class BacklogOverflowError(RelayError):
    """
    The client sent more frames than can be queued while the upstream
    connection is still being established.
    """

    close_code = WS_TRY_AGAIN_LATER_CODE
    reason = "upstream not ready"
    outcome = "backlog_overflow"


class SessionStateError(RelayError):
    """An invalid session state transition was attempted."""

    outcome = "internal_error"
