from datetime import datetime
from enum import StrEnum

from pydantic import BaseModel, Field


class SessionState(StrEnum):
    """
    Lifecycle states of a relay session.

    Attributes:
        CONNECTING: Client accepted, upstream connect attempt in flight.
        ACTIVE: Both sockets open, frames forwarded in both directions.
        CLOSING: Teardown in progress.
        CLOSED: Terminal; the session has left the registry.
    """

    CONNECTING = "connecting"
    ACTIVE = "active"
    CLOSING = "closing"
    CLOSED = "closed"


class SessionInfo(BaseModel):
    """Read-only diagnostics view of a registered session."""

    id: str = Field(frozen=True)
    state: SessionState
    created_at: datetime = Field(frozen=True)
    age_seconds: float = Field(ge=0)
    upstream_connected: bool
