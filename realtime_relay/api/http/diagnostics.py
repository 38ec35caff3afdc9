"""Diagnostics endpoints: live session listing and Prometheus metrics."""

from fastapi import APIRouter, Request, Response
from prometheus_client import CONTENT_TYPE_LATEST, generate_latest

from realtime_relay.schemas.session import SessionInfo

router = APIRouter()


@router.get(
    "/sessions",
    response_model=list[SessionInfo],
    summary="List registered relay sessions",
    tags=["diagnostics"],
)
async def list_sessions(request: Request) -> list[SessionInfo]:
    """
    List every registered session, oldest first.

    Sessions appear here from acceptance until both of their sockets are
    closed. Nothing about the forwarded frames is exposed.
    """
    return request.app.state.relay.registry.snapshot()


@router.get(
    "/metrics",
    response_class=Response,
    summary="Prometheus metrics endpoint",
    tags=["diagnostics"],
)
async def metrics() -> Response:
    """
    Expose relay metrics in the Prometheus text exposition format.

    Example:
        ```
        # HELP relay_sessions_active Number of registered relay sessions
        # TYPE relay_sessions_active gauge
        relay_sessions_active 3.0
        ```
    """
    return Response(content=generate_latest(), media_type=CONTENT_TYPE_LATEST)
