"""Health check endpoint for monitoring relay status."""

from fastapi import APIRouter, Request, Response, status
from pydantic import BaseModel

router = APIRouter()


class HealthResponse(BaseModel):
    """Response model for health check endpoint."""

    status: str
    accepting: bool
    active_sessions: int


@router.get(
    "/health",
    response_model=HealthResponse,
    status_code=status.HTTP_200_OK,
    summary="Health check endpoint",
    tags=["health"],
)
async def health_check(request: Request, response: Response) -> HealthResponse:
    """
    Check whether the relay is accepting sessions.

    Returns:
        HealthResponse: Relay status and number of registered sessions.
        Returns 503 Service Unavailable while the relay is not accepting
        (before startup completes or during shutdown).
    """
    relay = request.app.state.relay

    if not relay.accepting:
        response.status_code = status.HTTP_503_SERVICE_UNAVAILABLE

    return HealthResponse(
        status="healthy" if relay.accepting else "unavailable",
        accepting=relay.accepting,
        active_sessions=len(relay.registry),
    )
