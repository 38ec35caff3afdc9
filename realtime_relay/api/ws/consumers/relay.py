from fastapi import APIRouter
from starlette.endpoints import WebSocketEndpoint
from starlette.websockets import WebSocket

router = APIRouter()


@router.websocket_route("/")
class RelayConsumer(WebSocketEndpoint):  # type: ignore[misc]
    """
    WebSocket endpoint bridging a client to the upstream realtime API.

    Only the root path is routed here; upgrades to any other path are
    rejected during the handshake. The connection lifecycle is owned by
    the application's RealtimeRelay rather than the endpoint hooks, since
    frames must be forwarded verbatim and concurrently with the upstream
    connect attempt.
    """

    encoding = None  # Frames are forwarded as received, text or binary

    async def dispatch(self) -> None:
        websocket = WebSocket(self.scope, receive=self.receive, send=self.send)
        relay = websocket.app.state.relay
        await relay.serve_client(websocket)
