"""
Tests for the upstream connector.

A real websockets server stands in for the realtime API so the handshake
headers and every failure classification are exercised end to end.
"""

import asyncio
import logging
import socket
from http import HTTPStatus

import pytest
import pytest_asyncio
from pydantic import SecretStr
from websockets.asyncio.server import serve

from realtime_relay.exceptions import UpstreamConnectError, UpstreamFailure
from realtime_relay.upstream import UpstreamConnector, build_upstream_url

GOOD_KEY = "sk-upstream-good"


@pytest_asyncio.fixture
async def realtime_api():
    """
    Runs a websocket echo server that requires ``Bearer sk-upstream-good``.

    Yields:
        tuple: (base URL, dict of captured handshake requests)
    """
    captured: dict = {}

    def process_request(connection, request):
        captured["path"] = request.path
        captured["headers"] = request.headers
        if request.headers.get("Authorization") != f"Bearer {GOOD_KEY}":
            return connection.respond(HTTPStatus.UNAUTHORIZED, "invalid api key\n")
        return None

    async def handler(websocket):
        async for message in websocket:
            await websocket.send(message)

    async with serve(
        handler, "127.0.0.1", 0, process_request=process_request
    ) as server:
        port = server.sockets[0].getsockname()[1]
        yield f"ws://127.0.0.1:{port}/v1/realtime", captured


@pytest_asyncio.fixture
async def raw_tcp_server():
    """
    Runs a plain TCP server that answers with ``respond`` or stays silent.

    Yields:
        tuple: (URL, dict with a ``respond`` bytes entry; None means silence)
    """
    behavior: dict = {"respond": None}

    async def on_connect(reader, writer):
        await reader.readuntil(b"\r\n\r\n")
        if behavior["respond"] is not None:
            writer.write(behavior["respond"])
            await writer.drain()
            writer.close()
            return
        await reader.read()

    server = await asyncio.start_server(on_connect, "127.0.0.1", 0)
    port = server.sockets[0].getsockname()[1]
    try:
        yield f"ws://127.0.0.1:{port}/", behavior
    finally:
        server.close()


def make_connector(url: str, key: str = GOOD_KEY, **kwargs) -> UpstreamConnector:
    options = {"beta_header": "realtime=v1", "open_timeout": 2.0, "close_timeout": 1.0}
    options.update(kwargs)
    return UpstreamConnector(url, SecretStr(key), **options)


class TestBuildUpstreamUrl:
    """Tests for the model query parameter."""

    def test_adds_model(self):
        """Test the model is appended as a query parameter."""
        url = build_upstream_url("wss://api.openai.com/v1/realtime", "gpt-4o")

        assert url == "wss://api.openai.com/v1/realtime?model=gpt-4o"

    def test_replaces_existing_model(self):
        """Test an existing model parameter is replaced, others kept."""
        url = build_upstream_url("wss://host/rt?model=old&debug=1", "new")

        assert url == "wss://host/rt?debug=1&model=new"

    def test_empty_model_leaves_url(self):
        """Test an empty model leaves the URL untouched."""
        assert build_upstream_url("wss://host/rt", "") == "wss://host/rt"


class TestUpstreamConnector:
    """Tests for UpstreamConnector.connect()."""

    @pytest.mark.asyncio
    async def test_connect_sends_credential_as_header(self, realtime_api):
        """Test the key travels in the Authorization header, not the URL."""
        base_url, captured = realtime_api
        connector = make_connector(build_upstream_url(base_url, "gpt-4o"))

        upstream = await connector.connect("session-1")
        try:
            await upstream.send('{"type":"ping"}')
            assert await upstream.recv() == '{"type":"ping"}'
        finally:
            await upstream.close()

        assert captured["headers"]["Authorization"] == f"Bearer {GOOD_KEY}"
        assert captured["headers"]["OpenAI-Beta"] == "realtime=v1"
        assert captured["path"] == "/v1/realtime?model=gpt-4o"
        assert GOOD_KEY not in captured["path"]

    @pytest.mark.asyncio
    async def test_beta_header_optional(self, realtime_api):
        """Test no OpenAI-Beta header is sent when it is disabled."""
        base_url, captured = realtime_api
        connector = make_connector(base_url, beta_header=None)

        upstream = await connector.connect("session-1")
        await upstream.close()

        assert "OpenAI-Beta" not in captured["headers"]

    @pytest.mark.asyncio
    async def test_rejected_credential(self, realtime_api):
        """Test a 401 handshake is classified as AUTHENTICATION."""
        base_url, _ = realtime_api
        connector = make_connector(base_url, key="sk-wrong")

        with pytest.raises(UpstreamConnectError) as exc_info:
            await connector.connect("session-1")

        assert exc_info.value.kind is UpstreamFailure.AUTHENTICATION
        assert exc_info.value.close_code == 1014
        assert exc_info.value.reason == "upstream rejected credentials"

    @pytest.mark.asyncio
    async def test_connection_refused(self):
        """Test a closed port is classified as NETWORK."""
        with socket.socket() as sock:
            sock.bind(("127.0.0.1", 0))
            port = sock.getsockname()[1]
        connector = make_connector(f"ws://127.0.0.1:{port}/")

        with pytest.raises(UpstreamConnectError) as exc_info:
            await connector.connect("session-1")

        assert exc_info.value.kind is UpstreamFailure.NETWORK
        assert exc_info.value.reason == "upstream unavailable"

    @pytest.mark.asyncio
    async def test_handshake_timeout(self, raw_tcp_server):
        """Test a server that never answers is classified as TIMEOUT."""
        url, _ = raw_tcp_server
        connector = make_connector(url, open_timeout=0.2)

        with pytest.raises(UpstreamConnectError) as exc_info:
            await connector.connect("session-1")

        assert exc_info.value.kind is UpstreamFailure.TIMEOUT

    @pytest.mark.asyncio
    async def test_not_a_websocket_server(self, raw_tcp_server):
        """Test a plain HTTP response is classified as PROTOCOL."""
        url, behavior = raw_tcp_server
        behavior["respond"] = b"HTTP/1.1 200 OK\r\nContent-Length: 0\r\n\r\n"
        connector = make_connector(url)

        with pytest.raises(UpstreamConnectError) as exc_info:
            await connector.connect("session-1")

        assert exc_info.value.kind is UpstreamFailure.PROTOCOL
        assert exc_info.value.reason == "upstream protocol mismatch"

    @pytest.mark.asyncio
    async def test_invalid_url(self):
        """Test a non-websocket URL is classified as PROTOCOL."""
        connector = make_connector("http://127.0.0.1/")

        with pytest.raises(UpstreamConnectError) as exc_info:
            await connector.connect("session-1")

        assert exc_info.value.kind is UpstreamFailure.PROTOCOL

    @pytest.mark.asyncio
    async def test_credential_never_logged(self, realtime_api, caplog):
        """Test neither success nor failure logs the credential."""
        base_url, _ = realtime_api
        caplog.set_level(logging.DEBUG, logger="realtime_relay")

        upstream = await make_connector(base_url).connect("session-1")
        await upstream.close()
        with pytest.raises(UpstreamConnectError):
            await make_connector(base_url, key="sk-wrong").connect("session-2")

        assert GOOD_KEY not in caplog.text
        assert "sk-wrong" not in caplog.text

    def test_from_settings(self, settings):
        """Test the connector is configured from settings."""
        connector = UpstreamConnector.from_settings(settings)

        assert connector.url.endswith("?model=gpt-4o-realtime-preview-2024-10-01")
        assert connector.beta_header == "realtime=v1"
        assert connector.open_timeout == settings.UPSTREAM_CONNECT_TIMEOUT_SECONDS
        assert connector.max_size == settings.MAX_MESSAGE_SIZE_BYTES
