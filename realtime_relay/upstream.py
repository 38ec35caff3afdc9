import time
from urllib.parse import parse_qsl, urlencode, urlsplit, urlunsplit

from pydantic import SecretStr
from websockets.asyncio.client import ClientConnection, connect
from websockets.exceptions import InvalidHandshake, InvalidStatus, InvalidURI

from realtime_relay.constants import (
    UPSTREAM_AUTH_REJECTED_STATUSES,
    UPSTREAM_BETA_HEADER_NAME,
)
from realtime_relay.exceptions import UpstreamConnectError, UpstreamFailure
from realtime_relay.logging import logger
from realtime_relay.settings import Settings
from realtime_relay.utils.metrics import MetricsCollector


def build_upstream_url(url: str, model: str | None = None) -> str:
    """
    Add the ``model`` query parameter to the upstream URL.

    Existing query parameters are preserved; an existing ``model``
    parameter is replaced.
    """
    if not model:
        return url

    parts = urlsplit(url)
    query = [(k, v) for k, v in parse_qsl(parts.query) if k != "model"]
    query.append(("model", model))
    return urlunsplit(parts._replace(query=urlencode(query)))


class UpstreamConnector:
    """
    Opens the upstream realtime WebSocket for a session.

    The credential is sent only as an ``Authorization`` header on the
    upstream handshake; it is never part of the URL and never reaches the
    client. A failed attempt is classified and raised, not retried.
    """

    def __init__(
        self,
        url: str,
        api_key: SecretStr,
        *,
        beta_header: str | None = None,
        open_timeout: float = 10.0,
        close_timeout: float = 5.0,
        max_size: int | None = None,
    ) -> None:
        self.url = url
        self._api_key = api_key
        self.beta_header = beta_header
        self.open_timeout = open_timeout
        self.close_timeout = close_timeout
        self.max_size = max_size

    @classmethod
    def from_settings(cls, settings: Settings) -> "UpstreamConnector":
        return cls(
            build_upstream_url(settings.UPSTREAM_URL, settings.UPSTREAM_MODEL),
            settings.OPENAI_API_KEY,
            beta_header=settings.UPSTREAM_BETA_HEADER or None,
            open_timeout=settings.UPSTREAM_CONNECT_TIMEOUT_SECONDS,
            close_timeout=settings.CLOSE_TIMEOUT_SECONDS,
            max_size=settings.MAX_MESSAGE_SIZE_BYTES,
        )

    def _headers(self) -> dict[str, str]:
        headers = {"Authorization": f"Bearer {self._api_key.get_secret_value()}"}
        if self.beta_header:
            headers[UPSTREAM_BETA_HEADER_NAME] = self.beta_header
        return headers

    async def connect(self, session_id: str) -> ClientConnection:
        """
        Open the upstream connection for a session.

        Args:
            session_id: Id of the session the connection belongs to (logging).

        Returns:
            ClientConnection: The open upstream socket.

        Raises:
            UpstreamConnectError: Classified as AUTHENTICATION for 401/403
                handshake responses, PROTOCOL for any other handshake failure,
                TIMEOUT when the handshake does not finish within
                ``open_timeout`` and NETWORK for other socket errors.
        """
        logger.debug(f"Session {session_id} connecting to upstream {self.url}")
        start_time = time.perf_counter()

        try:
            upstream = await connect(
                self.url,
                additional_headers=self._headers(),
                open_timeout=self.open_timeout,
                close_timeout=self.close_timeout,
                max_size=self.max_size,
            )
        except InvalidStatus as exc:
            status_code = exc.response.status_code
            kind = (
                UpstreamFailure.AUTHENTICATION
                if status_code in UPSTREAM_AUTH_REJECTED_STATUSES
                else UpstreamFailure.PROTOCOL
            )
            raise self._failed(
                session_id, kind, f"handshake rejected with HTTP {status_code}", start_time
            ) from exc
        except (InvalidHandshake, InvalidURI) as exc:
            raise self._failed(
                session_id, UpstreamFailure.PROTOCOL, str(exc), start_time
            ) from exc
        except TimeoutError as exc:
            raise self._failed(
                session_id,
                UpstreamFailure.TIMEOUT,
                f"no handshake within {self.open_timeout}s",
                start_time,
            ) from exc
        except OSError as exc:
            raise self._failed(
                session_id, UpstreamFailure.NETWORK, str(exc), start_time
            ) from exc

        duration = time.perf_counter() - start_time
        MetricsCollector.record_upstream_connect("success", duration)
        logger.info(f"Session {session_id} upstream connected in {duration:.3f}s")
        return upstream

    def _failed(
        self,
        session_id: str,
        kind: UpstreamFailure,
        detail: str,
        start_time: float,
    ) -> UpstreamConnectError:
        MetricsCollector.record_upstream_connect(
            kind.value, time.perf_counter() - start_time
        )
        logger.warning(f"Session {session_id} upstream connect failed ({kind}): {detail}")
        return UpstreamConnectError(kind, f"Upstream connect failed ({kind}): {detail}")
