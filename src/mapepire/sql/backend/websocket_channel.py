import logging
from typing import Dict, List, Optional, Tuple, Union

import websocket

from mapepire.sql.auth.authenticators import AuthProvider
from mapepire.sql.backend.channel import MessageChannel
from mapepire.sql.exc import TransportError
from mapepire.sql.types import SSLOptions

logger = logging.getLogger(__name__)


class WebSocketChannel(MessageChannel):
    """
    MessageChannel over a secure WebSocket, backed by websocket-client.

    Pings from the daemon are answered by websocket-client while a frame is
    being received.
    """

    def __init__(
        self,
        url: str,
        auth_provider: AuthProvider,
        ssl_options: Optional[SSLOptions] = None,
        http_headers: Optional[List[Tuple[str, str]]] = None,
        socket_timeout: Optional[float] = None,
    ):
        self.url = url
        self._auth_provider = auth_provider
        self._ssl_options = ssl_options or SSLOptions()
        self._http_headers = http_headers or []
        self._socket_timeout = socket_timeout
        self._ws: Optional[websocket.WebSocket] = None

    def _build_headers(self) -> List[str]:
        headers: Dict[str, str] = dict(self._http_headers)
        self._auth_provider.add_headers(headers)
        return ["{}: {}".format(key, value) for key, value in headers.items()]

    def open(self) -> None:
        logger.debug("Opening channel to %s", self.url)
        try:
            self._ws = websocket.create_connection(
                self.url,
                timeout=self._socket_timeout,
                header=self._build_headers(),
                sslopt=self._ssl_options.to_sslopt(),
            )
        except (websocket.WebSocketException, OSError) as e:
            raise TransportError(
                "Failed to open channel to {}".format(self.url),
                context={"method": "open", "original-exception": str(e)},
            ) from e

    def send(self, message: str) -> None:
        if self._ws is None:
            raise TransportError("Channel is not open", context={"method": "send"})
        try:
            self._ws.send(message)
        except (websocket.WebSocketException, OSError) as e:
            raise TransportError(
                "Failed to send frame",
                context={"method": "send", "original-exception": str(e)},
            ) from e

    def receive(self) -> str:
        if self._ws is None:
            raise TransportError("Channel is not open", context={"method": "receive"})
        try:
            payload: Union[str, bytes] = self._ws.recv()
        except (websocket.WebSocketException, OSError) as e:
            raise TransportError(
                "Failed to receive frame",
                context={"method": "receive", "original-exception": str(e)},
            ) from e

        # websocket-client hands back an empty payload for a close frame
        if not payload and not self._ws.connected:
            raise TransportError(
                "Channel was closed by the server", context={"method": "receive"}
            )
        if isinstance(payload, bytes):
            return payload.decode("utf-8")
        return payload

    def close(self) -> None:
        if self._ws is None:
            return
        ws, self._ws = self._ws, None
        try:
            ws.close()
        except (websocket.WebSocketException, OSError) as e:
            logger.debug("Error while closing channel to %s: %s", self.url, e)

    @property
    def is_open(self) -> bool:
        return self._ws is not None and self._ws.connected
