"""Legacy RPC channel over a persistent socket.

Implements the LegacyChannel protocol. The connection is opened lazily with
a "connect" handshake (and a resume-token login when a token is configured)
and kept open between calls. Calls are serialized: one call is in flight on
the socket at a time.

There is no retry. A broken connection fails the call in progress and is
reopened by the next call.
"""

import contextlib
import itertools
import logging
import socket
import threading
from collections.abc import Callable
from typing import Any, BinaryIO

from roomsync.adapters.legacy.protocol import (
    MethodCall,
    MethodResult,
    ProtocolError,
    receive_message,
    send_message,
)
from roomsync.domain.exceptions import LegacyRpcError

logger = logging.getLogger(__name__)

PROTOCOL_VERSION = "1"


def open_socket(address: str, timeout: float) -> socket.socket:
    """Open a socket to "host:port" (TCP) or a filesystem path (Unix).

    Raises:
        OSError: If the connection fails.
    """
    host, sep, port = address.rpartition(":")
    if sep and host and port.isdigit() and "/" not in address:
        return socket.create_connection((host, int(port)), timeout=timeout)

    sock = socket.socket(socket.AF_UNIX, socket.SOCK_STREAM)
    sock.settimeout(timeout)
    try:
        sock.connect(address)
    except OSError:
        sock.close()
        raise
    return sock


class SocketLegacyChannel:
    """LegacyChannel over a persistent newline-delimited JSON socket."""

    def __init__(
        self,
        address: str,
        timeout: float = 30.0,
        token: str | None = None,
        connect: Callable[[str, float], socket.socket] = open_socket,
    ) -> None:
        """Initialize the channel.

        Args:
            address: "host:port" or Unix socket path
            timeout: Socket operation timeout in seconds
            token: Resume token used to log in after connecting
            connect: Socket factory (injectable for tests)
        """
        self.address = address
        self.timeout = timeout
        self._token = token
        self._connect = connect
        self._sock: socket.socket | None = None
        self._stream: BinaryIO | None = None
        self._lock = threading.Lock()
        self._ids = itertools.count(1)

    @property
    def connected(self) -> bool:
        return self._sock is not None

    def call(self, method: str, params: list[Any]) -> Any:
        """Invoke a method and return its result.

        Raises:
            LegacyRpcError: If the server returns an error or the socket fails.
        """
        with self._lock:
            try:
                self._ensure_connected()
                return self._invoke(MethodCall(method, params, self._next_id()))
            except (ProtocolError, OSError) as e:
                self._disconnect()
                raise LegacyRpcError(f"{method} failed: {e}") from e

    def close(self) -> None:
        """Close the connection. The next call reconnects."""
        with self._lock:
            self._disconnect()

    def _next_id(self) -> str:
        return str(next(self._ids))

    def _ensure_connected(self) -> None:
        if self._sock is not None:
            return

        logger.debug("Connecting legacy channel to %s", self.address)
        self._sock = self._connect(self.address, self.timeout)
        self._stream = self._sock.makefile("rb")

        send_message(
            self._sock,
            {"msg": "connect", "version": PROTOCOL_VERSION, "support": [PROTOCOL_VERSION]},
        )
        while True:
            message = self._receive()
            kind = message.get("msg")
            if kind == "connected":
                break
            if kind == "failed":
                raise ProtocolError(
                    f"Server refused protocol version {PROTOCOL_VERSION} "
                    f"(suggested {message.get('version')!r})"
                )

        if self._token:
            try:
                self._invoke(MethodCall("login", [{"resume": self._token}], self._next_id()))
            except LegacyRpcError:
                self._disconnect()
                raise

    def _invoke(self, call: MethodCall) -> Any:
        assert self._sock is not None
        send_message(self._sock, call)
        while True:
            message = self._receive()
            if message.get("msg") != "result" or str(message.get("id")) != call.id:
                continue
            result = MethodResult.from_dict(message)
            if result.is_error():
                raise LegacyRpcError(
                    f"{call.method} returned an error: {result.error_message}",
                    error=result.error,
                )
            return result.result

    def _receive(self) -> dict[str, Any]:
        """Read the next message, answering keepalive pings."""
        assert self._sock is not None and self._stream is not None
        while True:
            message = receive_message(self._stream)
            if message.get("msg") == "ping":
                pong: dict[str, Any] = {"msg": "pong"}
                if "id" in message:
                    pong["id"] = message["id"]
                send_message(self._sock, pong)
                continue
            return message

    def _disconnect(self) -> None:
        if self._stream is not None:
            with contextlib.suppress(OSError):
                self._stream.close()
            self._stream = None
        if self._sock is not None:
            with contextlib.suppress(OSError):
                self._sock.close()
            self._sock = None
