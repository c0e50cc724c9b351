"""Legacy method-call protocol.

Method invocations are JSON envelopes over a persistent socket, one message
per line:

    -> {"msg": "method", "method": "subscriptions/get", "params": [...], "id": "1"}
    <- {"msg": "result", "id": "1", "result": ...}
    <- {"msg": "result", "id": "1", "error": {"error": 500, "reason": "..."}}

The server may interleave other messages ("ping", collection updates); only
"result" messages answer a call.
"""

import json
import logging
from typing import Any, BinaryIO

logger = logging.getLogger(__name__)


class ProtocolError(Exception):
    """Base exception for protocol errors."""

    pass


class MethodCall:
    """Method invocation message."""

    def __init__(self, method: str, params: list[Any], call_id: str = "1"):
        """Create a method call.

        Args:
            method: Method name (e.g., "subscriptions/get")
            params: Positional parameters
            call_id: Call ID for matching results
        """
        self.method = method
        self.params = params
        self.id = call_id

    def to_dict(self) -> dict[str, Any]:
        return {"msg": "method", "method": self.method, "params": self.params, "id": self.id}

    def to_json(self) -> str:
        """Serialize to JSON string with newline."""
        return json.dumps(self.to_dict()) + "\n"


class MethodResult:
    """Result message answering a method call."""

    def __init__(
        self,
        result: Any = None,
        error: dict[str, Any] | None = None,
        call_id: str | None = None,
    ):
        self.result = result
        self.error = error
        self.id = call_id

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "MethodResult":
        """Build from a decoded "result" message.

        Raises:
            ProtocolError: If the message is not a result message
        """
        if data.get("msg") != "result":
            raise ProtocolError(f"Not a result message: {data.get('msg')!r}")
        error = data.get("error")
        if error is not None and not isinstance(error, dict):
            error = {"reason": str(error)}
        call_id = data.get("id")
        return cls(
            result=data.get("result"),
            error=error,
            call_id=str(call_id) if call_id is not None else None,
        )

    def is_error(self) -> bool:
        """Check if this result is an error."""
        return self.error is not None

    @property
    def error_message(self) -> str:
        if not self.error:
            return ""
        return str(self.error.get("reason") or self.error.get("message") or self.error)


def decode_message(line: bytes | str) -> dict[str, Any]:
    """Decode one line into a message object.

    Raises:
        ProtocolError: If JSON is invalid or not an object
    """
    try:
        data = json.loads(line)
    except (json.JSONDecodeError, UnicodeDecodeError) as e:
        raise ProtocolError(f"Invalid JSON: {e}") from e

    if not isinstance(data, dict):
        raise ProtocolError("Message must be a JSON object")
    return data


def send_message(sock, message: MethodCall | dict[str, Any]) -> None:
    """Send a message over a socket.

    Args:
        sock: Socket to send on
        message: MethodCall or raw message object to send

    Raises:
        ProtocolError: If send fails
    """
    try:
        if isinstance(message, MethodCall):
            data = message.to_json()
        else:
            data = json.dumps(message) + "\n"
        sock.sendall(data.encode("utf-8"))
    except Exception as e:
        raise ProtocolError(f"Failed to send message: {e}") from e


def receive_message(stream: BinaryIO) -> dict[str, Any]:
    """Read the next message from a socket stream.

    Args:
        stream: Buffered binary stream (e.g. sock.makefile("rb"))

    Returns:
        Decoded message object

    Raises:
        ProtocolError: If the connection closed or the message is invalid
    """
    try:
        line = stream.readline()
    except Exception as e:
        raise ProtocolError(f"Failed to receive message: {e}") from e

    if not line:
        raise ProtocolError("Connection closed")
    if not line.endswith(b"\n"):
        logger.warning("Received %d bytes without a message delimiter", len(line))
    return decode_message(line)
