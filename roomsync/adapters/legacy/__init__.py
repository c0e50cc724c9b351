"""Legacy RPC adapters for servers that predate the typed API."""

from .channel import SocketLegacyChannel, open_socket
from .protocol import MethodCall, MethodResult, ProtocolError
from .read_fallback import LegacyReadFallback

__all__ = [
    "LegacyReadFallback",
    "MethodCall",
    "MethodResult",
    "ProtocolError",
    "SocketLegacyChannel",
    "open_socket",
]
