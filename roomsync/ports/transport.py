"""Port interface for the typed API transport.

Defines the protocol the sync core uses to issue typed requests.
Implementations should be in adapters/ layer.
"""

from typing import Any, Protocol

from roomsync.domain.requests import ApiRequest


class SyncTransport(Protocol):
    """Protocol for issuing typed requests against the server."""

    def fetch(self, request: ApiRequest) -> dict[str, Any]:
        """Issue a request and return the decoded response body.

        Args:
            request: The typed request to send.

        Returns:
            Decoded JSON object.

        Raises:
            VersionMismatchError: If the server does not support the endpoint.
            TransportError: For network failures and unexpected responses.
        """
        ...
