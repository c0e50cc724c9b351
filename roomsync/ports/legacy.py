"""Port interface for the legacy RPC channel.

Used only when the typed transport reports a version mismatch.
"""

from typing import Any, Protocol


class LegacyChannel(Protocol):
    """Protocol for invoking methods over the legacy socket."""

    def call(self, method: str, params: list[Any]) -> Any:
        """Invoke a method and return its result.

        Args:
            method: Method name (e.g., "subscriptions/get").
            params: Positional parameters.

        Returns:
            The "result" member of the response.

        Raises:
            LegacyRpcError: If the call fails or the socket breaks.
        """
        ...

    def close(self) -> None:
        """Close the underlying connection."""
        ...
