"""Port interface for marking a subscription as read without the typed API."""

from typing import Protocol


class ReadFallback(Protocol):
    """Protocol for the local "mark as read" mutation used on old servers."""

    def mark_as_read(self, rid: str) -> None:
        """Advance the read state of a subscription.

        Args:
            rid: Room id of the subscription.

        Raises:
            LegacyRpcError: If the server rejects the call.
        """
        ...
