"""Domain exceptions for roomsync.

These exceptions represent protocol outcomes and business rule violations.
The sync core converts them into SyncResult values; the CLI converts the
ones that escape into user-facing error messages.
"""


class RoomSyncError(Exception):
    """Base exception for all roomsync errors.

    Attributes:
        message: User-facing error message.
        hint: Optional actionable suggestion.
    """

    def __init__(self, message: str, hint: str | None = None) -> None:
        super().__init__(message)
        self.message = message
        self.hint = hint


class VersionMismatchError(RoomSyncError):
    """Raised when the server does not support a typed API endpoint.

    Signals that the caller should switch to the legacy RPC path. Never
    retried.
    """

    def __init__(
        self,
        message: str,
        server_version: str | None = None,
        required_version: str | None = None,
    ) -> None:
        super().__init__(message, hint="The server predates the REST API for this call")
        self.server_version = server_version
        self.required_version = required_version


class TransportError(RoomSyncError):
    """Raised for transient network or server failures on the typed API."""

    def __init__(self, message: str, status_code: int | None = None) -> None:
        super().__init__(message, hint="Check connectivity and try again later")
        self.status_code = status_code


class LegacyRpcError(RoomSyncError):
    """Raised when a legacy method call fails or the socket breaks."""

    def __init__(self, message: str, error: dict | None = None) -> None:
        super().__init__(message)
        self.error = error


class InvalidRecordError(RoomSyncError):
    """Raised when a payload record fails required-field validation."""

    pass


class MalformedPayloadError(RoomSyncError):
    """Raised when a response lacks the fields a merge needs."""

    pass


class SessionNotFoundError(RoomSyncError):
    """Raised when no authenticated session is available."""

    def __init__(self, message: str = "No authenticated session") -> None:
        super().__init__(
            message,
            hint="Run 'roomsync login' to record a session first",
        )
