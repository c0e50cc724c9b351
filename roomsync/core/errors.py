"""CLI error handling with actionable hints.

Provides consistent error formatting and common error factory functions
for all roomsync CLI commands.
"""

from typing import NoReturn

import click


class RoomSyncCliError(click.ClickException):
    """CLI error with actionable hint for users.

    Attributes:
        message: The primary error message.
        hint: Optional actionable suggestion for the user.

    Example:
        raise RoomSyncCliError(
            "No roomsync data directory",
            hint="Run 'roomsync init' first",
        )
    """

    def __init__(self, message: str, hint: str | None = None) -> None:
        super().__init__(message)
        self.hint = hint

    def format_message(self) -> str:
        """Format the error message with hint if present."""
        msg = self.message
        if self.hint:
            msg += f"\nHint: {self.hint}"
        return msg


def not_initialized_error(data_dir: str) -> NoReturn:
    """Raise error when the data directory has no database.

    Raises:
        RoomSyncCliError: Always raises with init hint.
    """
    raise RoomSyncCliError(
        f"No roomsync store in {data_dir}",
        hint="Run 'roomsync init' to create one",
    )


def no_session_error() -> NoReturn:
    """Raise error when no session is logged in.

    Raises:
        RoomSyncCliError: Always raises with login hint.
    """
    raise RoomSyncCliError(
        "No authenticated session",
        hint="Run 'roomsync login --server URL --user-id ID --token TOKEN' first",
    )
