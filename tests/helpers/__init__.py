"""Test helper utilities for the roomsync test suite."""

from tests.helpers.cli_assertions import (
    assert_command_failed,
    assert_command_success,
    assert_error_message,
    assert_output_matches,
)
from tests.helpers.fakes import (
    SYNC_TIME,
    FakeLegacyChannel,
    FakeTransport,
    RecordingReadFallback,
    seed_subscriptions,
)

__all__ = [
    "SYNC_TIME",
    "FakeLegacyChannel",
    "FakeTransport",
    "RecordingReadFallback",
    "assert_command_success",
    "assert_command_failed",
    "assert_error_message",
    "assert_output_matches",
    "seed_subscriptions",
]
