"""Tests for domain value objects."""

from datetime import UTC, datetime, timedelta, timezone

import pytest

from roomsync.domain.value_objects import (
    ServerVersion,
    parse_server_date,
    to_date_param,
    to_iso8601,
)


class TestParseServerDate:
    """Tests for normalizing server timestamps."""

    def test_iso_string_with_z(self) -> None:
        parsed = parse_server_date("2024-05-01T12:00:00.250Z")
        assert parsed == datetime(2024, 5, 1, 12, 0, 0, 250000, tzinfo=UTC)

    def test_iso_string_without_zone_is_utc(self) -> None:
        parsed = parse_server_date("2024-05-01T12:00:00")
        assert parsed is not None
        assert parsed.tzinfo == UTC

    def test_legacy_date_wrapper(self) -> None:
        assert parse_server_date({"$date": 1714564800000}) == datetime(
            2024, 5, 1, 12, 0, tzinfo=UTC
        )

    def test_epoch_millis(self) -> None:
        assert parse_server_date(0) == datetime(1970, 1, 1, tzinfo=UTC)

    def test_naive_datetime_becomes_aware(self) -> None:
        parsed = parse_server_date(datetime(2024, 1, 1))
        assert parsed == datetime(2024, 1, 1, tzinfo=UTC)

    @pytest.mark.parametrize("value", [None, "", "yesterday", True, [1], {"$date": "x"}])
    def test_unusable_values_return_none(self, value) -> None:
        assert parse_server_date(value) is None


class TestDateEncoding:
    """Tests for encoding datetimes for each protocol."""

    def test_to_date_param_uses_millis(self) -> None:
        dt = datetime(2024, 5, 1, 12, 0, 0, 500000, tzinfo=UTC)
        assert to_date_param(dt) == {"$date": 1714564800500}

    def test_to_iso8601_converts_to_utc(self) -> None:
        plus_two = timezone(timedelta(hours=2))
        dt = datetime(2024, 5, 1, 14, 0, 0, 123456, tzinfo=plus_two)
        assert to_iso8601(dt) == "2024-05-01T12:00:00.123Z"

    def test_iso8601_parses_back(self) -> None:
        dt = datetime(2024, 5, 1, 12, 0, 0, 123000, tzinfo=UTC)
        assert parse_server_date(to_iso8601(dt)) == dt


class TestServerVersion:
    """Tests for ServerVersion parsing and ordering."""

    def test_parse_full_version(self) -> None:
        assert ServerVersion.parse("0.62.1") == ServerVersion(0, 62, 1)

    def test_parse_partial_and_suffixed_versions(self) -> None:
        assert ServerVersion.parse("1") == ServerVersion(1, 0, 0)
        assert ServerVersion.parse("v0.60.0-rc.1") == ServerVersion(0, 60, 0)

    def test_ordering(self) -> None:
        assert ServerVersion(0, 59, 9) < ServerVersion(0, 60, 0)
        assert ServerVersion(0, 62, 0) > ServerVersion(0, 61, 5)
        assert ServerVersion(1, 0, 0) > ServerVersion(0, 99, 99)

    def test_str(self) -> None:
        assert str(ServerVersion(0, 60)) == "0.60.0"

    def test_invalid_version_raises(self) -> None:
        with pytest.raises(ValueError, match="Invalid server version"):
            ServerVersion.parse("develop")
