"""Tests for duration parsing and formatting."""

from datetime import timedelta

import pytest

from dadcontrol.durations import format_duration, parse_duration


class TestParseDuration:
    @pytest.mark.parametrize(
        "text, expected",
        [
            ("15m", timedelta(minutes=15)),
            ("1h30m", timedelta(hours=1, minutes=30)),
            ("1.5h", timedelta(hours=1, minutes=30)),
            ("90s", timedelta(seconds=90)),
            ("250ms", timedelta(milliseconds=250)),
            ("0", timedelta(0)),
            ("-5m", timedelta(minutes=-5)),
        ],
    )
    def test_strings(self, text: str, expected: timedelta) -> None:
        assert parse_duration(text) == expected

    def test_integer_nanoseconds(self) -> None:
        assert parse_duration(60_000_000_000) == timedelta(minutes=1)

    @pytest.mark.parametrize(
        "value", ["", "15", "m", "15 m", "1d", "abc", None, True, "99999999999h", 1e30, 10**400]
    )
    def test_invalid(self, value) -> None:
        with pytest.raises(ValueError):
            parse_duration(value)


class TestFormatDuration:
    def test_zero(self) -> None:
        assert format_duration(timedelta(0)) == "0s"

    def test_minutes_carry_seconds(self) -> None:
        assert format_duration(timedelta(minutes=15)) == "15m0s"

    def test_hours(self) -> None:
        assert format_duration(timedelta(hours=1, minutes=30)) == "1h30m0s"

    def test_fractional_seconds(self) -> None:
        assert format_duration(timedelta(seconds=2, milliseconds=500)) == "2.5s"

    def test_sub_second(self) -> None:
        assert format_duration(timedelta(milliseconds=250)) == "250ms"

    def test_parses_back(self) -> None:
        duration = timedelta(hours=26, minutes=3, seconds=7)
        assert parse_duration(format_duration(duration)) == duration
