"""Tests for duration parsing."""

from __future__ import annotations

import pytest

from rampload._internal.errors import ConfigurationError
from rampload._internal.parsing import parse_duration


class TestParseDuration:
    @pytest.mark.parametrize(
        ("value", "expected"),
        [
            (10, 10.0),
            (2.5, 2.5),
            ("10", 10.0),
            ("10s", 10.0),
            ("500ms", 0.5),
            ("1m30s", 90.0),
            ("1h", 3600.0),
            ("250us", 0.00025),
            ("0s", 0.0),
        ],
    )
    def test_valid_durations(self, value: object, expected: float) -> None:
        assert parse_duration(value, "d") == pytest.approx(expected)

    def test_default_unit_applies_to_bare_numbers(self) -> None:
        assert parse_duration(1000, "d", default_unit="ms") == pytest.approx(1.0)
        assert parse_duration("1", "d", default_unit="ms") == pytest.approx(0.001)

    def test_explicit_unit_overrides_default(self) -> None:
        assert parse_duration("2s", "d", default_unit="ms") == pytest.approx(2.0)

    @pytest.mark.parametrize(
        "value", ["-5s", "-1", -3, "nan", "inf", "ten", "10x", "s", "", None, True, [1]]
    )
    def test_invalid_durations_raise(self, value: object) -> None:
        with pytest.raises(ConfigurationError):
            parse_duration(value, "sleep_interval")

    def test_error_names_the_field(self) -> None:
        with pytest.raises(ConfigurationError, match="stages\\[2\\].duration"):
            parse_duration("abc", "stages[2].duration")
