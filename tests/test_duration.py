"""Tests for duration flag parsing."""

from datetime import timedelta

import pytest

from upgrade_gate.errors import InvalidDurationError
from upgrade_gate.kernel.duration import parse_duration
from upgrade_gate.upgrader import format_duration


@pytest.mark.parametrize("raw,expected", [
    ("0", timedelta(0)),
    ("0s", timedelta(0)),
    ("30s", timedelta(seconds=30)),
    ("5m", timedelta(minutes=5)),
    ("1h30m", timedelta(hours=1, minutes=30)),
    ("1.5s", timedelta(seconds=1.5)),
    ("250ms", timedelta(milliseconds=250)),
])
def test_parse_duration(raw, expected):
    assert parse_duration(raw) == expected


@pytest.mark.parametrize("raw", ["", "10", "5x", "m5", "-5s", "5m junk"])
def test_parse_duration_invalid(raw):
    with pytest.raises(InvalidDurationError):
        parse_duration(raw)


def test_format_duration():
    assert format_duration(timedelta(minutes=2)) == "120s"
    assert format_duration(timedelta(milliseconds=1500)) == "1500ms"
