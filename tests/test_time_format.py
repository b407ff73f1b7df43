"""Tests for time formatting helpers."""

from __future__ import annotations

from musicstream.utils.time_format import format_time, format_time_pair


def test_format_time_under_hour() -> None:
    assert format_time(0) == "00:00"
    assert format_time(59) == "00:59"
    assert format_time(61.7) == "01:01"
    assert format_time(3599) == "59:59"


def test_format_time_at_hour_and_beyond() -> None:
    assert format_time(3600) == "1:00:00"
    assert format_time(36_000) == "10:00:00"


def test_format_time_negative() -> None:
    assert format_time(-5) == "00:00"


def test_format_time_pair_hour_mode() -> None:
    pos, dur = format_time_pair(60, 3600)
    assert pos == "0:01:00"
    assert dur == "1:00:00"


def test_format_time_pair_unknown_duration() -> None:
    pos, dur = format_time_pair(60, 0)
    assert pos == "01:00"
    assert dur == "--:--"
    pos, dur = format_time_pair(3600, -1)
    assert pos == "1:00:00"
    assert dur == "--:--:--"


def test_format_time_non_finite_values_fall_back_to_zero() -> None:
    assert format_time(float("nan")) == "00:00"
    assert format_time(float("inf")) == "00:00"
