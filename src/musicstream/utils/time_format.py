"""Time formatting helpers for the UI."""

from __future__ import annotations

import math


def format_time(seconds: float) -> str:
    """Format seconds as MM:SS or H:MM:SS when needed."""
    return _format_time(seconds, force_hours=False)


def format_time_pair(position: float, duration: float) -> tuple[str, str]:
    """Format position and duration with consistent width."""
    hours_mode = _needs_hours(position) or _needs_hours(duration)
    formatted_position = _format_time(position, force_hours=hours_mode)
    if _coerce_seconds(duration) <= 0:
        placeholder = "--:--:--" if hours_mode else "--:--"
        return formatted_position, placeholder
    return formatted_position, _format_time(duration, force_hours=hours_mode)


def _needs_hours(seconds: float) -> bool:
    return _coerce_seconds(seconds) >= 3600


def _format_time(seconds: float, *, force_hours: bool) -> str:
    total_seconds = _coerce_seconds(seconds)
    hours = total_seconds // 3600
    if hours > 0 or force_hours:
        minutes = (total_seconds // 60) % 60
        secs = total_seconds % 60
        return f"{hours}:{minutes:02d}:{secs:02d}"
    minutes = total_seconds // 60
    secs = total_seconds % 60
    return f"{minutes:02d}:{secs:02d}"


def _coerce_seconds(value: float) -> int:
    try:
        numeric = float(value)
    except (TypeError, ValueError):
        return 0
    if not math.isfinite(numeric):
        return 0
    return max(0, int(numeric))
