"""Status pane showing the current track, transport flags, and errors."""

from __future__ import annotations

from rich.text import Text
from textual.app import ComposeResult
from textual.widget import Widget
from textual.widgets import Static

from musicstream.services.transport import TransportState
from musicstream.utils.time_format import format_time_pair

BAR_WIDTH = 30


class StatusPane(Widget):
    DEFAULT_CSS = """
    #track-line, #time-line, #status-line {
        height: 1;
        width: 1fr;
        overflow: hidden;
    }

    #error-line {
        height: auto;
        color: $error;
    }
    """

    def __init__(self, **kwargs) -> None:
        super().__init__(**kwargs)
        self._track_line = Static("No track selected", id="track-line")
        self._time_line = Static("", id="time-line")
        self._status_line = Static("", id="status-line")
        self._error_line = Static("", id="error-line")
        self._state: TransportState | None = None
        self._status = "idle"
        self._adapter_kind: str | None = None

    def compose(self) -> ComposeResult:
        yield self._track_line
        yield self._time_line
        yield self._status_line
        yield self._error_line

    def update_state(
        self, state: TransportState, *, status: str, adapter_kind: str | None
    ) -> None:
        self._state = state
        self._status = status
        self._adapter_kind = adapter_kind
        self._track_line.update(track_text(state))
        pos_text, dur_text = format_time_pair(
            state.position_seconds, state.duration_seconds
        )
        fraction = time_fraction(state.position_seconds, state.duration_seconds)
        self._time_line.update(f"{progress_bar(fraction)} {pos_text}/{dur_text}")
        self._status_line.update(self._status_text())
        self._error_line.update(state.error or "")

    def status_plain(self) -> str:
        return self._status_text().plain

    def _status_text(self) -> Text:
        state = self._state
        text = Text()
        if state is None:
            return text
        status = "loading" if state.loading else self._status
        text.append("Status: ", style="bold #F2C94C")
        text.append(status)
        if self._adapter_kind:
            text.append(f" ({self._adapter_kind})")
        text.append(" | ")
        text.append("Vol: ", style="bold #F2C94C")
        text.append(f"{volume_percent(state.volume)}%")
        text.append(" | ")
        text.append("Repeat: ", style="bold #F2C94C")
        text.append(state.repeat)
        text.append(" | ")
        text.append("Shuffle: ", style="bold #F2C94C")
        text.append("on" if state.shuffle else "off")
        text.append(" | ")
        text.append("Queue: ", style="bold #F2C94C")
        text.append(str(len(state.queue)))
        return text


def track_text(state: TransportState) -> str:
    track = state.current_track
    if track is None:
        return "No track selected"
    return f"{track.title} - {track.artist} [{track.source}]"


def time_fraction(position: float, duration: float) -> float:
    if duration <= 0:
        return 0.0
    return clamp_float(position / duration, 0.0, 1.0)


def volume_percent(volume: float) -> int:
    return int(round(clamp_float(volume, 0.0, 1.0) * 100))


def progress_bar(fraction: float, width: int = BAR_WIDTH) -> str:
    filled = int(round(clamp_float(fraction, 0.0, 1.0) * width))
    return "[" + "#" * filled + "-" * (width - filled) + "]"


def clamp_float(value: float, min_value: float, max_value: float) -> float:
    return max(min_value, min(value, max_value))
