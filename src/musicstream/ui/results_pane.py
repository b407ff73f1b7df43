"""Search results table with capability badges."""

from __future__ import annotations

from textual.app import ComposeResult
from textual.widget import Widget
from textual.widgets import DataTable, Static

from musicstream.events import TrackActivated
from musicstream.models import Track
from musicstream.utils.time_format import format_time

CAPABILITY_BADGES = {
    "full-stream": "FULL",
    "preview-only": "PREVIEW",
    "external-link-only": "LINK",
    "none": "INFO",
}


def capability_badge(track: Track) -> str:
    return CAPABILITY_BADGES.get(track.capability, "INFO")


class ResultsPane(Widget):
    DEFAULT_CSS = """
    #results-title {
        height: 1;
    }

    #results-table {
        height: 1fr;
    }
    """

    def __init__(self, **kwargs) -> None:
        super().__init__(**kwargs)
        self._title = Static("Results", id="results-title")
        self._table: DataTable[str] = DataTable(
            id="results-table", cursor_type="row", zebra_stripes=True
        )
        self._tracks: list[Track] = []

    def compose(self) -> ComposeResult:
        yield self._title
        yield self._table

    def on_mount(self) -> None:
        self._table.add_columns("Title", "Artist", "Source", "Play", "Time")

    @property
    def tracks(self) -> list[Track]:
        return list(self._tracks)

    def set_tracks(self, tracks: list[Track] | tuple[Track, ...], *, title: str) -> None:
        self._tracks = list(tracks)
        self._title.update(f"{title} ({len(self._tracks)})")
        self._table.clear()
        for index, track in enumerate(self._tracks):
            self._table.add_row(
                track.title,
                track.artist,
                track.source,
                capability_badge(track),
                format_time(track.duration_seconds),
                key=str(index),
            )

    def highlighted_track(self) -> Track | None:
        row = self._table.cursor_row
        if 0 <= row < len(self._tracks):
            return self._tracks[row]
        return None

    def focus_table(self) -> None:
        self._table.focus()

    def on_data_table_row_selected(self, event: DataTable.RowSelected) -> None:
        event.stop()
        key = event.row_key.value
        if key is None:
            return
        index = int(key)
        if 0 <= index < len(self._tracks):
            self.post_message(TrackActivated(self._tracks[index]))
