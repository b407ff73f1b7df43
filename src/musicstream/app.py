"""Textual TUI app for musicstream."""

from __future__ import annotations

import asyncio
import logging
from dataclasses import replace
from typing import cast

from textual.app import App, ComposeResult
from textual.containers import Vertical
from textual.widgets import Footer, Header, Input

from .errors import MusicStreamError
from .events import PlayerStateChanged, TrackActivated, TrackChanged
from .models import Track
from .paths import state_path, tokens_path
from .runtime_config import ClientSettings
from .services.adapter_factory import build_adapter_factory
from .services.orchestrator import PlaybackOrchestrator
from .services.search import AggregatedSearch
from .services.spotify_session import SpotifySession
from .services.transport import RepeatMode, TransportState
from .state_store import AppState, load_state_with_notice, save_state
from .ui.results_pane import ResultsPane
from .ui.status_pane import StatusPane
from .utils.async_utils import run_blocking

logger = logging.getLogger(__name__)

SEEK_STEP_S = 5.0
VOLUME_STEP = 0.05
STATE_SAVE_DEBOUNCE_S = 1.0
TRENDING_LIMIT = 50


class MusicStreamApp(App):
    TITLE = "musicstream"
    CSS = """
    Screen {
        layout: vertical;
    }

    #search-input {
        height: 3;
    }

    #main {
        height: 1fr;
    }

    #results-pane {
        height: 1fr;
        border: solid white;
    }

    #status-pane {
        height: auto;
        min-height: 5;
        border: solid white;
        padding: 0 1;
    }
    """
    BINDINGS = [
        ("space", "play_pause", "Play/Pause"),
        ("n", "next_track", "Next"),
        ("p", "previous_track", "Previous"),
        ("x", "stop", "Stop"),
        ("left", "seek_back", "Seek -5s"),
        ("right", "seek_forward", "Seek +5s"),
        ("-", "volume_down", "Vol -"),
        ("+", "volume_up", "Vol +"),
        ("r", "repeat_mode", "Repeat"),
        ("s", "shuffle", "Shuffle"),
        ("a", "add_to_queue", "Queue"),
        ("t", "trending", "Trending"),
        ("slash", "focus_search", "Search"),
        ("escape", "focus_results", "Results"),
        ("q", "quit", "Quit"),
    ]

    def __init__(
        self, *, auto_init: bool = True, proxy_url: str | None = None
    ) -> None:
        super().__init__()
        self._auto_init = auto_init
        self._proxy_url = proxy_url
        self.state = AppState()
        self.orchestrator: PlaybackOrchestrator | None = None
        self.search: AggregatedSearch | None = None
        self.session: SpotifySession | None = None
        self.transport_state = TransportState()
        self.current_track: Track | None = None
        self._state_save_task: asyncio.Task[None] | None = None

    def compose(self) -> ComposeResult:
        yield Header()
        yield Input(placeholder="Search songs, artists, albums", id="search-input")
        yield Vertical(ResultsPane(id="results-pane"), id="main")
        yield StatusPane(id="status-pane")
        yield Footer()

    def on_mount(self) -> None:
        if self._auto_init:
            asyncio.create_task(self._initialize())

    async def _initialize(self) -> None:
        try:
            self.state, notice = await run_blocking(
                load_state_with_notice, state_path()
            )
            settings = ClientSettings.from_env(
                proxy_url=self._proxy_url or self.state.proxy_url
            )
            self.session = SpotifySession(settings, token_path=tokens_path())
            self.search = AggregatedSearch(settings.proxy_url)
            orchestrator = PlaybackOrchestrator(
                adapter_factory=build_adapter_factory(
                    session=self.session,
                    device_name=settings.spotify_device_name,
                ),
                session=self.session,
                search=self.search,
                initial_state=TransportState(
                    volume=self.state.volume,
                    shuffle=self.state.shuffle,
                    repeat=_repeat_from_state(self.state.repeat_mode),
                ),
            )
            await self.attach_orchestrator(orchestrator)
            if notice:
                self.notify(notice, severity="warning", timeout=10)
            await self.load_trending()
        except MusicStreamError as exc:
            logger.exception("Failed to initialize app: %s", exc)
            self.notify(
                "Failed to initialize app.\n"
                f"Likely cause: {exc.message}\n"
                "Next step: fix the configuration and restart.",
                severity="error",
                timeout=15,
            )

    async def attach_orchestrator(self, orchestrator: PlaybackOrchestrator) -> None:
        """Wire an orchestrator into the widgets and publish its state."""
        self.orchestrator = orchestrator
        orchestrator.subscribe(self._handle_player_event)
        await orchestrator.start()
        self.query_one(ResultsPane).focus_table()

    async def on_unmount(self) -> None:
        if self._state_save_task is not None:
            self._state_save_task.cancel()
        if self.orchestrator is not None:
            await self.orchestrator.shutdown()
        if self.search is not None:
            await self.search.aclose()
        if self.session is not None:
            await self.session.aclose()

    async def load_trending(self) -> None:
        if self.orchestrator is None:
            return
        tracks = await self.orchestrator.trending(TRENDING_LIMIT)
        self.query_one(ResultsPane).set_tracks(tracks, title="Trending")

    async def on_input_submitted(self, event: Input.Submitted) -> None:
        event.stop()
        query = event.value.strip()
        if self.orchestrator is None or not query:
            return
        result = await self.orchestrator.search(query)
        pane = self.query_one(ResultsPane)
        pane.set_tracks(result.tracks, title=f"Results for '{query}'")
        pane.focus_table()
        if result.failed_sources:
            self.notify(
                f"Unavailable sources: {', '.join(result.failed_sources)}",
                severity="warning",
            )

    async def on_track_activated(self, event: TrackActivated) -> None:
        if self.orchestrator is None:
            return
        await self.orchestrator.play_track(event.track, enqueue=True)

    def action_focus_search(self) -> None:
        self.query_one("#search-input", Input).focus()

    def action_focus_results(self) -> None:
        self.query_one(ResultsPane).focus_table()

    async def action_quit(self) -> None:
        self.exit()

    async def action_play_pause(self) -> None:
        if self.orchestrator is None:
            return
        if self.transport_state.current_track is None:
            track = self.query_one(ResultsPane).highlighted_track()
            if track is not None:
                await self.orchestrator.play_track(track, enqueue=True)
            return
        await self.orchestrator.toggle_play_pause()

    async def action_next_track(self) -> None:
        if self.orchestrator is None:
            return
        await self.orchestrator.next()

    async def action_previous_track(self) -> None:
        if self.orchestrator is None:
            return
        await self.orchestrator.previous()

    async def action_stop(self) -> None:
        if self.orchestrator is None:
            return
        await self.orchestrator.stop()

    async def action_seek_back(self) -> None:
        if self.orchestrator is None:
            return
        await self.orchestrator.seek_delta(-SEEK_STEP_S)

    async def action_seek_forward(self) -> None:
        if self.orchestrator is None:
            return
        await self.orchestrator.seek_delta(SEEK_STEP_S)

    async def action_volume_down(self) -> None:
        if self.orchestrator is None:
            return
        await self.orchestrator.set_volume(self.transport_state.volume - VOLUME_STEP)

    async def action_volume_up(self) -> None:
        if self.orchestrator is None:
            return
        await self.orchestrator.set_volume(self.transport_state.volume + VOLUME_STEP)

    async def action_repeat_mode(self) -> None:
        if self.orchestrator is None:
            return
        await self.orchestrator.toggle_repeat()

    async def action_shuffle(self) -> None:
        if self.orchestrator is None:
            return
        await self.orchestrator.toggle_shuffle()

    async def action_add_to_queue(self) -> None:
        if self.orchestrator is None:
            return
        track = self.query_one(ResultsPane).highlighted_track()
        if track is None:
            return
        await self.orchestrator.add_to_queue(track)
        self.notify(f"Queued: {track.title}")

    async def action_trending(self) -> None:
        await self.load_trending()

    async def _handle_player_event(self, event: object) -> None:
        if isinstance(event, PlayerStateChanged):
            self.transport_state = event.state
            self._update_status_pane()
            if self._persisted_fields_changed(event.state):
                self._schedule_state_save()
        elif isinstance(event, TrackChanged):
            self.current_track = event.track
            logger.info("Now playing %s via %s", event.track.id, event.adapter_kind)

    def _update_status_pane(self) -> None:
        orchestrator = self.orchestrator
        self.query_one(StatusPane).update_state(
            self.transport_state,
            status=orchestrator.status if orchestrator is not None else "idle",
            adapter_kind=orchestrator.active_kind if orchestrator is not None else None,
        )

    def _persisted_fields_changed(self, state: TransportState) -> bool:
        return (
            state.volume != self.state.volume
            or state.shuffle != self.state.shuffle
            or state.repeat != self.state.repeat_mode
        )

    def _schedule_state_save(self) -> None:
        if self._state_save_task is not None:
            self._state_save_task.cancel()
        self._state_save_task = asyncio.create_task(self._save_state_debounced())

    async def _save_state_debounced(self) -> None:
        try:
            await asyncio.sleep(STATE_SAVE_DEBOUNCE_S)
        except asyncio.CancelledError:
            return
        state = self.transport_state
        self.state = replace(
            self.state,
            volume=state.volume,
            shuffle=state.shuffle,
            repeat_mode=state.repeat,
        )
        try:
            await run_blocking(save_state, state_path(), self.state)
        except OSError as exc:
            logger.warning("Failed to save state: %s", exc)


def _repeat_from_state(value: str) -> RepeatMode:
    if value in {"none", "all", "one"}:
        return cast(RepeatMode, value)
    return "none"
