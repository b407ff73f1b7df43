"""Cross-module event/message models for service and UI communication.

Dataclass events are used for orchestrator signaling, while `textual.message`
types are used for widget-level interaction routing.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING

from textual.message import Message

if TYPE_CHECKING:
    from musicstream.models import Track
    from musicstream.services.playback_adapter import AdapterKind
    from musicstream.services.transport import TransportState


@dataclass(frozen=True)
class PlayerStateChanged:
    """Service event emitted when the transport state changes."""

    state: TransportState


@dataclass(frozen=True)
class TrackChanged:
    """Service event emitted when a track becomes active on an adapter."""

    track: Track
    adapter_kind: AdapterKind


class TrackActivated(Message):
    """UI message asking to play a result row."""

    def __init__(self, track: Track) -> None:
        super().__init__()
        self.track = track
