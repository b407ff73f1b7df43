"""Construct playback adapters by kind for the orchestrator."""

from __future__ import annotations

import logging

from .direct_stream_adapter import DirectStreamAdapter
from .external_link_adapter import ExternalLinkAdapter, UrlOpener
from .orchestrator import AdapterFactory
from .playback_adapter import AdapterKind, PlaybackAdapter
from .premium_adapter import PremiumDeviceAdapter
from .simulation_adapter import SimulationAdapter
from .spotify_session import SpotifySession

logger = logging.getLogger(__name__)


def build_adapter_factory(
    *,
    session: SpotifySession | None = None,
    device_name: str | None = None,
    opener: UrlOpener | None = None,
) -> AdapterFactory:
    """Return a factory creating a fresh adapter per activation.

    Without a session the premium kind degrades to simulation; the strategy
    never selects it in that case.
    """

    def factory(kind: AdapterKind) -> PlaybackAdapter:
        if kind == "direct":
            return DirectStreamAdapter()
        if kind == "external":
            return ExternalLinkAdapter(opener=opener)
        if kind == "premium" and session is not None:
            return PremiumDeviceAdapter(session, device_name=device_name)
        if kind == "premium":
            logger.warning("Premium adapter requested without a session.")
        return SimulationAdapter()

    return factory
