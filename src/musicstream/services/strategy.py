"""Adapter selection table and fallback order.

Both functions are pure: they look only at the track and whether a premium
session is currently authenticated.
"""

from __future__ import annotations

from musicstream.models import Track

from .external_link_adapter import resolve_external_url
from .playback_adapter import AdapterKind


def select_adapter(track: Track, *, premium_authenticated: bool) -> AdapterKind:
    """Choose which adapter should own playback of `track`.

    Direct audio wins; premium sources go to the remote device only with a
    live session; everything else degrades to a link or a local timer.
    """
    if track.capability == "full-stream":
        return "direct"
    if track.is_premium_source:
        if premium_authenticated and track.native_id:
            return "premium"
        if resolve_external_url(track) is not None:
            return "external"
        if track.capability == "preview-only":
            return "direct"
        return "simulation"
    if track.capability == "preview-only":
        return "direct"
    if track.capability == "external-link-only":
        return "external"
    return "simulation"


def next_best(kind: AdapterKind, track: Track) -> AdapterKind | None:
    """Adapter to retry with after `kind` failed to load `track`.

    The chain ends at simulation, which cannot fail to load.
    """
    if kind in {"premium", "direct"}:
        if resolve_external_url(track) is not None:
            return "external"
        return "simulation"
    if kind == "external":
        return "simulation"
    return None
