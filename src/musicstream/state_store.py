"""JSON persistence for user-facing playback preferences.

The loader tolerates missing or malformed values so a damaged file degrades to
defaults instead of aborting startup.
"""

from __future__ import annotations

import json
import logging
import math
import time
from contextlib import suppress
from dataclasses import asdict, dataclass
from pathlib import Path
from typing import Any
from uuid import uuid4

logger = logging.getLogger(__name__)

REPEAT_MODES = ("none", "all", "one")
LOG_LEVELS = ("DEBUG", "INFO", "WARNING", "ERROR")


@dataclass(frozen=True)
class AppState:
    """Persisted preferences restored into the transport state at startup."""

    volume: float = 1.0
    repeat_mode: str = "none"
    shuffle: bool = False
    proxy_url: str | None = None
    log_level: str = "INFO"


def _coerce_state(data: dict[str, Any]) -> AppState:
    def _volume(value: Any) -> float:
        if isinstance(value, bool) or not isinstance(value, (int, float)):
            return 1.0
        normalized = float(value)
        if not math.isfinite(normalized):
            return 1.0
        return max(0.0, min(normalized, 1.0))

    def _choice(value: Any, choices: tuple[str, ...], default: str) -> str:
        if isinstance(value, str) and value in choices:
            return value
        return default

    proxy_url = data.get("proxy_url")
    if not isinstance(proxy_url, str) or not proxy_url.strip():
        proxy_url = None
    return AppState(
        volume=_volume(data.get("volume")),
        repeat_mode=_choice(data.get("repeat_mode"), REPEAT_MODES, "none"),
        shuffle=data["shuffle"] if isinstance(data.get("shuffle"), bool) else False,
        proxy_url=proxy_url.strip() if proxy_url else None,
        log_level=_choice(
            str(data.get("log_level", "")).upper(), LOG_LEVELS, "INFO"
        ),
    )


def load_state_with_notice(path: Path) -> tuple[AppState, str | None]:
    """Load state and return an optional user-facing notice."""
    try:
        raw = path.read_text(encoding="utf-8")
    except FileNotFoundError:
        logger.info("State file missing at %s; using defaults.", path)
        return AppState(), None
    except OSError as exc:
        logger.warning("Failed to read state file %s: %s; using defaults.", path, exc)
        return (
            AppState(),
            "Settings were reset to defaults.\n"
            "Likely cause: state file is unreadable due to permissions or IO issues.\n"
            f"Next step: verify access to '{path}' and restart.",
        )

    try:
        data = json.loads(raw)
    except json.JSONDecodeError:
        logger.warning("State file at %s is invalid JSON; using defaults.", path)
        return (
            AppState(),
            "Settings were reset to defaults.\n"
            "Likely cause: state file is corrupt or partially written.\n"
            f"Next step: remove or repair '{path}' and restart.",
        )

    if not isinstance(data, dict):
        logger.warning("State file at %s is not a JSON object; using defaults.", path)
        return (
            AppState(),
            "Settings were reset to defaults.\n"
            "Likely cause: state file format is invalid for this app version.\n"
            f"Next step: remove '{path}' and restart.",
        )

    return _coerce_state(data), None


def load_state(path: Path) -> AppState:
    """Load the application state from disk, falling back to defaults."""
    state, _notice = load_state_with_notice(path)
    return state


def save_state(path: Path, state: AppState) -> None:
    """Persist state atomically to disk via write-then-replace."""
    write_json_atomic(path, asdict(state))


def write_json_atomic(path: Path, data: dict[str, Any]) -> None:
    """Write `data` as JSON next to `path`, then replace `path` with it."""
    path.parent.mkdir(parents=True, exist_ok=True)
    tmp_path = path.with_name(f"{path.name}.{uuid4().hex}.tmp")
    payload = json.dumps(data, indent=2, sort_keys=True)
    delay_s = 0.02
    try:
        for attempt in range(4):
            tmp_path.write_text(payload, encoding="utf-8")
            try:
                tmp_path.replace(path)
                return
            except OSError as exc:
                if not _is_retryable_windows_replace_error(exc) or attempt >= 3:
                    raise
                time.sleep(delay_s)
                delay_s = min(0.25, delay_s * 2.0)
    finally:
        with suppress(OSError):
            tmp_path.unlink()


def _is_retryable_windows_replace_error(exc: OSError) -> bool:
    """Return whether an atomic replace failure is likely transient on Windows."""
    winerror = getattr(exc, "winerror", None)
    if winerror in {32, 5, 2}:
        return True
    errno = getattr(exc, "errno", None)
    if errno in {13, 16}:
        return True
    text = str(exc).lower()
    return "used by another process" in text or "permission denied" in text
