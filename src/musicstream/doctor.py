"""Runtime diagnostics for playback engines, credentials, and the proxy."""

from __future__ import annotations

import importlib
import time
from collections.abc import Callable
from dataclasses import dataclass
from pathlib import Path
from typing import Literal

import httpx

from .runtime_config import ClientSettings, ProxySettings
from .services.spotify_session import SpotifySession

DoctorStatus = Literal["ok", "missing", "error"]

PROXY_HEALTH_TIMEOUT_S = 3.0


@dataclass(frozen=True)
class DoctorCheck:
    """One environment readiness check result."""

    name: str
    status: DoctorStatus
    required: bool
    detail: str
    hint: str | None = None


@dataclass(frozen=True)
class DoctorReport:
    """Collection of doctor checks and derived process exit contract."""

    proxy_url: str
    checks: list[DoctorCheck]

    @property
    def exit_code(self) -> int:
        """Return non-zero when any required check failed or is missing."""
        for check in self.checks:
            if check.required and check.status != "ok":
                return 2
        return 0


def run_doctor(
    client_settings: ClientSettings,
    proxy_settings: ProxySettings,
    *,
    require_vlc: bool = False,
    require_proxy: bool = False,
    token_path: Path | None = None,
    http_get: Callable[[str], httpx.Response] | None = None,
) -> DoctorReport:
    """Run every diagnostic; only `require_*` checks affect the exit code."""
    checks = [
        probe_vlc(required=require_vlc),
        *probe_credentials(proxy_settings),
        probe_proxy(client_settings.proxy_url, required=require_proxy, http_get=http_get),
        probe_session(client_settings, token_path=token_path),
    ]
    return DoctorReport(proxy_url=client_settings.proxy_url, checks=checks)


def render_report(report: DoctorReport) -> str:
    """Render terminal-friendly diagnostics report text."""
    lines = [f"musicstream doctor (proxy={report.proxy_url})", ""]
    for check in report.checks:
        state = _status_token(check.status)
        req = "required" if check.required else "optional"
        lines.append(f"{state} {check.name:<16} [{req}] {check.detail}")
        if check.hint:
            lines.append(f"      hint: {check.hint}")
    lines.append("")
    lines.append("Result: OK" if report.exit_code == 0 else "Result: FAIL")
    return "\n".join(lines)


def probe_vlc(*, required: bool) -> DoctorCheck:
    """Verify python-vlc import and libVLC runtime usability."""
    try:
        vlc = importlib.import_module("vlc")
    except Exception as exc:
        return DoctorCheck(
            name="vlc/libvlc",
            status="missing",
            required=required,
            detail=f"python-vlc import failed ({exc.__class__.__name__})",
            hint="Install VLC/libVLC; direct audio falls back to links or simulation.",
        )
    version = getattr(vlc, "__version__", "unknown")
    try:
        instance = vlc.Instance()
        instance.media_player_new()
    except Exception as exc:
        return DoctorCheck(
            name="vlc/libvlc",
            status="error",
            required=required,
            detail=f"python-vlc {version}; libVLC runtime unavailable ({exc.__class__.__name__})",
            hint="Install VLC/libVLC and verify runtime library search path.",
        )
    return DoctorCheck(
        name="vlc/libvlc",
        status="ok",
        required=required,
        detail=f"python-vlc {version}; libVLC {_libvlc_version(vlc)}",
    )


def probe_credentials(settings: ProxySettings) -> list[DoctorCheck]:
    """Report which search sources the proxy can serve."""
    sources = (
        ("spotify", ("SPOTIFY_CLIENT_ID", "SPOTIFY_CLIENT_SECRET")),
        ("youtube", ("YOUTUBE_API_KEY",)),
        ("jamendo", ("JAMENDO_CLIENT_ID",)),
    )
    missing = set(settings.missing_credentials())
    checks: list[DoctorCheck] = []
    for source, names in sources:
        absent = [name for name in names if name in missing]
        if absent:
            checks.append(
                DoctorCheck(
                    name=f"{source} creds",
                    status="missing",
                    required=False,
                    detail=f"{', '.join(absent)} not set; {source} search returns nothing",
                    hint=f"Export {' and '.join(absent)} before starting the proxy.",
                )
            )
        else:
            checks.append(
                DoctorCheck(
                    name=f"{source} creds",
                    status="ok",
                    required=False,
                    detail="configured",
                )
            )
    return checks


def probe_proxy(
    proxy_url: str,
    *,
    required: bool,
    http_get: Callable[[str], httpx.Response] | None = None,
) -> DoctorCheck:
    """Call the proxy `/health` route."""
    url = f"{proxy_url}/health"
    getter = http_get or (lambda target: httpx.get(target, timeout=PROXY_HEALTH_TIMEOUT_S))
    try:
        response = getter(url)
    except httpx.HTTPError as exc:
        return DoctorCheck(
            name="proxy",
            status="missing",
            required=required,
            detail=f"unreachable ({exc.__class__.__name__})",
            hint="Start it with `musicstream-cli serve-proxy`.",
        )
    if response.status_code != 200:
        return DoctorCheck(
            name="proxy",
            status="error",
            required=required,
            detail=f"/health returned HTTP {response.status_code}",
            hint="Check that MUSICSTREAM_PROXY_URL points at the musicstream proxy.",
        )
    return DoctorCheck(name="proxy", status="ok", required=required, detail=url)


def probe_session(
    settings: ClientSettings,
    *,
    token_path: Path | None = None,
    clock: Callable[[], float] = time.time,
) -> DoctorCheck:
    """Summarize the stored premium session without refreshing it."""
    session = SpotifySession(settings, token_path=token_path, clock=clock)
    tokens = session.tokens
    if tokens is None:
        return DoctorCheck(
            name="spotify session",
            status="missing",
            required=False,
            detail="not connected; Spotify tracks play previews or open links",
        )
    if session.is_authenticated():
        minutes = int((tokens.expires_at - clock()) // 60)
        detail = f"connected (token valid for {minutes} min)"
    elif tokens.refresh_token:
        detail = "connected (token expired; refreshes on next use)"
    else:
        return DoctorCheck(
            name="spotify session",
            status="error",
            required=False,
            detail="token expired and no refresh token stored",
            hint="Reconnect the Spotify account.",
        )
    return DoctorCheck(name="spotify session", status="ok", required=False, detail=detail)


def _status_token(status: DoctorStatus) -> str:
    """Map doctor status to compact display token."""
    if status == "ok":
        return "[OK]"
    if status == "missing":
        return "[MISS]"
    return "[ERR]"


def _libvlc_version(vlc: object) -> str:
    """Best-effort extraction of libVLC runtime version string."""
    getter = getattr(vlc, "libvlc_get_version", None)
    if not callable(getter):
        return "detected"
    try:
        release = getter()
    except Exception:
        return "detected"
    if isinstance(release, bytes):
        return release.decode("utf-8", errors="replace")
    return str(release) if release else "detected"
