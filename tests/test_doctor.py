"""Tests for environment diagnostics probes and report behavior."""

from __future__ import annotations

import json
import types

import httpx

import musicstream.doctor as doctor_module
from musicstream.runtime_config import ClientSettings, ProxySettings


def _check(name: str, status: str, required: bool) -> doctor_module.DoctorCheck:
    return doctor_module.DoctorCheck(
        name=name, status=status, required=required, detail="stub"  # type: ignore[arg-type]
    )


def _stub_probes(monkeypatch, *, vlc: str = "ok", proxy: str = "ok") -> None:
    monkeypatch.setattr(
        doctor_module,
        "probe_vlc",
        lambda **kwargs: _check("vlc/libvlc", vlc, kwargs["required"]),
    )
    monkeypatch.setattr(
        doctor_module,
        "probe_proxy",
        lambda url, **kwargs: _check("proxy", proxy, kwargs["required"]),
    )


def test_run_doctor_optional_failures_keep_exit_zero(monkeypatch, tmp_path) -> None:
    _stub_probes(monkeypatch, vlc="missing", proxy="missing")

    report = doctor_module.run_doctor(
        ClientSettings(), ProxySettings(), token_path=tmp_path / "none.json"
    )

    assert report.exit_code == 0
    assert [check.name for check in report.checks] == [
        "vlc/libvlc",
        "spotify creds",
        "youtube creds",
        "jamendo creds",
        "proxy",
        "spotify session",
    ]


def test_run_doctor_required_vlc_missing_fails(monkeypatch, tmp_path) -> None:
    _stub_probes(monkeypatch, vlc="missing")

    report = doctor_module.run_doctor(
        ClientSettings(),
        ProxySettings(),
        require_vlc=True,
        token_path=tmp_path / "none.json",
    )

    assert report.exit_code == 2


def test_run_doctor_required_proxy_down_fails(monkeypatch, tmp_path) -> None:
    _stub_probes(monkeypatch, proxy="error")

    report = doctor_module.run_doctor(
        ClientSettings(),
        ProxySettings(),
        require_proxy=True,
        token_path=tmp_path / "none.json",
    )

    assert report.exit_code == 2


def test_probe_vlc_missing_module(monkeypatch) -> None:
    def fail_import(name: str):
        raise ImportError(name)

    monkeypatch.setattr(doctor_module.importlib, "import_module", fail_import)
    check = doctor_module.probe_vlc(required=False)
    assert check.status == "missing"
    assert check.required is False


def test_probe_vlc_runtime_unavailable_is_error(monkeypatch) -> None:
    def broken_instance():
        raise OSError("libvlc not found")

    fake_vlc = types.SimpleNamespace(__version__="3.0.0", Instance=broken_instance)
    monkeypatch.setattr(doctor_module.importlib, "import_module", lambda _n: fake_vlc)

    check = doctor_module.probe_vlc(required=True)
    assert check.status == "error"
    assert "3.0.0" in check.detail


def test_probe_vlc_ok_reports_libvlc_version(monkeypatch) -> None:
    class Instance:
        def media_player_new(self) -> object:
            return object()

    fake_vlc = types.SimpleNamespace(
        __version__="3.0.20",
        Instance=Instance,
        libvlc_get_version=lambda: b"3.0.20 Vetinari",
    )
    monkeypatch.setattr(doctor_module.importlib, "import_module", lambda _n: fake_vlc)

    check = doctor_module.probe_vlc(required=True)
    assert check.status == "ok"
    assert "libVLC 3.0.20 Vetinari" in check.detail


def test_probe_credentials_lists_missing_names() -> None:
    checks = doctor_module.probe_credentials(
        ProxySettings(spotify_client_id="id", jamendo_client_id="jam")
    )
    by_name = {check.name: check for check in checks}

    assert by_name["spotify creds"].status == "missing"
    assert "SPOTIFY_CLIENT_SECRET" in by_name["spotify creds"].detail
    assert "SPOTIFY_CLIENT_ID" not in by_name["spotify creds"].detail
    assert by_name["youtube creds"].status == "missing"
    assert by_name["jamendo creds"].status == "ok"
    assert all(check.required is False for check in checks)


def test_probe_proxy_states() -> None:
    url = "http://proxy.test"
    request = httpx.Request("GET", f"{url}/health")

    def unreachable(target: str) -> httpx.Response:
        raise httpx.ConnectError("refused", request=request)

    ok = doctor_module.probe_proxy(
        url, required=True, http_get=lambda target: httpx.Response(200, json={"ok": True})
    )
    bad = doctor_module.probe_proxy(
        url, required=True, http_get=lambda target: httpx.Response(404)
    )
    down = doctor_module.probe_proxy(url, required=False, http_get=unreachable)

    assert ok.status == "ok"
    assert ok.detail == "http://proxy.test/health"
    assert bad.status == "error"
    assert "404" in bad.detail
    assert down.status == "missing"
    assert down.hint is not None and "serve-proxy" in down.hint


def test_probe_session_states(tmp_path) -> None:
    path = tmp_path / "spotify_session.json"
    settings = ClientSettings()

    def clock() -> float:
        return 1_000.0

    missing = doctor_module.probe_session(settings, token_path=path, clock=clock)

    path.write_text(
        json.dumps({"access_token": "a", "refresh_token": "r", "expires_at": 4_600.0}),
        encoding="utf-8",
    )
    valid = doctor_module.probe_session(settings, token_path=path, clock=clock)

    path.write_text(
        json.dumps({"access_token": "a", "refresh_token": "r", "expires_at": 0.0}),
        encoding="utf-8",
    )
    refreshable = doctor_module.probe_session(settings, token_path=path, clock=clock)

    path.write_text(
        json.dumps({"access_token": "a", "expires_at": 0.0}), encoding="utf-8"
    )
    stale = doctor_module.probe_session(settings, token_path=path, clock=clock)

    assert missing.status == "missing"
    assert valid.status == "ok"
    assert "60 min" in valid.detail
    assert refreshable.status == "ok"
    assert stale.status == "error"


def test_render_report_includes_result_line() -> None:
    report = doctor_module.DoctorReport(
        proxy_url="http://127.0.0.1:8787",
        checks=[_check("proxy", "missing", True), _check("vlc/libvlc", "ok", False)],
    )
    text = doctor_module.render_report(report)

    assert text.splitlines()[0] == "musicstream doctor (proxy=http://127.0.0.1:8787)"
    assert "[MISS] proxy" in text
    assert "[OK] vlc/libvlc" in text
    assert text.endswith("Result: FAIL")
