"""Tests for runtime config precedence behavior."""

from __future__ import annotations

import pytest

from musicstream.cli import build_parser as cli_build_parser
from musicstream.errors import ConfigError
from musicstream.gui import build_parser as gui_build_parser
from musicstream.runtime_config import (
    DEFAULT_ALLOWED_ORIGINS,
    DEFAULT_PROXY_URL,
    DEFAULT_REDIRECT_URI,
    ClientSettings,
    ProxySettings,
    normalize_repeat_mode,
    parse_limit,
    resolve_log_level,
)


def test_resolve_log_level_precedence_matrix() -> None:
    assert resolve_log_level(verbose=False, quiet=False) == "INFO"
    assert resolve_log_level(verbose=True, quiet=False) == "DEBUG"
    assert resolve_log_level(verbose=False, quiet=True) == "WARNING"
    assert resolve_log_level(verbose=True, quiet=True) == "WARNING"


def test_log_resolution_consistent_across_entrypoints() -> None:
    parsers = [gui_build_parser(), cli_build_parser()]
    extra = [[], ["doctor"]]
    for parser, tail in zip(parsers, extra):
        args = parser.parse_args(["--verbose", "--quiet", *tail])
        assert resolve_log_level(verbose=args.verbose, quiet=args.quiet) == "WARNING"


@pytest.mark.parametrize(
    ("value", "expected"),
    [("7", 7), (0, 1), ("-3", 1), ("500", 50), ("abc", 20), (None, 20)],
)
def test_parse_limit_clamps(value, expected) -> None:
    assert parse_limit(value) == expected


def test_normalize_repeat_mode() -> None:
    assert normalize_repeat_mode(" ALL ") == "all"
    assert normalize_repeat_mode("shuffle") == "none"


def test_proxy_settings_from_env_accepts_prefixed_names() -> None:
    settings = ProxySettings.from_env(
        {
            "SPOTIFY_CLIENT_ID": "id",
            "VITE_SPOTIFY_CLIENT_SECRET": "secret",
            "YOUTUBE_API_KEY": "  ",
            "MUSICSTREAM_ALLOWED_ORIGINS": "http://a.test, http://b.test,",
        }
    )

    assert settings.has_spotify
    assert settings.youtube_api_key is None
    assert settings.allowed_origins == ("http://a.test", "http://b.test")
    assert settings.missing_credentials() == ["YOUTUBE_API_KEY", "JAMENDO_CLIENT_ID"]


def test_proxy_settings_defaults_when_env_empty() -> None:
    settings = ProxySettings.from_env({})
    assert not settings.has_spotify
    assert settings.allowed_origins == DEFAULT_ALLOWED_ORIGINS
    assert len(settings.missing_credentials()) == 4


def test_client_settings_explicit_proxy_url_wins() -> None:
    settings = ClientSettings.from_env(
        {"MUSICSTREAM_PROXY_URL": "http://env.test:1"}, proxy_url="http://cli.test:2/"
    )
    assert settings.proxy_url == "http://cli.test:2"


def test_client_settings_defaults() -> None:
    settings = ClientSettings.from_env({})
    assert settings.proxy_url == DEFAULT_PROXY_URL
    assert settings.spotify_redirect_uri == DEFAULT_REDIRECT_URI
    assert settings.spotify_device_name is None


def test_client_settings_rejects_malformed_proxy_url() -> None:
    with pytest.raises(ConfigError):
        ClientSettings.from_env({"MUSICSTREAM_PROXY_URL": "localhost:8787"})
