"""Command-line interface for musicstream: search, diagnostics, proxy, login."""

from __future__ import annotations

import argparse
import asyncio
import logging
import sys
from pathlib import Path

from rich.console import Console
from rich.table import Table

from . import __version__
from .doctor import render_report, run_doctor
from .errors import MusicStreamError
from .logging_utils import setup_logging
from .models import SearchResult, Track
from .paths import log_dir, state_path, tokens_path
from .runtime_config import ClientSettings, ProxySettings, resolve_log_level
from .services.search import AggregatedSearch
from .services.spotify_session import SpotifySession
from .state_store import load_state
from .utils.time_format import format_time
from .version import build_help_epilog

logger = logging.getLogger(__name__)

DEFAULT_PROXY_HOST = "127.0.0.1"
DEFAULT_PROXY_PORT = 8787


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="musicstream-cli",
        description="Search music sources and manage the musicstream proxy.",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog=build_help_epilog(),
    )
    parser.add_argument(
        "--version", action="version", version=f"%(prog)s {__version__}"
    )
    parser.add_argument("--verbose", action="store_true", help="Enable verbose output")
    parser.add_argument(
        "--quiet", action="store_true", help="Only show warnings and errors"
    )
    parser.add_argument("--log-file", help="Write logs to a file path")
    parser.add_argument("--proxy-url", help="Base URL of the musicstream proxy")
    commands = parser.add_subparsers(dest="command", required=True)

    search = commands.add_parser("search", help="Search all enabled sources")
    search.add_argument("query", help="Search text")
    search.add_argument("--limit", type=int, default=20, help="Results per source")

    trending = commands.add_parser("trending", help="Show a trending mix")
    trending.add_argument("--limit", type=int, default=50, help="Number of tracks")

    doctor = commands.add_parser("doctor", help="Check playback and proxy readiness")
    doctor.add_argument(
        "--require-vlc", action="store_true", help="Fail when libVLC is unusable"
    )
    doctor.add_argument(
        "--require-proxy", action="store_true", help="Fail when the proxy is down"
    )

    serve = commands.add_parser("serve-proxy", help="Run the search/auth proxy")
    serve.add_argument("--host", default=DEFAULT_PROXY_HOST)
    serve.add_argument("--port", type=int, default=DEFAULT_PROXY_PORT)

    login = commands.add_parser(
        "spotify-login", help="Connect a Spotify Premium account"
    )
    login.add_argument(
        "--code", help="Authorization code from the redirect; omit to print the URL"
    )
    commands.add_parser("spotify-logout", help="Forget the stored Spotify session")
    return parser


def results_table(tracks: list[Track] | tuple[Track, ...], *, title: str) -> Table:
    """Render tracks as a rich table with capability badges."""
    table = Table(title=title)
    table.add_column("#", justify="right")
    table.add_column("Title")
    table.add_column("Artist")
    table.add_column("Source")
    table.add_column("Playback")
    table.add_column("Length", justify="right")
    for index, track in enumerate(tracks, start=1):
        table.add_row(
            str(index),
            track.title,
            track.artist,
            track.source,
            track.capability,
            format_time(track.duration_seconds),
        )
    return table


def _client_settings(args: argparse.Namespace) -> ClientSettings:
    proxy_url = args.proxy_url or load_state(state_path()).proxy_url
    return ClientSettings.from_env(proxy_url=proxy_url)


async def _run_search(settings: ClientSettings, query: str, limit: int) -> SearchResult:
    search = AggregatedSearch(settings.proxy_url)
    try:
        return await search.search(query, limit)
    finally:
        await search.aclose()


async def _run_trending(settings: ClientSettings, limit: int) -> list[Track]:
    search = AggregatedSearch(settings.proxy_url)
    try:
        return await search.trending(limit)
    finally:
        await search.aclose()


async def _run_login(session: SpotifySession, code: str) -> None:
    try:
        await session.exchange_code(code)
    finally:
        await session.aclose()


async def _run_logout(session: SpotifySession) -> None:
    try:
        await session.logout()
    finally:
        await session.aclose()


def run_command(args: argparse.Namespace, console: Console) -> int:
    """Execute a parsed sub-command and return its exit code."""
    if args.command == "serve-proxy":
        from .proxy.app import serve

        serve(ProxySettings.from_env(), host=args.host, port=args.port)
        return 0

    settings = _client_settings(args)
    if args.command == "search":
        result = asyncio.run(_run_search(settings, args.query, args.limit))
        console.print(results_table(result.tracks, title=f"Results for {args.query!r}"))
        if result.failed_sources:
            console.print(
                f"[yellow]Unavailable sources: {', '.join(result.failed_sources)}[/]"
            )
        return 0
    if args.command == "trending":
        tracks = asyncio.run(_run_trending(settings, args.limit))
        console.print(results_table(tracks, title="Trending"))
        return 0
    if args.command == "doctor":
        report = run_doctor(
            settings,
            ProxySettings.from_env(),
            require_vlc=args.require_vlc,
            require_proxy=args.require_proxy,
            token_path=tokens_path(),
        )
        console.print(render_report(report), markup=False, highlight=False)
        return report.exit_code
    session = SpotifySession(settings, token_path=tokens_path())
    if args.command == "spotify-login":
        if not args.code:
            console.print("Open this URL, approve access, then re-run with --code:")
            console.print(session.authorization_url(), markup=False)
            return 0
        asyncio.run(_run_login(session, args.code))
        console.print("Spotify account connected.")
        return 0
    asyncio.run(_run_logout(session))
    console.print("Spotify session removed.")
    return 0


def main(argv: list[str] | None = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)
    console = Console()
    try:
        level = resolve_log_level(verbose=args.verbose, quiet=args.quiet)
        setup_logging(
            log_dir=log_dir(),
            level=level,
            log_file=Path(args.log_file) if args.log_file else None,
            console=args.verbose,
        )
        logger.info("Starting musicstream CLI command %s", args.command)
        return run_command(args, console)
    except MusicStreamError as exc:
        logger.error("Command %s failed: %s", args.command, exc)
        print(str(exc), file=sys.stderr)
        return 1
    except Exception as exc:  # pragma: no cover - top-level safety net
        logger.exception("Unhandled error: %s", exc)
        print("Unexpected error. Re-run with --verbose for details.", file=sys.stderr)
        return 1


if __name__ == "__main__":
    raise SystemExit(main())
