"""GUI process entrypoint for the Textual application.

Responsibilities here are narrow: parse runtime options, set up logging,
instantiate `MusicStreamApp`, and return an exit code.
"""

from __future__ import annotations

import argparse
import logging
import sys
from pathlib import Path

from . import __version__
from .app import MusicStreamApp
from .logging_utils import setup_logging
from .paths import log_dir
from .runtime_config import resolve_log_level
from .version import build_help_epilog


def build_parser() -> argparse.ArgumentParser:
    """Build parser for GUI launch options."""
    parser = argparse.ArgumentParser(
        prog="musicstream",
        description="Search and play music from several sources in the terminal.",
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
    return parser


def main(argv: list[str] | None = None) -> int:
    """Run GUI entrypoint and translate startup outcome to exit code."""
    parser = build_parser()
    args = parser.parse_args(argv)
    try:
        level = resolve_log_level(verbose=args.verbose, quiet=args.quiet)
        setup_logging(
            log_dir=log_dir(),
            level=level,
            log_file=Path(args.log_file) if args.log_file else None,
            console=False,
        )
        logging.getLogger(__name__).info("Starting musicstream GUI")
        MusicStreamApp(proxy_url=args.proxy_url).run()
        return 0
    except Exception as exc:  # pragma: no cover - top-level safety net
        logging.getLogger(__name__).exception("Fatal GUI startup error: %s", exc)
        print(
            "GUI startup failed. Verify proxy/log configuration and re-run with --verbose.",
            file=sys.stderr,
        )
        return 1


if __name__ == "__main__":
    raise SystemExit(main())
