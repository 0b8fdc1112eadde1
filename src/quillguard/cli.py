"""
Command-line interface for Quillguard.

Provides subcommands for serving the web UI, listing and showing stored
articles, printing statistics, and removing expired sessions. This module is
the entry point referenced in pyproject.toml as ``quillguard.cli:main``.
"""

from __future__ import annotations

import argparse
import html
import sys
from datetime import timedelta

from .articles import ArticleNotFoundError, ArticleStore
from .config import Settings


# ---------------------------------------------------------------------------
# ANSI color helpers
# ---------------------------------------------------------------------------

def _supports_color() -> bool:
    """Return True if stdout appears to support ANSI color codes."""
    if not hasattr(sys.stdout, "isatty"):
        return False
    if not sys.stdout.isatty():
        return False
    return True


_COLOR_ENABLED: bool | None = None


def _color(text: str, code: str) -> str:
    """Wrap *text* in ANSI escape codes if the terminal supports it."""
    global _COLOR_ENABLED
    if _COLOR_ENABLED is None:
        _COLOR_ENABLED = _supports_color()
    if not _COLOR_ENABLED:
        return text
    return f"\033[{code}m{text}\033[0m"


def _red(text: str) -> str:
    return _color(text, "31")


def _green(text: str) -> str:
    return _color(text, "32")


def _bold(text: str) -> str:
    return _color(text, "1")


def _dim(text: str) -> str:
    return _color(text, "2")


def _print_header(text: str) -> None:
    """Print a section header with visual separation."""
    print()
    print(_bold(f"  {text}"))
    print(_dim(f"  {'-' * len(text)}"))


def _build_store(settings: Settings) -> ArticleStore:
    return ArticleStore(
        settings.articles_dir,
        max_title_length=settings.max_title_length,
        max_body_length=settings.max_body_length,
    )


# ---------------------------------------------------------------------------
# Subcommand handlers
# ---------------------------------------------------------------------------

def _handle_serve(args: argparse.Namespace, settings: Settings) -> int:
    """Handle the 'serve' subcommand."""
    from .ui.app import start_server

    start_server(
        host=args.host,
        port=args.port,
        open_browser=not args.no_browser,
        settings=settings,
    )
    return 0


def _handle_list(args: argparse.Namespace, settings: Settings) -> int:
    """Handle the 'list' subcommand."""
    store = _build_store(settings)
    names = store.prefix_search(args.prefix) if args.prefix else store.list_articles()

    _print_header("Articles")
    if not names:
        print(f"  {_dim('No articles found.')}")
    for name in names:
        print(f"  {name}")
    print()
    return 0


def _handle_show(args: argparse.Namespace, settings: Settings) -> int:
    """Handle the 'show' subcommand."""
    store = _build_store(settings)
    try:
        content = store.fetch(args.title)
    except ArticleNotFoundError:
        print(_red(f"Error: Article not found: {args.title}"))
        return 1

    _print_header(store.sanitize_title(args.title))
    # Stored bodies are HTML-escaped; show them as the reader would see them.
    print(html.unescape(content))
    print()
    return 0


def _handle_stats(args: argparse.Namespace, settings: Settings) -> int:
    """Handle the 'stats' subcommand."""
    store = _build_store(settings)

    _print_header("Statistics")
    print(f"  {'Articles:':<14s} {len(store.list_articles())}")
    print(f"  {'Words:':<14s} {store.word_count()}")
    print(f"  {'Storage:':<14s} {settings.articles_dir}")
    print()
    return 0


def _handle_cleanup_sessions(args: argparse.Namespace, settings: Settings) -> int:
    """Handle the 'cleanup-sessions' subcommand."""
    from .sessions import cleanup_expired_sessions

    removed = cleanup_expired_sessions(
        settings.sessions_dir, timedelta(hours=settings.session_ttl_hours)
    )
    print(_green(f"Removed {removed} expired session(s)."))
    return 0


# ---------------------------------------------------------------------------
# Argument parser
# ---------------------------------------------------------------------------

def _build_parser() -> argparse.ArgumentParser:
    """Build and return the argument parser with all subcommands."""
    parser = argparse.ArgumentParser(
        prog="quillguard",
        description="Quillguard: minimal article publishing with guarded submissions.",
    )
    parser.add_argument(
        "--version",
        action="version",
        version=f"%(prog)s {_get_version()}",
    )

    subparsers = parser.add_subparsers(dest="command", help="Available commands")

    # --- serve ---
    serve_parser = subparsers.add_parser(
        "serve",
        help="Run the web editor",
    )
    serve_parser.add_argument(
        "--host",
        default="127.0.0.1",
        help="Bind address (default: 127.0.0.1)",
    )
    serve_parser.add_argument(
        "--port",
        type=int,
        default=8000,
        help="Port number (default: 8000)",
    )
    serve_parser.add_argument(
        "--no-browser",
        action="store_true",
        default=False,
        help="Do not open a browser window on startup",
    )

    # --- list ---
    list_parser = subparsers.add_parser(
        "list",
        help="List stored articles",
    )
    list_parser.add_argument(
        "--prefix",
        default="",
        help="Only list titles starting with this prefix (case-insensitive)",
    )

    # --- show ---
    show_parser = subparsers.add_parser(
        "show",
        help="Print the body of a stored article",
    )
    show_parser.add_argument(
        "title",
        help="Article title",
    )

    # --- stats ---
    subparsers.add_parser(
        "stats",
        help="Print the number of articles and total word count",
    )

    # --- cleanup-sessions ---
    subparsers.add_parser(
        "cleanup-sessions",
        help="Remove expired session records",
    )

    return parser


def _get_version() -> str:
    """Return the package version string."""
    from . import __version__
    return __version__


# ---------------------------------------------------------------------------
# Entry point
# ---------------------------------------------------------------------------

def main(argv: list[str] | None = None) -> None:
    """
    Main entry point for the Quillguard CLI.

    Parses arguments, dispatches to the appropriate subcommand handler,
    and exits with the appropriate code.

    Args:
        argv: Optional argument list for testing. Defaults to sys.argv[1:].
    """
    parser = _build_parser()
    args = parser.parse_args(argv)

    if not args.command:
        parser.print_help()
        sys.exit(0)

    # Dispatch table
    handlers = {
        "serve": _handle_serve,
        "list": _handle_list,
        "show": _handle_show,
        "stats": _handle_stats,
        "cleanup-sessions": _handle_cleanup_sessions,
    }

    handler = handlers.get(args.command)
    if handler is None:
        parser.print_help()
        sys.exit(1)

    try:
        exit_code = handler(args, Settings())
        sys.exit(exit_code)
    except KeyboardInterrupt:
        print("\nInterrupted.")
        sys.exit(130)


if __name__ == "__main__":
    main()
