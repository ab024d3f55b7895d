from __future__ import annotations

import logging
import os
import sys

from . import __version__
from .config import CONFIG_DIR, ensure_config_dir

LOG_ENV = "ISSUEDASH_LOG"
LOG_FILE = "issuedash.log"


def main() -> None:
    """Entry point for the `issuedash` console script.

    Parses `OWNER/REPO NUMBER` and launches the Textual TUI, or handles the
    informational flags.

    Returns:
        None
    """
    args = sys.argv[1:]
    if args and args[0] in ("--version", "-v"):
        print(f"issuedash {__version__}")
        return
    if not args or args[0] in ("--help", "-h"):
        print_help()
        return

    try:
        repo, number = parse_target(args)
    except ValueError as e:
        print(f"Error: {e}", file=sys.stderr)
        print("Run 'issuedash --help' for usage.", file=sys.stderr)
        sys.exit(2)

    setup_logging()

    # Imported late so `--help` does not pay for loading Textual
    from .tui import IssueDashApp

    IssueDashApp(repo, number).run()


def parse_target(args: list[str]) -> tuple[str, int]:
    """Validate the positional arguments.

    Args:
        args: Command-line arguments after the program name.

    Returns:
        The repository in "owner/repo" format and the issue or PR number.

    Raises:
        ValueError: If the arguments are missing or malformed.
    """
    if len(args) != 2:
        raise ValueError("expected OWNER/REPO and NUMBER")
    repo, raw_number = args
    owner, _, name = repo.partition("/")
    if not owner or not name or "/" in name:
        raise ValueError(f"invalid repository {repo!r}, expected OWNER/REPO")
    try:
        number = int(raw_number.lstrip("#"))
    except ValueError:
        raise ValueError(f"invalid number {raw_number!r}") from None
    if number <= 0:
        raise ValueError(f"invalid number {raw_number!r}")
    return repo, number


def setup_logging() -> None:
    """Send log records to a file under the config dir when `$ISSUEDASH_LOG` is set.

    The value is used as the level name; anything unrecognised means DEBUG.
    Nothing is configured otherwise, so the terminal stays clean for the TUI.
    """
    level_name = os.environ.get(LOG_ENV)
    if not level_name:
        return
    level = logging.getLevelName(level_name.upper())
    if not isinstance(level, int):
        level = logging.DEBUG
    ensure_config_dir()
    logging.basicConfig(
        filename=CONFIG_DIR / LOG_FILE,
        level=level,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )


def print_help() -> None:
    """Print help message for issuedash CLI commands.

    Returns:
        None
    """
    help_text = """issuedash - Terminal detail view for a GitHub issue or pull request

Usage:
  issuedash OWNER/REPO NUMBER   Open issue or PR NUMBER of OWNER/REPO
  issuedash --version           Show version information
  issuedash --help              Show this help message

Options:
  -h, --help           Show this help message
  -v, --version        Show version information

Environment:
  GITHUB_TOKEN         Token used when the config file has no auth_token
  EDITOR, VISUAL       Editor for long comments (falls back to vi)
  ISSUEDASH_LOG        Log level; when set, logs go to issuedash.log in the config dir
"""
    print(help_text)
