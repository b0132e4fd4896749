#!/usr/bin/env python3
"""
nginx-tail - Live dashboard for nginx access logs.

This module implements the command-line interface: it parses options,
finds the log files to follow, starts the producer threads and runs the
dashboard on the main thread.

Responsibilities:
    - Resolve files and directories into access logs to follow
    - Start one tailer thread per file, the print ticker and (when the
      width follows the terminal) the resize watcher
    - Run the dashboard, or plain highlighted output when stdout is not a
      terminal
    - Turn startup problems into a message and a non-zero exit code

Usage:
    python -m nginxtail [options] [file | dir ...]

Examples:
    python -m nginxtail
    python -m nginxtail --combine --merge /var/log/nginx/
    python -m nginxtail --filter 5xx --filter 404 site1/access.log site2/access.log
"""

import argparse
import logging
import os
import sys
import threading
from pathlib import Path
from typing import List

from .errors import NginxTailError
from .tui.bus import MessageBus
from .tui.parsing import exact_status_code, status_code_class
from .tui.stats import GroupMap
from .tui.tailer import follow, install_resize_flag, periodic_print, watch_resize
from .tui.views import Renderer, process_as_streaming, run_consumer
from .utils import terminal
from .utils.paths import discover_log_files

logger = logging.getLogger(__name__)

PROG = "nginx-tail"


# ============================================================
# Environment Configuration
# ============================================================

def load_dotenv(path: Path = Path(".env")) -> None:
    """
    Load a .env file from the working directory into os.environ if present.

    Only fills in variables that aren't already set, so the real environment
    always wins. Recognized variables:
        NGINX_TAIL_LOG_ROOT: Directory searched when no paths are given.
        NGINX_TAIL_LOG_LEVEL: Diagnostic log level (default WARNING).
    """
    if not path.exists():
        return

    with path.open("r", encoding="utf-8") as f:
        for line in f:
            line = line.strip()
            # Skip empty lines, comments and malformed lines
            if not line or line.startswith("#") or "=" not in line:
                continue
            # Split on first = only (value might contain =)
            key, value = line.split("=", 1)
            os.environ.setdefault(key.strip(), value.strip())


def configure_logging(level: str) -> None:
    """Send diagnostics to stderr, prefixed with the program name."""
    logging.basicConfig(
        level=getattr(logging, level.upper(), logging.WARNING),
        format=f"[{PROG}] %(levelname)s %(message)s",
        stream=sys.stderr,
    )


# ============================================================
# Command-Line Argument Parsing
# ============================================================

def normalize_filters(filters: List[str]) -> List[str]:
    """
    Turn --filter values into status code prefixes.

    "4xx" and "4" both become "4"; duplicates are removed.

    Example:
        >>> normalize_filters(["5xx", "404", "5"])
        ['404', '5']
    """
    return sorted({f.rstrip("x") for f in filters})


def build_parser() -> argparse.ArgumentParser:
    """Build the argument parser."""
    parser = argparse.ArgumentParser(
        prog=PROG,
        description="Follow nginx access logs and show live request rates per status code",
    )
    parser.add_argument(
        "paths",
        nargs="*",
        type=Path,
        help="Log files, or directories searched for access.log "
             "(default: $NGINX_TAIL_LOG_ROOT or /var/log/nginx/)",
    )
    parser.add_argument(
        "--max-width",
        type=int,
        default=None,
        help="Cut lines to this length. Defaults to the screen width, 0 for unlimited",
    )
    parser.add_argument(
        "--target-height",
        type=int,
        default=None,
        help="Target window height (default: terminal height)",
    )
    parser.add_argument(
        "--max-runtime",
        type=float,
        default=None,
        help="Terminate after this many seconds",
    )
    parser.add_argument("--combine", action="store_true",
                        help="Combine stats of all files together")
    parser.add_argument("--merge", action="store_true",
                        help="Combine http status codes in groups (2xx, 4xx...)")
    parser.add_argument(
        "--filter",
        action="append",
        default=[],
        dest="filters",
        help="Only show log lines matching this status code. Can be used "
             "multiple times; 4xx shows 403, 404 etc. Statistics are not affected",
    )
    parser.add_argument("--show-missing-codes", action="store_true",
                        help="Show (dimmed) status codes a file has not seen yet")
    parser.add_argument(
        "--log-level",
        default=os.environ.get("NGINX_TAIL_LOG_LEVEL", "WARNING"),
        help="Level of diagnostic messages on stderr (default: WARNING)",
    )
    return parser


# ============================================================
# Running
# ============================================================

def _start(target, *args) -> threading.Thread:
    # Daemon threads so producers never keep the process alive
    thread = threading.Thread(target=target, args=args, daemon=True)
    thread.start()
    return thread


def run(args: argparse.Namespace) -> None:
    """
    Follow the requested logs until the bus closes.

    Raises:
        NoLogFilesError: No usable log files were found.
    """
    log_files = discover_log_files(args.paths)
    filters = normalize_filters(args.filters)
    classify = status_code_class if args.merge else exact_status_code

    bus = MessageBus()
    logger.info("Following %d log file(s)", len(log_files))

    for log_file in log_files:
        group = "" if args.combine else str(log_file)
        _start(follow, bus, log_file, group, classify)

    if args.max_runtime is not None:
        timer = threading.Timer(args.max_runtime, bus.close)
        timer.daemon = True
        timer.start()

    if not sys.stdout.isatty():
        # Redirected output: just syntax highlighting (and filtering)
        process_as_streaming(bus, filters)
        return

    if args.max_width is None:
        width = terminal.get_terminal_width()
        resized = install_resize_flag()
        if resized is not None:
            _start(watch_resize, bus, resized)
    else:
        width = args.max_width

    _start(periodic_print, bus)

    renderer = Renderer(
        GroupMap(),
        target_height=args.target_height or terminal.get_terminal_height(),
        width=width,
        filters=filters,
        show_missing_codes=args.show_missing_codes,
    )

    sys.stdout.write(terminal.HIDE_CURSOR + "\n")
    try:
        run_consumer(bus, renderer)
    finally:
        bus.close()
        sys.stdout.write(terminal.SHOW_CURSOR + "\n")
        sys.stdout.flush()


# ============================================================
# Entry Point
# ============================================================

def main() -> None:
    """
    Main entry point for the nginx-tail CLI.

    Exit Codes:
        0: Success, interrupted with Ctrl+C, or --max-runtime reached
        1: No usable log files
        2: Invalid arguments
    """
    load_dotenv()

    parser = build_parser()
    args = parser.parse_args()
    configure_logging(args.log_level)

    try:
        run(args)
    except KeyboardInterrupt:
        print(f"{terminal.SHOW_CURSOR}\nBye")
        sys.exit(0)
    except NginxTailError as exc:
        print(f"[{PROG}] {exc}", file=sys.stderr)
        sys.exit(1)

    sys.exit(0)


if __name__ == "__main__":
    main()
