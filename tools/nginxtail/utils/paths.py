"""
Log file discovery.

This module decides which files get a tailer. Users pass any mix of files
and directories; directories are searched recursively for access logs.

Design Decisions:
    - All functions return pathlib.Path objects
    - Only files named exactly "access.log" are picked up from directories;
      rotated copies (access.log.1, access.log.2.gz) are not followed
    - Problems with a single path are warnings, not errors: the remaining
      files are still worth watching
"""

import logging
import os
from pathlib import Path
from typing import Iterable, List

from ..errors import NoLogFilesError

logger = logging.getLogger(__name__)

ACCESS_LOG_NAME = "access.log"


def log_root() -> Path:
    """
    Return the directory searched when no paths are given.

    Uses the NGINX_TAIL_LOG_ROOT environment variable if set, otherwise
    falls back to nginx's default log directory.

    Example:
        >>> os.environ["NGINX_TAIL_LOG_ROOT"] = "/srv/logs"
        >>> log_root()
        PosixPath('/srv/logs')
    """
    return Path(os.environ.get("NGINX_TAIL_LOG_ROOT", "/var/log/nginx/"))


def find_access_logs(directory: Path) -> List[Path]:
    """
    Recursively collect every access.log below a directory.

    Unreadable directories are skipped with a warning.

    Args:
        directory: Directory to search.

    Returns:
        List[Path]: Access logs found, in no particular order.
    """
    found = []
    dirs_to_check = [Path(directory)]

    while dirs_to_check:
        current = dirs_to_check.pop()
        try:
            entries = list(current.iterdir())
        except OSError as exc:
            logger.warning("Failed to read directory %s: %s", current, exc)
            continue

        for entry in entries:
            try:
                if entry.is_dir():
                    dirs_to_check.append(entry)
                elif entry.is_file() and entry.name == ACCESS_LOG_NAME:
                    found.append(entry)
            except OSError as exc:
                logger.warning("Failed to process %s: %s", entry, exc)

    return found


def discover_log_files(paths: Iterable[Path]) -> List[Path]:
    """
    Resolve user-supplied files and directories into files to follow.

    Args:
        paths: Files and directories from the command line. When empty,
               log_root() is searched instead.

    Returns:
        List[Path]: Sorted, de-duplicated list of files.

    Raises:
        NoLogFilesError: Nothing usable was found.
    """
    paths = [Path(p) for p in paths] or [log_root()]

    files = []
    for path in paths:
        if path.is_dir():
            for log_file in find_access_logs(path):
                print(f"Added {log_file} as reader")
                files.append(log_file)
        elif path.is_file():
            files.append(path)
        else:
            # Things can still go wrong later (e.g. permissions), but at
            # least this one is obviously not going to work
            logger.warning("Log file %s is not a file", path)

    if not files:
        raise NoLogFilesError()

    return sorted(set(files))
