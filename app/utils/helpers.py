"""
Helper utilities for File Relay.

Common functions used across domains.
"""

import time
from datetime import datetime, timezone
from pathlib import Path
from typing import List

DEFAULT_EXCLUDE_PATTERNS = [
    '*.tmp',
    '*.swp',
    '*.part',
    '*.crdownload',
    '~*',
]


def now_utc() -> datetime:
    """Get current timestamp as timezone-aware UTC datetime."""
    return datetime.now(timezone.utc)


def compact_timestamp() -> str:
    """Filesystem-safe UTC timestamp, e.g. 20240101T120000123456Z."""
    return now_utc().strftime('%Y%m%dT%H%M%S%fZ')


def is_hidden(path: Path) -> bool:
    """Check if path is hidden (starts with dot)."""
    return path.name.startswith('.')


def should_exclude_path(path: Path, exclude_patterns: List[str] = None) -> bool:
    """
    Check if a source file should be ignored by the watcher.

    Hidden files and in-progress downloads/editor swap files are skipped.

    Args:
        path: Path to check
        exclude_patterns: List of glob patterns to exclude

    Returns:
        True if should exclude, False otherwise
    """
    if exclude_patterns is None:
        exclude_patterns = DEFAULT_EXCLUDE_PATTERNS

    if is_hidden(path):
        return True

    return any(path.match(pattern) for pattern in exclude_patterns)


def is_safe_path_component(name: str) -> bool:
    """True if name can be used verbatim as a single file name."""
    if not name or name in ('.', '..') or len(name) > 255:
        return False
    return not any(ch in name for ch in ('/', '\\', '\x00'))


def wait_until_stable(path: Path, settle_seconds: float, max_checks: int = 50) -> bool:
    """
    Wait until a file's size stops changing.

    Args:
        path: File to watch
        settle_seconds: Interval between size samples; 0 disables the check
        max_checks: Upper bound on samples before giving up

    Returns:
        True once two consecutive samples agree or an empty file has aged
        past the settle window; False if the file vanished, is a fresh
        empty file, or never settled
    """
    try:
        stats = path.stat()
    except FileNotFoundError:
        return False
    previous = stats.st_size

    if settle_seconds <= 0:
        return True

    # Empty files are deferred while a writer may still fill them; once older
    # than the whole settle window they are handed over (and fail decode)
    if previous == 0:
        return time.time() - stats.st_mtime >= settle_seconds * max_checks

    for _ in range(max_checks):
        time.sleep(settle_seconds)
        try:
            current = path.stat().st_size
        except FileNotFoundError:
            return False
        if current == previous:
            return True
        previous = current

    return False


def unique_destination(directory: Path, name: str) -> Path:
    """Return directory/name, adding a timestamp suffix if it already exists."""
    target = directory / name
    if not target.exists():
        return target
    return directory / f"{name}.{compact_timestamp()}"
