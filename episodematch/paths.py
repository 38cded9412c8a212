"""Canonical path handling and live folder listing.

Every path compared inside episodematch is in *canonical* form: an
absolute, slash-delimited string.  Windows drive paths map to
``/C/...`` and UNC shares to ``/server/share/...`` so the same file
compares equal no matter which platform submitted it.
"""
from __future__ import annotations

import logging
import re
import sys
from pathlib import Path

log = logging.getLogger(__name__)

_DRIVE_RE = re.compile(r'^([A-Za-z]):')
_SEPARATORS_RE = re.compile(r'[\\/]+')

# Names never reported by list_files() when hidden files are ignored.
_SYSTEM_FILES = {
    'Thumbs.db', 'desktop.ini', '.DS_Store', '.Spotlight-V100',
    '.Trashes', '._.DS_Store', '.fseventsd', '.Trash-1000', '.nfs',
}

_SKIPPED_SUFFIXES = (
    '.tmp', '.temp', '.cache', '.bak', '.swp', '.swo', '.lock', '.pid',
    '.torrent', '.part', '.part.1', '.zip.tmp', '.rar.tmp',
)


def split(path: str) -> list[str]:
    """Split *path* on both separator styles, dropping empty parts."""
    return [part for part in _SEPARATORS_RE.split(path) if part.strip()]


def to_posix(path: str | Path) -> str:
    """Convert a POSIX, Windows drive or UNC path to canonical form.

    Raises:
        ValueError: if *path* is empty or not absolute.
    """
    text = str(path).strip()
    if not text:
        raise ValueError("path cannot be empty")

    if text.startswith('\\\\'):
        parts = split(text)
    else:
        drive = _DRIVE_RE.match(text)
        if drive:
            parts = [drive.group(1)] + split(text[drive.end():])
        elif text.startswith('/') or text.startswith('\\'):
            parts = split(text)
        else:
            raise ValueError(
                f'path "{text}" must start with "/", a drive letter or "\\\\"'
            )

    return '/' + '/'.join(parts)


def to_platform(path: str, windows: bool | None = None) -> str:
    """Convert a canonical path back to the native form of the platform."""
    if windows is None:
        windows = sys.platform == "win32"
    parts = split(to_posix(path))
    if not windows:
        return '/' + '/'.join(parts)
    if len(parts[0]) == 1:
        return f"{parts[0]}:\\" + '\\'.join(parts[1:])
    return '\\\\' + '\\'.join(parts)


def basename(path: str) -> str:
    """Return the final component of *path* (either separator style)."""
    parts = split(path)
    return parts[-1] if parts else path


def same_path(a: str, b: str) -> bool:
    """Compare two paths in canonical form."""
    try:
        return to_posix(a) == to_posix(b)
    except ValueError:
        return a == b


def _is_ignored(filename: str) -> bool:
    if filename.startswith('.') or filename in _SYSTEM_FILES:
        return True
    # BitComet padding files
    if filename.startswith('_____padding_file') and filename.endswith('____'):
        return True
    return filename.lower().endswith(_SKIPPED_SUFFIXES)


def list_files(
    folder: str | Path,
    recursive: bool = True,
    ignore_hidden: bool = True,
) -> list[str]:
    """List the files under *folder* as canonical absolute paths.

    Args:
        folder: Folder to scan, in canonical or native form
        recursive: Descend into sub-folders
        ignore_hidden: Skip hidden, system and temporary files

    Returns:
        Sorted list of canonical file paths

    Raises:
        FileNotFoundError: if *folder* is not an existing directory
    """
    root = Path(to_platform(str(folder)))
    if not root.is_dir():
        raise FileNotFoundError(f"Not a directory: {root}")

    items = root.rglob("*") if recursive else root.iterdir()
    files = []
    for item in items:
        if not item.is_file():
            continue
        if ignore_hidden and _is_ignored(item.name):
            continue
        files.append(to_posix(str(item)))

    log.debug("Listed %d file(s) under %s", len(files), root)
    return sorted(files)
