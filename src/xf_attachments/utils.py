"""
Utility functions for xf-attachments.

This module provides helper functions for file discovery, reading export
files, and collision-free output path allocation.
"""

import logging
import os
from pathlib import Path
from typing import AbstractSet, List, Union

from .config import FALLBACK_FILENAME, IGNORED_DIRECTORIES
from .errors import FileReadFailure

logger = logging.getLogger(__name__)


def unique_output_path(directory: Union[str, Path], base_name: str) -> Path:
    """
    Find a path in a directory that does not exist yet.

    Args:
        directory: Target directory (e.g. "thread_123/attachments")
        base_name: Desired filename (e.g. "photo.jpg")

    Returns:
        directory/base_name if that is free, otherwise the first free name
        of the form "stem-1.ext", "stem-2.ext", ...

    How it works:
        1. Split the name into stem and extension ("archive.tar.gz" gives
           "archive.tar" and ".gz")
        2. Try the name as-is, then with an increasing counter
        3. Ask the filesystem before every attempt; nothing is cached

    Concurrency:
        Nothing is created here, so calling this twice before writing the
        file returns the same path both times. The check-then-create is only
        safe because downloads run strictly one at a time.

    Example:
        # attachments/ already holds photo.jpg
        unique_output_path(Path("attachments"), "photo.jpg")
        # Returns: Path("attachments/photo-1.jpg")
    """
    directory = Path(directory)

    # -------------------------------------------------------
    # STEP 1: Split the base name
    # -------------------------------------------------------
    stem, ext = os.path.splitext(base_name)
    candidate = directory / (base_name or FALLBACK_FILENAME)

    # -------------------------------------------------------
    # STEP 2: Append a counter until the name is free
    # -------------------------------------------------------
    counter = 1
    while candidate.exists():
        candidate = directory / f"{stem or 'download'}-{counter}{ext}"
        counter += 1

    return candidate


def find_txt_files(
    root_dir: Union[str, Path],
    ignored_dirs: AbstractSet[str] = IGNORED_DIRECTORIES,
) -> List[Path]:
    """
    Recursively list .txt files below a directory.

    Args:
        root_dir: Directory to search
        ignored_dirs: Directory names that are never entered (matched on
                      the bare name, at any depth)

    Returns:
        Sorted list of regular files whose name ends in ".txt" (any case).
        Directories that cannot be listed are logged and skipped.
    """
    results: List[Path] = []
    stack = [Path(root_dir)]

    while stack:
        current = stack.pop()
        try:
            with os.scandir(current) as it:
                entries = list(it)
        except OSError as e:
            logger.warning("Could not list %s: %s", current, e)
            continue

        for entry in entries:
            if entry.is_dir(follow_symlinks=False):
                if entry.name in ignored_dirs:
                    continue
                stack.append(Path(entry.path))
            elif entry.is_file(follow_symlinks=False) and entry.name.lower().endswith(".txt"):
                results.append(Path(entry.path))

    return sorted(results)


def read_text_file(path: Union[str, Path]) -> str:
    """
    Read an export file as UTF-8.

    Undecodable bytes are replaced rather than rejected.

    Raises:
        FileReadFailure: If the file cannot be opened or read
    """
    try:
        return Path(path).read_text(encoding="utf-8", errors="replace")
    except OSError as e:
        raise FileReadFailure(path, e) from e
