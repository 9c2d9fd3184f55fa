"""
Output filename resolution for downloaded attachments.

The declared name from the export is preferred. Exports made through a proxy
endpoint sometimes record "index.php" as the name, so in that case (or when
the declared name is empty) the name is recovered from the URL instead:
first from well-known query parameters, then from the URL path, and finally
the fixed fallback "download.bin".
"""

import posixpath
import re
from typing import Optional, Tuple
from urllib.parse import parse_qsl, unquote, urlsplit

from .config import FALLBACK_FILENAME

# Query parameters that commonly carry the real file name, in priority order
MEDIA_QUERY_KEYS: Tuple[str, ...] = ("media", "attachment", "file", "filename", "download")

# Characters illegal in filenames on at least one major filesystem
_ILLEGAL_CHARS = re.compile(r'[<>:"/\\|?*\x00-\x1f]')

_FILENAME_LIKE = re.compile(r"\.[A-Za-z0-9]{2,8}(?:\Z|[?#])")

# XenForo attachment slugs: "<name>.<ext>.<attachment id>"
_ATTACHMENT_ID_SUFFIX = re.compile(r"\A(.+\.[A-Za-z0-9]{2,8})\.\d+\Z")

# A '%' that does not start a valid escape sequence
_BROKEN_ESCAPE = re.compile(r"%(?![0-9A-Fa-f]{2})")


def safe_filename(name: str) -> str:
    """
    Make a name safe to use as a single path component.

    Replaces < > : " / \\ | ? * and control characters (0x00-0x1F) with
    underscores, then strips surrounding whitespace. Directory separators
    are replaced too, so the result can never escape the target directory.

    Example:
        safe_filename(' plan: v2/final?.png ')
        # Returns: "plan_ v2_final_.png"
    """
    return _ILLEGAL_CHARS.sub("_", name).strip()


def is_generic_php_name(name: str) -> bool:
    """True for proxy endpoint names such as "index.php" / "INDEX.PHP"."""
    return name.lower() == "index.php"


def looks_like_filename(value: str) -> bool:
    """True when the value contains a dot followed by a 2-8 char alphanumeric extension."""
    return _FILENAME_LIKE.search(value) is not None


def try_unquote(value: str) -> str:
    """
    Percent-decode a value, returning it unchanged when it is not valid.

    A value is invalid when it contains a stray '%' or when the escapes do
    not decode to UTF-8.
    """
    if _BROKEN_ESCAPE.search(value):
        return value
    try:
        return unquote(value, errors="strict")
    except UnicodeDecodeError:
        return value


def _strip_attachment_id(segment: str) -> str:
    match = _ATTACHMENT_ID_SUFFIX.match(segment)
    if match:
        return match.group(1)
    return segment


def filename_segment(value: str) -> Optional[str]:
    """
    Find the last path-like segment of a value that looks like a filename.

    The value is percent-decoded, backslashes are treated as slashes, and
    segments are scanned from the end. A trailing numeric attachment id is
    dropped from the winning segment ("photo.jpg.67890" -> "photo.jpg").

    Returns:
        The segment, or None if no segment looks like a filename
    """
    normalized = try_unquote(value).replace("\\", "/")
    segments = [s.strip() for s in normalized.split("/")]
    for segment in reversed([s for s in segments if s]):
        if looks_like_filename(segment):
            return _strip_attachment_id(segment)
    return None


def filename_from_query(query: str) -> Optional[str]:
    """Recover a filename from the MEDIA_QUERY_KEYS parameters of a query string."""
    params = {}
    for key, value in parse_qsl(query, keep_blank_values=True):
        params.setdefault(key, value)

    for key in MEDIA_QUERY_KEYS:
        value = params.get(key)
        if not value:
            continue
        segment = filename_segment(value)
        if segment:
            cleaned = safe_filename(segment)
            if cleaned:
                return cleaned
    return None


def filename_from_path(path: str) -> Optional[str]:
    """Recover a filename from the path component of a URL.

    The proxy endpoint itself ("/index.php") never counts as a filename.
    """
    segment = filename_segment(path)
    if segment is None:
        segment = posixpath.basename(try_unquote(path).replace("\\", "/")).strip()

    cleaned = safe_filename(segment)
    if cleaned and not is_generic_php_name(cleaned):
        return cleaned
    return None


def filename_from_url(url: str) -> Optional[str]:
    """
    Derive a filename from an attachment URL.

    Args:
        url: Absolute attachment URL

    Returns:
        A sanitized filename, or None if nothing usable was found

    Example:
        filename_from_url("https://x.test/index.php?media=42-photo.jpg.67890")
        # Returns: "42-photo.jpg"

        filename_from_url("https://x.test/data/attachments/12/report%20v2.pdf")
        # Returns: "report v2.pdf"
    """
    try:
        parsed = urlsplit(url)
    except ValueError:
        return None

    return filename_from_query(parsed.query) or filename_from_path(parsed.path)


def choose_output_filename(declared_name: str, url: str) -> str:
    """
    Decide the on-disk base filename for an attachment.

    Decision chain (first applicable wins):
        1. The sanitized declared name, unless empty or "index.php"
        2. A filename recovered from the URL query parameters
        3. A filename recovered from the URL path
        4. "download.bin"

    Returns:
        A non-empty filename without directory components
    """
    cleaned = safe_filename(declared_name or "")
    if cleaned and not is_generic_php_name(cleaned):
        return cleaned

    return filename_from_url(url) or FALLBACK_FILENAME
