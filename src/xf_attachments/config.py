"""
Configuration for xf-attachments.

Defaults live here as module constants. The CLI fills a :class:`Settings`
from its options (which fall back to the ATTACHMENT_* environment variables)
and the runner reads everything else from these constants.
"""

import math
from dataclasses import dataclass
from pathlib import Path
from types import MappingProxyType
from typing import Mapping, Optional, Union

# Default User-Agent sent with every request
DEFAULT_USER_AGENT = "PostmanRuntime/7.29.0"

# Pause between two downloads, in milliseconds
DEFAULT_DELAY_MS = 1200

# Overall timeout for one logical request (redirects + body), in seconds
REQUEST_TIMEOUT = 30.0

# Redirect hops allowed for one logical request
MAX_REDIRECTS = 10

# Directories never entered while looking for export files
IGNORED_DIRECTORIES = frozenset({".git", "node_modules"})

# Name of the directory created next to each export file
ATTACHMENTS_DIRNAME = "attachments"

# Used when neither the export nor the URL yields a usable name
FALLBACK_FILENAME = "download.bin"

# Environment variables backing the CLI options
ENV_COOKIE = "ATTACHMENT_COOKIE"
ENV_USER_AGENT = "ATTACHMENT_USER_AGENT"
ENV_DELAY_MS = "ATTACHMENT_DELAY_MS"


def normalize_delay_ms(value: Optional[Union[str, int, float]]) -> int:
    """
    Turn a user supplied delay into a whole number of milliseconds.

    Args:
        value: Raw delay, typically the string from the CLI or environment

    Returns:
        The delay floored to an int. Missing, empty, unparsable, non-finite
        or negative values give DEFAULT_DELAY_MS.

    Example:
        normalize_delay_ms("1500")   # 1500
        normalize_delay_ms("-1")     # 1200
        normalize_delay_ms("0")      # 0, waiting disabled
    """
    if value is None:
        return DEFAULT_DELAY_MS
    if isinstance(value, str):
        value = value.strip()
        if not value:
            return DEFAULT_DELAY_MS

    try:
        parsed = float(value)
    except (TypeError, ValueError):
        return DEFAULT_DELAY_MS

    if not math.isfinite(parsed) or parsed < 0:
        return DEFAULT_DELAY_MS
    return int(math.floor(parsed))


def build_request_headers(user_agent: Optional[str] = None, cookie: Optional[str] = None) -> Mapping[str, str]:
    """
    Build the read-only header mapping shared by every request of a run.

    The Cookie header is only present when a cookie is configured.
    """
    headers = {
        "User-Agent": user_agent or DEFAULT_USER_AGENT,
        "Accept": "*/*",
        "Accept-Encoding": "gzip, deflate, br",
        "Connection": "keep-alive",
    }
    if cookie:
        headers["Cookie"] = cookie
    return MappingProxyType(headers)


@dataclass(frozen=True)
class Settings:
    """
    Run configuration.

    Attributes:
        root_dir: Directory searched recursively for export .txt files
        cookie: Raw Cookie header value (e.g. "xf_session=...; xf_csrf=...")
        user_agent: User-Agent header value
        delay_ms: Pause after each download; 0 disables it
    """
    root_dir: Path
    cookie: str = ""
    user_agent: str = DEFAULT_USER_AGENT
    delay_ms: int = DEFAULT_DELAY_MS

    @classmethod
    def from_options(
        cls,
        root_dir: Union[str, Path, None] = None,
        cookie: Optional[str] = None,
        user_agent: Optional[str] = None,
        delay_ms: Optional[Union[str, int, float]] = None,
    ) -> "Settings":
        """Build settings from loosely typed CLI/environment values."""
        return cls(
            root_dir=Path(root_dir or Path.cwd()).resolve(),
            cookie=cookie or "",
            user_agent=user_agent or DEFAULT_USER_AGENT,
            delay_ms=normalize_delay_ms(delay_ms),
        )

    @property
    def headers(self) -> Mapping[str, str]:
        return build_request_headers(self.user_agent, self.cookie)
