"""Exception hierarchy for attachment discovery and retrieval.

Per-block failures (everything under :class:`RetrievalError`) and unreadable
export files are recoverable: the runner logs them, counts them and moves on.
:class:`RootDirectoryError` is the only fatal condition.
"""

from pathlib import Path
from typing import Optional, Union

__all__ = [
    "AttachmentError",
    "RootDirectoryError",
    "FileReadFailure",
    "RetrievalError",
    "NetworkFailure",
    "RetrievalTimeout",
    "HttpStatusFailure",
    "TooManyRedirects",
    "WriteFailure",
]


class AttachmentError(RuntimeError):
    """Base exception for all xf-attachments failures."""


class RootDirectoryError(AttachmentError):
    """Raised when the root directory does not exist or is not a directory."""

    def __init__(self, root: Union[str, Path]) -> None:
        super().__init__(f"Directory not found: {root}")
        self.root = Path(root)


class FileReadFailure(AttachmentError):
    """Raised when an export text file cannot be read."""

    def __init__(self, path: Union[str, Path], cause: Optional[BaseException] = None) -> None:
        message = f"Could not read {path}"
        if cause is not None:
            message = f"{message}: {cause}"
        super().__init__(message)
        self.path = Path(path)


class RetrievalError(AttachmentError):
    """Base class for a failed attachment download."""

    def __init__(self, message: str, *, url: str) -> None:
        super().__init__(message)
        self.url = url


class NetworkFailure(RetrievalError):
    """Connection, DNS or protocol level failure."""


class RetrievalTimeout(NetworkFailure):
    """The request did not complete within the allowed time."""

    def __init__(self, url: str, timeout: float) -> None:
        super().__init__(f"Request timeout after {timeout:g}s", url=url)
        self.timeout = timeout


class HttpStatusFailure(RetrievalError):
    """The server answered with a terminal non-2xx status."""

    def __init__(self, status_code: int, *, url: str) -> None:
        super().__init__(f"HTTP {status_code}", url=url)
        self.status_code = status_code


class TooManyRedirects(RetrievalError):
    """The redirect chain exceeded the allowed number of hops."""

    def __init__(self, url: str, max_redirects: int) -> None:
        super().__init__("Too many redirects", url=url)
        self.max_redirects = max_redirects


class WriteFailure(RetrievalError):
    """The response body could not be written to local disk."""

    def __init__(self, path: Union[str, Path], cause: OSError, *, url: str) -> None:
        super().__init__(f"Could not write {path}: {cause}", url=url)
        self.path = Path(path)
        self.cause = cause
