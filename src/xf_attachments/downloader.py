"""Async downloader for attachment files."""

import asyncio
import logging
from pathlib import Path
from typing import Mapping, Optional
from urllib.parse import urljoin

import aiofiles
import httpx

from .config import MAX_REDIRECTS, REQUEST_TIMEOUT, build_request_headers
from .errors import (
    HttpStatusFailure,
    NetworkFailure,
    RetrievalTimeout,
    TooManyRedirects,
    WriteFailure,
)

logger = logging.getLogger(__name__)


class Downloader:
    """
    Streams one URL at a time to disk.

    Redirects are followed by hand so the hop count can be enforced, and the
    body is written as received (no content decoding). A failed download never
    leaves a partial file behind.
    """

    def __init__(
        self,
        headers: Optional[Mapping[str, str]] = None,
        client: Optional[httpx.AsyncClient] = None,
        timeout: float = REQUEST_TIMEOUT,
        max_redirects: int = MAX_REDIRECTS,
    ):
        """Initialize the downloader.

        Args:
            headers: Request headers for every request. Defaults to
                build_request_headers().
            client: Optional httpx client. If None, one is created on entry
                and closed on exit.
            timeout: Overall limit in seconds for one download, redirects
                and body included
            max_redirects: Redirect hops allowed per download
        """
        self.headers = headers if headers is not None else build_request_headers()
        self.client = client
        self._own_client = client is None
        self.timeout = timeout
        self.max_redirects = max_redirects

    async def __aenter__(self):
        """Async context manager entry."""
        if self._own_client:
            self.client = httpx.AsyncClient(timeout=self.timeout, follow_redirects=False)
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        """Async context manager exit."""
        if self._own_client and self.client:
            await self.client.aclose()
            self.client = None

    async def download_file(self, url: str, destination: Path) -> None:
        """Download a URL to a destination file.

        Args:
            url: http(s) URL to fetch
            destination: File to create; its directory must exist

        Raises:
            RetrievalTimeout: The download took longer than ``timeout``
            NetworkFailure: Connection, DNS or protocol error
            HttpStatusFailure: Final response was not 2xx
            TooManyRedirects: More than ``max_redirects`` hops
            WriteFailure: The body could not be written to disk
        """
        if self.client is None:
            raise RuntimeError("Downloader must be used as 'async with Downloader(...)'")

        try:
            await asyncio.wait_for(self._fetch(url, Path(destination)), timeout=self.timeout)
        except asyncio.TimeoutError as e:
            raise RetrievalTimeout(url, self.timeout) from e

    async def _fetch(self, url: str, destination: Path) -> None:
        current = url
        redirects = 0

        while True:
            if redirects > self.max_redirects:
                raise TooManyRedirects(url, self.max_redirects)

            try:
                async with self.client.stream(
                    "GET",
                    current,
                    headers=dict(self.headers),
                    follow_redirects=False,
                ) as response:
                    status = response.status_code
                    location = response.headers.get("location")

                    if 300 <= status < 400 and location:
                        try:
                            target = urljoin(current, location)
                        except ValueError as e:
                            raise NetworkFailure(f"Invalid redirect location {location!r}: {e}", url=current) from e
                        logger.debug("Redirect %d (HTTP %d): %s -> %s", redirects + 1, status, current, target)
                        current = target
                        redirects += 1
                        continue

                    if not 200 <= status < 300:
                        raise HttpStatusFailure(status, url=current)

                    await self._stream_to_disk(response, destination, current)
                    return

            except httpx.TimeoutException as e:
                raise RetrievalTimeout(current, self.timeout) from e
            except (httpx.RequestError, httpx.InvalidURL) as e:
                raise NetworkFailure(str(e) or type(e).__name__, url=current) from e
            except UnicodeEncodeError as e:
                # header values must be ASCII on the wire
                raise NetworkFailure(f"Request headers not encodable: {e}", url=current) from e

    async def _stream_to_disk(self, response: httpx.Response, destination: Path, url: str) -> None:
        """Write the raw response body to destination, removing it on any failure."""
        opened = False
        completed = False
        try:
            async with aiofiles.open(destination, "wb") as f:
                opened = True
                async for chunk in response.aiter_raw():
                    await f.write(chunk)
            completed = True
        except OSError as e:
            raise WriteFailure(destination, e, url=url) from e
        finally:
            if opened and not completed:
                self._discard_partial(destination)

    @staticmethod
    def _discard_partial(destination: Path) -> None:
        try:
            destination.unlink()
        except FileNotFoundError:
            pass
        except OSError as e:
            logger.debug("Could not remove partial file %s: %s", destination, e)
