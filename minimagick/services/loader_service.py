"""Loader Service for reading image bytes from a source.

This service handles loading bytes from:
- File paths (local filesystem)
- URLs (HTTP/HTTPS)

It only produces a (bytes, extension) pair; building an Image from them is
the caller's job.
"""

import logging
import os
from pathlib import Path
from typing import Optional, Tuple
from urllib.parse import urlparse

import httpx

from minimagick.config import settings
from minimagick.exceptions import ImageIOError


logger = logging.getLogger(__name__)


class LoaderService:
    """
    Service for loading image bytes from local paths and URLs.
    """

    def __init__(
        self,
        timeout: Optional[float] = None,
        max_download_size: Optional[int] = None,
        transport: Optional[httpx.BaseTransport] = None
    ):
        """
        Initialize the loader service.

        Args:
            timeout: Request timeout in seconds. Defaults to MINIMAGICK_URL_TIMEOUT.
            max_download_size: Largest accepted download in bytes.
                Defaults to MINIMAGICK_MAX_DOWNLOAD_SIZE.
            transport: Optional httpx transport (used by tests to stub the network)
        """
        self.timeout = timeout if timeout is not None else settings.MINIMAGICK_URL_TIMEOUT
        self.max_download_size = (
            max_download_size if max_download_size is not None
            else settings.MINIMAGICK_MAX_DOWNLOAD_SIZE
        )
        self.transport = transport

    @staticmethod
    def is_url(source: str) -> bool:
        """Whether a source string is an http(s) URL."""
        return urlparse(str(source)).scheme in ("http", "https")

    @staticmethod
    def extension_of(source: str) -> str:
        """Extension hint ('.jpg') taken from a path or URL path."""
        source = str(source)
        path = urlparse(source).path if LoaderService.is_url(source) else source
        return os.path.splitext(path)[1]

    def load(self, source) -> Tuple[bytes, str]:
        """
        Load bytes from a path or URL.

        Returns:
            Tuple[bytes, str]: (data, extension hint)

        Raises:
            ImageIOError: If the source cannot be read
        """
        source = os.fspath(source)
        if self.is_url(source):
            return self.load_from_url(source), self.extension_of(source)
        return self.load_from_file(source), self.extension_of(source)

    def load_from_file(self, file_path: str) -> bytes:
        """Read the whole file at file_path."""
        if "\x00" in file_path:
            raise ImageIOError("Invalid file path: null byte detected")

        path = Path(file_path)
        logger.debug(f"Loading image bytes from file: {file_path}")
        try:
            return path.read_bytes()
        except OSError as e:
            raise ImageIOError(f"Cannot read {file_path}: {e}") from e

    def load_from_url(self, url: str) -> bytes:
        """Download url, enforcing the size limit."""
        logger.info(f"Loading image bytes from URL: {url}")

        client_kwargs = {"timeout": self.timeout, "follow_redirects": True}
        if self.transport is not None:
            client_kwargs["transport"] = self.transport

        try:
            with httpx.Client(**client_kwargs) as client:
                with client.stream("GET", url) as response:
                    if response.status_code != 200:
                        raise ImageIOError(f"HTTP {response.status_code}: Failed to download image from {url}")

                    # Reject on the declared size before reading the body
                    content_length = response.headers.get("Content-Length")
                    if content_length and content_length.isdigit() and int(content_length) > self.max_download_size:
                        raise ImageIOError(self._too_large(int(content_length)))

                    return self._read_limited(response)
        except httpx.HTTPError as e:
            logger.error(f"Error downloading {url}: {e}")
            raise ImageIOError(f"Failed to download image from {url}: {e}") from e

    def _read_limited(self, response: httpx.Response) -> bytes:
        """Read a streamed body, stopping as soon as it passes the size limit."""
        chunks = []
        received = 0
        for chunk in response.iter_bytes():
            received += len(chunk)
            if received > self.max_download_size:
                raise ImageIOError(self._too_large(received))
            chunks.append(chunk)
        return b"".join(chunks)

    def _too_large(self, size: int) -> str:
        size_mb = size / (1024 * 1024)
        limit_mb = self.max_download_size / (1024 * 1024)
        return f"Image too large: {size_mb:.1f}MB (max {limit_mb:.0f}MB)"


_loader_service: Optional[LoaderService] = None


def get_loader_service() -> LoaderService:
    """Get or create global loader service instance."""
    global _loader_service
    if _loader_service is None:
        _loader_service = LoaderService()
    return _loader_service
