"""Temporary file service for image working copies.

Allocates uniquely named files in the configured temp directory and removes
them on explicit release. Each TempFile is owned by at most one Image; the
Image hands ownership over (never shares it) when a format change moves its
data to a file with a new extension.
"""

import logging
import os
import tempfile
import weakref
from typing import Optional

from minimagick.config import settings
from minimagick.exceptions import ImageIOError


logger = logging.getLogger(__name__)


def _remove_file(path: str) -> None:
    try:
        os.unlink(path)
    except FileNotFoundError:
        pass


def normalize_extension(extension: Optional[str]) -> str:
    """Turn 'png', '.png' or None into a filename suffix ('.png' or '')."""
    if not extension:
        return ""
    extension = str(extension).strip()
    if not extension:
        return ""
    return extension if extension.startswith(".") else f".{extension}"


class TempFile:
    """
    An exclusively owned temporary file.

    The file is created on construction and stays open for writing until
    ``close()``. ``release()`` deletes it; releasing twice is a no-op. If the
    handle is garbage collected without being released the file is removed
    by a finalizer, but callers are expected to release explicitly.
    """

    def __init__(self, extension: str = "", directory: Optional[str] = None, prefix: Optional[str] = None):
        suffix = normalize_extension(extension)
        try:
            fd, path = tempfile.mkstemp(
                suffix=suffix,
                prefix=prefix if prefix is not None else settings.MINIMAGICK_TEMP_PREFIX,
                dir=directory if directory is not None else settings.temp_dir
            )
        except OSError as e:
            raise ImageIOError(f"Cannot create temp file: {e}") from e

        self.path = path
        self.extension = suffix
        self._file = os.fdopen(fd, "wb")
        self._released = False
        self._finalizer = weakref.finalize(self, _remove_file, path)

    @property
    def released(self) -> bool:
        return self._released

    @property
    def closed(self) -> bool:
        return self._file is None or self._file.closed

    def write(self, data: bytes) -> int:
        """Write bytes to the still-open file."""
        if self.closed:
            raise ImageIOError(f"Temp file is not open for writing: {self.path}")
        try:
            return self._file.write(data)
        except OSError as e:
            raise ImageIOError(f"Cannot write temp file {self.path}: {e}") from e

    def close(self) -> None:
        """Close the write handle; the file stays on disk."""
        if self._file is not None and not self._file.closed:
            self._file.close()

    def release(self) -> None:
        """Close and delete the backing file. Idempotent."""
        if self._released:
            return
        self.close()
        self._released = True
        self._finalizer.detach()
        try:
            _remove_file(self.path)
        except OSError as e:
            raise ImageIOError(f"Cannot delete temp file {self.path}: {e}") from e
        logger.debug(f"Released temp file: {self.path}")

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.release()

    def __repr__(self) -> str:
        state = "released" if self._released else "live"
        return f"<TempFile {self.path!r} {state}>"


class TempFileManager:
    """
    Service allocating and releasing TempFiles.

    Keeps a weak registry of live handles so a host can release everything
    that is still outstanding on shutdown.
    """

    def __init__(self, temp_dir: Optional[str] = None, prefix: Optional[str] = None):
        """
        Initialize the temp file manager.

        Args:
            temp_dir: Directory for temporary files. Defaults to MINIMAGICK_TEMP_DIR.
            prefix: Filename prefix. Defaults to MINIMAGICK_TEMP_PREFIX.
        """
        self.temp_dir = temp_dir if temp_dir is not None else settings.temp_dir
        self.prefix = prefix if prefix is not None else settings.MINIMAGICK_TEMP_PREFIX
        try:
            os.makedirs(self.temp_dir, exist_ok=True)
        except OSError as e:
            raise ImageIOError(f"Cannot create temp directory {self.temp_dir}: {e}") from e
        self._live = weakref.WeakSet()

    def allocate(self, extension: Optional[str] = "") -> TempFile:
        """
        Create a new uniquely named file, opened for writing.

        Args:
            extension: File extension, with or without the leading dot. May be empty.

        Returns:
            TempFile: The new handle

        Raises:
            ImageIOError: If the file cannot be created
        """
        temp_file = TempFile(extension or "", directory=self.temp_dir, prefix=self.prefix)
        self._live.add(temp_file)
        logger.debug(f"Allocated temp file: {temp_file.path}")
        return temp_file

    def release(self, temp_file: Optional[TempFile]) -> None:
        """Delete a temp file's backing storage. Releasing twice is a no-op."""
        if temp_file is None:
            return
        temp_file.release()
        self._live.discard(temp_file)

    def live_count(self) -> int:
        """Number of allocated handles that have not been released."""
        return sum(1 for temp_file in list(self._live) if not temp_file.released)

    def release_all(self) -> int:
        """Release every outstanding handle; returns how many were released."""
        released = 0
        for temp_file in list(self._live):
            if not temp_file.released:
                temp_file.release()
                released += 1
            self._live.discard(temp_file)
        if released:
            logger.info(f"Released {released} outstanding temp files")
        return released


_temp_file_manager: Optional[TempFileManager] = None


def get_temp_file_manager() -> TempFileManager:
    """Get or create global temp file manager instance."""
    global _temp_file_manager
    if _temp_file_manager is None:
        _temp_file_manager = TempFileManager()
    return _temp_file_manager
