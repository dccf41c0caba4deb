"""Image handle over the external image tool.

An Image wraps one file on disk. Every operation shells out to the tool
(identify, convert, mogrify, composite) against that file; nothing is
decoded in process. Images built from bytes own a temp file and delete it
on close(); images wrapping a caller's path never delete it on close.
"""

import glob
import logging
import os
import re
import shutil
from contextlib import contextmanager
from datetime import datetime
from typing import Any, Callable, Iterator, Mapping, Optional, Union

from minimagick.exceptions import (
    ConversionError,
    ExternalToolError,
    ImageIOError,
    InvalidImageError,
    MiniMagickError,
)
from minimagick.models.command import CommandResult
from minimagick.services.command_builder import CommandBuilder, merge_options, options_to_args
from minimagick.services.command_service import CommandRunner, get_command_runner
from minimagick.services.loader_service import LoaderService, get_loader_service
from minimagick.services.tempfile_service import TempFile, TempFileManager, get_temp_file_manager


logger = logging.getLogger(__name__)

EXIF_FIELD = re.compile(r"^EXIF:", re.IGNORECASE)
EXIF_DATE_SEPARATORS = re.compile(r":|\s+")

PathLike = Union[str, "os.PathLike[str]"]


class Image:
    """
    Handle on one image file.

    Attribute queries go through ``get(name)`` (or ``image[name]``); in-place
    changes through ``apply``, ``operation`` and ``combine_options``; format
    changes through ``convert_to``. Mutating methods return the handle so
    calls can be chained.
    """

    def __init__(
        self,
        path: PathLike,
        tempfile: Optional[TempFile] = None,
        runner: Optional[CommandRunner] = None,
        temp_manager: Optional[TempFileManager] = None,
        prepare: Optional[Callable[["Image"], Any]] = None
    ):
        """
        Wrap an image file and verify the tool can identify it.

        Args:
            path: File holding the image
            tempfile: Temp file owned by this Image, if ``path`` is one
            runner: Command runner. Defaults to the global runner.
            temp_manager: Temp file manager. Defaults to the global manager.
            prepare: Called with the new Image before verification

        Raises:
            InvalidImageError: If the file is not an identifiable image
        """
        self.path = os.fspath(path)
        self.tempfile = tempfile
        self.output: Optional[str] = None
        self.runner = runner or get_command_runner()
        self.temp_manager = temp_manager or get_temp_file_manager()
        self._closed = False

        try:
            if prepare is not None:
                prepare(self)
            self._verify(self.path)
        except MiniMagickError:
            self.close()
            raise

    # Construction
    # ------------

    @classmethod
    def from_blob(
        cls,
        blob: bytes,
        ext: Optional[str] = None,
        prepare: Optional[Callable[["Image"], Any]] = None,
        runner: Optional[CommandRunner] = None,
        temp_manager: Optional[TempFileManager] = None
    ) -> "Image":
        """
        Build an Image that owns a temp file holding ``blob``.

        Args:
            blob: Raw image bytes
            ext: Extension hint for the temp file ('jpg' or '.jpg')
            prepare: Called with the Image after the bytes are written and
                before verification

        Raises:
            ImageIOError: If the temp file cannot be written
            InvalidImageError: If the bytes are not an identifiable image
        """
        manager = temp_manager or get_temp_file_manager()
        temp_file = manager.allocate(ext)
        try:
            temp_file.write(blob)
        except BaseException:
            manager.release(temp_file)
            raise
        finally:
            temp_file.close()

        return cls(temp_file.path, temp_file, runner=runner, temp_manager=manager, prepare=prepare)

    @classmethod
    def open(
        cls,
        source: PathLike,
        loader: Optional[LoaderService] = None,
        runner: Optional[CommandRunner] = None,
        temp_manager: Optional[TempFileManager] = None
    ) -> "Image":
        """
        Copy a file (or download a URL) into an owned temp file.

        Use this when the source must not be modified.
        """
        data, ext = (loader or get_loader_service()).load(source)
        return cls.from_blob(data, ext, runner=runner, temp_manager=temp_manager)

    from_file = open

    @classmethod
    def from_path(
        cls,
        path: PathLike,
        runner: Optional[CommandRunner] = None,
        temp_manager: Optional[TempFileManager] = None
    ) -> "Image":
        """Wrap an existing file in place, without taking ownership of it."""
        return cls(path, runner=runner, temp_manager=temp_manager)

    @classmethod
    def new_blank(
        cls,
        size: str = "1x1",
        colour: str = "none",
        ext: str = "png",
        runner: Optional[CommandRunner] = None,
        temp_manager: Optional[TempFileManager] = None
    ) -> "Image":
        """Create an owned image filled with a single colour."""
        return cls.from_blob(
            b"",
            ext,
            prepare=lambda image: image.blank(size, colour),
            runner=runner,
            temp_manager=temp_manager
        )

    # Attributes
    # ----------

    @property
    def closed(self) -> bool:
        return self._closed

    def get(self, name: str) -> Any:
        """
        Query an attribute of the image.

        Known names: ``format``, ``width``, ``height``, ``dimensions``,
        ``size``, ``original_at`` and ``EXIF:<field>``. Any other name is
        passed to identify as a -format string and the first output line is
        returned.
        """
        name = str(name)
        # Animated images print one line per frame, so only the first is used
        if name == "format":
            return self._identify(self.runner.format_option("%m")).first_line
        if name == "height":
            return int(self._identify(self.runner.format_option("%h")).first_line.split()[0])
        if name == "width":
            return int(self._identify(self.runner.format_option("%w")).first_line.split()[0])
        if name == "dimensions":
            width, height = self._identify(self.runner.format_option("%w %h")).first_line.split()[:2]
            return int(width), int(height)
        if name == "size":
            # identify -format %b fails on some multi-frame files
            self._ensure_open()
            return os.path.getsize(self.path)
        if name == "original_at":
            return self._original_at()
        if EXIF_FIELD.match(name):
            output = self._identify(self.runner.format_option(f"%[{name}]")).output
            # Drops exactly one trailing newline
            return output[:-1] if output.endswith("\n") else output
        return self._identify(name).first_line

    __getitem__ = get

    def _original_at(self) -> Optional[datetime]:
        """EXIF capture time as a local datetime, or None if missing or malformed."""
        try:
            value = self.get("EXIF:DateTimeOriginal").strip()
            parts = [int(part) for part in EXIF_DATE_SEPARATORS.split(value) if part]
            return datetime(*parts)
        except (MiniMagickError, ValueError, TypeError) as e:
            logger.warning(f"No usable EXIF:DateTimeOriginal for {self.path}: {e}")
            return None

    # In-place operations
    # -------------------

    def apply(self, *args) -> "Image":
        """Run mogrify with raw arguments; the image path is appended."""
        self._run("mogrify", *args, self.path)
        return self

    def operation(self, name: str, *args) -> "Image":
        """
        Run one mogrify operation by name.

        ``image.operation("resize", "50%")`` runs
        ``mogrify -resize "50%" <path>``.
        """
        return self.apply(f"-{name}", *args)

    @contextmanager
    def combine_options(self) -> Iterator[CommandBuilder]:
        """
        Collect several mogrify flags and run them in one process.

            with image.combine_options() as builder:
                builder.append("resize", "50%")
                builder.append("rotate", 90)

        The command runs when the block exits cleanly and holds at least one flag.
        """
        builder = CommandBuilder()
        yield builder
        if len(builder):
            self.apply(*builder.args)

    def composite(
        self,
        other: Union["Image", PathLike],
        options: Optional[Mapping[str, Any]] = None,
        **kwargs
    ) -> "Image":
        """Lay ``other`` over this image; options go to the composite command."""
        other_path = self._resolve_path(other)
        args = options_to_args(merge_options(options, **kwargs)) + [other_path, self.path, self.path]
        self._run("composite", *args)
        return self

    def clut(
        self,
        other: Union["Image", PathLike],
        options: Optional[Mapping[str, Any]] = None,
        **kwargs
    ) -> "Image":
        """Recolour this image using ``other`` as a colour lookup table."""
        other_path = self._resolve_path(other)
        args = ["-clut"] + options_to_args(merge_options(options, **kwargs)) + [self.path, other_path, self.path]
        self._run("convert", *args)
        return self

    def blank(
        self,
        size: str,
        colour: str,
        options: Optional[Mapping[str, Any]] = None,
        **kwargs
    ) -> "Image":
        """Overwrite the image with a canvas of ``size`` filled with ``colour``."""
        args = ["-size", size, f"xc:{colour}"] + options_to_args(merge_options(options, **kwargs)) + [self.path]
        self._run("convert", *args)
        return self

    # Format change
    # -------------

    def convert_to(self, fmt: str, page: int = 0) -> "Image":
        """
        Convert the image to another format.

        Converting a multi-frame image to a single-frame format makes the
        tool write one file per frame; ``page`` picks which one is kept.
        Stray per-frame files are removed whether or not the conversion
        succeeds.

        Raises:
            ConversionError: If no output file was produced
        """
        self._ensure_open()
        old_path = self.path
        new_path = f"{old_path}.{fmt}"

        try:
            self._run("convert", "-format", fmt, old_path, new_path)
            self._remove(old_path)

            if not os.path.exists(new_path):
                paged_path = f"{old_path}-{page}.{fmt}"
                if os.path.exists(paged_path):
                    self._copy(paged_path, new_path)
            if not os.path.exists(new_path):
                raise ConversionError(new_path, fmt)

            if self.tempfile is not None:
                self._move_to_new_tempfile(new_path, fmt)
            else:
                self.path = new_path
        finally:
            self._remove_paged_outputs(old_path, fmt)

        logger.info(f"Converted {old_path} to {fmt}: {self.path}")
        return self

    def _move_to_new_tempfile(self, converted_path: str, fmt: str) -> None:
        """Move the converted file into a fresh temp file, then release the old one."""
        new_tempfile = self.temp_manager.allocate(fmt)
        new_tempfile.close()
        try:
            shutil.move(converted_path, new_tempfile.path)
        except OSError as e:
            self.temp_manager.release(new_tempfile)
            if os.path.exists(converted_path):
                os.unlink(converted_path)
            raise ImageIOError(f"Cannot move {converted_path} to {new_tempfile.path}: {e}") from e

        old_tempfile = self.tempfile
        self.tempfile = new_tempfile
        self.path = new_tempfile.path
        self.temp_manager.release(old_tempfile)

    @staticmethod
    def _remove_paged_outputs(old_path: str, fmt: str) -> None:
        pattern = f"{glob.escape(old_path)}-[0-9]*.{glob.escape(fmt)}"
        for paged_path in glob.glob(pattern):
            try:
                os.unlink(paged_path)
            except FileNotFoundError:
                pass

    # Output
    # ------

    def write_to(self, output_path: PathLike) -> "Image":
        """
        Copy the image to ``output_path`` and check the copy is a valid image.

        Raises:
            ImageIOError: If the copy fails
            InvalidImageError: If the copy cannot be identified
        """
        self._ensure_open()
        output_path = os.fspath(output_path)
        self._copy(self.path, output_path)
        self._verify(output_path)
        return self

    def to_bytes(self) -> bytes:
        """Return the current file contents."""
        self._ensure_open()
        try:
            with open(self.path, "rb") as f:
                return f.read()
        except OSError as e:
            raise ImageIOError(f"Cannot read {self.path}: {e}") from e

    # Lifecycle
    # ---------

    def close(self) -> None:
        """Release the owned temp file, if any. Idempotent."""
        if self._closed:
            return
        self._closed = True
        if self.tempfile is not None:
            self.temp_manager.release(self.tempfile)

    def __enter__(self) -> "Image":
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.close()

    def __repr__(self) -> str:
        owner = "owned" if self.tempfile is not None else "borrowed"
        state = " closed" if self._closed else ""
        return f"<Image {self.path!r} {owner}{state}>"

    # Helpers
    # -------

    def _run(self, verb: str, *args) -> CommandResult:
        self._ensure_open()
        result = self.runner.run(verb, *args)
        self.output = result.output
        return result

    def _identify(self, format_string: str) -> CommandResult:
        return self._run("identify", "-format", format_string, self.path)

    def _verify(self, path: str) -> None:
        try:
            self._run("identify", path)
        except ExternalToolError as e:
            raise InvalidImageError(path, e) from e

    def _ensure_open(self) -> None:
        # Only an owned file goes away on close
        if self._closed and self.tempfile is not None:
            raise ImageIOError(f"Image is closed: {self.path}")

    @staticmethod
    def _resolve_path(other: Union["Image", PathLike]) -> str:
        return other.path if isinstance(other, Image) else os.fspath(other)

    @staticmethod
    def _remove(path: str) -> None:
        try:
            os.remove(path)
        except OSError as e:
            raise ImageIOError(f"Cannot delete {path}: {e}") from e

    @staticmethod
    def _copy(source: str, destination: str) -> None:
        try:
            shutil.copyfile(source, destination)
        except OSError as e:
            raise ImageIOError(f"Cannot copy {source} to {destination}: {e}") from e
