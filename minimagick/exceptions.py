"""Error kinds raised by minimagick.

Every failure surfaces as one of a small closed set of exceptions so callers
can branch on the failure category instead of matching message text.
"""

from typing import Optional


class MiniMagickError(Exception):
    """Base exception for all minimagick operations."""
    pass


class ImageIOError(MiniMagickError, OSError):
    """Raised when a temp file or filesystem access fails."""
    pass


class ExternalToolError(MiniMagickError):
    """Raised when the external tool exits with a non-zero status."""

    def __init__(self, command: str, exit_code: int, output: str):
        self.command = command
        self.exit_code = exit_code
        self.output = output
        super().__init__(
            f"ImageMagick command ({command!r}) failed: "
            f"{{'status_code': {exit_code}, 'output': {output!r}}}"
        )


class InvalidImageError(MiniMagickError):
    """Raised when a file is not an image the external tool can identify."""

    def __init__(self, path: str, cause: Optional[ExternalToolError] = None):
        self.path = path
        self.cause = cause
        message = f"Not a valid image: {path}"
        if cause is not None:
            message = f"{message} ({cause.output.strip() or f'exit code {cause.exit_code}'})"
        super().__init__(message)


class ConversionError(MiniMagickError):
    """Raised when a format conversion produced no usable output file."""

    def __init__(self, path: str, format: str):
        self.path = path
        self.format = format
        super().__init__(f"Unable to format to {format}")
