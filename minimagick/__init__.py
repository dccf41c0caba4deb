"""minimagick: drive the ImageMagick command line tools from Python."""

from .exceptions import (
    MiniMagickError,
    ImageIOError,
    ExternalToolError,
    InvalidImageError,
    ConversionError,
)
from .image import Image
from .services import CommandBuilder, CommandRunner, TempFileManager

__version__ = "0.1.0"

__all__ = [
    "Image",
    "CommandBuilder",
    "CommandRunner",
    "TempFileManager",
    "MiniMagickError",
    "ImageIOError",
    "ExternalToolError",
    "InvalidImageError",
    "ConversionError",
]
