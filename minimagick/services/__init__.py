"""minimagick services."""

from .tempfile_service import TempFile, TempFileManager, get_temp_file_manager
from .command_service import CommandRunner, get_command_runner
from .command_builder import CommandBuilder, options_to_args
from .loader_service import LoaderService, get_loader_service

__all__ = [
    "TempFile",
    "TempFileManager",
    "get_temp_file_manager",
    "CommandRunner",
    "get_command_runner",
    "CommandBuilder",
    "options_to_args",
    "LoaderService",
    "get_loader_service",
]
