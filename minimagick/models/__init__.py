"""minimagick data models."""

from .command import CommandInvocation, CommandResult

__all__ = [
    "CommandInvocation",
    "CommandResult",
]
