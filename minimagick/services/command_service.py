"""Command service for running the external image tool.

Builds a command line from a verb and its arguments, runs it to completion,
and captures stdout and stderr merged into a single stream. The exit status
is the only success signal: anything but 0 raises ExternalToolError.

Quoting rule (kept as documented behavior for logs, errors and shell mode):
an argument that does not start with '+' or '-' is wrapped in double quotes;
flag-like arguments pass through unquoted. In argument-vector mode (the
default) no shell is involved: a flag-like token is split once, at its first
whitespace, so '-quality 80' reaches the tool as two arguments and
'-font DejaVu Sans' keeps its value whole.
"""

import logging
import os
import subprocess
import sys
from typing import List, Optional, Sequence

from minimagick.config import settings
from minimagick.exceptions import ExternalToolError
from minimagick.models.command import CommandInvocation, CommandResult


logger = logging.getLogger(__name__)

# Exit status reported when the tool executable cannot be found
COMMAND_NOT_FOUND = 127


def is_flag(arg: str) -> bool:
    """Whether an argument is a switch ('-resize', '+repage')."""
    return arg.startswith(("+", "-"))


def quote_arg(arg: str) -> str:
    """Quote an argument for the shell string, leaving switches bare."""
    arg = str(arg)
    if is_flag(arg):
        return arg
    return f'"{arg}"'


def expand_args(args: Sequence[str]) -> List[str]:
    """Split each flag token into switch and value; keep other arguments intact."""
    expanded = []
    for arg in args:
        arg = str(arg)
        if is_flag(arg):
            expanded.extend(arg.split(None, 1))
        else:
            expanded.append(arg)
    return expanded


class CommandRunner:
    """
    Service executing external tool invocations.

    Every call spawns one process and blocks until it exits. No timeout or
    retry is applied.
    """

    def __init__(self, prefix: Optional[Sequence[str]] = None, use_shell: Optional[bool] = None):
        """
        Initialize the command runner.

        Args:
            prefix: Words placed before the verb (['magick'] for ImageMagick 7,
                ['gm'] for GraphicsMagick). Defaults to MINIMAGICK_CLI_PREFIX.
            use_shell: Run through the shell with the quoted command string
                instead of an argument vector. Defaults to MINIMAGICK_USE_SHELL.
        """
        self.prefix = list(prefix) if prefix is not None else settings.cli_prefix
        self.use_shell = settings.MINIMAGICK_USE_SHELL if use_shell is None else use_shell

    @staticmethod
    def windows() -> bool:
        """Check whether we are running on Windows, where escaping differs."""
        return sys.platform.startswith("win") or os.name == "nt"

    def line_terminator(self) -> str:
        """
        Line terminator to put at the end of a -format string.

        The tool expands the two characters '\\n' into a newline. A POSIX shell
        would collapse a single backslash inside double quotes, so in shell
        mode the backslash is doubled there; Windows shells and argument
        vectors pass it through unchanged.
        """
        if self.use_shell and not self.windows():
            return "\\\\n"
        return "\\n"

    def format_option(self, format_string: str) -> str:
        """Append the platform line terminator to a -format string."""
        return f"{format_string}{self.line_terminator()}"

    def format_command(self, verb: str, args: Sequence[str]) -> str:
        """Render the invocation string with the documented quoting rule."""
        words = self.prefix + [verb] + [quote_arg(arg) for arg in args]
        return " ".join(words)

    def build_argv(self, invocation: CommandInvocation) -> List[str]:
        """Build the argument vector for a shell-free spawn."""
        return self.prefix + [invocation.verb] + expand_args(invocation.args)

    def run(self, verb: str, *args) -> CommandResult:
        """
        Run one external tool invocation.

        Args:
            verb: Tool subcommand (identify, convert, mogrify, composite)
            *args: Ordered arguments

        Returns:
            CommandResult: Merged output and exit status

        Raises:
            ExternalToolError: If the process exits non-zero or cannot start
        """
        invocation = CommandInvocation(verb=verb, args=list(args))
        command = self.format_command(invocation.verb, invocation.args)
        logger.debug(f"Running: {command}")

        try:
            if self.use_shell:
                process = subprocess.run(
                    command,
                    shell=True,
                    stdout=subprocess.PIPE,
                    stderr=subprocess.STDOUT
                )
            else:
                process = subprocess.run(
                    self.build_argv(invocation),
                    stdout=subprocess.PIPE,
                    stderr=subprocess.STDOUT
                )
        except FileNotFoundError as e:
            logger.error(f"External tool not found for command {command}: {e}")
            raise ExternalToolError(command, COMMAND_NOT_FOUND, str(e)) from e

        output = process.stdout.decode("utf-8", errors="replace")
        result = CommandResult(
            invocation=invocation,
            command=command,
            output=output,
            exit_code=process.returncode
        )

        if not result.succeeded:
            logger.error(f"Command failed with exit code {result.exit_code}: {command}")
            raise ExternalToolError(command, result.exit_code, output)

        return result


_command_runner: Optional[CommandRunner] = None


def get_command_runner() -> CommandRunner:
    """Get or create global command runner instance."""
    global _command_runner
    if _command_runner is None:
        _command_runner = CommandRunner()
    return _command_runner
