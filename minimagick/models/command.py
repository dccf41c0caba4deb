"""Command invocation models for external tool calls."""

from dataclasses import dataclass, field
from typing import List


@dataclass
class CommandInvocation:
    """One call to the external tool: a verb and its ordered arguments."""
    verb: str
    args: List[str] = field(default_factory=list)

    def __post_init__(self):
        """Validate invocation parameters."""
        if not self.verb or not isinstance(self.verb, str):
            raise ValueError(f"Invalid verb: {self.verb!r}")

        # Arguments may be given as numbers or paths
        self.args = [str(arg) for arg in self.args]


@dataclass
class CommandResult:
    """Outcome of a finished external process."""
    invocation: CommandInvocation
    command: str  # Rendered invocation string, as logged
    output: str  # stdout and stderr merged
    exit_code: int = 0

    @property
    def succeeded(self) -> bool:
        """Whether the process exited with status 0."""
        return self.exit_code == 0

    @property
    def first_line(self) -> str:
        """First line of output, for queries that expect a single value."""
        lines = self.output.split("\n")
        return lines[0] if lines else ""
