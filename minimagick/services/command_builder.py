"""Argument building for the external tool's option syntax."""

from typing import Any, Dict, List, Mapping, Optional


def merge_options(options: Optional[Mapping[str, Any]] = None, **kwargs) -> Dict[str, Any]:
    """Merge a mapping and keyword options, mapping first, keeping insertion order."""
    merged: Dict[str, Any] = {}
    if options:
        merged.update(options)
    merged.update(kwargs)
    return merged


def options_to_args(options: Optional[Mapping[str, Any]]) -> List[str]:
    """
    Convert an option mapping into flag tokens.

    Each pair becomes one '-<key> <value>' token, in the mapping's iteration
    order (insertion order for dicts).

    >>> options_to_args({"gravity": "center", "geometry": "+10+10"})
    ['-gravity center', '-geometry +10+10']
    """
    if not options:
        return []
    return [f"-{key} {value}" for key, value in options.items()]


class CommandBuilder:
    """
    Accumulates several flags for a single invocation.

    Use it when one process should apply several operations, rather than
    spawning one process per flag:

        builder = CommandBuilder()
        builder.append("resize", "50%").append("quality", 80).append_plus("repage")
        builder.args  # ['-resize', '50%', '-quality', '80', '+repage']
    """

    def __init__(self):
        self._args: List[str] = []

    @property
    def args(self) -> List[str]:
        return list(self._args)

    def append(self, name: str, *values) -> "CommandBuilder":
        """Append '-<name>' followed by any values."""
        self._args.append(f"-{name}")
        self._args.extend(str(value) for value in values)
        return self

    def append_plus(self, value: str) -> "CommandBuilder":
        """Append the '+<value>' form, which resets or disables an option."""
        self._args.append(f"+{value}")
        return self

    def extend_options(self, options: Optional[Mapping[str, Any]]) -> "CommandBuilder":
        """Append one '-<key> <value>' token per option."""
        self._args.extend(options_to_args(options))
        return self

    def __len__(self) -> int:
        return len(self._args)

    def __repr__(self) -> str:
        return f"<CommandBuilder {self._args!r}>"
