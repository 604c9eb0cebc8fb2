"""Operation declarations and the bridge's registration table."""

from __future__ import annotations

from dataclasses import dataclass, field
from types import MappingProxyType
from typing import TYPE_CHECKING, Any, Callable, Iterable, Mapping

from ..cancellation import CancellationToken
from ..error_model import DuplicateOperationError

if TYPE_CHECKING:
    from .adapter import ToolRegistration

Handler = Callable[[dict[str, Any], CancellationToken], Any]

_TOOL_NAME_ALIASES: dict[str, str] = {
    "shell": "run_shell_command",
    "readfile": "read_file",
    "writefile": "write_file",
    "readfolder": "list_directory",
    "ls": "list_directory",
    "list_dir": "list_directory",
}


@dataclass(frozen=True)
class Operation:
    name: str
    description: str
    parameters: Mapping[str, Any]
    handler: Handler
    output_schema: Mapping[str, Any] | None = None
    annotations: Mapping[str, Any] = field(default_factory=dict)


def canonicalize_tool_name(raw_name: Any) -> str:
    name = str(raw_name or "").strip()
    if not name:
        return ""
    return _TOOL_NAME_ALIASES.get(name.lower(), name)


def select_operations(operations: Iterable[Operation], enabled: Iterable[str]) -> list[Operation]:
    """Keep the operations named in *enabled* (aliases allowed).

    An empty *enabled* keeps everything.
    """
    wanted = {canonicalize_tool_name(name) for name in enabled}
    wanted.discard("")
    ops = list(operations)
    if not wanted:
        return ops
    return [op for op in ops if op.name in wanted]


def build_operation_registry(operations: Iterable[Operation]) -> Mapping[str, ToolRegistration]:
    """Adapt every operation and index the result by name.

    Raises ``DuplicateOperationError`` when two operations share a name.
    The returned mapping is read-only.
    """
    from .adapter import adapt_operation

    registry: dict[str, ToolRegistration] = {}
    for op in operations:
        if op.name in registry:
            raise DuplicateOperationError(op.name)
        registry[op.name] = adapt_operation(op)
    return MappingProxyType(registry)


__all__ = [
    "Handler",
    "Operation",
    "canonicalize_tool_name",
    "select_operations",
    "build_operation_registry",
]
