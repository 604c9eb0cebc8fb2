"""Process execution submodules."""

from .shell_execution import (
    ExecutionRequest,
    ExecutionResult,
    ExecutionState,
    OutputChunk,
    execute,
    resolve_working_directory,
    strip_shell_wrapper,
)

__all__ = [
    "ExecutionRequest",
    "ExecutionResult",
    "ExecutionState",
    "OutputChunk",
    "execute",
    "resolve_working_directory",
    "strip_shell_wrapper",
]
