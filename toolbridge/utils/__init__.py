"""Shared utility helpers used across toolbridge modules."""

from toolbridge.utils.logging_utils import (
    debug,
    get_exec_log_path,
    log_event,
    reset_exec_log,
    warn,
)
from toolbridge.utils.path_utils import (
    _resolve_dir,
    _resolve_path,
    _shell_command,
    _stringify_result,
    _truncate_middle,
)

__all__ = [
    "log_event",
    "get_exec_log_path",
    "reset_exec_log",
    "warn",
    "debug",
    "_resolve_dir",
    "_resolve_path",
    "_shell_command",
    "_stringify_result",
    "_truncate_middle",
]
