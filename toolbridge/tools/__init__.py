"""Built-in operations served by the bridge."""

from toolbridge.engine.bridge import Operation

from .filesystem import filesystem_operations
from .shell import shell_operations


def default_operations() -> list[Operation]:
    return [*shell_operations(), *filesystem_operations()]


__all__ = ["default_operations", "filesystem_operations", "shell_operations"]
