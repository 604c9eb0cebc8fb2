"""The run_shell_command tool."""

from __future__ import annotations

from typing import Any

from toolbridge import config
from toolbridge.engine.bridge import Operation, ToolResponse
from toolbridge.engine.cancellation import CancellationToken
from toolbridge.engine.executor import ExecutionRequest, ExecutionResult, execute, resolve_working_directory
from toolbridge.utils.logging_utils import debug
from toolbridge.utils.path_utils import _truncate_middle

SHELL_DESCRIPTION = """Executes a shell command on the host system.

This tool allows you to run command-line utilities, scripts, and system commands.
It supports standard shell features like piping and redirection, allowing you to filter and process output directly.

### Capabilities

- Execution: Runs commands in a sub-shell (bash on Unix, cmd on Windows).
- Environment: Inherits the host environment variables.
- Output: Standard output and standard error are returned separately.

### Examples

1. Basic Execution
   List files in the current directory:
   ls -la

2. Searching and Filtering (Pipes)
   Find specific processes using grep:
   ps aux | grep python

3. File Operations (Redirection)
   Write command output to a file:
   echo "log entry" >> system.log

4. Chaining Commands
   Run multiple commands in sequence:
   pip install -e . && pytest

5. Processing JSON
   Use jq to extract data (if installed):
   cat data.json | jq .version"""

SHELL_INPUT_SCHEMA: dict[str, Any] = {
    "type": "object",
    "properties": {
        "command": {"type": "string", "description": "The command to execute"},
        "description": {"type": "string", "description": "Description of the command"},
        "dir_path": {"type": "string", "description": "Directory to execute in"},
    },
    "required": ["command"],
}

SHELL_OUTPUT_SCHEMA: dict[str, Any] = {
    "type": "object",
    "properties": {
        "command": {"type": "string"},
        "directory": {"type": "string"},
        "stdout": {"type": "string"},
        "stderr": {"type": "string"},
        "exitCode": {"type": ["number", "null"]},
        "signal": {"type": ["number", "null"]},
        "error": {"type": "string"},
    },
    "required": ["command", "directory", "stdout", "stderr", "exitCode", "signal"],
}


def shell_structured_output(command: str, directory: str, result: ExecutionResult) -> dict[str, Any]:
    limit = config.SHELL_OUTPUT_MAX_CHARS
    payload: dict[str, Any] = {
        "command": command,
        "directory": directory,
        "stdout": _truncate_middle(result.stdout, limit),
        "stderr": _truncate_middle(result.stderr, limit),
        "exitCode": result.exit_code,
        "signal": result.signal,
    }
    if result.error:
        payload["error"] = result.error
    return payload


def render_shell_output(payload: dict[str, Any]) -> str:
    def _or(value: Any, placeholder: str) -> str:
        if value is None or value == "":
            return placeholder
        return str(value)

    return "\n".join(
        [
            f"Command: {payload['command']}",
            f"Directory: {payload['directory']}",
            f"Stdout: {_or(payload['stdout'], '(empty)')}",
            f"Stderr: {_or(payload['stderr'], '(empty)')}",
            f"Error: {_or(payload.get('error'), '(none)')}",
            f"Exit Code: {_or(payload['exitCode'], '(none)')}",
            f"Signal: {_or(payload['signal'], '(none)')}",
        ]
    )


async def run_shell_command(params: dict[str, Any], cancellation: CancellationToken) -> ToolResponse:
    command = params["command"]
    cwd = resolve_working_directory(params.get("dir_path"))
    if params.get("description"):
        debug(f"run_shell_command: {params['description']}")

    result = await execute(
        ExecutionRequest(
            command=command,
            working_directory=cwd,
            use_pty=config.SHELL_USE_PTY,
            cancellation=cancellation,
        )
    )
    payload = shell_structured_output(command, str(cwd), result)
    return ToolResponse.from_text(render_shell_output(payload), structured_content=payload)


def shell_operations() -> list[Operation]:
    return [
        Operation(
            name="run_shell_command",
            description=SHELL_DESCRIPTION,
            parameters=SHELL_INPUT_SCHEMA,
            handler=run_shell_command,
            output_schema=SHELL_OUTPUT_SCHEMA,
        )
    ]


__all__ = [
    "SHELL_INPUT_SCHEMA",
    "SHELL_OUTPUT_SCHEMA",
    "run_shell_command",
    "render_shell_output",
    "shell_structured_output",
    "shell_operations",
]
