"""File tools: read_file, write_file and list_directory.

Paths resolve against the server's working directory. Failures (missing
file, wrong kind of path) raise, and the adapter reports them as error
responses.
"""

from __future__ import annotations

import fnmatch
from pathlib import Path
from typing import Any

from toolbridge.engine.bridge import Operation
from toolbridge.engine.cancellation import CancellationToken
from toolbridge.utils.path_utils import _resolve_dir, _resolve_path

READ_FILE_SCHEMA: dict[str, Any] = {
    "type": "object",
    "properties": {
        "file_path": {"type": "string", "description": "Path of the file to read."},
        "offset": {
            "type": "integer",
            "description": (
                "0-based line number to start reading from. "
                "Without 'limit', reads to the end of the file."
            ),
        },
        "limit": {"type": "integer", "description": "Maximum number of lines to read."},
    },
    "required": ["file_path"],
}

WRITE_FILE_SCHEMA: dict[str, Any] = {
    "type": "object",
    "properties": {
        "file_path": {"type": "string", "description": "Path of the file to write."},
        "content": {"type": "string", "description": "Content to write to the file."},
    },
    "required": ["file_path", "content"],
}

LIST_DIRECTORY_SCHEMA: dict[str, Any] = {
    "type": "object",
    "properties": {
        "dir_path": {"type": "string", "description": "Directory to list. Defaults to the server cwd."},
        "ignore": {
            "type": "array",
            "items": {"type": "string"},
            "description": "Glob patterns of entry names to leave out.",
        },
    },
}


def _sorted_entries(path: Path) -> list[Path]:
    return sorted(path.iterdir(), key=lambda x: (not x.is_dir(), x.name.lower()))


def read_file(params: dict[str, Any], cancellation: CancellationToken) -> str:
    path = _resolve_path(Path.cwd(), params["file_path"])
    if not path.exists():
        raise FileNotFoundError(f"File not found: {path}")
    if not path.is_file():
        raise IsADirectoryError(f"Path is not a file: {path}")
    lines = path.read_text(encoding="utf-8", errors="replace").splitlines()

    offset = params.get("offset")
    limit = params.get("limit")
    if offset is None and limit is None:
        return "\n".join(lines)
    start = max(0, int(offset or 0))
    if start > len(lines) and lines:
        raise ValueError(f"offset {start} is beyond the end of the file ({len(lines)} lines)")
    end = len(lines) if limit is None else start + max(0, int(limit))
    selected = lines[start:end]
    if end < len(lines):
        header = f"[showing lines {start + 1}-{start + len(selected)} of {len(lines)}]"
        return "\n".join([header, *selected])
    return "\n".join(selected)


def write_file(params: dict[str, Any], cancellation: CancellationToken) -> str:
    path = _resolve_path(Path.cwd(), params["file_path"])
    if path.is_dir():
        raise IsADirectoryError(f"Path is a directory: {path}")
    existed = path.exists()
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(str(params["content"]), encoding="utf-8")
    if existed:
        return f"Successfully overwrote file: {path}"
    return f"Successfully created and wrote to new file: {path}"


def list_directory(params: dict[str, Any], cancellation: CancellationToken) -> str:
    path = _resolve_dir(Path.cwd(), params.get("dir_path"))
    if not path.exists():
        raise FileNotFoundError(f"Directory not found: {path}")
    if not path.is_dir():
        raise NotADirectoryError(f"Path is not a directory: {path}")
    patterns = params.get("ignore") or []
    entries = [
        f"{entry.name}{'/' if entry.is_dir() else ''}"
        for entry in _sorted_entries(path)
        if not any(fnmatch.fnmatch(entry.name, pattern) for pattern in patterns)
    ]
    if not entries:
        return f"Directory {path} is empty."
    return "\n".join([f"Directory listing for {path}:", *entries])


def filesystem_operations() -> list[Operation]:
    return [
        Operation(
            name="read_file",
            description=(
                "Reads and returns the content of a text file. For large files, "
                "use 'offset' and 'limit' to read a range of lines."
            ),
            parameters=READ_FILE_SCHEMA,
            handler=read_file,
            annotations={"readOnlyHint": True},
        ),
        Operation(
            name="write_file",
            description=(
                "Writes content to a file, creating parent directories as needed. "
                "An existing file is overwritten."
            ),
            parameters=WRITE_FILE_SCHEMA,
            handler=write_file,
        ),
        Operation(
            name="list_directory",
            description=(
                "Lists the names of files and subdirectories directly within a "
                "directory. Directories are listed first and marked with a trailing '/'."
            ),
            parameters=LIST_DIRECTORY_SCHEMA,
            handler=list_directory,
            annotations={"readOnlyHint": True},
        ),
    ]


__all__ = [
    "read_file",
    "write_file",
    "list_directory",
    "filesystem_operations",
]
