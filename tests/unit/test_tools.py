"""Tests for the built-in shell and file tools, driven through the adapter."""

from __future__ import annotations

import asyncio
import os
from pathlib import Path
from typing import Any

import pytest

from toolbridge.engine.bridge import ToolResponse, build_operation_registry
from toolbridge.engine.cancellation import CancellationToken
from toolbridge.engine.error_model import ProtocolError
from toolbridge.tools import default_operations
from toolbridge.tools.shell import render_shell_output

posix_only = pytest.mark.skipif(os.name != "posix", reason="needs a POSIX shell")


def _call(name: str, arguments: dict[str, Any], token: CancellationToken | None = None) -> ToolResponse:
    registry = build_operation_registry(default_operations())
    return asyncio.run(registry[name].invoke(arguments, token or CancellationToken()))


@posix_only
def test_shell_command_structured_output(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.chdir(tmp_path)
    response = _call("run_shell_command", {"command": "echo out; echo err >&2; exit 3"})
    payload = response.structured_content
    assert not response.is_error
    assert payload == {
        "command": "echo out; echo err >&2; exit 3",
        "directory": str(Path.cwd()),
        "stdout": "out\n",
        "stderr": "err\n",
        "exitCode": 3,
        "signal": None,
    }
    assert "Exit Code: 3" in response.text
    assert "Signal: (none)" in response.text
    assert response.to_dict()["structuredContent"]["exitCode"] == 3


@posix_only
def test_shell_command_relative_dir_path(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    (tmp_path / "sub").mkdir()
    monkeypatch.chdir(tmp_path)
    response = _call("run_shell_command", {"command": "pwd", "dir_path": "sub", "description": "where am I"})
    payload = response.structured_content
    assert payload["directory"] == str(Path.cwd() / "sub")
    assert Path(payload["stdout"].strip()).resolve() == (tmp_path / "sub").resolve()


def test_shell_command_missing_directory_reports_error(tmp_path: Path) -> None:
    response = _call("run_shell_command", {"command": "echo hi", "dir_path": str(tmp_path / "gone")})
    payload = response.structured_content
    assert payload["exitCode"] is None
    assert payload["signal"] is None
    assert "does not exist" in payload["error"]
    assert "Error: " in response.text


def test_shell_command_requires_command() -> None:
    registry = build_operation_registry(default_operations())
    with pytest.raises(ProtocolError):
        asyncio.run(registry["run_shell_command"].invoke({"dir_path": "."}, CancellationToken()))


def test_render_shell_output_placeholders() -> None:
    text = render_shell_output(
        {
            "command": "true",
            "directory": "/tmp",
            "stdout": "",
            "stderr": "",
            "exitCode": 0,
            "signal": None,
        }
    )
    assert text.splitlines() == [
        "Command: true",
        "Directory: /tmp",
        "Stdout: (empty)",
        "Stderr: (empty)",
        "Error: (none)",
        "Exit Code: 0",
        "Signal: (none)",
    ]


def test_shell_tool_declares_output_schema() -> None:
    registry = build_operation_registry(default_operations())
    described = registry["run_shell_command"].describe()
    assert described["inputSchema"]["required"] == ["command"]
    assert set(described["outputSchema"]["properties"]) == {
        "command",
        "directory",
        "stdout",
        "stderr",
        "exitCode",
        "signal",
        "error",
    }


def test_write_then_read_file(tmp_path: Path) -> None:
    target = tmp_path / "nested" / "notes.txt"
    created = _call("write_file", {"file_path": str(target), "content": "one\ntwo\nthree\n"})
    assert not created.is_error
    assert "created" in created.text
    overwritten = _call("write_file", {"file_path": str(target), "content": "one\ntwo\nthree\n"})
    assert "overwrote" in overwritten.text

    assert _call("read_file", {"file_path": str(target)}).text == "one\ntwo\nthree"
    ranged = _call("read_file", {"file_path": str(target), "offset": 1, "limit": 1}).text
    assert ranged.splitlines() == ["[showing lines 2-2 of 3]", "two"]
    tail = _call("read_file", {"file_path": str(target), "offset": 1}).text
    assert tail == "two\nthree"


def test_read_missing_file_is_error_response(tmp_path: Path) -> None:
    response = _call("read_file", {"file_path": str(tmp_path / "absent.txt")})
    assert response.is_error
    assert response.text.startswith("Error: File not found")


def test_list_directory_orders_and_ignores(tmp_path: Path) -> None:
    (tmp_path / "b_dir").mkdir()
    (tmp_path / "a.txt").write_text("a", encoding="utf-8")
    (tmp_path / "skip.log").write_text("x", encoding="utf-8")
    response = _call("list_directory", {"dir_path": str(tmp_path), "ignore": ["*.log"]})
    lines = response.text.splitlines()
    assert lines[1:] == ["b_dir/", "a.txt"]


def test_list_directory_rejects_bad_ignore_items(tmp_path: Path) -> None:
    registry = build_operation_registry(default_operations())
    with pytest.raises(ProtocolError) as info:
        asyncio.run(
            registry["list_directory"].invoke({"dir_path": str(tmp_path), "ignore": ["ok", 3]}, CancellationToken())
        )
    assert info.value.data["errors"][0]["field"] == "ignore[1]"


def test_list_empty_directory(tmp_path: Path) -> None:
    response = _call("list_directory", {"dir_path": str(tmp_path)})
    assert response.text == f"Directory {tmp_path} is empty."


def test_read_only_tools_carry_annotations() -> None:
    registry = build_operation_registry(default_operations())
    assert registry["read_file"].describe()["annotations"] == {"readOnlyHint": True}
    assert "annotations" not in registry["write_file"].describe()
