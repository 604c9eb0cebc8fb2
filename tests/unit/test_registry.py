"""Tests for operation selection and registration."""

from __future__ import annotations

import pytest

from toolbridge.engine.bridge import (
    Operation,
    build_operation_registry,
    canonicalize_tool_name,
    select_operations,
)
from toolbridge.engine.error_model import DuplicateOperationError


def _op(name: str) -> Operation:
    return Operation(name, f"{name} tool", {"type": "object", "properties": {}}, lambda p, t: name)


def test_duplicate_names_fail_at_startup() -> None:
    with pytest.raises(DuplicateOperationError) as info:
        build_operation_registry([_op("echo"), _op("echo")])
    assert info.value.name == "echo"


def test_registry_is_read_only() -> None:
    registry = build_operation_registry([_op("echo")])
    assert list(registry) == ["echo"]
    with pytest.raises(TypeError):
        registry["other"] = registry["echo"]  # type: ignore[index]


def test_aliases_canonicalize() -> None:
    assert canonicalize_tool_name("Shell") == "run_shell_command"
    assert canonicalize_tool_name("ReadFile") == "read_file"
    assert canonicalize_tool_name("WriteFile") == "write_file"
    assert canonicalize_tool_name("ReadFolder") == "list_directory"
    assert canonicalize_tool_name("ls") == "list_directory"
    assert canonicalize_tool_name(" read_file ") == "read_file"
    assert canonicalize_tool_name(None) == ""


def test_select_operations_with_allow_list() -> None:
    ops = [_op("run_shell_command"), _op("read_file"), _op("write_file")]
    selected = select_operations(ops, ["Shell", "read_file"])
    assert [op.name for op in selected] == ["run_shell_command", "read_file"]


def test_empty_allow_list_keeps_everything() -> None:
    ops = [_op("a"), _op("b")]
    assert select_operations(ops, []) == ops
    assert select_operations(ops, ["", "  "]) == ops
