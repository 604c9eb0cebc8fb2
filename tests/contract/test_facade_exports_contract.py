"""Contract tests for sub-package facades."""

from __future__ import annotations

import importlib


def test_bridge_package_exports() -> None:
    mod = importlib.import_module("toolbridge.engine.bridge")
    expected = [
        "Operation",
        "ToolRegistration",
        "ToolResponse",
        "BridgeServer",
        "JsonRpcStdioTransport",
        "adapt_operation",
        "to_tool_response",
        "build_operation_registry",
        "canonicalize_tool_name",
        "select_operations",
        "open_stdio_transport",
    ]
    missing = [name for name in expected if not hasattr(mod, name)]
    assert not missing, f"toolbridge.engine.bridge missing exports: {missing}"


def test_executor_package_exports() -> None:
    mod = importlib.import_module("toolbridge.engine.executor")
    expected = [
        "ExecutionRequest",
        "ExecutionResult",
        "ExecutionState",
        "OutputChunk",
        "execute",
        "resolve_working_directory",
        "strip_shell_wrapper",
    ]
    missing = [name for name in expected if not hasattr(mod, name)]
    assert not missing, f"toolbridge.engine.executor missing exports: {missing}"


def test_utils_package_exports() -> None:
    mod = importlib.import_module("toolbridge.utils")
    for name in mod.__all__:
        assert hasattr(mod, name), name


def test_default_operations_names() -> None:
    tools = importlib.import_module("toolbridge.tools")
    names = [op.name for op in tools.default_operations()]
    assert names == ["run_shell_command", "read_file", "write_file", "list_directory"]
