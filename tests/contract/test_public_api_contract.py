"""Contract tests for the stable public engine API."""

from __future__ import annotations

import importlib

EXPECTED_API = [
    "BridgeServer",
    "CancellationToken",
    "ExecutionRequest",
    "ExecutionResult",
    "Operation",
    "ToolResponse",
    "build_server",
    "compile_schema",
    "compile_shape",
    "decode_params",
    "execute",
    "parse_schema",
    "serve_stdio",
    "strip_shell_wrapper",
]


def test_engine_api_exports() -> None:
    api = importlib.import_module("toolbridge.engine.api")
    missing = [name for name in EXPECTED_API if not hasattr(api, name)]
    assert not missing, f"toolbridge.engine.api missing exports: {missing}"


def test_engine_package_reexports_api() -> None:
    pkg = importlib.import_module("toolbridge.engine")
    api = importlib.import_module("toolbridge.engine.api")
    missing = [name for name in EXPECTED_API if not hasattr(pkg, name)]
    assert not missing, f"toolbridge.engine missing re-exports: {missing}"
    assert sorted(pkg.__all__) == sorted(api.__all__)
    assert pkg.BridgeServer is api.BridgeServer
