"""Stable public API for the bridge engine.

Upper layers (``cli``, ``toolbridge.tools``) import from here rather than
from the split internal modules.
"""

from __future__ import annotations

from typing import Any, Iterable, Mapping

from toolbridge.engine.bridge import (
    BridgeServer,
    Operation,
    ToolRegistration,
    ToolResponse,
    build_operation_registry,
    open_stdio_transport,
    select_operations,
)
from toolbridge.engine.cancellation import CancellationToken
from toolbridge.engine.error_model import (
    DuplicateOperationError,
    InvalidParamsError,
    ProtocolError,
    ValidationError,
)
from toolbridge.engine.executor import (
    ExecutionRequest,
    ExecutionResult,
    OutputChunk,
    execute,
    resolve_working_directory,
    strip_shell_wrapper,
)
from toolbridge.engine.schema_compiler import ParameterShape, compile_schema, compile_shape, parse_schema


def build_server(
    operations: Iterable[Operation],
    *,
    enabled: Iterable[str] = (),
    name: str | None = None,
    version: str | None = None,
) -> BridgeServer:
    registry = build_operation_registry(select_operations(operations, enabled))
    return BridgeServer(registry, name=name, version=version)


async def serve_stdio(server: BridgeServer) -> None:
    transport = await open_stdio_transport()
    try:
        await server.serve(transport)
    finally:
        transport.close()


def decode_params(schema: Mapping[str, Any], params: Any) -> dict[str, Any]:
    return compile_shape(schema).decode(params)


__all__ = [
    "BridgeServer",
    "CancellationToken",
    "DuplicateOperationError",
    "ExecutionRequest",
    "ExecutionResult",
    "InvalidParamsError",
    "Operation",
    "OutputChunk",
    "ParameterShape",
    "ProtocolError",
    "ToolRegistration",
    "ToolResponse",
    "ValidationError",
    "build_server",
    "compile_schema",
    "compile_shape",
    "decode_params",
    "execute",
    "parse_schema",
    "resolve_working_directory",
    "serve_stdio",
    "strip_shell_wrapper",
]
