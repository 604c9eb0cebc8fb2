"""Operation registration, adaptation and the JSON-RPC server."""

from .adapter import ToolRegistration, ToolResponse, adapt_operation, to_tool_response
from .registry import Operation, build_operation_registry, canonicalize_tool_name, select_operations
from .server import BridgeServer
from .transport import JsonRpcStdioTransport, open_stdio_transport

__all__ = [
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
