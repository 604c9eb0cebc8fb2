"""Adapter between declared operations and the protocol's tool calls.

``adapt_operation`` compiles an operation's parameter schema once and
wraps its handler in an ``invoke`` closure that:

1. decodes the raw arguments (failures become ``ProtocolError`` before
   the handler runs);
2. calls the handler with the decoded arguments and the call's
   cancellation token;
3. turns whatever the handler returned into a ``ToolResponse``.

A handler that raises never escapes ``invoke``: the fault is converted
into an error-flagged response here and nowhere else.
"""

from __future__ import annotations

import asyncio
import inspect
import time
from collections.abc import Mapping
from dataclasses import dataclass, field
from typing import Any, Awaitable, Callable

from toolbridge.utils.logging_utils import log_event
from toolbridge.utils.path_utils import _stringify_result

from ..cancellation import CancellationToken
from ..error_model import (
    INVALID_PARAMS,
    InvalidParamsError,
    ProtocolError,
    error_detail_payload,
    format_error,
)
from ..schema_compiler import ParameterShape, compile_shape
from .registry import Operation


@dataclass(frozen=True)
class ToolResponse:
    content: tuple[dict[str, Any], ...]
    is_error: bool = False
    structured_content: Mapping[str, Any] | None = None

    @classmethod
    def from_text(
        cls,
        text: str,
        *,
        is_error: bool = False,
        structured_content: Mapping[str, Any] | None = None,
    ) -> ToolResponse:
        return cls(
            content=({"type": "text", "text": text},),
            is_error=is_error,
            structured_content=structured_content,
        )

    @property
    def text(self) -> str:
        return "\n".join(
            str(item.get("text", "")) for item in self.content if item.get("type") == "text"
        )

    def to_dict(self) -> dict[str, Any]:
        payload: dict[str, Any] = {
            "content": [dict(item) for item in self.content],
            "isError": self.is_error,
        }
        if self.structured_content is not None:
            payload["structuredContent"] = dict(self.structured_content)
        return payload


Invoke = Callable[[Any, CancellationToken], Awaitable[ToolResponse]]


@dataclass(frozen=True)
class ToolRegistration:
    name: str
    description: str
    shape: ParameterShape
    output_schema: Mapping[str, Any] | None
    invoke: Invoke
    annotations: Mapping[str, Any] = field(default_factory=dict)

    @property
    def input_schema(self) -> dict[str, Any]:
        return self.shape.to_json_schema()

    def describe(self) -> dict[str, Any]:
        entry: dict[str, Any] = {
            "name": self.name,
            "description": self.description,
            "inputSchema": self.input_schema,
        }
        if self.output_schema is not None:
            entry["outputSchema"] = dict(self.output_schema)
        if self.annotations:
            entry["annotations"] = dict(self.annotations)
        return entry


def _part_text(part: Any) -> str:
    if isinstance(part, str):
        return part
    if isinstance(part, Mapping) and "text" in part:
        text = part["text"]
        return text if isinstance(text, str) else _stringify_result(text)
    return _stringify_result(part)


def to_tool_response(result: Any) -> ToolResponse:
    """Render a handler's return value as protocol content."""
    if isinstance(result, ToolResponse):
        return result
    if isinstance(result, str):
        return ToolResponse.from_text(result)
    if isinstance(result, (list, tuple)):
        return ToolResponse.from_text("\n".join(_part_text(part) for part in result))
    return ToolResponse.from_text(_stringify_result(result))


async def _call_handler(op: Operation, params: dict[str, Any], token: CancellationToken) -> Any:
    if inspect.iscoroutinefunction(op.handler):
        return await op.handler(params, token)
    # Sync handlers run in a worker thread.
    result = await asyncio.to_thread(op.handler, params, token)
    if inspect.isawaitable(result):
        result = await result
    return result


def adapt_operation(op: Operation) -> ToolRegistration:
    shape = compile_shape(op.parameters)

    async def invoke(raw_params: Any, token: CancellationToken) -> ToolResponse:
        try:
            params = shape.decode(raw_params)
        except InvalidParamsError as exc:
            log_event("tool_call_invalid_params", tool=op.name, **exc.to_dict())
            raise ProtocolError(
                INVALID_PARAMS,
                f"Invalid arguments for tool {op.name}: {exc}",
                data=exc.to_dict(),
            ) from exc

        log_event("tool_call_start", tool=op.name)
        started = time.monotonic()
        try:
            response = to_tool_response(await _call_handler(op, params, token))
        except Exception as exc:
            log_event("tool_call_fault", tool=op.name, **error_detail_payload(exc))
            return ToolResponse.from_text(
                format_error(str(exc) or type(exc).__name__),
                is_error=True,
            )
        log_event(
            "tool_call_end",
            tool=op.name,
            is_error=response.is_error,
            duration_ms=int((time.monotonic() - started) * 1000),
        )
        return response

    return ToolRegistration(
        name=op.name,
        description=op.description,
        shape=shape,
        output_schema=op.output_schema,
        invoke=invoke,
        annotations=op.annotations,
    )


__all__ = [
    "ToolResponse",
    "ToolRegistration",
    "to_tool_response",
    "adapt_operation",
]
