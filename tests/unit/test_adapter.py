"""Tests for operation adaptation and result conversion."""

from __future__ import annotations

import asyncio
from typing import Any

import pytest

from toolbridge.engine.bridge import Operation, ToolResponse, adapt_operation, to_tool_response
from toolbridge.engine.cancellation import CancellationToken
from toolbridge.engine.error_model import INVALID_PARAMS, ProtocolError

NAME_SCHEMA = {
    "type": "object",
    "properties": {"name": {"type": "string"}},
    "required": ["name"],
}


def _invoke(op: Operation, params: Any) -> ToolResponse:
    registration = adapt_operation(op)
    return asyncio.run(registration.invoke(params, CancellationToken()))


def test_string_result_becomes_single_text_item() -> None:
    op = Operation("echo", "Echo", {"type": "object", "properties": {}}, lambda params, token: "hello")
    response = _invoke(op, {})
    assert response.to_dict() == {"content": [{"type": "text", "text": "hello"}], "isError": False}


def test_async_handler_is_awaited() -> None:
    async def handler(params: dict[str, Any], token: CancellationToken) -> str:
        await asyncio.sleep(0)
        return f"hi {params['name']}"

    response = _invoke(Operation("greet", "Greet", NAME_SCHEMA, handler), {"name": "ada"})
    assert response.text == "hi ada"
    assert not response.is_error


def test_handler_receives_the_call_token() -> None:
    seen: list[CancellationToken] = []

    def handler(params: dict[str, Any], token: CancellationToken) -> str:
        seen.append(token)
        return "ok"

    registration = adapt_operation(Operation("probe", "", {}, handler))
    token = CancellationToken()
    asyncio.run(registration.invoke({}, token))
    assert seen == [token]


def test_parts_are_flattened_with_fallback_serialization() -> None:
    result = [{"text": "first"}, "second", {"inlineData": {"mimeType": "image/png"}}]
    response = to_tool_response(result)
    assert response.text == 'first\nsecond\n{"inlineData": {"mimeType": "image/png"}}'


def test_part_text_key_wins_even_when_not_a_string() -> None:
    result = [{"text": 42, "extra": "ignored"}, {"text": ["a", "b"]}]
    assert to_tool_response(result).text == '42\n["a", "b"]'


def test_other_values_are_serialized_wholesale() -> None:
    assert to_tool_response({"count": 2}).text == '{"count": 2}'
    assert to_tool_response(None).text == "null"
    assert to_tool_response(3).text == "3"


def test_tool_response_passes_through() -> None:
    response = ToolResponse.from_text("x", structured_content={"a": 1})
    assert to_tool_response(response) is response
    assert response.to_dict()["structuredContent"] == {"a": 1}


def test_handler_fault_becomes_error_response() -> None:
    def handler(params: dict[str, Any], token: CancellationToken) -> str:
        raise RuntimeError("disk on fire")

    response = _invoke(Operation("broken", "", {}, handler), {})
    assert response.is_error
    assert response.text == "Error: disk on fire"


def test_fault_without_message_uses_exception_name() -> None:
    async def handler(params: dict[str, Any], token: CancellationToken) -> str:
        raise KeyError()

    response = _invoke(Operation("broken", "", {}, handler), {})
    assert response.is_error
    assert response.text.startswith("Error: ")


def test_invalid_params_raise_before_handler_runs() -> None:
    calls: list[dict[str, Any]] = []

    def handler(params: dict[str, Any], token: CancellationToken) -> str:
        calls.append(params)
        return "ran"

    with pytest.raises(ProtocolError) as info:
        _invoke(Operation("greet", "", NAME_SCHEMA, handler), {"name": 5})
    assert info.value.code == INVALID_PARAMS
    assert info.value.data == {"errors": [{"field": "name", "reason": "expected string, got number"}]}
    assert calls == []


def test_registration_describes_tool() -> None:
    output_schema = {"type": "object", "properties": {"ok": {"type": "boolean"}}}
    registration = adapt_operation(
        Operation("greet", "Say hello", NAME_SCHEMA, lambda p, t: "hi", output_schema=output_schema)
    )
    described = registration.describe()
    assert described["name"] == "greet"
    assert described["description"] == "Say hello"
    assert described["inputSchema"]["required"] == ["name"]
    assert described["outputSchema"] == output_schema
    assert set(registration.shape.fields) == {"name"}
