"""Shared error modeling for the bridge.

Structured command failures (non-zero exit, killed by a signal) are data on
``ExecutionResult`` and never appear here. This module only holds the
exceptional channels: parameter validation, protocol-level rejections and
startup configuration errors.
"""

from __future__ import annotations

from dataclasses import asdict, dataclass
from typing import Any

# JSON-RPC 2.0 error codes.
PARSE_ERROR = -32700
INVALID_REQUEST = -32600
METHOD_NOT_FOUND = -32601
INVALID_PARAMS = -32602
INTERNAL_ERROR = -32603


@dataclass(frozen=True)
class ErrorDetail:
    code: str
    message: str
    retryable: bool = False


def format_error(message: str, *, code: str = "error") -> str:
    text = str(message or "").strip()
    if not text:
        text = code or "error"
    if text.lower().startswith("error:"):
        return text
    return f"Error: {text}"


class ValidationError(ValueError):
    """A single parameter failed to decode.

    ``path`` holds the route to the offending value: property names as
    ``str`` and array positions as ``int``.
    """

    def __init__(self, path: tuple[str | int, ...], reason: str) -> None:
        self.path = tuple(path)
        self.reason = reason
        super().__init__(f"{self.field or '<root>'}: {reason}")

    @property
    def field(self) -> str:
        return format_field_path(self.path)

    def to_dict(self) -> dict[str, Any]:
        return {"field": self.field, "reason": self.reason}


class InvalidParamsError(ValueError):
    """One or more top-level parameters failed validation."""

    def __init__(self, errors: list[ValidationError]) -> None:
        self.errors = tuple(errors)
        summary = "; ".join(str(err) for err in self.errors) or "invalid parameters"
        super().__init__(summary)

    def to_dict(self) -> dict[str, Any]:
        return {"errors": [err.to_dict() for err in self.errors]}


class ProtocolError(Exception):
    """A request rejected at the protocol level, before any handler ran."""

    def __init__(self, code: int, message: str, data: Any = None) -> None:
        self.code = int(code)
        self.message = str(message)
        self.data = data
        super().__init__(self.message)

    def to_dict(self) -> dict[str, Any]:
        payload: dict[str, Any] = {"code": self.code, "message": self.message}
        if self.data is not None:
            payload["data"] = self.data
        return payload


class DuplicateOperationError(ValueError):
    """Two operations were registered under the same name."""

    def __init__(self, name: str) -> None:
        self.name = name
        super().__init__(f"duplicate operation name: {name}")


class SpawnFailure(RuntimeError):
    """The host could not start a shell for the command.

    Raised and caught inside the execution engine only; callers see it as
    ``ExecutionResult.error``.
    """


def format_field_path(path: tuple[str | int, ...]) -> str:
    out = ""
    for part in path:
        if isinstance(part, int):
            out += f"[{part}]"
        elif out:
            out += f".{part}"
        else:
            out = str(part)
    return out


def error_detail_payload(exc: BaseException, *, code: str = "handler_fault") -> dict[str, Any]:
    return asdict(ErrorDetail(code=code, message=str(exc) or type(exc).__name__))


__all__ = [
    "PARSE_ERROR",
    "INVALID_REQUEST",
    "METHOD_NOT_FOUND",
    "INVALID_PARAMS",
    "INTERNAL_ERROR",
    "ErrorDetail",
    "format_error",
    "format_field_path",
    "error_detail_payload",
    "ValidationError",
    "InvalidParamsError",
    "ProtocolError",
    "DuplicateOperationError",
    "SpawnFailure",
]
