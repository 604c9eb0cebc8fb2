"""Bridge server: owns the registration table and serves one transport.

Requests are read one message at a time, but every ``tools/call`` runs in
its own task with its own cancellation token, so a slow command never holds
up the next request. Responses are written as soon as each call finishes;
JSON-RPC ids carry the correlation.
"""

from __future__ import annotations

import asyncio
from collections.abc import Mapping
from typing import Any, Protocol

from toolbridge import config
from toolbridge.utils.logging_utils import debug, log_event, warn

from ..cancellation import CancellationToken
from ..error_model import (
    INTERNAL_ERROR,
    INVALID_PARAMS,
    INVALID_REQUEST,
    METHOD_NOT_FOUND,
    ProtocolError,
)
from .adapter import ToolRegistration, ToolResponse
from .transport import jsonrpc_error, jsonrpc_result

SUPPORTED_PROTOCOL_VERSIONS = ("2024-11-05", "2025-03-26", "2025-06-18")


class Transport(Protocol):
    async def receive(self) -> Any | None: ...

    async def send(self, payload: dict[str, Any]) -> None: ...


def _valid_id(req_id: Any) -> bool:
    return req_id is None or (isinstance(req_id, (str, int, float)) and not isinstance(req_id, bool))


class BridgeServer:
    def __init__(
        self,
        registry: Mapping[str, ToolRegistration],
        *,
        name: str | None = None,
        version: str | None = None,
    ) -> None:
        self._registry = registry
        self._name = name
        self._version = version
        self._inflight: dict[Any, CancellationToken] = {}
        self._tasks: set[asyncio.Task] = set()
        self._stop = asyncio.Event()

    @property
    def registry(self) -> Mapping[str, ToolRegistration]:
        return self._registry

    @property
    def server_info(self) -> dict[str, str]:
        return {
            "name": self._name or config.SERVER_NAME,
            "version": self._version or config.SERVER_VERSION,
        }

    def list_tools(self) -> list[dict[str, Any]]:
        return [registration.describe() for registration in self._registry.values()]

    async def call_tool(
        self,
        name: str,
        params: Any,
        token: CancellationToken | None = None,
    ) -> ToolResponse:
        """Dispatch one call by operation name.

        Raises ``ProtocolError`` for an unknown name or invalid arguments;
        handler faults come back as error-flagged responses.
        """
        registration = self._registry.get(name)
        if registration is None:
            raise ProtocolError(INVALID_PARAMS, f"Tool {name} not found")
        return await registration.invoke(params, token or CancellationToken())

    def cancel_request(self, req_id: Any, reason: str | None = None) -> bool:
        token = self._inflight.get(req_id)
        if token is None:
            return False
        return token.cancel(reason)

    def shutdown(self) -> None:
        """Stop reading and cancel every in-flight call. Safe from signal handlers."""
        self._stop.set()
        for token in list(self._inflight.values()):
            token.cancel("server shutting down")

    async def serve(self, transport: Transport) -> None:
        """Serve *transport* until it reaches EOF or ``shutdown()`` is called.

        On EOF, in-flight calls run to completion and their responses are
        written. On shutdown they are cancelled first.
        """
        log_event("server_start", tools=sorted(self._registry), **self.server_info)
        stop_waiter = asyncio.ensure_future(self._stop.wait())
        try:
            while True:
                receiving = asyncio.ensure_future(transport.receive())
                await asyncio.wait({receiving, stop_waiter}, return_when=asyncio.FIRST_COMPLETED)
                if not receiving.done():
                    receiving.cancel()
                    break
                message = receiving.result()
                if message is None:
                    break
                await self._accept(message, transport)
            if self._tasks:
                await asyncio.gather(*self._tasks, return_exceptions=True)
        finally:
            stop_waiter.cancel()
            if self._tasks:
                self.shutdown()
                await asyncio.gather(*self._tasks, return_exceptions=True)
            log_event("server_stop")

    async def _accept(self, message: Any, transport: Transport) -> None:
        if (
            not isinstance(message, dict)
            or message.get("jsonrpc") != "2.0"
            or not isinstance(message.get("method"), str)
            or not _valid_id(message.get("id"))
        ):
            req_id = message.get("id") if isinstance(message, dict) else None
            await transport.send(
                jsonrpc_error(req_id if _valid_id(req_id) else None, INVALID_REQUEST, "Invalid Request")
            )
            return

        method = message["method"]
        params = message.get("params")
        if "id" not in message:
            self._notify(method, params)
            return

        req_id = message["id"]
        if method == "tools/call":
            if req_id in self._inflight:
                await transport.send(
                    jsonrpc_error(req_id, INVALID_REQUEST, f"Duplicate request id: {req_id}")
                )
                return
            token = CancellationToken()
            self._inflight[req_id] = token
            task = asyncio.ensure_future(self._handle_call(req_id, params, token, transport))
            self._tasks.add(task)
            task.add_done_callback(self._task_done)
            return

        try:
            result = self._handle_method(method, params)
        except ProtocolError as exc:
            await transport.send(jsonrpc_error(req_id, exc.code, exc.message, exc.data))
            return
        await transport.send(jsonrpc_result(req_id, result))

    def _handle_method(self, method: str, params: Any) -> dict[str, Any]:
        if method == "initialize":
            requested = params.get("protocolVersion") if isinstance(params, dict) else None
            version = requested if requested in SUPPORTED_PROTOCOL_VERSIONS else config.PROTOCOL_VERSION
            return {
                "protocolVersion": version,
                "capabilities": {"tools": {"listChanged": False}},
                "serverInfo": self.server_info,
            }
        if method == "ping":
            return {}
        if method == "tools/list":
            return {"tools": self.list_tools()}
        raise ProtocolError(METHOD_NOT_FOUND, f"Method not found: {method}")

    def _notify(self, method: str, params: Any) -> None:
        if method == "notifications/cancelled" and isinstance(params, dict):
            req_id = params.get("requestId")
            reason = params.get("reason")
            if self.cancel_request(req_id, reason if isinstance(reason, str) else None):
                debug(f"cancelled request {req_id!r}")
            return
        debug(f"ignoring notification {method}")

    async def _handle_call(
        self,
        req_id: Any,
        params: Any,
        token: CancellationToken,
        transport: Transport,
    ) -> None:
        try:
            if params is not None and not isinstance(params, dict):
                raise ProtocolError(INVALID_PARAMS, "tools/call params must be an object")
            params = params or {}
            name = params.get("name")
            if not isinstance(name, str) or not name:
                raise ProtocolError(INVALID_PARAMS, "tools/call requires a tool name")
            response = await self.call_tool(name, params.get("arguments"), token)
            payload = jsonrpc_result(req_id, response.to_dict())
        except ProtocolError as exc:
            payload = jsonrpc_error(req_id, exc.code, exc.message, exc.data)
        except Exception as exc:
            warn(f"request {req_id!r} failed inside the bridge: {exc}")
            payload = jsonrpc_error(req_id, INTERNAL_ERROR, f"Internal error: {exc}")
        finally:
            self._inflight.pop(req_id, None)
        await transport.send(payload)

    def _task_done(self, task: asyncio.Task) -> None:
        self._tasks.discard(task)
        if task.cancelled():
            return
        exc = task.exception()
        if exc is not None:
            warn(f"failed to deliver response: {exc}")


__all__ = ["BridgeServer", "Transport", "SUPPORTED_PROTOCOL_VERSIONS"]
