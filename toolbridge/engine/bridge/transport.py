"""Newline-delimited JSON-RPC framing over stdio.

Every outgoing message is one JSON object on one line of stdout. Nothing
else may be written there: logs and warnings go to stderr or the event log.
"""

from __future__ import annotations

import asyncio
import json
import sys
from typing import Any, BinaryIO

from toolbridge import config
from toolbridge.utils.logging_utils import debug, warn

from ..error_model import PARSE_ERROR


def jsonrpc_error(req_id: Any, code: int, message: str, data: Any = None) -> dict[str, Any]:
    error: dict[str, Any] = {"code": int(code), "message": message}
    if data is not None:
        error["data"] = data
    return {"jsonrpc": "2.0", "id": req_id, "error": error}


def jsonrpc_result(req_id: Any, result: Any) -> dict[str, Any]:
    return {"jsonrpc": "2.0", "id": req_id, "result": result}


class JsonRpcStdioTransport:
    def __init__(self, reader: asyncio.StreamReader, output: BinaryIO) -> None:
        self._reader = reader
        self._output = output
        self._write_lock = asyncio.Lock()
        self._closed = False

    @property
    def closed(self) -> bool:
        return self._closed

    async def receive(self) -> Any | None:
        """Return the next decoded message, or None once input is exhausted.

        Undecodable lines are answered with a parse error and skipped.
        """
        while not self._closed:
            try:
                line = await self._reader.readline()
            except ValueError as exc:
                # Line longer than the stream limit; the reader drops it.
                warn(f"dropping oversized message: {exc}")
                await self.send(jsonrpc_error(None, PARSE_ERROR, "Parse error: message too large"))
                continue
            if not line:
                self._closed = True
                return None
            text = line.decode("utf-8", errors="replace").strip()
            if not text:
                continue
            try:
                message = json.loads(text)
            except json.JSONDecodeError as exc:
                debug(f"unparseable line: {text[:200]}")
                await self.send(jsonrpc_error(None, PARSE_ERROR, f"Parse error: {exc.msg}"))
                continue
            return message
        return None

    async def send(self, payload: dict[str, Any]) -> None:
        data = (json.dumps(payload, ensure_ascii=False) + "\n").encode("utf-8")
        async with self._write_lock:
            self._output.write(data)
            self._output.flush()

    def close(self) -> None:
        self._closed = True


async def open_stdio_transport() -> JsonRpcStdioTransport:
    """Connect a transport to this process's stdin and stdout."""
    loop = asyncio.get_running_loop()
    # Requests can exceed asyncio.StreamReader's 64 KiB default line limit.
    reader = asyncio.StreamReader(limit=config.STDIO_STREAM_LIMIT)
    protocol = asyncio.StreamReaderProtocol(reader)
    await loop.connect_read_pipe(lambda: protocol, sys.stdin.buffer)
    return JsonRpcStdioTransport(reader, sys.stdout.buffer)


__all__ = [
    "JsonRpcStdioTransport",
    "open_stdio_transport",
    "jsonrpc_error",
    "jsonrpc_result",
]
