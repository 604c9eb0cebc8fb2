"""Per-invocation cancellation token.

A token is created for exactly one invocation and handed to both the
handler and the execution engine. It can be triggered once; callbacks
registered on it run when that happens (or immediately, if it already
has). It carries no timeout of its own.
"""

from __future__ import annotations

import asyncio
import threading
from typing import Callable

from toolbridge.utils.logging_utils import warn


class CancellationToken:
    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._cancelled = False
        self._reason: str | None = None
        self._callbacks: dict[int, Callable[[], None]] = {}
        self._next_id = 0

    @property
    def cancelled(self) -> bool:
        return self._cancelled

    @property
    def reason(self) -> str | None:
        return self._reason

    def cancel(self, reason: str | None = None) -> bool:
        """Trigger the token. Returns False if it was already triggered."""
        with self._lock:
            if self._cancelled:
                return False
            self._cancelled = True
            self._reason = reason
            callbacks = list(self._callbacks.values())
            self._callbacks.clear()
        for callback in callbacks:
            _run_callback(callback)
        return True

    def add_callback(self, callback: Callable[[], None]) -> Callable[[], None]:
        """Run *callback* on trigger; returns a function that unregisters it."""
        with self._lock:
            if not self._cancelled:
                key = self._next_id
                self._next_id += 1
                self._callbacks[key] = callback
                return lambda: self._remove(key)
        _run_callback(callback)
        return lambda: None

    async def wait(self) -> None:
        """Suspend until the token is triggered."""
        if self._cancelled:
            return
        loop = asyncio.get_running_loop()
        fired = loop.create_future()

        def _wake() -> None:
            loop.call_soon_threadsafe(_resolve, fired)

        remove = self.add_callback(_wake)
        try:
            await fired
        finally:
            remove()

    def _remove(self, key: int) -> None:
        with self._lock:
            self._callbacks.pop(key, None)

    def __repr__(self) -> str:
        state = "cancelled" if self._cancelled else "active"
        return f"<CancellationToken {state}>"


def _resolve(fut: asyncio.Future) -> None:
    if not fut.done():
        fut.set_result(None)


def _run_callback(callback: Callable[[], None]) -> None:
    try:
        callback()
    except Exception as exc:
        warn(f"cancellation callback failed: {exc}")


__all__ = ["CancellationToken"]
