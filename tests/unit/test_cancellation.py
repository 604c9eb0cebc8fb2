"""Tests for the per-invocation cancellation token."""

from __future__ import annotations

import asyncio

from toolbridge.engine.cancellation import CancellationToken


def test_cancel_runs_callbacks_once() -> None:
    token = CancellationToken()
    calls: list[str] = []
    token.add_callback(lambda: calls.append("a"))

    assert token.cancel("stop") is True
    assert token.cancel("again") is False
    assert calls == ["a"]
    assert token.cancelled
    assert token.reason == "stop"


def test_callback_added_after_cancel_runs_immediately() -> None:
    token = CancellationToken()
    token.cancel()
    calls: list[int] = []
    token.add_callback(lambda: calls.append(1))
    assert calls == [1]


def test_removed_callback_does_not_run() -> None:
    token = CancellationToken()
    calls: list[int] = []
    remove = token.add_callback(lambda: calls.append(1))
    remove()
    token.cancel()
    assert calls == []


def test_failing_callback_does_not_block_others() -> None:
    token = CancellationToken()
    calls: list[int] = []

    def _boom() -> None:
        raise RuntimeError("boom")

    token.add_callback(_boom)
    token.add_callback(lambda: calls.append(1))
    token.cancel()
    assert calls == [1]


def test_wait_resumes_on_cancel() -> None:
    async def _run() -> bool:
        token = CancellationToken()
        waiter = asyncio.ensure_future(token.wait())
        await asyncio.sleep(0.01)
        assert not waiter.done()
        token.cancel()
        await asyncio.wait_for(waiter, timeout=1.0)
        return token.cancelled

    assert asyncio.run(_run()) is True


def test_tokens_are_independent() -> None:
    first = CancellationToken()
    second = CancellationToken()
    first.cancel()
    assert not second.cancelled
