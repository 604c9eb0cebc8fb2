"""Shell execution engine.

Runs one command in a host shell per call and reports how it ended.
A call moves through ``IDLE -> SPAWNING -> RUNNING`` and finishes in one
of ``COMPLETED`` (exit code), ``SIGNALLED`` (terminating signal) or
``SPAWN_FAILED`` (error). Non-zero exits and kills are ordinary results;
only a shell that cannot be started at all populates ``error``.
"""

from __future__ import annotations

import asyncio
import codecs
import enum
import os
import re
import signal
import struct
import time
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Callable, Mapping

from toolbridge import config
from toolbridge.utils.logging_utils import log_event, warn
from toolbridge.utils.path_utils import _resolve_dir, _shell_command

from ..cancellation import CancellationToken
from ..error_model import SpawnFailure

_READ_CHUNK = 64 * 1024
_EXIT_POLL_SECONDS = 0.02

_SHELL_WRAPPER_RE = re.compile(
    r"^\s*(?:"
    r"(?:sh|bash|zsh)\s+-c"
    r"|cmd(?:\.exe)?\s+/c"
    r"|(?:powershell|pwsh)(?:\.exe)?\s+(?:-NoProfile\s+)?-Command"
    r")\s+",
    re.IGNORECASE,
)


class ExecutionState(str, enum.Enum):
    IDLE = "idle"
    SPAWNING = "spawning"
    RUNNING = "running"
    COMPLETED = "completed"
    SIGNALLED = "signalled"
    SPAWN_FAILED = "spawn_failed"


@dataclass(frozen=True)
class ExecutionRequest:
    command: str
    working_directory: Path
    use_pty: bool = False
    cancellation: CancellationToken = field(default_factory=CancellationToken)
    shell_path: str | None = None
    env: Mapping[str, str] | None = None


@dataclass(frozen=True)
class OutputChunk:
    stream: str
    data: bytes
    text: str


@dataclass(frozen=True)
class ExecutionResult:
    output: str
    raw_output: bytes
    stdout: str
    stderr: str
    exit_code: int | None
    signal: int | None
    error: str | None
    aborted: bool = False
    pid: int | None = None
    execution_method: str = "pipes"
    duration_ms: int = 0

    @property
    def state(self) -> ExecutionState:
        if self.exit_code is not None:
            return ExecutionState.COMPLETED
        if self.signal is not None:
            return ExecutionState.SIGNALLED
        return ExecutionState.SPAWN_FAILED


OutputCallback = Callable[[OutputChunk], Any]


# ---------------------------------------------------------------------------
# Command / directory preparation
# ---------------------------------------------------------------------------


def strip_shell_wrapper(command: str) -> str:
    """Drop a redundant outer ``bash -c "..."``-style wrapper."""
    match = _SHELL_WRAPPER_RE.match(command)
    if not match:
        return command.strip()
    inner = command[match.end():].strip()
    if len(inner) >= 2 and inner[0] == inner[-1] and inner[0] in {"'", '"'}:
        inner = inner[1:-1]
    return inner


def resolve_working_directory(raw: str | None, base_dir: Path | None = None) -> Path:
    """Absent -> server cwd, relative -> joined onto server cwd, absolute -> as-is."""
    anchor = base_dir if base_dir is not None else Path.cwd()
    return _resolve_dir(anchor, raw)


def _child_env(use_pty: bool, extra: Mapping[str, str] | None) -> dict[str, str]:
    env = os.environ.copy()
    env.setdefault("PAGER", "cat")
    env.setdefault("GIT_PAGER", "cat")
    if use_pty:
        env["TERM"] = "xterm-256color"
    if extra:
        env.update(extra)
    return env


# ---------------------------------------------------------------------------
# Output accumulation
# ---------------------------------------------------------------------------


class _OutputCollector:
    """Keeps per-stream buffers plus the combined arrival-order view."""

    def __init__(self, on_output: OutputCallback | None) -> None:
        self._on_output = on_output
        self._raw = bytearray()
        self._streams: dict[str, bytearray] = {"stdout": bytearray(), "stderr": bytearray()}
        self._decoders: dict[str, codecs.IncrementalDecoder] = {}
        self._combined: list[str] = []
        self._texts: dict[str, list[str]] = {"stdout": [], "stderr": []}

    def feed(self, stream: str, data: bytes) -> None:
        if not data:
            return
        self._raw.extend(data)
        self._streams[stream].extend(data)
        text = self._decoder(stream).decode(data)
        if not text:
            return
        self._combined.append(text)
        self._texts[stream].append(text)
        self._notify(stream, data, text)

    def finish(self) -> None:
        for stream, decoder in self._decoders.items():
            tail = decoder.decode(b"", final=True)
            if tail:
                self._combined.append(tail)
                self._texts[stream].append(tail)

    def text(self, stream: str) -> str:
        return "".join(self._texts[stream])

    @property
    def combined(self) -> str:
        return "".join(self._combined)

    @property
    def raw(self) -> bytes:
        return bytes(self._raw)

    def _decoder(self, stream: str) -> codecs.IncrementalDecoder:
        decoder = self._decoders.get(stream)
        if decoder is None:
            decoder = codecs.getincrementaldecoder("utf-8")(errors="replace")
            self._decoders[stream] = decoder
        return decoder

    def _notify(self, stream: str, data: bytes, text: str) -> None:
        if self._on_output is None:
            return
        try:
            self._on_output(OutputChunk(stream=stream, data=data, text=text))
        except Exception as exc:
            warn(f"output callback failed: {exc}")


async def _pump_stream(reader: asyncio.StreamReader, stream: str, collector: _OutputCollector) -> None:
    while True:
        chunk = await reader.read(_READ_CHUNK)
        if not chunk:
            return
        collector.feed(stream, chunk)


# ---------------------------------------------------------------------------
# Process control
# ---------------------------------------------------------------------------


_SIGKILL = getattr(signal, "SIGKILL", signal.SIGTERM)


def _signal_process(proc: asyncio.subprocess.Process, sig: int) -> None:
    if proc.returncode is not None:
        return
    if os.name == "nt":
        if sig == _SIGKILL:
            proc.kill()
        else:
            proc.terminate()
        return
    _signal_group(proc.pid, sig)


def _signal_group(pgid: int, sig: int) -> None:
    if os.name == "nt":
        return
    try:
        os.killpg(pgid, sig)
    except ProcessLookupError:
        pass


async def _terminate(proc: asyncio.subprocess.Process, wait_task: asyncio.Future) -> None:
    """SIGTERM the process group, then SIGKILL after the grace period."""
    log_event("shell_cancel", pid=proc.pid)
    _signal_process(proc, signal.SIGTERM)
    try:
        await asyncio.wait_for(asyncio.shield(wait_task), timeout=config.SHELL_KILL_GRACE_SECONDS)
    except asyncio.TimeoutError:
        _signal_process(proc, _SIGKILL)


async def _wait_exit(proc: asyncio.subprocess.Process) -> int:
    """Return the exit status as soon as the shell itself exits.

    Before Python 3.12 ``Process.wait()`` also waits for every pipe to
    close, which a background job can hold open indefinitely.
    """
    while proc.returncode is None:
        await asyncio.sleep(_EXIT_POLL_SECONDS)
    return proc.returncode


async def _await_or_cancel(aw: asyncio.Future, token: CancellationToken) -> bool:
    """Wait for *aw*; return True if *token* fired first."""
    if token.cancelled:
        return not aw.done()
    cancel_task = asyncio.ensure_future(token.wait())
    try:
        await asyncio.wait({aw, cancel_task}, return_when=asyncio.FIRST_COMPLETED)
    finally:
        cancel_task.cancel()
    return not aw.done()


async def _drain(
    pumps: list[asyncio.Future],
    proc: asyncio.subprocess.Process,
    token: CancellationToken,
) -> None:
    """Collect the remaining output after exit.

    A background grandchild may keep the stream open. Reading stops after
    ``SHELL_DRAIN_SECONDS`` and the call settles with what arrived; the
    background job keeps running. A cancelled call kills the whole group.
    """
    if not pumps:
        return
    gathered = asyncio.ensure_future(asyncio.gather(*pumps))
    if token.cancelled:
        await asyncio.wait({gathered}, timeout=config.SHELL_KILL_GRACE_SECONDS)
    else:
        cancel_task = asyncio.ensure_future(token.wait())
        try:
            await asyncio.wait(
                {gathered, cancel_task},
                timeout=config.SHELL_DRAIN_SECONDS,
                return_when=asyncio.FIRST_COMPLETED,
            )
        finally:
            cancel_task.cancel()
    if not gathered.done():
        if token.cancelled:
            _signal_group(proc.pid, _SIGKILL)
        else:
            log_event("shell_output_detached", pid=proc.pid)
        gathered.cancel()
    await asyncio.wait({gathered})
    if not gathered.cancelled() and gathered.exception() is not None:
        raise gathered.exception()


def _pty_preexec() -> None:
    import fcntl
    import termios

    os.setsid()
    fcntl.ioctl(0, termios.TIOCSCTTY, 0)


def _open_pty() -> tuple[int, int]:
    import fcntl
    import pty
    import termios

    master_fd, slave_fd = pty.openpty()
    size = struct.pack("HHHH", config.SHELL_PTY_ROWS, config.SHELL_PTY_COLUMNS, 0, 0)
    fcntl.ioctl(slave_fd, termios.TIOCSWINSZ, size)
    return master_fd, slave_fd


def _pump_pty(master_fd: int, collector: _OutputCollector) -> asyncio.Future:
    loop = asyncio.get_running_loop()
    done = loop.create_future()

    def _on_readable() -> None:
        try:
            data = os.read(master_fd, _READ_CHUNK)
        except OSError:
            # EIO once every slave end is closed.
            data = b""
        if data:
            collector.feed("stdout", data)
            return
        loop.remove_reader(master_fd)
        if not done.done():
            done.set_result(None)

    loop.add_reader(master_fd, _on_readable)
    done.add_done_callback(lambda _fut: loop.remove_reader(master_fd))
    return done


# ---------------------------------------------------------------------------
# Entry point
# ---------------------------------------------------------------------------


def _aborted_before_start(method: str) -> ExecutionResult:
    return ExecutionResult(
        output="",
        raw_output=b"",
        stdout="",
        stderr="",
        exit_code=None,
        signal=None,
        error="command cancelled before start",
        aborted=True,
        execution_method=method,
    )


def _spawn_failed(message: str, method: str, started: float) -> ExecutionResult:
    log_event("shell_spawn_failed", error=message)
    return ExecutionResult(
        output="",
        raw_output=b"",
        stdout="",
        stderr="",
        exit_code=None,
        signal=None,
        error=message,
        execution_method=method,
        duration_ms=int((time.monotonic() - started) * 1000),
    )


async def _spawn(
    argv: list[str],
    cwd: Path,
    env: dict[str, str],
    use_pty: bool,
    collector: _OutputCollector,
) -> tuple[asyncio.subprocess.Process, list[asyncio.Future], int | None]:
    """Start the shell and its output pumps, or raise ``SpawnFailure``."""
    if not cwd.is_dir():
        raise SpawnFailure(f"working directory does not exist: {cwd}")
    master_fd: int | None = None
    try:
        if use_pty:
            master_fd, slave_fd = _open_pty()
            try:
                proc = await asyncio.create_subprocess_exec(
                    *argv,
                    cwd=str(cwd),
                    env=env,
                    stdin=slave_fd,
                    stdout=slave_fd,
                    stderr=slave_fd,
                    preexec_fn=_pty_preexec,
                )
            finally:
                os.close(slave_fd)
            return proc, [_pump_pty(master_fd, collector)], master_fd
        proc = await asyncio.create_subprocess_exec(
            *argv,
            cwd=str(cwd),
            env=env,
            stdin=asyncio.subprocess.DEVNULL,
            stdout=asyncio.subprocess.PIPE,
            stderr=asyncio.subprocess.PIPE,
            start_new_session=os.name != "nt",
        )
    except OSError as exc:
        if master_fd is not None:
            os.close(master_fd)
        raise SpawnFailure(f"failed to start shell: {exc}") from exc
    pumps = [
        asyncio.ensure_future(_pump_stream(proc.stdout, "stdout", collector)),
        asyncio.ensure_future(_pump_stream(proc.stderr, "stderr", collector)),
    ]
    return proc, pumps, None


async def execute(
    request: ExecutionRequest,
    on_output: OutputCallback | None = None,
) -> ExecutionResult:
    """Run ``request.command`` in a shell and report how it ended.

    Never raises for conditions belonging to the command itself: a
    non-zero exit, a kill, or a cancellation are all reported through the
    returned ``ExecutionResult``. A shell that cannot be started is
    reported through ``error``.
    """
    use_pty = bool(request.use_pty)
    if use_pty and os.name != "posix":
        warn("pseudo-terminal mode is not available on this host; using pipes")
        use_pty = False
    method = "pty" if use_pty else "pipes"
    token = request.cancellation
    started = time.monotonic()

    if token.cancelled:
        return _aborted_before_start(method)

    cwd = request.working_directory
    command = strip_shell_wrapper(request.command)
    argv = _shell_command(command, request.shell_path or config.SHELL_PATH or None)
    env = _child_env(use_pty, request.env)
    collector = _OutputCollector(on_output)

    try:
        proc, pumps, master_fd = await _spawn(argv, cwd, env, use_pty, collector)
    except SpawnFailure as exc:
        return _spawn_failed(str(exc), method, started)

    log_event("shell_spawn", pid=proc.pid, command=command, cwd=str(cwd), method=method)
    wait_task = asyncio.ensure_future(_wait_exit(proc))
    aborted = False
    try:
        if await _await_or_cancel(wait_task, token):
            aborted = True
            await _terminate(proc, wait_task)
        returncode = await wait_task
        await _drain(pumps, proc, token)
    except asyncio.CancelledError:
        _signal_process(proc, _SIGKILL)
        wait_task.cancel()
        for pump in pumps:
            pump.cancel()
        raise
    finally:
        if master_fd is not None:
            asyncio.get_running_loop().remove_reader(master_fd)
            os.close(master_fd)

    collector.finish()
    stdout = collector.text("stdout")
    output = collector.combined
    if use_pty:
        stdout = stdout.replace("\r\n", "\n")
        output = output.replace("\r\n", "\n")

    exit_code: int | None = returncode
    term_signal: int | None = None
    if returncode is not None and returncode < 0:
        exit_code = None
        term_signal = -returncode

    result = ExecutionResult(
        output=output,
        raw_output=collector.raw,
        stdout=stdout,
        stderr=collector.text("stderr"),
        exit_code=exit_code,
        signal=term_signal,
        error=None,
        aborted=aborted,
        pid=proc.pid,
        execution_method=method,
        duration_ms=int((time.monotonic() - started) * 1000),
    )
    log_event(
        "shell_exit",
        pid=proc.pid,
        exit_code=exit_code,
        signal=term_signal,
        aborted=aborted,
        duration_ms=result.duration_ms,
    )
    return result


__all__ = [
    "ExecutionState",
    "ExecutionRequest",
    "ExecutionResult",
    "OutputChunk",
    "OutputCallback",
    "strip_shell_wrapper",
    "resolve_working_directory",
    "execute",
]
