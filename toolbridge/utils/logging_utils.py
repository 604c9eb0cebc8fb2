"""Structured event log and stderr diagnostics.

``log_event`` appends one JSON record per line to a per-process file
under ``EXEC_LOG_DIR`` when ``EXEC_LOG_ENABLED`` is set. ``warn`` and
``debug`` print to stderr. Nothing here writes to stdout, which carries
the protocol stream.
"""

import json
import os
import sys
import threading
from datetime import datetime, timezone
from pathlib import Path
from typing import Any

from toolbridge import config


def _clip(text: str) -> str:
    limit = config.EXEC_LOG_MAX_CHARS
    if limit <= 0 or len(text) <= limit:
        return text
    marker = f"...[truncated:{len(text)}]"
    return text[: max(0, limit - len(marker))] + marker


def _loggable(value: Any) -> Any:
    """Make *value* JSON-safe, clipping long strings along the way."""
    if value is None or isinstance(value, (bool, int, float)):
        return value
    if isinstance(value, bytes):
        value = value.decode("utf-8", errors="replace")
    if isinstance(value, (str, Path)):
        return _clip(str(value))
    if isinstance(value, dict):
        return {str(key): _loggable(item) for key, item in value.items()}
    if isinstance(value, (list, tuple, set, frozenset)):
        return [_loggable(item) for item in value]
    return _clip(repr(value))


class _EventLog:
    """Lazily opened JSONL sink shared by every thread of the process."""

    def __init__(self) -> None:
        self.session_id = datetime.now(timezone.utc).strftime("%Y%m%dT%H%M%SZ")
        self._lock = threading.Lock()
        self._path: Path | None = None
        self._disabled = False

    def path(self) -> Path | None:
        if not config.EXEC_LOG_ENABLED or self._disabled:
            return None
        if self._path is None:
            try:
                config.EXEC_LOG_DIR.mkdir(parents=True, exist_ok=True)
            except OSError as exc:
                self._disabled = True
                warn(f"event log disabled, cannot create {config.EXEC_LOG_DIR}: {exc}")
                return None
            name = f"bridge-{self.session_id}-pid{os.getpid()}.jsonl"
            self._path = (config.EXEC_LOG_DIR / name).resolve()
        return self._path

    def write(self, record: dict[str, Any]) -> None:
        path = self.path()
        if path is None:
            return
        line = json.dumps(record, ensure_ascii=False) + "\n"
        with self._lock:
            try:
                with path.open("a", encoding="utf-8") as fh:
                    fh.write(line)
            except OSError as exc:
                self._disabled = True
                warn(f"event log disabled, write to {path} failed: {exc}")

    def reset(self) -> None:
        with self._lock:
            self._path = None
            self._disabled = False


_LOG = _EventLog()


def warn(message: str) -> None:
    print(f"[warn] {message}", file=sys.stderr, flush=True)


def debug(message: str) -> None:
    if config.DEBUG:
        print(f"[debug] {message}", file=sys.stderr, flush=True)


def get_exec_log_path() -> str | None:
    """Path of this process's event log, or None while logging is off."""
    path = _LOG.path()
    return str(path) if path else None


def log_event(event: str, **fields: Any) -> None:
    if not config.EXEC_LOG_ENABLED:
        return
    record: dict[str, Any] = {
        "ts": datetime.now(timezone.utc).isoformat(),
        "session_id": _LOG.session_id,
        "event": event or "unknown",
    }
    for key, value in fields.items():
        record[key] = _loggable(value)
    _LOG.write(record)


def reset_exec_log() -> None:
    """Drop the cached file so the next event re-reads EXEC_LOG_DIR."""
    _LOG.reset()


__all__ = ["log_event", "get_exec_log_path", "reset_exec_log", "warn", "debug"]
