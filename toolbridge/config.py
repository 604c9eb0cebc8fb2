"""Configuration and constants for the tool bridge.

This module centralises every environment-variable lookup and the small
helpers used to derive them. Values are module attributes; read them as
``config.NAME`` at call time so ``refresh_runtime_config`` takes effect.
"""

from __future__ import annotations

import os
from pathlib import Path

from dotenv import load_dotenv

# ---------------------------------------------------------------------------
# Bootstrap
# ---------------------------------------------------------------------------
PROJECT_ROOT = Path(__file__).resolve().parent.parent
ENV_FILE = (PROJECT_ROOT / ".env").resolve()
load_dotenv(dotenv_path=ENV_FILE)
_CONFIG_VERSION = 0

PROTOCOL_VERSION = "2024-11-05"
_DEFAULT_STREAM_LIMIT = 8 * 1024 * 1024


# ---------------------------------------------------------------------------
# Helpers for parsing env vars
# ---------------------------------------------------------------------------
def _env_flag(name: str, default: bool = False) -> bool:
    raw = os.getenv(name)
    if raw is None:
        return default
    return raw.strip().lower() not in {"0", "false", "no", "off"}


def _env_int(name: str, default: int = 0) -> int:
    raw = os.getenv(name)
    if raw is None:
        return default
    try:
        return int(raw.strip())
    except Exception:
        return default


def _env_float(name: str, default: float = 0.0) -> float:
    raw = os.getenv(name)
    if raw is None:
        return default
    try:
        return float(raw.strip())
    except Exception:
        return default


def _env_list(name: str, default: str = "") -> tuple[str, ...]:
    raw = os.getenv(name)
    text = default if raw is None else raw
    return tuple(s.strip() for s in text.replace(";", ",").split(",") if s.strip())


def _apply_env() -> None:
    global DEBUG, SERVER_NAME, SERVER_VERSION, ENABLED_TOOLS
    global SHELL_PATH, SHELL_USE_PTY, SHELL_KILL_GRACE_SECONDS, SHELL_DRAIN_SECONDS
    global SHELL_OUTPUT_MAX_CHARS
    global SHELL_PTY_COLUMNS, SHELL_PTY_ROWS, STDIO_STREAM_LIMIT
    global EXEC_LOG_ENABLED, EXEC_LOG_DIR, EXEC_LOG_MAX_CHARS

    # -----------------------------------------------------------------------
    # Server identity
    # -----------------------------------------------------------------------
    DEBUG = _env_flag("DEBUG", False)
    SERVER_NAME = (os.getenv("SERVER_NAME") or "toolbridge").strip()
    SERVER_VERSION = (os.getenv("SERVER_VERSION") or "1.0.0").strip()

    # Empty means every built-in tool.
    ENABLED_TOOLS = _env_list("ENABLED_TOOLS")

    # -----------------------------------------------------------------------
    # Shell execution
    # -----------------------------------------------------------------------
    SHELL_PATH = (os.getenv("SHELL_PATH") or "").strip()
    SHELL_USE_PTY = _env_flag("SHELL_USE_PTY", False)
    SHELL_KILL_GRACE_SECONDS = max(0.0, _env_float("SHELL_KILL_GRACE_SECONDS", 0.2))
    # Output still arriving this long after the shell exits is left to background jobs.
    SHELL_DRAIN_SECONDS = max(0.0, _env_float("SHELL_DRAIN_SECONDS", 0.5))
    SHELL_OUTPUT_MAX_CHARS = max(0, _env_int("SHELL_OUTPUT_MAX_CHARS", 0))
    SHELL_PTY_COLUMNS = max(20, _env_int("SHELL_PTY_COLUMNS", 80))
    SHELL_PTY_ROWS = max(5, _env_int("SHELL_PTY_ROWS", 24))

    # -----------------------------------------------------------------------
    # Stdio transport
    # -----------------------------------------------------------------------
    STDIO_STREAM_LIMIT = min(
        64 * 1024 * 1024,
        max(64 * 1024, _env_int("STDIO_STREAM_LIMIT", _DEFAULT_STREAM_LIMIT)),
    )

    # -----------------------------------------------------------------------
    # Execution logging
    # -----------------------------------------------------------------------
    EXEC_LOG_ENABLED = _env_flag("EXEC_LOG_ENABLED", False)
    EXEC_LOG_DIR = Path(os.getenv("EXEC_LOG_DIR", "logs"))
    EXEC_LOG_MAX_CHARS = max(0, _env_int("EXEC_LOG_MAX_CHARS", 0))


def refresh_runtime_config(*, override: bool = True, env_file: Path | None = None) -> int:
    """Reload environment values from .env and bump runtime config version."""
    global _CONFIG_VERSION
    load_dotenv(dotenv_path=env_file or ENV_FILE, override=override)
    _apply_env()
    _CONFIG_VERSION += 1
    return _CONFIG_VERSION


def get_runtime_config_version() -> int:
    return _CONFIG_VERSION


_apply_env()
