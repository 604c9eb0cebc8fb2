"""Shared path / text / subprocess helpers.

Pure helpers about path resolution, text truncation, result
stringification and shell argv construction, importable without pulling
in the bridge.
"""

from __future__ import annotations

import json
import os
import shutil
from pathlib import Path
from typing import Any

# ---------------------------------------------------------------------------
# Text truncation helpers
# ---------------------------------------------------------------------------


def _truncate_middle(text: str, max_chars: int = 4000) -> str:
    """Keep head + tail of *text* so the caller can still see endings."""
    s = str(text or "")
    if max_chars <= 0 or len(s) <= max_chars:
        return s
    marker = f"\n...[truncated {len(s)} chars total]...\n"
    keep = max_chars - len(marker)
    if keep <= 0:
        return marker.strip()
    head = max(0, keep // 2)
    tail = max(0, keep - head)
    return s[:head] + marker + s[-tail:]


# ---------------------------------------------------------------------------
# Stringify helpers
# ---------------------------------------------------------------------------


def _stringify_result(result: Any) -> str:
    """Convert an arbitrary result value to a JSON string."""
    if result is None:
        return "null"
    try:
        return json.dumps(result, ensure_ascii=False)
    except (TypeError, ValueError):
        return json.dumps(str(result), ensure_ascii=False)


# ---------------------------------------------------------------------------
# Directory / path resolution
# ---------------------------------------------------------------------------


def _resolve_dir(base_dir: Path, raw: str | None) -> Path:
    """Resolve a working-directory override relative to *base_dir*.

    Absent or blank input yields *base_dir*; absolute input is used as-is.
    """
    if raw is None:
        return base_dir
    raw_text = str(raw).strip()
    if not raw_text:
        return base_dir
    p = Path(raw_text).expanduser()
    if not p.is_absolute():
        p = base_dir / p
    return Path(os.path.normpath(p))


def _resolve_path(base_dir: Path, raw: Any) -> Path:
    """Resolve a file path argument relative to *base_dir*."""
    text = str(raw or "").strip()
    if not text:
        raise ValueError("path must not be empty")
    return _resolve_dir(base_dir, text)


# ---------------------------------------------------------------------------
# Shell argv
# ---------------------------------------------------------------------------


def _shell_command(command: str, shell_path: str | None = None) -> list[str]:
    """Return the argv list to execute *command* via the system shell.

    An explicit *shell_path* is used verbatim with ``-c``; it is not
    checked for existence so a bad path surfaces as a spawn failure.
    """
    if shell_path:
        name = Path(shell_path).name.lower()
        if name in {"cmd", "cmd.exe"}:
            return [shell_path, "/d", "/s", "/c", command]
        return [shell_path, "-c", command]
    if os.name == "nt":
        comspec = (os.environ.get("COMSPEC") or "").strip() or "cmd.exe"
        return [comspec, "/d", "/s", "/c", command]
    bash_path = shutil.which("bash")
    if bash_path:
        return [bash_path, "--norc", "--noprofile", "-c", command]
    sh_path = shutil.which("sh") or "/bin/sh"
    return [sh_path, "-c", command]
