"""Tests for environment-driven configuration and the event log."""

from __future__ import annotations

import json
from pathlib import Path

import pytest

from toolbridge import config
from toolbridge.utils import logging_utils


@pytest.fixture
def env(monkeypatch: pytest.MonkeyPatch):
    yield monkeypatch
    monkeypatch.undo()
    config._apply_env()
    logging_utils.reset_exec_log()


def test_env_helpers(env: pytest.MonkeyPatch) -> None:
    env.setenv("TB_FLAG", "off")
    env.setenv("TB_INT", "nope")
    env.setenv("TB_LIST", "Shell; read_file, ,ls")
    assert config._env_flag("TB_FLAG", True) is False
    assert config._env_flag("TB_MISSING", True) is True
    assert config._env_int("TB_INT", 5) == 5
    assert config._env_list("TB_LIST") == ("Shell", "read_file", "ls")


def test_refresh_reads_environment(env: pytest.MonkeyPatch, tmp_path: Path) -> None:
    env.setenv("SHELL_USE_PTY", "1")
    env.setenv("STDIO_STREAM_LIMIT", "10")
    env.setenv("ENABLED_TOOLS", "Shell,ReadFile")
    env.setenv("SHELL_DRAIN_SECONDS", "-3")
    before = config.get_runtime_config_version()
    version = config.refresh_runtime_config(env_file=tmp_path / "absent.env")
    assert version == before + 1
    assert config.SHELL_USE_PTY is True
    assert config.SHELL_DRAIN_SECONDS == 0.0
    assert config.STDIO_STREAM_LIMIT == 64 * 1024
    assert config.ENABLED_TOOLS == ("Shell", "ReadFile")


def test_refresh_loads_env_file(env: pytest.MonkeyPatch, tmp_path: Path) -> None:
    env.setenv("SERVER_NAME", "placeholder")
    env_file = tmp_path / "extra.env"
    env_file.write_text("SERVER_NAME=from-file\n", encoding="utf-8")
    config.refresh_runtime_config(env_file=env_file)
    assert config.SERVER_NAME == "from-file"


def test_log_event_writes_jsonl(env: pytest.MonkeyPatch, tmp_path: Path) -> None:
    env.setenv("EXEC_LOG_ENABLED", "1")
    env.setenv("EXEC_LOG_DIR", str(tmp_path / "logs"))
    env.setenv("EXEC_LOG_MAX_CHARS", "40")
    config._apply_env()
    logging_utils.reset_exec_log()

    logging_utils.log_event("tool_call_start", tool="echo", payload="x" * 200, where=tmp_path)
    path = Path(logging_utils.get_exec_log_path())
    assert path.parent == (tmp_path / "logs").resolve()

    record = json.loads(path.read_text(encoding="utf-8").splitlines()[-1])
    assert record["event"] == "tool_call_start"
    assert record["tool"] == "echo"
    assert len(record["payload"]) <= 40
    assert "truncated" in record["payload"]


def test_log_event_disabled_writes_nothing(env: pytest.MonkeyPatch, tmp_path: Path) -> None:
    env.setenv("EXEC_LOG_ENABLED", "0")
    env.setenv("EXEC_LOG_DIR", str(tmp_path / "logs"))
    config._apply_env()
    logging_utils.reset_exec_log()
    logging_utils.log_event("server_start")
    assert not (tmp_path / "logs").exists()


def test_warnings_and_debug_go_to_stderr(env: pytest.MonkeyPatch, capsys: pytest.CaptureFixture) -> None:
    env.setattr(config, "DEBUG", True)
    logging_utils.warn("careful")
    logging_utils.debug("details")
    captured = capsys.readouterr()
    assert captured.out == ""
    assert "[warn] careful" in captured.err
    assert "[debug] details" in captured.err
