"""Shared test fixtures."""

from __future__ import annotations

import sys
from pathlib import Path

import pytest

from dumper_runner.config import Settings, TailSettings

ECHO_TOOL_COMMAND = f'"{sys.executable}" -m dumper_runner.job.echo_dumper'


@pytest.fixture()
def echo_tool() -> str:
    """Tool command running the local stand-in dumper."""
    return ECHO_TOOL_COMMAND


@pytest.fixture()
def log_dir(tmp_path: Path) -> Path:
    path = tmp_path / "logs"
    path.mkdir()
    return path


@pytest.fixture()
def destination(tmp_path: Path) -> Path:
    path = tmp_path / "gallery"
    path.mkdir()
    return path


@pytest.fixture()
def make_settings(echo_tool: str, log_dir: Path):
    """Settings factory with tailer timings short enough for tests."""

    def _make(
        *,
        stall_threshold: int = 25,
        quiet_seconds: float = 0.2,
        stall_delay_seconds: float = 0.02,
        tool: str | None = None,
        launch_timeout_seconds: float = 20.0,
    ) -> Settings:
        return Settings(
            tool=tool or echo_tool,
            log_dir=log_dir,
            launch_timeout_seconds=launch_timeout_seconds,
            tail=TailSettings(
                stall_threshold=stall_threshold,
                stall_delay_seconds=stall_delay_seconds,
                quiet_seconds=quiet_seconds,
                lock_retry_max_delay_seconds=0.05,
            ),
        )

    return _make
