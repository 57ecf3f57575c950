from __future__ import annotations

import threading
import time
from pathlib import Path

import allure
import pytest

from dumper_runner.job.errors import LaunchError
from dumper_runner.job.supervisor import JobSupervisor

pytestmark = [
    allure.epic("Dump Runner"),
    allure.feature("Process Supervision"),
]


class _ExitRecorder:
    def __init__(self) -> None:
        self.codes: list[int] = []
        self.exited = threading.Event()

    def __call__(self, code: int) -> None:
        self.codes.append(code)
        self.exited.set()


def _args(log: Path, destination: Path) -> list[str]:
    return ["--output", str(log), "--url", '"https://example.com/g"', "--path", f'"{destination}"']


def test_launch_reports_exit_code_once(
    echo_tool: str,
    tmp_path: Path,
    destination: Path,
    monkeypatch: pytest.MonkeyPatch,
) -> None:
    monkeypatch.setenv("DUMPER_ECHO_LINES", "4")
    monkeypatch.setenv("DUMPER_ECHO_EXIT_CODE", "3")
    log = tmp_path / "job.log"
    recorder = _ExitRecorder()
    supervisor = JobSupervisor(echo_tool)

    pid = supervisor.launch(_args(log, destination), log, recorder)

    assert pid > 0
    assert recorder.exited.wait(20)
    time.sleep(0.1)
    assert recorder.codes == [3]
    assert not supervisor.is_running
    lines = log.read_text("utf-8").splitlines()
    assert len(lines) == 4
    assert lines[0].endswith("https://example.com/g item 1")


def test_shell_redirect_captures_stderr(
    echo_tool: str,
    tmp_path: Path,
    destination: Path,
) -> None:
    log = tmp_path / "job.log"
    recorder = _ExitRecorder()
    supervisor = JobSupervisor(echo_tool)

    supervisor.launch(["--bogus-flag"], log, recorder)

    assert recorder.exited.wait(20)
    assert recorder.codes == [2]
    assert "unrecognized arguments" in log.read_text("utf-8")


def test_missing_tool_fails_fast(tmp_path: Path) -> None:
    supervisor = JobSupervisor("definitely-not-a-dumper-tool-xyz")

    with pytest.raises(LaunchError, match="command not found"):
        supervisor.launch(["--output", "x"], tmp_path / "job.log", lambda _code: None)

    assert not supervisor.is_running


def test_abort_kills_hanging_process(
    echo_tool: str,
    tmp_path: Path,
    destination: Path,
    monkeypatch: pytest.MonkeyPatch,
) -> None:
    monkeypatch.setenv("DUMPER_ECHO_LINES", "1")
    monkeypatch.setenv("DUMPER_ECHO_HANG", "1")
    log = tmp_path / "job.log"
    recorder = _ExitRecorder()
    supervisor = JobSupervisor(echo_tool)
    supervisor.launch(_args(log, destination), log, recorder)

    time.sleep(0.5)
    assert supervisor.is_running
    supervisor.abort()

    assert recorder.exited.wait(20)
    assert recorder.codes[0] != 0
    assert not supervisor.is_running


def test_abort_after_exit_is_a_no_op(
    echo_tool: str,
    tmp_path: Path,
    destination: Path,
) -> None:
    log = tmp_path / "job.log"
    recorder = _ExitRecorder()
    supervisor = JobSupervisor(echo_tool)
    supervisor.launch(_args(log, destination), log, recorder)
    assert recorder.exited.wait(20)

    supervisor.abort()
    supervisor.abort()

    assert recorder.codes == [0]


def test_abort_without_launch_is_a_no_op() -> None:
    JobSupervisor("dumper").abort()
