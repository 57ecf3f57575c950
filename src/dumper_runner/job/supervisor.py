"""Subprocess lifecycle for one dumper invocation."""

from __future__ import annotations

import logging
import os
import shlex
import shutil
import signal
import subprocess
import threading
from collections.abc import Callable
from pathlib import Path

from dumper_runner.job.errors import LaunchError

logger = logging.getLogger(__name__)


class JobSupervisor:
    """Spawns the tool through the shell and reports its exit exactly once.

    Combined stdout/stderr is appended to the log file by shell redirection;
    the tool also writes its own records there via ``--output``.
    """

    def __init__(self, tool: str = "dumper", *, os_name: str | None = None) -> None:
        self._tool = tool
        self._os_name = os_name or os.name
        self._lock = threading.Lock()
        self._process: subprocess.Popen[bytes] | None = None
        self._waiter: threading.Thread | None = None

    @property
    def is_running(self) -> bool:
        with self._lock:
            return self._process is not None and self._process.poll() is None

    def launch(
        self,
        args: list[str],
        log_path: Path,
        on_exit: Callable[[int], None],
    ) -> int:
        """Start the tool and return its pid; ``on_exit`` runs on a waiter thread."""

        with self._lock:
            if self._process is not None:
                raise LaunchError("supervisor already owns a running process")
            command_line = self._shell_command(args, log_path)
            logger.info("Launching: %s", command_line)
            try:
                process = subprocess.Popen(  # noqa: S602
                    command_line,
                    shell=True,
                    stdin=subprocess.DEVNULL,
                    **self._session_kwargs(),
                )
            except OSError as error:
                raise LaunchError(f"Unable to run {self._tool}: {error}") from error
            self._process = process

        self._waiter = threading.Thread(
            target=self._wait_for_exit,
            args=(process, on_exit),
            daemon=True,
            name=f"dumper-exit-{process.pid}",
        )
        self._waiter.start()
        return process.pid

    def abort(self) -> None:
        """Kill the process group unconditionally; a finished process is a no-op."""

        with self._lock:
            process = self._process
        if process is None or process.poll() is not None:
            logger.debug("Abort requested but no process is running")
            return
        logger.warning("Killing dumper process %d", process.pid)
        _kill_process_tree(process, os_name=self._os_name)

    def _wait_for_exit(
        self,
        process: subprocess.Popen[bytes],
        on_exit: Callable[[int], None],
    ) -> None:
        try:
            exit_code = process.wait()
        finally:
            with self._lock:
                if self._process is process:
                    self._process = None
        logger.info("Dumper process %d exited with code %d", process.pid, exit_code)
        on_exit(exit_code)

    def _shell_command(self, args: list[str], log_path: Path) -> str:
        self._check_executable()
        return f'{self._tool} {" ".join(args)} >> "{log_path}" 2>&1'

    def _check_executable(self) -> None:
        try:
            head = shlex.split(self._tool, posix=self._os_name != "nt")[0]
        except (ValueError, IndexError) as error:
            raise LaunchError(f"Invalid tool command: {self._tool!r}") from error
        if shutil.which(head.strip('"')) is None:
            raise LaunchError(f"Unable to run {head}: command not found")

    def _session_kwargs(self) -> dict[str, object]:
        if self._os_name == "nt":
            return {"creationflags": getattr(subprocess, "CREATE_NEW_PROCESS_GROUP", 0)}
        return {"start_new_session": True}


def _kill_process_tree(process: subprocess.Popen[bytes], *, os_name: str) -> None:
    if os_name != "nt":
        try:
            os.killpg(process.pid, signal.SIGKILL)
            return
        except ProcessLookupError:
            return
        except OSError:
            logger.debug("killpg failed for %d, falling back to kill", process.pid)
    try:
        process.kill()
    except OSError:
        return
