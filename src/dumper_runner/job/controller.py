"""JobController: one dumper job end to end on a single coordination thread."""

from __future__ import annotations

import logging
import os
import queue
import tempfile
import threading
from collections.abc import Callable
from concurrent.futures import Future
from dataclasses import dataclass, field
from pathlib import Path
from uuid import uuid4

from dumper_runner.config import Settings, TailSettings
from dumper_runner.job.command import build_command, format_command_line
from dumper_runner.job.errors import DumperRunnerError, JobBusyError, LaunchError
from dumper_runner.job.models import (
    JobAborted,
    JobCompleted,
    JobEvent,
    JobFailed,
    JobHandle,
    JobParameters,
    JobStarted,
    JobState,
    LogLines,
    TerminalEvent,
)
from dumper_runner.job.supervisor import JobSupervisor
from dumper_runner.job.tailer import LogTailer

logger = logging.getLogger(__name__)

STALL_REASON = "no output"
CLOSED_REASON = "controller closed"
LAUNCH_TIMEOUT_REASON = "launch timed out"

_CLOSE_GRACE_SECONDS = 10.0
_EXIT_WAIT_SECONDS = 5.0


@dataclass(slots=True)
class _StartRequest:
    params: JobParameters
    reply: Future


@dataclass(slots=True)
class _CancelStart:
    reply: Future


@dataclass(slots=True)
class _Launched:
    job_id: str
    pid: int


@dataclass(slots=True)
class _LaunchFailed:
    job_id: str
    error: LaunchError


@dataclass(slots=True)
class _LinesRead:
    job_id: str
    lines: list[str]


@dataclass(slots=True)
class _TailStalled:
    job_id: str


@dataclass(slots=True)
class _TailFinished:
    job_id: str


@dataclass(slots=True)
class _ProcessExited:
    job_id: str
    exit_code: int


@dataclass(slots=True)
class _Close:
    reply: Future


@dataclass(slots=True)
class _Job:
    """Live job aggregate; touched only by the coordination thread."""

    job_id: str
    log_path: Path
    command_line: str
    supervisor: JobSupervisor
    tailer: LogTailer
    reply: Future
    tailing: bool = False
    tail_done: bool = False
    abort_reason: str | None = None
    exit_code: int | None = None
    line_count: int = 0
    spawned: bool = False
    launch_done: threading.Event = field(default_factory=threading.Event)
    exited: threading.Event = field(default_factory=threading.Event)


class JobController:
    """Runs at most one dumper job and reports its progress as events.

    Every state transition happens on the controller's coordination thread.
    The supervisor's exit waiter, the tailer and the launch thread only post
    messages to its queue; ``on_event`` is invoked from that thread too.
    """

    def __init__(
        self,
        settings: Settings | None = None,
        *,
        on_event: Callable[[JobEvent], None] | None = None,
        supervisor_factory: Callable[[str], JobSupervisor] = JobSupervisor,
        tailer_factory: Callable[[TailSettings], LogTailer] = LogTailer.from_settings,
    ) -> None:
        self._settings = settings or Settings.from_env()
        self._on_event = on_event or (lambda _event: None)
        self._supervisor_factory = supervisor_factory
        self._tailer_factory = tailer_factory
        self._queue: queue.Queue[object] = queue.Queue()
        self._state = JobState.IDLE
        self._last_outcome: JobState | None = None
        self._job: _Job | None = None
        self._log_path: Path | None = None
        self._terminal: TerminalEvent | None = None
        self._idle = threading.Event()
        self._idle.set()
        self._closed = False
        self._handlers: dict[type, Callable[[object], None]] = {
            _StartRequest: self._handle_start,
            _CancelStart: self._handle_cancel_start,
            _Launched: self._handle_launched,
            _LaunchFailed: self._handle_launch_failed,
            _LinesRead: self._handle_lines,
            _TailStalled: self._handle_stalled,
            _TailFinished: self._handle_tail_finished,
            _ProcessExited: self._handle_exit,
        }
        self._thread = threading.Thread(
            target=self._run,
            daemon=True,
            name="dumper-coordinator",
        )
        self._thread.start()

    def __enter__(self) -> JobController:
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()

    @property
    def state(self) -> JobState:
        return self._state

    @property
    def last_outcome(self) -> JobState | None:
        """Terminal state of the most recently finished job."""

        return self._last_outcome

    def start(self, params: JobParameters) -> JobHandle:
        """Validate, launch and start tailing; raises instead of queueing when busy."""

        params.validate()
        if self._closed:
            raise DumperRunnerError("controller is closed")
        reply: Future = Future()
        self._queue.put(_StartRequest(params=params, reply=reply))
        try:
            return reply.result(timeout=self._settings.launch_timeout_seconds)
        except TimeoutError:
            self._post(_CancelStart(reply=reply))
            raise LaunchError(LAUNCH_TIMEOUT_REASON) from None

    def wait(self, timeout: float | None = None) -> TerminalEvent | None:
        """Block until the controller is idle; return the last terminal event."""

        if not self._idle.wait(timeout):
            return None
        return self._terminal

    def close(self, timeout: float | None = None) -> None:
        """Abort any running job and stop the coordination thread. Idempotent.

        A job that is still launching is waited for, so its process is killed
        and its log file removed before this returns.
        """

        if self._closed:
            return
        if timeout is None:
            timeout = self._settings.launch_timeout_seconds + _CLOSE_GRACE_SECONDS
        self._closed = True
        reply: Future = Future()
        self._queue.put(_Close(reply=reply))
        reply.result(timeout=timeout)
        self._thread.join(timeout=timeout)

    # -- coordination thread -------------------------------------------------

    def _run(self) -> None:
        while True:
            message = self._queue.get()
            if isinstance(message, _Close):
                self._handle_close(message)
                return
            try:
                self._handlers[type(message)](message)
            except Exception:
                logger.exception("Coordinator failed to handle %s", type(message).__name__)

    def _post(self, message: object) -> None:
        self._queue.put(message)

    def _current(self, job_id: str) -> _Job | None:
        job = self._job
        if job is None or job.job_id != job_id:
            logger.debug("Dropping message for finished job %s", job_id)
            return None
        return job

    def _handle_start(self, message: _StartRequest) -> None:
        if self._state is not JobState.IDLE:
            message.reply.set_exception(JobBusyError())
            return

        self._remove_log_target()
        try:
            log_path = self._create_log_target()
        except OSError as error:
            message.reply.set_exception(LaunchError(f"Unable to create log file: {error}"))
            return

        self._state = JobState.STARTING
        self._terminal = None
        self._idle.clear()

        args = build_command(message.params, log_path)
        job = _Job(
            job_id=uuid4().hex[:12],
            log_path=log_path,
            command_line=format_command_line(self._settings.tool, args),
            supervisor=self._supervisor_factory(self._settings.tool),
            tailer=self._tailer_factory(self._settings.tail),
            reply=message.reply,
        )
        self._job = job
        logger.info("Starting job %s: %s", job.job_id, job.command_line)
        threading.Thread(
            target=self._launch,
            args=(job, args),
            daemon=True,
            name=f"dumper-launch-{job.job_id}",
        ).start()

    def _launch(self, job: _Job, args: list[str]) -> None:
        job_id = job.job_id

        def _on_exit(code: int) -> None:
            job.exited.set()
            self._post(_ProcessExited(job_id=job_id, exit_code=code))

        try:
            pid = job.supervisor.launch(args, job.log_path, on_exit=_on_exit)
        except LaunchError as error:
            self._post(_LaunchFailed(job_id=job_id, error=error))
        else:
            job.spawned = True
            self._post(_Launched(job_id=job_id, pid=pid))
        finally:
            job.launch_done.set()

    def _handle_launched(self, message: _Launched) -> None:
        job = self._current(message.job_id)
        if job is None:
            return
        job_id = job.job_id
        if job.abort_reason is not None:
            logger.warning("Job %s launched after its caller gave up, aborting", job_id)
            if not job.reply.done():
                job.reply.set_exception(LaunchError(job.abort_reason))
            job.tail_done = True
            self._abort_process(job)
            self._maybe_complete(job)
            return
        job.tailer.start(
            job.log_path,
            on_lines=lambda lines: self._post(_LinesRead(job_id=job_id, lines=lines)),
            on_stalled=lambda: self._post(_TailStalled(job_id=job_id)),
            on_finished=lambda: self._post(_TailFinished(job_id=job_id)),
        )
        job.tailing = True
        self._state = JobState.RUNNING
        logger.info("Job %s running as pid %d", job_id, message.pid)
        self._emit(JobStarted(command_line=job.command_line))
        job.reply.set_result(
            JobHandle(job_id=job_id, command_line=job.command_line, log_path=job.log_path),
        )
        if job.exit_code is not None:
            job.tailer.finish()

    def _handle_cancel_start(self, message: _CancelStart) -> None:
        job = self._job
        if job is None or job.reply is not message.reply or job.abort_reason is not None:
            return
        logger.warning("Job %s did not start in time", job.job_id)
        job.abort_reason = LAUNCH_TIMEOUT_REASON
        if job.tailing:
            self._abort_process(job)

    def _handle_launch_failed(self, message: _LaunchFailed) -> None:
        job = self._current(message.job_id)
        if job is None:
            return
        logger.error("Job %s failed to launch: %s", job.job_id, message.error)
        if not job.reply.done():
            job.reply.set_exception(message.error)
        self._finalize(JobState.FAILED, JobFailed(launch_error=str(message.error)))

    def _handle_lines(self, message: _LinesRead) -> None:
        job = self._current(message.job_id)
        if job is None:
            return
        job.line_count += len(message.lines)
        self._emit(LogLines(lines=tuple(message.lines)))

    def _handle_stalled(self, message: _TailStalled) -> None:
        job = self._current(message.job_id)
        if job is None or job.exit_code is not None or job.abort_reason is not None:
            return
        job.abort_reason = STALL_REASON
        logger.warning("Job %s produced no output, aborting", job.job_id)
        self._abort_process(job)

    def _handle_tail_finished(self, message: _TailFinished) -> None:
        job = self._current(message.job_id)
        if job is None:
            return
        job.tail_done = True
        self._maybe_complete(job)

    def _handle_exit(self, message: _ProcessExited) -> None:
        job = self._current(message.job_id)
        if job is None:
            return
        job.exit_code = message.exit_code
        if job.tailing:
            job.tailer.finish()
        self._maybe_complete(job)

    def _maybe_complete(self, job: _Job) -> None:
        if job.exit_code is None or not job.tail_done:
            return
        if job.abort_reason is not None:
            self._finalize(JobState.ABORTED, JobAborted(reason=job.abort_reason))
        elif job.exit_code == 0:
            self._finalize(JobState.COMPLETED, JobCompleted(line_count=job.line_count))
        else:
            self._finalize(JobState.FAILED, JobFailed(exit_code=job.exit_code))

    def _abort_process(self, job: _Job) -> None:
        threading.Thread(
            target=job.supervisor.abort,
            daemon=True,
            name=f"dumper-abort-{job.job_id}",
        ).start()

    def _finalize(self, outcome: JobState, event: TerminalEvent) -> None:
        job = self._job
        if job is not None:
            job.tailer.stop()
            logger.info("Job %s %s", job.job_id, outcome.value)
        self._state = outcome
        self._last_outcome = outcome
        self._remove_log_target()
        self._job = None
        self._terminal = event
        self._emit(event)
        self._state = JobState.IDLE
        self._idle.set()

    def _handle_close(self, message: _Close) -> None:
        job = self._job
        if job is not None:
            job.tailer.stop()
            if not job.launch_done.wait(self._settings.launch_timeout_seconds):
                logger.warning("Job %s still launching at close", job.job_id)
            if job.spawned:
                job.supervisor.abort()
                if not job.exited.wait(_EXIT_WAIT_SECONDS):
                    logger.warning("Job %s did not exit after abort", job.job_id)
            if not job.reply.done():
                job.reply.set_exception(DumperRunnerError(CLOSED_REASON))
            self._finalize(JobState.ABORTED, JobAborted(reason=CLOSED_REASON))
        self._remove_log_target()
        message.reply.set_result(None)

    def _emit(self, event: JobEvent) -> None:
        try:
            self._on_event(event)
        except Exception:
            logger.exception("Event callback failed for %s", type(event).__name__)

    # -- log target ----------------------------------------------------------

    def _create_log_target(self) -> Path:
        fd, name = tempfile.mkstemp(prefix="dumper-", suffix=".log", dir=self._settings.log_dir)
        os.close(fd)
        self._log_path = Path(name)
        return self._log_path

    def _remove_log_target(self) -> None:
        if self._log_path is None:
            return
        try:
            self._log_path.unlink(missing_ok=True)
        except OSError as error:
            logger.warning("Unable to delete log file %s: %s", self._log_path, error)
            return
        self._log_path = None
