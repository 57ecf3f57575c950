"""CLI controller for dumper job commands."""

from __future__ import annotations

import queue
from collections.abc import Iterator
from dataclasses import dataclass, replace
from pathlib import Path

from dumper_runner.config import Settings
from dumper_runner.job.controller import JobController
from dumper_runner.job.errors import DumperRunnerError
from dumper_runner.job.models import (
    JobAborted,
    JobCompleted,
    JobEvent,
    JobFailed,
    JobParameters,
    JobStarted,
    LogLines,
)
from dumper_runner.job.profiles import list_profiles


class JobUnsuccessfulError(DumperRunnerError):
    """The job ended failed or aborted."""


@dataclass(slots=True)
class DumpRunCommand:
    """CLI input for one dump run."""

    url: str
    destination_path: Path
    page_from: int | None = None
    page_to: int | None = None
    profile: str = ""
    thread_count: int | None = None
    tool: str | None = None


@dataclass(slots=True)
class ProfilesCommand:
    """CLI input for profile listing."""

    tool: str | None = None


class DumpCliController:
    """Turns job events into printable lines."""

    def __init__(self, settings_loader=Settings.from_env) -> None:
        self._settings_loader = settings_loader

    def profiles(self, command: ProfilesCommand) -> list[str]:
        settings = self._settings(command.tool)
        return list_profiles(settings.tool, timeout_seconds=settings.launch_timeout_seconds)

    def run(self, command: DumpRunCommand) -> Iterator[str]:
        """Run one job, yielding the command line, log lines and the outcome.

        Raises ``JobUnsuccessfulError`` after the last line when the job
        failed or was aborted.
        """

        settings = self._settings(command.tool)
        params = JobParameters(
            url=command.url,
            destination_path=command.destination_path,
            page_from=command.page_from,
            page_to=command.page_to,
            profile=command.profile,
            thread_count=command.thread_count,
        )
        events: queue.Queue[JobEvent] = queue.Queue()

        with JobController(settings, on_event=events.put) as controller:
            controller.start(params)
            while True:
                event = events.get()
                if isinstance(event, JobStarted):
                    yield f"$> {event.command_line}"
                elif isinstance(event, LogLines):
                    for line in event.lines:
                        yield ""
                        yield line
                elif isinstance(event, JobCompleted):
                    yield ""
                    yield f"Dump ended: {event.line_count} log lines"
                    return
                elif isinstance(event, JobFailed):
                    if event.launch_error is not None:
                        raise JobUnsuccessfulError(f"Dump failed: {event.launch_error}")
                    raise JobUnsuccessfulError(f"Dump failed with exit code {event.exit_code}")
                elif isinstance(event, JobAborted):
                    raise JobUnsuccessfulError(f"Dump aborted: {event.reason}")

    def _settings(self, tool: str | None) -> Settings:
        settings = self._settings_loader()
        if tool:
            settings = replace(settings, tool=tool)
        settings.validate()
        return settings
