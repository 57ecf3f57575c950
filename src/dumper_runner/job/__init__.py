"""Single-job supervision and log tailing for the dumper tool."""

from dumper_runner.job.command import build_command, format_command_line
from dumper_runner.job.controller import JobController
from dumper_runner.job.errors import DumperRunnerError, JobBusyError, LaunchError, ValidationError
from dumper_runner.job.models import (
    JobAborted,
    JobCompleted,
    JobEvent,
    JobFailed,
    JobParameters,
    JobStarted,
    JobState,
    LogLines,
)
from dumper_runner.job.profiles import AUTO_PROFILE, list_profiles
from dumper_runner.job.supervisor import JobSupervisor
from dumper_runner.job.tailer import LogTailer

__all__ = [
    "AUTO_PROFILE",
    "DumperRunnerError",
    "JobAborted",
    "JobBusyError",
    "JobCompleted",
    "JobController",
    "JobEvent",
    "JobFailed",
    "JobParameters",
    "JobStarted",
    "JobState",
    "JobSupervisor",
    "LaunchError",
    "LogLines",
    "LogTailer",
    "ValidationError",
    "build_command",
    "format_command_line",
    "list_profiles",
]
