"""Domain models for a single dumper job."""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from urllib.parse import urlparse

from dumper_runner.job.errors import ValidationError

AUTO_PROFILE = "Auto"


class JobState(str, Enum):
    """Controller lifecycle states."""

    IDLE = "idle"
    STARTING = "starting"
    RUNNING = "running"
    COMPLETED = "completed"
    FAILED = "failed"
    ABORTED = "aborted"


@dataclass(frozen=True, slots=True)
class JobParameters:
    """Validated input for one tool invocation."""

    url: str
    destination_path: Path
    page_from: int | None = None
    page_to: int | None = None
    profile: str = ""
    thread_count: int | None = None

    @property
    def is_auto_profile(self) -> bool:
        return self.profile in ("", AUTO_PROFILE)

    def validate(self) -> None:
        """Raise ``ValidationError`` naming the first offending field."""

        if not self.url:
            raise ValidationError("url", "URL is missing")
        parsed = urlparse(self.url)
        if not parsed.scheme or not parsed.netloc or any(c.isspace() for c in self.url):
            raise ValidationError("url", f"URL seems to be malformed: {self.url!r}")
        if not Path(self.destination_path).is_dir():
            raise ValidationError(
                "destination_path",
                f"Destination directory does not exist: {str(self.destination_path)!r}",
            )
        for name in ("page_from", "page_to", "thread_count"):
            value = getattr(self, name)
            if value is not None and value < 1:
                raise ValidationError(name, f"{name} must be >= 1, got {value}")
        if (
            self.page_from is not None
            and self.page_to is not None
            and self.page_to < self.page_from
        ):
            raise ValidationError(
                "page_to",
                f"page_to ({self.page_to}) must be >= page_from ({self.page_from})",
            )


@dataclass(frozen=True, slots=True)
class JobStarted:
    command_line: str


@dataclass(frozen=True, slots=True)
class LogLines:
    lines: tuple[str, ...]


@dataclass(frozen=True, slots=True)
class JobCompleted:
    line_count: int


@dataclass(frozen=True, slots=True)
class JobFailed:
    exit_code: int | None = None
    launch_error: str | None = None


@dataclass(frozen=True, slots=True)
class JobAborted:
    reason: str


JobEvent = JobStarted | LogLines | JobCompleted | JobFailed | JobAborted
TerminalEvent = JobCompleted | JobFailed | JobAborted


@dataclass(frozen=True, slots=True)
class JobHandle:
    """Snapshot returned to the caller once a job is running."""

    job_id: str
    command_line: str
    log_path: Path
