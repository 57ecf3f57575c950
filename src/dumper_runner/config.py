"""Runtime configuration for the dumper job runner."""

from __future__ import annotations

import os
import tempfile
from dataclasses import dataclass, field
from pathlib import Path


@dataclass(slots=True)
class TailSettings:
    """Log tailing and stall detection settings."""

    stall_threshold: int = 5
    stall_delay_seconds: float = 0.5
    quiet_seconds: float = 2.0
    lock_retry_max_delay_seconds: float = 1.0


@dataclass(slots=True)
class Settings:
    """Application settings grouped by domain concerns."""

    tool: str = "dumper"
    log_dir: Path = field(default_factory=lambda: Path(tempfile.gettempdir()))
    launch_timeout_seconds: float = 30.0
    tail: TailSettings = field(default_factory=TailSettings)

    @classmethod
    def from_env(cls, tool: str | None = None) -> Settings:
        """Load settings from environment with defaults for a local install."""

        log_dir = os.getenv("DUMPER_RUNNER_LOG_DIR", "").strip()
        return cls(
            tool=tool or os.getenv("DUMPER_RUNNER_TOOL", "dumper"),
            log_dir=Path(log_dir) if log_dir else Path(tempfile.gettempdir()),
            launch_timeout_seconds=float(
                os.getenv("DUMPER_RUNNER_LAUNCH_TIMEOUT_SECONDS", "30.0"),
            ),
            tail=TailSettings(
                stall_threshold=int(os.getenv("DUMPER_RUNNER_STALL_THRESHOLD", "5")),
                stall_delay_seconds=float(
                    os.getenv("DUMPER_RUNNER_STALL_DELAY_SECONDS", "0.5"),
                ),
                quiet_seconds=float(os.getenv("DUMPER_RUNNER_QUIET_SECONDS", "2.0")),
                lock_retry_max_delay_seconds=float(
                    os.getenv("DUMPER_RUNNER_LOCK_RETRY_MAX_DELAY_SECONDS", "1.0"),
                ),
            ),
        )

    def validate(self) -> None:
        """Raise configuration error if any setting is out of range."""

        if not self.tool.strip():
            raise ValueError("DUMPER_RUNNER_TOOL must not be empty.")
        if self.launch_timeout_seconds <= 0:
            raise ValueError("DUMPER_RUNNER_LAUNCH_TIMEOUT_SECONDS must be > 0.")
        if self.tail.stall_threshold <= 0:
            raise ValueError("DUMPER_RUNNER_STALL_THRESHOLD must be a positive integer.")
        if self.tail.stall_delay_seconds < 0:
            raise ValueError("DUMPER_RUNNER_STALL_DELAY_SECONDS must be >= 0.")
        if self.tail.quiet_seconds <= 0:
            raise ValueError("DUMPER_RUNNER_QUIET_SECONDS must be > 0.")
        if self.tail.lock_retry_max_delay_seconds <= 0:
            raise ValueError("DUMPER_RUNNER_LOCK_RETRY_MAX_DELAY_SECONDS must be > 0.")
        if not self.log_dir.is_dir():
            raise ValueError(f"Log directory does not exist: {str(self.log_dir)!r}")
