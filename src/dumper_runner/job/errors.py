"""Exceptions raised by job supervision."""

from __future__ import annotations


class DumperRunnerError(RuntimeError):
    """Base error for dumper job handling."""


class ValidationError(DumperRunnerError):
    """Job parameters rejected before any resource is allocated."""

    def __init__(self, field: str, message: str) -> None:
        super().__init__(message)
        self.field = field


class LaunchError(DumperRunnerError):
    """The external tool could not be started."""


class JobBusyError(DumperRunnerError):
    """A job is already in progress on this controller."""

    def __init__(self, message: str = "job already in progress") -> None:
        super().__init__(message)
