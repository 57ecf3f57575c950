"""Profile discovery through ``<tool> -l``."""

from __future__ import annotations

import logging
import subprocess

from dumper_runner.job.errors import LaunchError
from dumper_runner.job.models import AUTO_PROFILE

logger = logging.getLogger(__name__)


def list_profiles(tool: str = "dumper", *, timeout_seconds: float = 30.0) -> list[str]:
    """Return profile names offered by the tool, led by the ``Auto`` sentinel."""

    try:
        completed = subprocess.run(  # noqa: S602
            f"{tool} -l",
            shell=True,
            capture_output=True,
            text=True,
            timeout=timeout_seconds,
            check=False,
        )
    except (OSError, subprocess.TimeoutExpired) as error:
        raise LaunchError(f"Unable to run {tool}: {error}") from error
    if completed.returncode != 0:
        raise LaunchError(
            f"Unable to run {tool}: exit code {completed.returncode}: "
            f"{completed.stderr.strip()[:200]}",
        )

    profiles = parse_profiles(completed.stdout)
    logger.debug("Tool %s offers %d profiles", tool, len(profiles) - 1)
    return profiles


def parse_profiles(output: str) -> list[str]:
    entries = [line.strip() for line in output.splitlines()]
    entries = [entry for entry in entries if entry]
    return [AUTO_PROFILE, *entries[1:]]
