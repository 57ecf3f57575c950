"""Argument list rendering for the dumper tool."""

from __future__ import annotations

from pathlib import Path

from dumper_runner.job.models import JobParameters


def build_command(params: JobParameters, log_path: Path | str) -> list[str]:
    """Turn validated job parameters into the tool's argument list.

    Url and destination are wrapped in double quotes and otherwise passed as
    opaque strings. A page range that only sets its end starts at page 1.
    """

    args = [
        "--output",
        str(log_path),
        "--url",
        f'"{params.url}"',
        "--path",
        f'"{params.destination_path}"',
    ]
    page_from = params.page_from or 1
    page_to = params.page_to or 1

    if page_from > 1:
        args += ["--from", str(page_from)]
    if page_to > 1:
        if page_from <= 1:
            args += ["--from", "1"]
        args += ["--to", str(page_to)]
    if not params.is_auto_profile:
        args += ["--profile", params.profile]
    if params.thread_count is not None and params.thread_count > 1:
        args += ["--threads", f"1:{params.thread_count}"]
    return args


def format_command_line(tool: str, args: list[str]) -> str:
    return " ".join([tool, *args])
