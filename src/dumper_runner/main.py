"""CLI entrypoint for dumper-runner."""

import logging
from collections.abc import Iterable
from pathlib import Path

import rich_click as click

from dumper_runner import __version__
from dumper_runner.job.cli import DumpCliController, DumpRunCommand, ProfilesCommand
from dumper_runner.job.errors import DumperRunnerError

click.rich_click.USE_MARKDOWN = True
DUMP_CONTROLLER = DumpCliController()


@click.group()
@click.version_option(version=__version__, prog_name="dumper-runner")
@click.option("--verbose", is_flag=True, default=False, help="Log supervision details to stderr.")
def dumper_runner(verbose: bool) -> None:
    """Run the dumper tool and stream its log."""

    if verbose:
        logging.basicConfig(
            level=logging.DEBUG,
            format="%(asctime)s %(levelname)s %(name)s: %(message)s",
        )


@dumper_runner.command("profiles")
@click.option(
    "--tool",
    default=None,
    help="Tool command. If omitted, DUMPER_RUNNER_TOOL is used.",
)
def profiles(tool: str | None) -> None:
    """List the profiles offered by the tool."""

    try:
        _emit_lines(DUMP_CONTROLLER.profiles(ProfilesCommand(tool=tool)))
    except (DumperRunnerError, ValueError) as error:
        raise click.ClickException(str(error)) from error


@dumper_runner.command("run")
@click.option("--url", required=True, help="Gallery URL to dump.")
@click.option(
    "--path",
    "destination_path",
    required=True,
    type=click.Path(path_type=Path),
    help="Destination directory.",
)
@click.option("--from", "page_from", type=click.IntRange(min=1), default=None, help="First page.")
@click.option("--to", "page_to", type=click.IntRange(min=1), default=None, help="Last page.")
@click.option(
    "--profile",
    default="",
    help="Profile name from `dumper-runner profiles`; empty or Auto picks automatically.",
)
@click.option(
    "--threads",
    "thread_count",
    type=click.IntRange(min=1),
    default=None,
    help="Maximum number of download threads.",
)
@click.option(
    "--tool",
    default=None,
    help="Tool command. If omitted, DUMPER_RUNNER_TOOL is used.",
)
def run(  # noqa: PLR0913
    url: str,
    destination_path: Path,
    page_from: int | None,
    page_to: int | None,
    profile: str,
    thread_count: int | None,
    tool: str | None,
) -> None:
    """Run one dump, streaming its log until it completes."""

    try:
        _emit_lines(
            DUMP_CONTROLLER.run(
                DumpRunCommand(
                    url=url,
                    destination_path=destination_path,
                    page_from=page_from,
                    page_to=page_to,
                    profile=profile,
                    thread_count=thread_count,
                    tool=tool,
                ),
            ),
        )
    except (DumperRunnerError, ValueError) as error:
        raise click.ClickException(str(error)) from error


def _emit_lines(lines: Iterable[str]) -> None:
    for line in lines:
        click.echo(line)


if __name__ == "__main__":  # pragma: no cover
    dumper_runner()
