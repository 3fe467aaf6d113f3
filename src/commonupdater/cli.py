"""CommonUpdater CLI entry point."""

import asyncio
import logging

import click
from pydantic import ValidationError
from rich.console import Console

from commonupdater import __version__
from commonupdater.config import UpdaterConfig, build_http_client, build_self_target
from commonupdater.logs import setup_logging
from commonupdater.models import OutcomeKind, UpdateOutcome, UpdateTarget
from commonupdater.orchestrator import build_orchestrator

console = Console()
logger = logging.getLogger(__name__)

USAGE = (
    "Usage: commonupdater <projectName> <projectExeName> <projectAuthor> "
    "<projectCurrentVersion> <projectCurrentExePath> <projectNewExePath>"
)
ARGUMENT_COUNT = 6


async def run_update(config: UpdaterConfig, target: UpdateTarget) -> UpdateOutcome:
    """Update the updater itself if needed, then ``target``."""
    async with build_http_client(config) as client:
        orchestrator = build_orchestrator(config, client)
        return await orchestrator.run_with_self_update(target, build_self_target(config))


def print_outcome(outcome: UpdateOutcome) -> None:
    if outcome.kind == OutcomeKind.ALREADY_LATEST:
        console.print(f"[green]✓[/green] Already up to date ([cyan]{outcome.current_version}[/cyan])")
    elif outcome.kind == OutcomeKind.RUNNING_NEWER_THAN_REMOTE:
        console.print(
            f"[yellow]→[/yellow] Running [cyan]{outcome.current_version}[/cyan], "
            f"newer than published [dim]{outcome.latest_version}[/dim]"
        )
    elif outcome.kind == OutcomeKind.UPDATED:
        what = "Updater" if outcome.self_update else "Project"
        console.print(
            f"[green]✓[/green] {what} updated: [dim]{outcome.current_version}[/dim] → "
            f"[cyan]{outcome.latest_version}[/cyan]"
        )
    else:
        console.print(f"[red]✗[/red] Update failed: {outcome.reason}")


@click.command(context_settings={"help_option_names": ["-h", "--help"]})
@click.option("-v", "--verbose", is_flag=True, help="Enable verbose logging")
@click.option("--no-self-update", is_flag=True, help="Skip checking for a newer updater")
@click.version_option(__version__, prog_name="commonupdater")
@click.argument("args", nargs=-1)
@click.pass_context
def cli(ctx: click.Context, verbose: bool, no_self_update: bool, args: tuple[str, ...]) -> None:
    """Update an application to its latest published build.

    \b
    Arguments, in order:
      PROJECT_NAME      project name in the version feed / GitHub repository
      EXE_NAME          executable file name of the published artifact
      PUBLISHER         GitHub owner of the project
      CURRENT_VERSION   installed version, e.g. 1.2.0
      CURRENT_EXE_PATH  path of the installed executable
      NEW_EXE_PATH      where to download the new build
    """
    if len(args) != ARGUMENT_COUNT:
        click.echo(USAGE)
        return

    try:
        config = UpdaterConfig.from_env()
    except ValueError as e:
        console.print(f"[red]✗[/red] Invalid configuration: {e}")
        ctx.exit(1)
    if no_self_update:
        config = config.with_overrides(self_update=False)
    log_path = setup_logging(config, verbose, console=console)
    if log_path is not None:
        logger.debug(f"Logging to {log_path}")

    project_name, exe_name, publisher, current_version, current_path, new_path = args
    try:
        target = UpdateTarget(
            project_name=project_name,
            executable_name=exe_name,
            publisher=publisher,
            current_version=current_version,
            install_path=current_path,
            download_path=new_path,
        )
    except ValidationError as e:
        logger.error(f"Invalid arguments: {e}")
        ctx.exit(1)

    try:
        outcome = asyncio.run(run_update(config, target))
    except Exception:
        logger.exception("Unexpected error while updating")
        outcome = None

    if outcome is None:
        ctx.exit(1)

    print_outcome(outcome)
    ctx.exit(0 if outcome.succeeded else 1)


def main() -> None:
    cli()


if __name__ == "__main__":
    main()
