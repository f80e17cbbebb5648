"""Command-line entry point for OpenSwitch."""

import sys

import click
from rich.console import Console
from rich.markup import escape

from openswitch import __version__
from openswitch.cli.mcp_cli import mcp_group
from openswitch.cli.prompt_cli import prompt_group
from openswitch.cli.provider_cli import provider_group
from openswitch.cli.session import get_settings, run_session
from openswitch.core.orchestrator import ConfigOrchestrator
from openswitch.host.local import HostPaths
from openswitch.utils.log import daily_log_file, get_logger

console = Console()
logger = get_logger()


@click.group(invoke_without_command=True)
@click.version_option(version=__version__)
@click.option("--no-log-file", is_flag=True, help="Do not write a log file under the app home.")
@click.pass_context
def cli(ctx: click.Context, no_log_file: bool) -> None:
    """OpenSwitch - manage opencode providers, MCP servers and prompts"""
    settings = get_settings(ctx)
    if not no_log_file:
        log_file = daily_log_file(settings.app_home)
        try:
            logger.attach_file_handler(log_file)
        except OSError as exc:
            logger.warning(
                "[cli] Could not open log file: %s: %s",
                type(exc).__name__,
                exc,
                extra={"log_file": str(log_file)},
            )
    logger.debug(
        "[cli] Starting CLI invocation",
        extra={"command": ctx.invoked_subcommand, "config_home": str(settings.config_home)},
    )
    if ctx.invoked_subcommand is None:
        click.echo(ctx.get_help())


cli.add_command(provider_group)
cli.add_command(mcp_group)
cli.add_command(prompt_group)


@cli.group(name="instructions", invoke_without_command=True)
@click.pass_context
def instructions_group(ctx: click.Context) -> None:
    """Manage instruction file paths"""
    if ctx.invoked_subcommand is None:
        ctx.invoke(list_instructions)


@instructions_group.command(name="list")
def list_instructions() -> None:
    async def _list(session: ConfigOrchestrator):
        return await session.instructions.list()

    paths = run_session(_list)
    if not paths:
        click.echo("No instruction files configured.")
        return
    for path in paths:
        click.echo(path)


@instructions_group.command(name="add")
@click.argument("path")
def add_instruction(path: str) -> None:
    async def _add(session: ConfigOrchestrator):
        await session.instructions.add(path)

    run_session(_add)
    click.echo(f"Added instruction file '{path.strip()}'.")


@instructions_group.command(name="remove")
@click.argument("path")
def remove_instruction(path: str) -> None:
    async def _remove(session: ConfigOrchestrator):
        await session.instructions.remove(path)

    run_session(_remove)
    click.echo(f"Removed instruction file '{path.strip()}'.")


@cli.command(name="paths")
@click.pass_context
def paths_cmd(ctx: click.Context) -> None:
    """Show the files OpenSwitch reads and writes"""
    settings = get_settings(ctx)
    paths = HostPaths.from_settings(settings)
    console.print("[bold]OpenSwitch Paths[/bold]")
    rows = [
        ("Config", paths.config_file),
        ("Credentials", paths.auth_file),
        ("Prompt store", paths.prompts_file),
        ("Active prompt", paths.agents_file),
        ("Logs", daily_log_file(settings.app_home).parent),
    ]
    for label, value in rows:
        click.echo(f"{label}: {value}")


def main() -> None:
    """Main entry point."""
    try:
        cli()
    except KeyboardInterrupt:
        console.print("\n[yellow]Interrupted[/yellow]")
        sys.exit(130)
    except SystemExit:
        raise
    except (RuntimeError, ValueError, TypeError, OSError) as e:
        console.print(f"[red]Fatal error: {escape(str(e))}[/red]")
        logger.warning(
            "[cli] Fatal error in main CLI entrypoint: %s: %s",
            type(e).__name__,
            e,
        )
        sys.exit(1)


if __name__ == "__main__":
    main()
