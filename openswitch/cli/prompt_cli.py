"""`openswitch prompt` command group."""

from __future__ import annotations

import json
from datetime import datetime
from typing import Optional

import click
from rich import box
from rich.console import Console
from rich.markdown import Markdown
from rich.table import Table

from openswitch.cli.session import read_text_option, run_session
from openswitch.core.models import to_wire
from openswitch.core.orchestrator import ConfigOrchestrator

console = Console()


def _format_ms(value: Optional[int]) -> str:
    if value is None:
        return "-"
    return datetime.fromtimestamp(value / 1000).strftime("%Y-%m-%d %H:%M")


@click.group(name="prompt", invoke_without_command=True, help="Manage system prompts (AGENTS.md).")
@click.pass_context
def prompt_group(ctx: click.Context) -> None:
    if ctx.invoked_subcommand is None:
        click.echo(ctx.get_help())


@prompt_group.command(name="list")
@click.option("--json", "json_output", is_flag=True, help="Output machine-readable JSON.")
def list_prompts(json_output: bool) -> None:
    async def _list(session: ConfigOrchestrator):
        return await session.prompts.list()

    prompts = run_session(_list)
    if json_output:
        click.echo(
            json.dumps([to_wire(prompt) for prompt in prompts.values()], indent=2, ensure_ascii=False)
        )
        return
    if not prompts:
        click.echo("No prompts saved.")
        return
    table = Table(box=box.SIMPLE_HEAVY)
    table.add_column("", width=1)
    table.add_column("ID", style="bold")
    table.add_column("Name")
    table.add_column("Description")
    table.add_column("Updated")
    for prompt in prompts.values():
        table.add_row(
            "[green]*[/green]" if prompt.enabled else "",
            prompt.id,
            prompt.name,
            prompt.description or "",
            _format_ms(prompt.updated_at),
        )
    console.print(table)


@prompt_group.command(name="add")
@click.option("--name", required=True)
@click.option("--content", default=None, help="Prompt text, or @file.")
@click.option("--description", default="")
@click.option("--activate", is_flag=True, help="Make the new prompt active.")
def add_prompt(name: str, content: Optional[str], description: str, activate: bool) -> None:
    if content is None:
        content = click.edit("") or ""
    text = read_text_option(content) or ""

    async def _add(session: ConfigOrchestrator):
        form = session.prompts.open_create()
        form.name = name
        form.description = description
        form.content = text
        prompt = await session.prompts.submit()
        if activate:
            await session.prompts.activate(prompt.id)
        return prompt

    prompt = run_session(_add)
    click.echo(f"Added prompt '{prompt.name}' ({prompt.id}).")


@prompt_group.command(name="edit")
@click.argument("prompt_id")
@click.option("--name", default=None)
@click.option("--content", default=None, help="Prompt text, or @file.")
@click.option("--description", default=None)
def edit_prompt(
    prompt_id: str, name: Optional[str], content: Optional[str], description: Optional[str]
) -> None:
    text = read_text_option(content)

    async def _edit(session: ConfigOrchestrator):
        form = await session.prompts.open_edit(prompt_id)
        if name is not None:
            form.name = name
        if description is not None:
            form.description = description
        if text is not None:
            form.content = text
        return await session.prompts.submit()

    prompt = run_session(_edit)
    click.echo(f"Updated prompt '{prompt.name}' ({prompt.id}).")


@prompt_group.command(name="remove")
@click.argument("prompt_id")
@click.option("--yes", "-y", is_flag=True, help="Skip the confirmation prompt.")
def remove_prompt(prompt_id: str, yes: bool) -> None:
    async def _remove(session: ConfigOrchestrator):
        prompt = await session.prompts.get(prompt_id)
        await session.prompts.request_delete(prompt_id)
        if not yes and not click.confirm(f"Delete prompt '{prompt.name}'?"):
            session.prompts.cancel_delete()
            return None
        return await session.prompts.confirm_delete()

    removed = run_session(_remove)
    if removed is None:
        click.echo("Cancelled.")
        return
    click.echo(f"Removed prompt '{removed}'.")


@prompt_group.command(name="activate")
@click.argument("prompt_id")
def activate_prompt(prompt_id: str) -> None:
    async def _activate(session: ConfigOrchestrator):
        await session.prompts.get(prompt_id)
        await session.prompts.activate(prompt_id)

    run_session(_activate)
    click.echo(f"Activated prompt '{prompt_id}'.")


@prompt_group.command(name="import")
def import_prompt() -> None:
    """Save the current AGENTS.md as a new prompt."""

    async def _import(session: ConfigOrchestrator):
        return await session.prompts.import_from_file()

    prompt_id = run_session(_import)
    click.echo(f"Imported prompt '{prompt_id}'.")


@prompt_group.command(name="show")
@click.argument("prompt_id", required=False)
@click.option("--raw", is_flag=True, help="Print plain text instead of rendered markdown.")
def show_prompt(prompt_id: Optional[str], raw: bool) -> None:
    """Show a saved prompt, or the live AGENTS.md when no id is given."""

    async def _show(session: ConfigOrchestrator):
        if prompt_id is None:
            return await session.prompts.current_file_content()
        prompt = await session.prompts.get(prompt_id)
        return prompt.content

    content = run_session(_show)
    if content is None:
        click.echo("No AGENTS.md file found.")
        return
    if raw:
        click.echo(content)
        return
    console.print(Markdown(content))
