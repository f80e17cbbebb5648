"""`openswitch mcp` command group."""

from __future__ import annotations

import json
from typing import Optional

import click
from rich import box
from rich.console import Console
from rich.table import Table

from openswitch.cli.session import read_text_option, run_session
from openswitch.core.forms import McpForm, join_command
from openswitch.core.models import LocalMcpServer, to_wire
from openswitch.core.orchestrator import ConfigOrchestrator

console = Console()


def _apply_options(
    form: McpForm,
    *,
    server_type: Optional[str],
    command: tuple[str, ...],
    env: Optional[str],
    url: Optional[str],
    headers: Optional[str],
    timeout: Optional[str],
) -> None:
    if server_type is not None:
        form.type = server_type  # type: ignore[assignment]
    if command:
        form.command = join_command(list(command))
    if env is not None:
        form.environment = read_text_option(env) or ""
    if url is not None:
        form.url = url
    if headers is not None:
        form.headers = read_text_option(headers) or ""
    if timeout is not None:
        form.timeout = timeout


@click.group(name="mcp", invoke_without_command=True, help="Manage MCP servers.")
@click.pass_context
def mcp_group(ctx: click.Context) -> None:
    if ctx.invoked_subcommand is None:
        click.echo(ctx.get_help())


@mcp_group.command(name="list")
@click.option("--json", "json_output", is_flag=True, help="Output machine-readable JSON.")
def list_servers(json_output: bool) -> None:
    async def _list(session: ConfigOrchestrator):
        return await session.mcp.list()

    servers = run_session(_list)
    if json_output:
        payload = {name: to_wire(server) for name, server in servers.items()}
        click.echo(json.dumps(payload, indent=2, ensure_ascii=False))
        return
    if not servers:
        click.echo("No MCP servers configured.")
        return
    table = Table(box=box.SIMPLE_HEAVY)
    table.add_column("Name", style="bold")
    table.add_column("Type")
    table.add_column("Target")
    table.add_column("Timeout")
    table.add_column("Status")
    for name, server in servers.items():
        target = " ".join(server.command) if isinstance(server, LocalMcpServer) else server.url
        table.add_row(
            name,
            server.type,
            target,
            f"{server.timeout} ms" if server.timeout else "-",
            "[green]enabled[/green]" if server.is_enabled else "[dim]disabled[/dim]",
        )
    console.print(table)


_server_options = [
    click.option("--cmd", "command", multiple=True, help="Command token (repeatable, in order)."),
    click.option("--env", default=None, help="Environment as a JSON object, or @file."),
    click.option("--url", default=None, help="Remote server URL."),
    click.option("--headers", default=None, help="Headers as a JSON object, or @file."),
    click.option("--timeout", default=None, help="Timeout in milliseconds."),
]


def server_options(func):
    for option in reversed(_server_options):
        func = option(func)
    return func


@mcp_group.command(name="add")
@click.argument("name")
@click.option(
    "--type",
    "server_type",
    type=click.Choice(["local", "remote"]),
    default="local",
    show_default=True,
)
@server_options
@click.option("--disabled", is_flag=True, help="Add the server switched off.")
def add_server(
    name: str,
    server_type: str,
    command: tuple[str, ...],
    env: Optional[str],
    url: Optional[str],
    headers: Optional[str],
    timeout: Optional[str],
    disabled: bool,
) -> None:
    async def _add(session: ConfigOrchestrator):
        form = session.mcp.open_create()
        form.name = name
        form.enabled = not disabled
        _apply_options(
            form,
            server_type=server_type,
            command=command,
            env=env,
            url=url,
            headers=headers,
            timeout=timeout,
        )
        return await session.mcp.submit()

    saved = run_session(_add)
    click.echo(f"Added MCP server '{saved}'.")


@mcp_group.command(name="edit")
@click.argument("name")
@click.option("--type", "server_type", type=click.Choice(["local", "remote"]), default=None)
@server_options
def edit_server(
    name: str,
    server_type: Optional[str],
    command: tuple[str, ...],
    env: Optional[str],
    url: Optional[str],
    headers: Optional[str],
    timeout: Optional[str],
) -> None:
    async def _edit(session: ConfigOrchestrator):
        form = await session.mcp.open_edit(name)
        _apply_options(
            form,
            server_type=server_type,
            command=command,
            env=env,
            url=url,
            headers=headers,
            timeout=timeout,
        )
        return await session.mcp.submit()

    saved = run_session(_edit)
    click.echo(f"Updated MCP server '{saved}'.")


@mcp_group.command(name="remove")
@click.argument("name")
@click.option("--yes", "-y", is_flag=True, help="Skip the confirmation prompt.")
def remove_server(name: str, yes: bool) -> None:
    async def _remove(session: ConfigOrchestrator):
        await session.mcp.get(name)
        session.mcp.request_delete(name)
        if not yes and not click.confirm(f"Delete MCP server '{name}'?"):
            session.mcp.cancel_delete()
            return None
        return await session.mcp.confirm_delete()

    removed = run_session(_remove)
    if removed is None:
        click.echo("Cancelled.")
        return
    click.echo(f"Removed MCP server '{removed}'.")


def _toggle(name: str, enabled: bool) -> None:
    async def _run(session: ConfigOrchestrator):
        await session.mcp.get(name)
        await session.mcp.toggle(name, enabled)

    run_session(_run)
    state = "Enabled" if enabled else "Disabled"
    click.echo(f"{state} MCP server '{name}'.")


@mcp_group.command(name="enable")
@click.argument("name")
def enable_server(name: str) -> None:
    _toggle(name, True)


@mcp_group.command(name="disable")
@click.argument("name")
def disable_server(name: str) -> None:
    _toggle(name, False)
