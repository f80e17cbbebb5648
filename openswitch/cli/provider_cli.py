"""`openswitch provider` command group."""

from __future__ import annotations

import json
from typing import Optional

import click
from rich import box
from rich.console import Console
from rich.table import Table

from openswitch.cli.session import read_text_option, run_session
from openswitch.core.forms import ProviderForm
from openswitch.core.models import SdkType, to_wire
from openswitch.core.orchestrator import ConfigOrchestrator, ProviderController

console = Console()

_SDK_CHOICES = [sdk.value for sdk in SdkType] + ["openai-compatible", "openai", "anthropic", "google"]


def _apply_models(
    providers: ProviderController,
    models: tuple[str, ...],
    thinking: tuple[str, ...],
    cache_key: tuple[str, ...],
    remove_models: tuple[str, ...] = (),
) -> None:
    for model_id in remove_models:
        providers.remove_model(model_id)
    for model_id in models:
        providers.add_model(model_id)
    for model_id in thinking:
        providers.add_model(model_id)
        providers.set_model_flag(model_id.strip(), "thinking", True)
    for model_id in cache_key:
        providers.add_model(model_id)
        providers.set_model_flag(model_id.strip(), "set_cache_key", True)


@click.group(name="provider", invoke_without_command=True, help="Manage LLM providers.")
@click.pass_context
def provider_group(ctx: click.Context) -> None:
    if ctx.invoked_subcommand is None:
        click.echo(ctx.get_help())


@provider_group.command(name="list")
@click.option("--json", "json_output", is_flag=True, help="Output machine-readable JSON.")
def list_providers(json_output: bool) -> None:
    async def _list(session: ConfigOrchestrator):
        return await session.providers.list()

    listings = run_session(_list)
    if json_output:
        payload = [
            {
                "id": row.id,
                "credential_configured": row.credential_configured,
                "config": to_wire(row.provider),
            }
            for row in listings
        ]
        click.echo(json.dumps(payload, indent=2, ensure_ascii=False))
        return
    if not listings:
        click.echo("No providers configured.")
        return
    table = Table(box=box.SIMPLE_HEAVY)
    table.add_column("ID", style="bold")
    table.add_column("Name")
    table.add_column("SDK")
    table.add_column("Base URL")
    table.add_column("Models")
    table.add_column("API key")
    for row in listings:
        sdk = row.provider.sdk
        table.add_row(
            row.id,
            row.provider.display_name,
            sdk.label if isinstance(sdk, SdkType) else str(sdk),
            row.provider.base_url,
            ", ".join(row.provider.models) or "-",
            "[green]configured[/green]" if row.credential_configured else "[dim]not set[/dim]",
        )
    console.print(table)


@provider_group.command(name="add")
@click.argument("provider_id")
@click.option("--name", "display_name", required=True, help="Display name.")
@click.option("--base-url", required=True, help="API base URL.")
@click.option(
    "--sdk",
    type=click.Choice(_SDK_CHOICES, case_sensitive=False),
    default=SdkType.OPENAI_COMPATIBLE.value,
    show_default=True,
)
@click.option("--api-key", default="", help="API key, stored separately from the config.")
@click.option("--headers", default=None, help="Extra headers as a JSON object, or @file.")
@click.option("--model", "models", multiple=True, help="Model id (repeatable).")
@click.option("--thinking", multiple=True, help="Model id with thinking enabled (repeatable).")
@click.option("--cache-key", multiple=True, help="Model id that sets a cache key (repeatable).")
def add_provider(
    provider_id: str,
    display_name: str,
    base_url: str,
    sdk: str,
    api_key: str,
    headers: Optional[str],
    models: tuple[str, ...],
    thinking: tuple[str, ...],
    cache_key: tuple[str, ...],
) -> None:
    async def _add(session: ConfigOrchestrator):
        providers = session.providers
        form: ProviderForm = providers.open_create()
        form.id = provider_id
        form.display_name = display_name
        form.base_url = base_url
        form.sdk = SdkType(sdk)
        form.api_key = api_key
        form.headers = read_text_option(headers) or ""
        _apply_models(providers, models, thinking, cache_key)
        return await providers.submit()

    result = run_session(_add)
    suffix = " with API key" if result.credential_saved else ""
    click.echo(f"Added provider '{result.provider_id}'{suffix}.")


@provider_group.command(name="edit")
@click.argument("provider_id")
@click.option("--name", "display_name", default=None)
@click.option("--base-url", default=None)
@click.option("--sdk", type=click.Choice(_SDK_CHOICES, case_sensitive=False), default=None)
@click.option("--api-key", default="", help="Replace the stored API key.")
@click.option("--headers", default=None, help="Headers JSON object, @file, or '' to clear.")
@click.option("--model", "models", multiple=True)
@click.option("--thinking", multiple=True)
@click.option("--cache-key", multiple=True)
@click.option("--remove-model", "remove_models", multiple=True)
def edit_provider(
    provider_id: str,
    display_name: Optional[str],
    base_url: Optional[str],
    sdk: Optional[str],
    api_key: str,
    headers: Optional[str],
    models: tuple[str, ...],
    thinking: tuple[str, ...],
    cache_key: tuple[str, ...],
    remove_models: tuple[str, ...],
) -> None:
    async def _edit(session: ConfigOrchestrator):
        providers = session.providers
        form = await providers.open_edit(provider_id)
        if display_name is not None:
            form.display_name = display_name
        if base_url is not None:
            form.base_url = base_url
        if sdk is not None:
            form.sdk = SdkType(sdk)
        if headers is not None:
            form.headers = read_text_option(headers) or ""
        form.api_key = api_key
        _apply_models(providers, models, thinking, cache_key, remove_models)
        return await providers.submit()

    result = run_session(_edit)
    suffix = " and API key" if result.credential_saved else ""
    click.echo(f"Updated provider '{result.provider_id}'{suffix}.")


@provider_group.command(name="remove")
@click.argument("provider_id")
@click.option("--yes", "-y", is_flag=True, help="Skip the confirmation prompt.")
def remove_provider(provider_id: str, yes: bool) -> None:
    async def _remove(session: ConfigOrchestrator):
        providers = session.providers
        await providers.get(provider_id)
        providers.request_delete(provider_id)
        if not yes and not click.confirm(f"Delete provider '{provider_id}'?"):
            providers.cancel_delete()
            return None
        return await providers.confirm_delete()

    removed = run_session(_remove)
    if removed is None:
        click.echo("Cancelled.")
        return
    click.echo(f"Removed provider '{removed}'.")


@provider_group.command(name="set-key")
@click.argument("provider_id")
@click.option("--api-key", prompt=True, hide_input=True, help="API key to store.")
def set_key(provider_id: str, api_key: str) -> None:
    async def _set(session: ConfigOrchestrator):
        await session.providers.get(provider_id)
        await session.providers.set_api_key(provider_id, api_key)

    run_session(_set)
    click.echo(f"Stored API key for '{provider_id}'.")


@provider_group.command(name="clear-key")
@click.argument("provider_id")
def clear_key(provider_id: str) -> None:
    async def _clear(session: ConfigOrchestrator):
        await session.providers.clear_api_key(provider_id)

    run_session(_clear)
    click.echo(f"Removed API key for '{provider_id}'.")
