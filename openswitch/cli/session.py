"""Shared plumbing for CLI commands: building a session and running it."""

from __future__ import annotations

import asyncio
from typing import Awaitable, Callable, Optional, TypeVar

import click

from openswitch.core.errors import OpenSwitchError
from openswitch.core.orchestrator import ConfigOrchestrator
from openswitch.core.settings import Settings, load_settings
from openswitch.host.local import LocalHost
from openswitch.utils.log import get_logger


logger = get_logger()

T = TypeVar("T")


def get_settings(ctx: Optional[click.Context] = None) -> Settings:
    ctx = ctx or click.get_current_context()
    root = ctx.find_root()
    settings = root.meta.get("openswitch.settings")
    if settings is None:
        settings = load_settings()
        root.meta["openswitch.settings"] = settings
    return settings


def build_session(settings: Settings) -> ConfigOrchestrator:
    host = LocalHost.from_settings(settings)
    host.import_prompts_on_first_launch()
    return ConfigOrchestrator(host, settings=settings)


def run_session(action: Callable[[ConfigOrchestrator], Awaitable[T]]) -> T:
    """Run ``action`` against a fresh session, turning domain errors into CLI errors."""
    session = build_session(get_settings())
    try:
        return asyncio.run(action(session))
    except OpenSwitchError as exc:
        logger.debug(
            "[cli] Command failed",
            extra={"error_code": exc.error_code, "error": str(exc)},
        )
        raise click.ClickException(str(exc)) from exc


def read_text_option(value: Optional[str]) -> Optional[str]:
    """Return ``value``, or the contents of the file it names when written as ``@path``."""
    if value is None or not value.startswith("@"):
        return value
    with click.open_file(value[1:], encoding="utf-8") as handle:
        return handle.read()
