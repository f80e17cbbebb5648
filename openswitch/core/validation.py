"""Client-side validation run before any host command is issued."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Callable, Generic, Optional, Tuple, TypeVar, Union

from openswitch.core.errors import ValidationError
from openswitch.core.forms import (
    McpForm,
    PromptForm,
    ProviderForm,
    mcp_server_from_form,
    prompt_from_form,
    provider_from_form,
)
from openswitch.core.models import LocalMcpServer, Prompt, Provider, RemoteMcpServer

T = TypeVar("T")


def _require(entity: str, field_name: str, value: str, message: str) -> None:
    if not value.strip():
        raise ValidationError(entity, field_name, message)


def validate_provider_form(form: ProviderForm) -> Tuple[str, Provider]:
    """Return ``(id, provider)`` or raise ``ValidationError``."""
    _require("provider", "id", form.id, "Provider ID is required")
    _require("provider", "display_name", form.display_name, "Display name is required")
    _require("provider", "base_url", form.base_url, "Base URL is required")
    return form.id.strip(), provider_from_form(form)


def validate_mcp_form(form: McpForm) -> Tuple[str, Union[LocalMcpServer, RemoteMcpServer]]:
    """Return ``(name, server)`` or raise ``ValidationError``."""
    _require("mcp", "name", form.name, "Server name is required")
    if form.type == "local":
        _require("mcp", "command", form.command, "Command is required for local servers")
    elif form.type == "remote":
        _require("mcp", "url", form.url, "URL is required for remote servers")
    else:
        raise ValidationError("mcp", "type", f"Unknown server type '{form.type}'")
    return form.name.strip(), mcp_server_from_form(form)


def validate_prompt_form(
    form: PromptForm, *, editing: Optional[Prompt] = None, now_ms: int
) -> Prompt:
    _require("prompt", "name", form.name, "Prompt name is required")
    _require("prompt", "content", form.content, "Prompt content is required")
    return prompt_from_form(form, editing=editing, now_ms=now_ms)


@dataclass
class ValidationOutcome(Generic[T]):
    """Result-object view of a validation run."""

    value: Optional[T] = None
    error: Optional[ValidationError] = None

    @property
    def ok(self) -> bool:
        return self.error is None


def check(validator: Callable[[], T]) -> ValidationOutcome[T]:
    """Run a validator and capture its ``ValidationError`` instead of raising.

    Example: ``check(lambda: validate_mcp_form(form))``.
    """
    try:
        return ValidationOutcome(value=validator())
    except ValidationError as exc:
        return ValidationOutcome(error=exc)
