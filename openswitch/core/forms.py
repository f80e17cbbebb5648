"""Editable form state and its mapping to and from domain records.

Forms hold exactly what a user types: free text for structured fields
(headers and environment as JSON, commands one token per line, timeouts
as digits) and plain booleans for flags. The ``*_from_form`` functions
turn a form into a record and raise ``ValidationError`` subclasses when a
structured field cannot be decoded. Required-field checks live in
``openswitch.core.validation``.
"""

from __future__ import annotations

import json
import re
from dataclasses import dataclass, field
from typing import Dict, List, Optional, Union

from openswitch.core.errors import MalformedStructuredField, ValidationError
from openswitch.core.models import (
    LocalMcpServer,
    McpServerType,
    ModelEntry,
    Prompt,
    Provider,
    ProviderOptions,
    RemoteMcpServer,
    SdkType,
)

_DIGITS_RE = re.compile(r"[0-9]+")


@dataclass
class ModelRow:
    id: str
    name: str
    thinking: bool = False
    set_cache_key: bool = False


@dataclass
class ProviderForm:
    id: str = ""
    sdk: Union[SdkType, str] = SdkType.OPENAI_COMPATIBLE
    display_name: str = ""
    base_url: str = ""
    # Never pre-filled from the credential store.
    api_key: str = ""
    headers: str = ""
    models: List[ModelRow] = field(default_factory=list)
    # Read-only indicator shown instead of the stored secret.
    credential_configured: bool = False
    # Key written inline into the provider options by hand; carried through unchanged.
    inline_api_key: Optional[str] = None


@dataclass
class McpForm:
    name: str = ""
    type: McpServerType = "local"
    command: str = ""
    environment: str = ""
    url: str = ""
    headers: str = ""
    timeout: str = ""
    enabled: bool = True


@dataclass
class PromptForm:
    name: str = ""
    description: str = ""
    content: str = ""


# ---------------------------------------------------------------------------
# Text codecs
# ---------------------------------------------------------------------------


def parse_string_map(text: str, *, entity: str, field_name: str) -> Optional[Dict[str, str]]:
    """Decode a JSON object of string values. Blank text means "not set"."""
    if not text.strip():
        return None
    try:
        data = json.loads(text)
    except json.JSONDecodeError as exc:
        raise MalformedStructuredField(
            entity, field_name, f"Invalid JSON in {field_name}: {exc.msg} (line {exc.lineno})"
        ) from exc
    except RecursionError as exc:
        raise MalformedStructuredField(
            entity, field_name, f"Invalid JSON in {field_name}: nested too deeply"
        ) from exc
    if not isinstance(data, dict):
        raise MalformedStructuredField(
            entity, field_name, f"{field_name} must be a JSON object of strings"
        )
    for key, value in data.items():
        if not isinstance(value, str):
            raise MalformedStructuredField(
                entity,
                field_name,
                f"{field_name} value for '{key}' must be a string, got {type(value).__name__}",
            )
    return data


def format_string_map(mapping: Optional[Dict[str, str]]) -> str:
    if mapping is None:
        return ""
    return json.dumps(mapping, indent=2, ensure_ascii=False)


def split_command(text: str) -> List[str]:
    """One token per line; lines are trimmed and blank lines dropped."""
    return [line.strip() for line in text.split("\n") if line.strip()]


def join_command(tokens: List[str]) -> str:
    return "\n".join(tokens)


def parse_timeout(text: str, *, entity: str = "mcp") -> Optional[int]:
    """Base-10 milliseconds; blank means unset, anything else must be a positive integer."""
    raw = text.strip()
    if not raw:
        return None
    if not _DIGITS_RE.fullmatch(raw):
        raise ValidationError(entity, "timeout", f"Timeout must be a whole number, got '{raw}'")
    value = int(raw, 10)
    if value <= 0:
        raise ValidationError(entity, "timeout", "Timeout must be greater than zero")
    return value


def format_timeout(timeout: Optional[int]) -> str:
    return "" if timeout is None else str(timeout)


# ---------------------------------------------------------------------------
# Providers
# ---------------------------------------------------------------------------


def provider_to_form(
    provider_id: str, provider: Provider, *, credential_configured: bool = False
) -> ProviderForm:
    rows = [
        ModelRow(
            id=model_id,
            name=entry.name,
            thinking=bool(entry.thinking),
            set_cache_key=bool(entry.set_cache_key),
        )
        for model_id, entry in provider.models.items()
    ]
    return ProviderForm(
        id=provider_id,
        sdk=provider.sdk,
        display_name=provider.display_name,
        base_url=provider.options.base_url,
        api_key="",
        headers=format_string_map(provider.options.headers),
        models=rows,
        credential_configured=credential_configured,
        inline_api_key=provider.options.api_key,
    )


def models_from_rows(rows: List[ModelRow]) -> Dict[str, ModelEntry]:
    models: Dict[str, ModelEntry] = {}
    for row in rows:
        models[row.id] = ModelEntry(
            name=row.name,
            thinking=True if row.thinking else None,
            set_cache_key=True if row.set_cache_key else None,
        )
    return models


def provider_from_form(form: ProviderForm) -> Provider:
    headers = parse_string_map(form.headers, entity="provider", field_name="headers")
    return Provider(
        sdk=form.sdk,
        display_name=form.display_name,
        options=ProviderOptions(
            base_url=form.base_url,
            api_key=form.inline_api_key,
            headers=headers,
        ),
        models=models_from_rows(form.models),
    )


# ---------------------------------------------------------------------------
# MCP servers
# ---------------------------------------------------------------------------


def mcp_server_to_form(name: str, server: Union[LocalMcpServer, RemoteMcpServer]) -> McpForm:
    form = McpForm(
        name=name,
        type=server.type,
        timeout=format_timeout(server.timeout),
        enabled=server.is_enabled,
    )
    if isinstance(server, LocalMcpServer):
        form.command = join_command(server.command)
        form.environment = format_string_map(server.environment)
    else:
        form.url = server.url
        form.headers = format_string_map(server.headers)
    return form


def mcp_server_from_form(form: McpForm) -> Union[LocalMcpServer, RemoteMcpServer]:
    """Build the variant selected by ``form.type``; the other variant's text is ignored."""
    timeout = parse_timeout(form.timeout)
    if form.type == "local":
        environment = parse_string_map(form.environment, entity="mcp", field_name="environment")
        return LocalMcpServer(
            command=split_command(form.command),
            environment=environment,
            enabled=form.enabled,
            timeout=timeout,
        )
    headers = parse_string_map(form.headers, entity="mcp", field_name="headers")
    return RemoteMcpServer(
        url=form.url.strip(),
        headers=headers,
        enabled=form.enabled,
        timeout=timeout,
    )


# ---------------------------------------------------------------------------
# Prompts
# ---------------------------------------------------------------------------


def prompt_to_form(prompt: Prompt) -> PromptForm:
    return PromptForm(
        name=prompt.name,
        description=prompt.description or "",
        content=prompt.content,
    )


def new_prompt_id(now_ms: int) -> str:
    return f"prompt-{now_ms}"


def prompt_from_form(form: PromptForm, *, editing: Optional[Prompt], now_ms: int) -> Prompt:
    """Build the record to upsert.

    Saved prompts are always inactive; activation is a separate command.
    ``createdAt`` is kept from the record being edited.
    """
    if editing is not None:
        prompt_id = editing.id
        created_at = editing.created_at if editing.created_at is not None else now_ms
    else:
        prompt_id = new_prompt_id(now_ms)
        created_at = now_ms
    return Prompt(
        id=prompt_id,
        name=form.name.strip(),
        content=form.content,
        description=form.description.strip() or None,
        enabled=False,
        created_at=created_at,
        updated_at=now_ms,
    )
