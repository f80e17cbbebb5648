"""Mutation orchestration between forms, the host and the local cache.

One ``ConfigOrchestrator`` is built per session. It owns a controller per
entity type; each controller holds its add/edit dialog, its delete
confirmation and one ``Mutation`` per kind of write.

Every write follows the same contract:

- the form is validated first; a ``ValidationError`` leaves dialog, cache
  and mutation state untouched and no host command is issued;
- a host failure is re-raised as ``HostCallFailure`` with the host's
  message, the dialog keeps the user's input and the cache is not touched;
- on success exactly the affected cache slot is invalidated and the dialog
  is closed and reset.
"""

from __future__ import annotations

import time
from dataclasses import dataclass
from typing import Awaitable, Callable, Dict, List, Literal, Optional, TypeVar

from openswitch.core.cache import CacheSlot, QueryCache
from openswitch.core.errors import (
    CredentialWriteFailure,
    EntryNotFound,
    ExclusivityViolation,
    HostCallFailure,
    ValidationError,
)
from openswitch.core.forms import (
    McpForm,
    ModelRow,
    PromptForm,
    ProviderForm,
    mcp_server_to_form,
    prompt_to_form,
    provider_to_form,
)
from openswitch.core.host import AnyMcpServer, HostCollaborator
from openswitch.core.models import Config, Credentials, Prompt, Provider
from openswitch.core.mutations import DeleteConfirmation, Dialog, Mutation
from openswitch.core.settings import Settings
from openswitch.core.validation import (
    validate_mcp_form,
    validate_prompt_form,
    validate_provider_form,
)
from openswitch.utils.log import get_logger


logger = get_logger()

T = TypeVar("T")

ModelFlag = Literal["thinking", "set_cache_key"]


def _now_ms() -> int:
    return int(time.time() * 1000)


async def call_host(command: str, call: Callable[[], Awaitable[T]], **context: object) -> T:
    """Run one host command, normalizing any failure to ``HostCallFailure``."""
    logger.debug("[orchestrator] Host command", extra={"command": command, **context})
    try:
        return await call()
    except HostCallFailure:
        raise
    except Exception as exc:
        logger.warning(
            "[orchestrator] Host command failed: %s: %s",
            type(exc).__name__,
            exc,
            extra={"command": command, **context},
        )
        raise HostCallFailure(command, str(exc)) from exc


@dataclass
class ProviderListing:
    id: str
    provider: Provider
    # Looked up in the credentials slot at read time.
    credential_configured: bool


@dataclass
class ProviderSubmitResult:
    provider_id: str
    created: bool
    credential_saved: bool


class _Controller:
    def __init__(self, session: "ConfigOrchestrator") -> None:
        self._session = session

    @property
    def host(self) -> HostCollaborator:
        return self._session.host

    @property
    def cache(self) -> QueryCache:
        return self._session.cache


class ProviderController(_Controller):
    """Providers in the ``config`` slot plus their keys in the ``credentials`` slot."""

    def __init__(self, session: "ConfigOrchestrator") -> None:
        super().__init__(session)
        self.add_mutation = Mutation("provider.add")
        self.update_mutation = Mutation("provider.update")
        self.delete_mutation = Mutation("provider.delete")
        self.credential_mutation = Mutation("credential.set")
        self.dialog: Dialog[ProviderForm] = Dialog(
            ProviderForm, (self.add_mutation, self.update_mutation, self.credential_mutation)
        )
        self.deletion = DeleteConfirmation("provider")
        self.clear_credential_mutation = Mutation("credential.delete")

    @property
    def is_submitting(self) -> bool:
        return (
            self.add_mutation.is_pending
            or self.update_mutation.is_pending
            or self.credential_mutation.is_pending
        )

    async def list(self) -> List[ProviderListing]:
        config: Config = await self.cache.get(CacheSlot.CONFIG)
        credentials: Credentials = await self.cache.get(CacheSlot.CREDENTIALS)
        return [
            ProviderListing(
                id=provider_id,
                provider=provider,
                credential_configured=provider_id in credentials,
            )
            for provider_id, provider in config.provider.items()
        ]

    async def get(self, provider_id: str) -> Provider:
        config: Config = await self.cache.get(CacheSlot.CONFIG)
        try:
            return config.provider[provider_id]
        except KeyError:
            raise EntryNotFound("Provider", provider_id) from None

    def open_create(self) -> ProviderForm:
        return self.dialog.open_create()

    async def open_edit(self, provider_id: str) -> ProviderForm:
        provider = await self.get(provider_id)
        credentials: Credentials = await self.cache.get(CacheSlot.CREDENTIALS)
        form = provider_to_form(
            provider_id, provider, credential_configured=provider_id in credentials
        )
        return self.dialog.open_edit(provider_id, form)

    def close_dialog(self) -> None:
        self.dialog.close()

    def add_model(self, model_id: str) -> bool:
        """Append a model row named after its id. Blank and duplicate ids are ignored."""
        model_id = model_id.strip()
        rows = self.dialog.form.models
        if not model_id or any(row.id == model_id for row in rows):
            return False
        rows.append(ModelRow(id=model_id, name=model_id))
        return True

    def remove_model(self, model_id: str) -> None:
        self.dialog.form.models = [row for row in self.dialog.form.models if row.id != model_id]

    def set_model_flag(self, model_id: str, flag: ModelFlag, value: bool) -> None:
        for row in self.dialog.form.models:
            if row.id == model_id:
                setattr(row, flag, value)
                return
        raise EntryNotFound("Model", model_id)

    async def submit(self) -> ProviderSubmitResult:
        """Persist the provider, then its API key when one was entered.

        The two host calls are sequential and not transactional: a failed key
        write leaves the provider saved and raises ``CredentialWriteFailure``
        with the dialog switched to editing the saved provider.
        """
        form = self.dialog.form
        if self.dialog.editing is not None:
            # The id cannot change once a provider exists.
            form.id = self.dialog.editing
        provider_id, provider = validate_provider_form(form)
        creating = self.dialog.editing is None

        if creating:
            await self.add_mutation.run(
                lambda: call_host(
                    "add_provider",
                    lambda: self.host.add_provider(provider_id, provider),
                    provider_id=provider_id,
                )
            )
        else:
            await self.update_mutation.run(
                lambda: call_host(
                    "update_provider",
                    lambda: self.host.update_provider(provider_id, provider),
                    provider_id=provider_id,
                )
            )
        self.cache.invalidate(CacheSlot.CONFIG)
        logger.info(
            "[orchestrator] Saved provider",
            extra={"provider_id": provider_id, "is_new": creating},
        )

        api_key = form.api_key.strip()
        credential_saved = False
        if api_key:
            try:
                await self._write_credential(provider_id, api_key)
            except HostCallFailure as exc:
                logger.warning(
                    "[orchestrator] Provider saved but API key was not",
                    extra={"provider_id": provider_id, "error": str(exc)},
                )
                self.dialog.editing = provider_id
                raise CredentialWriteFailure(provider_id, str(exc)) from exc
            credential_saved = True

        self.dialog.close()
        return ProviderSubmitResult(
            provider_id=provider_id, created=creating, credential_saved=credential_saved
        )

    async def set_api_key(self, provider_id: str, api_key: str) -> None:
        api_key = api_key.strip()
        if not api_key:
            raise ValidationError("credential", "api_key", "API key is required")
        await self._write_credential(provider_id, api_key)

    async def _write_credential(self, provider_id: str, api_key: str) -> None:
        await self.credential_mutation.run(
            lambda: call_host(
                "set_credential",
                lambda: self.host.set_credential(provider_id, api_key),
                provider_id=provider_id,
            )
        )
        self.cache.invalidate(CacheSlot.CREDENTIALS)

    async def clear_api_key(self, provider_id: str) -> None:
        await self.clear_credential_mutation.run(
            lambda: call_host(
                "delete_credential",
                lambda: self.host.delete_credential(provider_id),
                provider_id=provider_id,
            )
        )
        self.cache.invalidate(CacheSlot.CREDENTIALS)

    def request_delete(self, provider_id: str) -> None:
        self.deletion.mark(provider_id)

    def cancel_delete(self) -> None:
        self.deletion.cancel()

    async def confirm_delete(self) -> str:
        provider_id = self.deletion.require_candidate()
        await self.delete_mutation.run(
            lambda: call_host(
                "delete_provider",
                lambda: self.host.delete_provider(provider_id),
                provider_id=provider_id,
            )
        )
        self.cache.invalidate(CacheSlot.CONFIG)
        self.deletion.cancel()
        logger.info("[orchestrator] Deleted provider", extra={"provider_id": provider_id})
        return provider_id


class McpController(_Controller):
    """MCP servers in the ``mcp`` slot."""

    def __init__(self, session: "ConfigOrchestrator") -> None:
        super().__init__(session)
        self.add_mutation = Mutation("mcp.add")
        self.update_mutation = Mutation("mcp.update")
        self.dialog: Dialog[McpForm] = Dialog(McpForm, (self.add_mutation, self.update_mutation))
        self.deletion = DeleteConfirmation("MCP server")
        self.delete_mutation = Mutation("mcp.delete")
        self._toggle_mutations: Dict[str, Mutation] = {}

    @property
    def is_submitting(self) -> bool:
        return self.add_mutation.is_pending or self.update_mutation.is_pending

    def toggle_mutation(self, name: str) -> Mutation:
        """Toggle state for one server; switches of other servers stay usable."""
        mutation = self._toggle_mutations.get(name)
        if mutation is None:
            mutation = Mutation(f"mcp.toggle:{name}")
            self._toggle_mutations[name] = mutation
        return mutation

    async def list(self) -> Dict[str, AnyMcpServer]:
        return await self.cache.get(CacheSlot.MCP)

    async def get(self, name: str) -> AnyMcpServer:
        servers = await self.list()
        try:
            return servers[name]
        except KeyError:
            raise EntryNotFound("MCP server", name) from None

    def open_create(self) -> McpForm:
        return self.dialog.open_create()

    async def open_edit(self, name: str) -> McpForm:
        server = await self.get(name)
        return self.dialog.open_edit(name, mcp_server_to_form(name, server))

    def close_dialog(self) -> None:
        self.dialog.close()

    async def submit(self) -> str:
        form = self.dialog.form
        if self.dialog.editing is not None:
            form.name = self.dialog.editing
        name, server = validate_mcp_form(form)
        creating = self.dialog.editing is None

        if creating:
            await self.add_mutation.run(
                lambda: call_host(
                    "add_mcp_server",
                    lambda: self.host.add_mcp_server(name, server),
                    server_name=name,
                )
            )
        else:
            await self.update_mutation.run(
                lambda: call_host(
                    "update_mcp_server",
                    lambda: self.host.update_mcp_server(name, server),
                    server_name=name,
                )
            )
        self.cache.invalidate(CacheSlot.MCP)
        self.dialog.close()
        logger.info(
            "[orchestrator] Saved MCP server",
            extra={"server_name": name, "type": server.type, "is_new": creating},
        )
        return name

    async def toggle(self, name: str, enabled: bool) -> None:
        """Flip ``enabled`` immediately; independent of the dialog."""
        await self.toggle_mutation(name).run(
            lambda: call_host(
                "toggle_mcp_server",
                lambda: self.host.toggle_mcp_server(name, enabled),
                server_name=name,
                enabled=enabled,
            )
        )
        self.cache.invalidate(CacheSlot.MCP)

    def request_delete(self, name: str) -> None:
        self.deletion.mark(name)

    def cancel_delete(self) -> None:
        self.deletion.cancel()

    async def confirm_delete(self) -> str:
        name = self.deletion.require_candidate()
        await self.delete_mutation.run(
            lambda: call_host(
                "delete_mcp_server",
                lambda: self.host.delete_mcp_server(name),
                server_name=name,
            )
        )
        self.cache.invalidate(CacheSlot.MCP)
        self.deletion.cancel()
        logger.info("[orchestrator] Deleted MCP server", extra={"server_name": name})
        return name


class PromptController(_Controller):
    """Prompts in the ``prompts`` slot; at most one is active."""

    def __init__(self, session: "ConfigOrchestrator", *, host_enforces_exclusivity: bool) -> None:
        super().__init__(session)
        self.host_enforces_exclusivity = host_enforces_exclusivity
        self.upsert_mutation = Mutation("prompt.upsert")
        self.dialog: Dialog[PromptForm] = Dialog(PromptForm, (self.upsert_mutation,))
        self.deletion = DeleteConfirmation("prompt")
        self.delete_mutation = Mutation("prompt.delete")
        self.enable_mutation = Mutation("prompt.enable")
        self.import_mutation = Mutation("prompt.import")
        self._editing_record: Optional[Prompt] = None

    async def list(self) -> Dict[str, Prompt]:
        return await self.cache.get(CacheSlot.PROMPTS)

    async def get(self, prompt_id: str) -> Prompt:
        prompts = await self.list()
        try:
            return prompts[prompt_id]
        except KeyError:
            raise EntryNotFound("Prompt", prompt_id) from None

    async def active(self) -> Optional[Prompt]:
        prompts = await self.list()
        return next((prompt for prompt in prompts.values() if prompt.enabled), None)

    async def can_delete(self, prompt_id: str) -> bool:
        prompts = await self.list()
        prompt = prompts.get(prompt_id)
        return prompt is not None and not prompt.enabled

    def open_create(self) -> PromptForm:
        self._editing_record = None
        return self.dialog.open_create()

    async def open_edit(self, prompt_id: str) -> PromptForm:
        prompt = await self.get(prompt_id)
        self._editing_record = prompt
        return self.dialog.open_edit(prompt_id, prompt_to_form(prompt))

    def close_dialog(self) -> None:
        self._editing_record = None
        self.dialog.close()

    async def submit(self) -> Prompt:
        """Save the dialog's prompt. Saved prompts are always inactive."""
        prompt = validate_prompt_form(
            self.dialog.form,
            editing=self._editing_record,
            now_ms=self._session.now_ms(),
        )
        await self.upsert_mutation.run(
            lambda: call_host(
                "upsert_prompt", lambda: self.host.upsert_prompt(prompt), prompt_id=prompt.id
            )
        )
        self.cache.invalidate(CacheSlot.PROMPTS)
        created = self._editing_record is None
        self.close_dialog()
        logger.info(
            "[orchestrator] Saved prompt",
            extra={"prompt_id": prompt.id, "is_new": created},
        )
        return prompt

    async def activate(self, prompt_id: str) -> None:
        """Make ``prompt_id`` the only enabled prompt."""

        async def _activate() -> None:
            if not self.host_enforces_exclusivity:
                await self._demote_all_except(prompt_id)
            await call_host(
                "enable_prompt", lambda: self.host.enable_prompt(prompt_id), prompt_id=prompt_id
            )

        try:
            await self.enable_mutation.run(_activate)
        except Exception:
            if not self.host_enforces_exclusivity:
                # Demotions may have landed before enabling failed.
                self.cache.invalidate(CacheSlot.PROMPTS)
            raise
        self.cache.invalidate(CacheSlot.PROMPTS)
        logger.info("[orchestrator] Activated prompt", extra={"prompt_id": prompt_id})

    async def _demote_all_except(self, prompt_id: str) -> None:
        prompts = await call_host("get_prompts", self.host.get_prompts)
        for other_id, prompt in prompts.items():
            if other_id == prompt_id or not prompt.enabled:
                continue
            demoted = prompt.model_copy(update={"enabled": False})
            await call_host(
                "upsert_prompt", lambda: self.host.upsert_prompt(demoted), prompt_id=other_id
            )

    async def request_delete(self, prompt_id: str) -> None:
        await self._ensure_deletable(prompt_id)
        self.deletion.mark(prompt_id)

    def cancel_delete(self) -> None:
        self.deletion.cancel()

    async def confirm_delete(self) -> str:
        prompt_id = self.deletion.require_candidate()
        await self._ensure_deletable(prompt_id)
        await self.delete_mutation.run(
            lambda: call_host(
                "delete_prompt", lambda: self.host.delete_prompt(prompt_id), prompt_id=prompt_id
            )
        )
        self.cache.invalidate(CacheSlot.PROMPTS)
        self.deletion.cancel()
        logger.info("[orchestrator] Deleted prompt", extra={"prompt_id": prompt_id})
        return prompt_id

    async def _ensure_deletable(self, prompt_id: str) -> None:
        prompts = await self.list()
        prompt = prompts.get(prompt_id)
        if prompt is not None and prompt.enabled:
            logger.warning(
                "[orchestrator] Refusing to delete the active prompt",
                extra={"prompt_id": prompt_id},
            )
            raise ExclusivityViolation(prompt_id)

    async def import_from_file(self) -> str:
        prompt_id = await self.import_mutation.run(
            lambda: call_host("import_prompt_from_file", self.host.import_prompt_from_file)
        )
        self.cache.invalidate(CacheSlot.PROMPTS)
        logger.info("[orchestrator] Imported prompt", extra={"prompt_id": prompt_id})
        return prompt_id

    async def current_file_content(self) -> Optional[str]:
        return await call_host(
            "get_current_prompt_file_content", self.host.get_current_prompt_file_content
        )


class InstructionsController(_Controller):
    """Instruction file paths stored in the ``config`` slot."""

    def __init__(self, session: "ConfigOrchestrator") -> None:
        super().__init__(session)
        self.mutation = Mutation("instructions")

    async def list(self) -> List[str]:
        config: Config = await self.cache.get(CacheSlot.CONFIG)
        return list(config.instructions or [])

    async def add(self, path: str) -> None:
        path = self._require_path(path)
        await self._write("add_instruction", lambda: self.host.add_instruction(path))

    async def remove(self, path: str) -> None:
        path = self._require_path(path)
        await self._write("remove_instruction", lambda: self.host.remove_instruction(path))

    async def replace(self, paths: List[str]) -> None:
        cleaned = [path.strip() for path in paths if path.strip()]
        await self._write("update_instructions", lambda: self.host.update_instructions(cleaned))

    @staticmethod
    def _require_path(path: str) -> str:
        if not path.strip():
            raise ValidationError("instruction", "path", "Instruction path is required")
        return path.strip()

    async def _write(self, command: str, call: Callable[[], Awaitable[bool]]) -> None:
        await self.mutation.run(lambda: call_host(command, call))
        self.cache.invalidate(CacheSlot.CONFIG)


class ConfigOrchestrator:
    """Session object tying the host, the cache and the entity controllers together."""

    def __init__(
        self,
        host: HostCollaborator,
        *,
        settings: Optional[Settings] = None,
        host_enforces_exclusivity: bool = True,
        now_ms: Callable[[], int] = _now_ms,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        settings = settings or Settings()
        self.host = host
        self.now_ms = now_ms
        self.cache = QueryCache(
            {
                CacheSlot.CONFIG: host.get_config,
                CacheSlot.CREDENTIALS: host.get_credentials,
                CacheSlot.MCP: host.get_mcp_servers,
                CacheSlot.PROMPTS: host.get_prompts,
            },
            stale_after_seconds=settings.stale_after_seconds,
            refetch_retries=settings.refetch_retries,
            clock=clock,
        )
        self.providers = ProviderController(self)
        self.mcp = McpController(self)
        self.prompts = PromptController(
            self, host_enforces_exclusivity=host_enforces_exclusivity
        )
        self.instructions = InstructionsController(self)

    async def config_path(self) -> str:
        return await call_host("get_config_path", self.host.get_config_path)
