"""File-backed host: opencode.json, auth.json and the prompt store.

Each command reloads the file it touches, applies one targeted change and
writes the whole file back atomically. Blocking file work runs in the
default executor so callers on the event loop are not stalled.
"""

from __future__ import annotations

import asyncio
import sys
import threading
from dataclasses import dataclass
from functools import partial
from pathlib import Path
from typing import Any, Callable, Dict, List, Optional, TypeVar, Union

from pydantic import ValidationError as PydanticValidationError

from openswitch.core.errors import HostError
from openswitch.core.models import (
    Config,
    Credential,
    Credentials,
    LocalMcpServer,
    Prompt,
    Provider,
    RemoteMcpServer,
    parse_credentials,
    to_wire,
    to_wire_map,
)
from openswitch.core.settings import Settings
from openswitch.host.prompt_store import PromptStore
from openswitch.utils.files import directory_lock, read_json, write_json_atomic
from openswitch.utils.log import get_logger


logger = get_logger()

T = TypeVar("T")
AnyMcpServer = Union[LocalMcpServer, RemoteMcpServer]

# Launchers that need a shell wrapper on Windows.
_WINDOWS_SHELL_LAUNCHERS = {"npx", "npm", "node", "pnpm", "yarn", "bunx", "bun"}


def normalize_command_for_platform(command: List[str], platform: str = sys.platform) -> List[str]:
    """Prefix Node-style launchers with ``cmd /c`` on Windows."""
    if not command or not platform.startswith("win"):
        return command
    first = command[0].lower()
    if first in _WINDOWS_SHELL_LAUNCHERS or first.endswith((".cmd", ".bat")):
        return ["cmd", "/c", *command]
    return command


@dataclass(frozen=True)
class HostPaths:
    config_file: Path
    auth_file: Path
    prompts_file: Path
    agents_file: Path

    @classmethod
    def from_settings(cls, settings: Settings) -> "HostPaths":
        return cls(
            config_file=settings.config_home / "opencode.json",
            auth_file=settings.data_home / "auth.json",
            prompts_file=settings.app_home / "prompts.json",
            agents_file=settings.config_home / "AGENTS.md",
        )


class LocalHost:
    """Host collaborator persisting to the user's opencode files."""

    def __init__(
        self,
        paths: HostPaths,
        *,
        prompt_store: Optional[PromptStore] = None,
        platform: str = sys.platform,
    ) -> None:
        self.paths = paths
        self.platform = platform
        self.prompt_store = prompt_store or PromptStore(paths.prompts_file, paths.agents_file)
        self._lock = threading.Lock()

    @classmethod
    def from_settings(cls, settings: Settings) -> "LocalHost":
        return cls(HostPaths.from_settings(settings))

    async def _run(self, func: Callable[..., T], *args: Any) -> T:
        loop = asyncio.get_running_loop()
        return await loop.run_in_executor(None, partial(self._locked, func, *args))

    def _locked(self, func: Callable[..., T], *args: Any) -> T:
        with self._lock:
            return func(*args)

    # ------------------------------------------------------------------
    # opencode.json
    # ------------------------------------------------------------------

    def load_config(self) -> Config:
        path = self.paths.config_file
        data = read_json(path)
        if data is None:
            logger.debug("[host] Config not found; using defaults", extra={"path": str(path)})
            return Config.default()
        try:
            config = Config.model_validate(data)
        except PydanticValidationError as exc:
            logger.warning(
                "[host] Invalid config file: %s",
                exc,
                extra={"path": str(path)},
            )
            raise HostError(f"Config error: {path}: {exc}", path=str(path)) from exc
        logger.debug(
            "[host] Loaded config",
            extra={"path": str(path), "provider_count": len(config.provider)},
        )
        return config

    def save_config_sync(self, config: Config) -> None:
        path = self.paths.config_file
        write_json_atomic(path, to_wire(config))
        logger.debug(
            "[host] Saved config",
            extra={"path": str(path), "provider_count": len(config.provider)},
        )

    def _modify_config(self, change: Callable[[Config], None]) -> bool:
        with directory_lock(self.paths.config_file.parent):
            config = self.load_config()
            change(config)
            self.save_config_sync(config)
        return True

    async def get_config(self) -> Config:
        return await self._run(self.load_config)

    async def save_config(self, config: Config) -> bool:
        def _save() -> bool:
            with directory_lock(self.paths.config_file.parent):
                self.save_config_sync(config)
            return True

        return await self._run(_save)

    async def get_config_path(self) -> str:
        return str(self.paths.config_file)

    # Providers

    async def add_provider(self, provider_id: str, provider: Provider) -> bool:
        def _change(config: Config) -> None:
            config.provider[provider_id] = provider

        return await self._run(self._modify_config, _change)

    async def update_provider(self, provider_id: str, provider: Provider) -> bool:
        def _change(config: Config) -> None:
            if provider_id not in config.provider:
                raise HostError(f"Provider '{provider_id}' not found")
            config.provider[provider_id] = provider

        return await self._run(self._modify_config, _change)

    async def delete_provider(self, provider_id: str) -> bool:
        def _change(config: Config) -> None:
            if config.provider.pop(provider_id, None) is None:
                raise HostError(f"Provider '{provider_id}' not found")

        return await self._run(self._modify_config, _change)

    # MCP servers

    def _normalized(self, server: AnyMcpServer) -> AnyMcpServer:
        if isinstance(server, LocalMcpServer):
            command = normalize_command_for_platform(server.command, self.platform)
            return server.model_copy(update={"command": command})
        return server

    async def get_mcp_servers(self) -> Dict[str, AnyMcpServer]:
        config = await self.get_config()
        return dict(config.mcp or {})

    async def add_mcp_server(self, name: str, server: AnyMcpServer) -> bool:
        server = self._normalized(server)

        def _change(config: Config) -> None:
            if config.mcp is None:
                config.mcp = {}
            config.mcp[name] = server

        return await self._run(self._modify_config, _change)

    async def update_mcp_server(self, name: str, server: AnyMcpServer) -> bool:
        server = self._normalized(server)

        def _change(config: Config) -> None:
            if not config.mcp or name not in config.mcp:
                raise HostError(f"MCP server '{name}' not found")
            config.mcp[name] = server

        return await self._run(self._modify_config, _change)

    async def delete_mcp_server(self, name: str) -> bool:
        def _change(config: Config) -> None:
            if not config.mcp or config.mcp.pop(name, None) is None:
                raise HostError(f"MCP server '{name}' not found")
            if not config.mcp:
                config.mcp = None

        return await self._run(self._modify_config, _change)

    async def toggle_mcp_server(self, name: str, enabled: bool) -> bool:
        def _change(config: Config) -> None:
            if not config.mcp or name not in config.mcp:
                raise HostError(f"MCP server '{name}' not found")
            config.mcp[name] = config.mcp[name].model_copy(update={"enabled": enabled})

        return await self._run(self._modify_config, _change)

    # Instructions

    async def get_instructions(self) -> List[str]:
        config = await self.get_config()
        return list(config.instructions or [])

    async def add_instruction(self, path: str) -> bool:
        def _change(config: Config) -> None:
            instructions = config.instructions or []
            if path not in instructions:
                instructions.append(path)
            config.instructions = instructions

        return await self._run(self._modify_config, _change)

    async def remove_instruction(self, path: str) -> bool:
        def _change(config: Config) -> None:
            if config.instructions is None:
                return
            remaining = [item for item in config.instructions if item != path]
            config.instructions = remaining or None

        return await self._run(self._modify_config, _change)

    async def update_instructions(self, paths: List[str]) -> bool:
        def _change(config: Config) -> None:
            config.instructions = list(paths) or None

        return await self._run(self._modify_config, _change)

    # ------------------------------------------------------------------
    # auth.json
    # ------------------------------------------------------------------

    def load_credentials(self) -> Credentials:
        path = self.paths.auth_file
        data = read_json(path)
        if data is None:
            return {}
        try:
            return parse_credentials(data)
        except PydanticValidationError as exc:
            raise HostError(f"Config error: {path}: {exc}", path=str(path)) from exc

    def _modify_credentials(self, change: Callable[[Credentials], None]) -> bool:
        path = self.paths.auth_file
        with directory_lock(path.parent):
            credentials = self.load_credentials()
            change(credentials)
            write_json_atomic(path, to_wire_map(credentials))
        # Only the count is logged; keys never are.
        logger.debug(
            "[host] Saved credentials",
            extra={"path": str(path), "count": len(credentials)},
        )
        return True

    async def get_credentials(self) -> Credentials:
        return await self._run(self.load_credentials)

    async def set_credential(self, provider_id: str, api_key: str) -> bool:
        def _change(credentials: Credentials) -> None:
            credentials[provider_id] = Credential(type="api", key=api_key)

        return await self._run(self._modify_credentials, _change)

    async def delete_credential(self, provider_id: str) -> bool:
        def _change(credentials: Credentials) -> None:
            if credentials.pop(provider_id, None) is None:
                raise HostError(f"Credential '{provider_id}' not found")

        return await self._run(self._modify_credentials, _change)

    async def has_credential(self, provider_id: str) -> bool:
        credentials = await self.get_credentials()
        return provider_id in credentials

    # ------------------------------------------------------------------
    # Prompts
    # ------------------------------------------------------------------

    async def get_prompts(self) -> Dict[str, Prompt]:
        return await self._run(self.prompt_store.load)

    async def upsert_prompt(self, prompt: Prompt) -> bool:
        await self._run(self.prompt_store.upsert, prompt)
        return True

    async def delete_prompt(self, prompt_id: str) -> bool:
        await self._run(self.prompt_store.delete, prompt_id)
        return True

    async def enable_prompt(self, prompt_id: str) -> bool:
        await self._run(self.prompt_store.enable, prompt_id)
        return True

    async def import_prompt_from_file(self) -> str:
        return await self._run(self.prompt_store.import_from_file)

    async def get_current_prompt_file_content(self) -> Optional[str]:
        return await self._run(self.prompt_store.current_file_content)

    def import_prompts_on_first_launch(self) -> int:
        """Run once at startup; failures are logged and never block the session."""
        try:
            return self.prompt_store.import_on_first_launch()
        except HostError as exc:
            logger.warning(
                "[host] Failed to auto-import prompts: %s",
                exc,
                extra={"path": exc.path},
            )
            return 0
