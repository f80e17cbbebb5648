"""Pytest configuration and fixtures for all tests."""

from __future__ import annotations

from typing import Any, Dict, List, Optional, Tuple

import pytest

from openswitch.core.errors import HostError
from openswitch.core.models import Config, Credential, Credentials, Prompt, Provider
from openswitch.core.orchestrator import ConfigOrchestrator
from openswitch.core.settings import Settings


class FakeHost:
    """In-memory host that records every command it receives.

    Set ``failures[command]`` to an exception to make that command raise.
    With ``exclusive=False`` ``enable_prompt`` only flips the target, like a
    host that leaves exclusivity to the caller.
    """

    def __init__(self, *, exclusive: bool = True) -> None:
        self.config = Config.default()
        self.credentials: Credentials = {}
        self.prompts: Dict[str, Prompt] = {}
        self.prompt_file: Optional[str] = None
        self.exclusive = exclusive
        self.calls: List[Tuple[str, Tuple[Any, ...]]] = []
        self.failures: Dict[str, Exception] = {}

    def _record(self, command: str, *args: Any) -> None:
        self.calls.append((command, args))
        failure = self.failures.get(command)
        if failure is not None:
            raise failure

    def commands(self) -> List[str]:
        return [command for command, _ in self.calls]

    def writes(self) -> List[str]:
        return [command for command in self.commands() if not command.startswith("get_")]

    # Config and providers

    async def get_config(self) -> Config:
        self._record("get_config")
        return self.config.model_copy(deep=True)

    async def save_config(self, config: Config) -> bool:
        self._record("save_config", config)
        self.config = config.model_copy(deep=True)
        return True

    async def add_provider(self, provider_id: str, provider: Provider) -> bool:
        self._record("add_provider", provider_id, provider)
        self.config.provider[provider_id] = provider
        return True

    async def update_provider(self, provider_id: str, provider: Provider) -> bool:
        self._record("update_provider", provider_id, provider)
        if provider_id not in self.config.provider:
            raise HostError(f"Provider '{provider_id}' not found")
        self.config.provider[provider_id] = provider
        return True

    async def delete_provider(self, provider_id: str) -> bool:
        self._record("delete_provider", provider_id)
        if self.config.provider.pop(provider_id, None) is None:
            raise HostError(f"Provider '{provider_id}' not found")
        return True

    async def get_config_path(self) -> str:
        self._record("get_config_path")
        return "/fake/opencode.json"

    # Credentials

    async def get_credentials(self) -> Credentials:
        self._record("get_credentials")
        return dict(self.credentials)

    async def set_credential(self, provider_id: str, api_key: str) -> bool:
        self._record("set_credential", provider_id, api_key)
        self.credentials[provider_id] = Credential(key=api_key)
        return True

    async def delete_credential(self, provider_id: str) -> bool:
        self._record("delete_credential", provider_id)
        self.credentials.pop(provider_id, None)
        return True

    async def has_credential(self, provider_id: str) -> bool:
        self._record("has_credential", provider_id)
        return provider_id in self.credentials

    # MCP servers

    async def get_mcp_servers(self):
        self._record("get_mcp_servers")
        return dict(self.config.mcp or {})

    async def add_mcp_server(self, name, server) -> bool:
        self._record("add_mcp_server", name, server)
        if self.config.mcp is None:
            self.config.mcp = {}
        self.config.mcp[name] = server
        return True

    async def update_mcp_server(self, name, server) -> bool:
        self._record("update_mcp_server", name, server)
        if not self.config.mcp or name not in self.config.mcp:
            raise HostError(f"MCP server '{name}' not found")
        self.config.mcp[name] = server
        return True

    async def delete_mcp_server(self, name: str) -> bool:
        self._record("delete_mcp_server", name)
        if not self.config.mcp or self.config.mcp.pop(name, None) is None:
            raise HostError(f"MCP server '{name}' not found")
        return True

    async def toggle_mcp_server(self, name: str, enabled: bool) -> bool:
        self._record("toggle_mcp_server", name, enabled)
        if not self.config.mcp or name not in self.config.mcp:
            raise HostError(f"MCP server '{name}' not found")
        self.config.mcp[name] = self.config.mcp[name].model_copy(update={"enabled": enabled})
        return True

    # Instructions

    async def get_instructions(self) -> List[str]:
        self._record("get_instructions")
        return list(self.config.instructions or [])

    async def add_instruction(self, path: str) -> bool:
        self._record("add_instruction", path)
        instructions = self.config.instructions or []
        if path not in instructions:
            instructions.append(path)
        self.config.instructions = instructions
        return True

    async def remove_instruction(self, path: str) -> bool:
        self._record("remove_instruction", path)
        remaining = [item for item in self.config.instructions or [] if item != path]
        self.config.instructions = remaining or None
        return True

    async def update_instructions(self, paths: List[str]) -> bool:
        self._record("update_instructions", list(paths))
        self.config.instructions = list(paths) or None
        return True

    # Prompts

    async def get_prompts(self) -> Dict[str, Prompt]:
        self._record("get_prompts")
        return {prompt_id: prompt.model_copy() for prompt_id, prompt in self.prompts.items()}

    async def upsert_prompt(self, prompt: Prompt) -> bool:
        self._record("upsert_prompt", prompt)
        self.prompts[prompt.id] = prompt
        return True

    async def delete_prompt(self, prompt_id: str) -> bool:
        self._record("delete_prompt", prompt_id)
        if prompt_id in self.prompts and self.prompts[prompt_id].enabled:
            raise HostError("Cannot delete enabled prompt")
        self.prompts.pop(prompt_id, None)
        return True

    async def enable_prompt(self, prompt_id: str) -> bool:
        self._record("enable_prompt", prompt_id)
        if prompt_id not in self.prompts:
            raise HostError(f"Prompt {prompt_id} not found")
        if self.exclusive:
            for other_id, prompt in list(self.prompts.items()):
                self.prompts[other_id] = prompt.model_copy(update={"enabled": False})
        target = self.prompts[prompt_id]
        self.prompts[prompt_id] = target.model_copy(update={"enabled": True})
        self.prompt_file = target.content
        return True

    async def import_prompt_from_file(self) -> str:
        self._record("import_prompt_from_file")
        if self.prompt_file is None:
            raise HostError("AGENTS.md file not found")
        prompt_id = f"imported-{len(self.prompts) + 1}"
        self.prompts[prompt_id] = Prompt(
            id=prompt_id, name="Imported", content=self.prompt_file, created_at=1, updated_at=1
        )
        return prompt_id

    async def get_current_prompt_file_content(self) -> Optional[str]:
        self._record("get_current_prompt_file_content")
        return self.prompt_file


class FakeClock:
    def __init__(self, start: float = 1000.0) -> None:
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


@pytest.fixture
def host() -> FakeHost:
    return FakeHost()


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def session(host: FakeHost, clock: FakeClock) -> ConfigOrchestrator:
    ticks = iter(range(1_700_000_000_000, 1_700_000_000_000 + 10_000))
    return ConfigOrchestrator(
        host,
        settings=Settings(stale_after_seconds=60.0, refetch_retries=1),
        now_ms=lambda: next(ticks),
        clock=clock,
    )


@pytest.fixture
def opencode_home(tmp_path, monkeypatch):
    """Point every OpenSwitch/opencode path at a temporary directory."""
    config_home = tmp_path / "config"
    data_home = tmp_path / "data"
    app_home = tmp_path / "app"
    monkeypatch.setenv("OPENCODE_CONFIG_HOME", str(config_home))
    monkeypatch.setenv("OPENCODE_DATA_HOME", str(data_home))
    monkeypatch.setenv("OPENSWITCH_HOME", str(app_home))
    return {"config": config_home, "data": data_home, "app": app_home}
