"""Command surface of the host that owns configuration storage.

The orchestrator only talks to storage through this protocol. Every
command either returns its documented payload or raises; a returned
``False`` is not a failure signal.
"""

from __future__ import annotations

from typing import Dict, List, Optional, Protocol, Union, runtime_checkable

from openswitch.core.models import (
    Config,
    Credentials,
    LocalMcpServer,
    Prompt,
    Provider,
    RemoteMcpServer,
)

AnyMcpServer = Union[LocalMcpServer, RemoteMcpServer]


@runtime_checkable
class HostCollaborator(Protocol):
    # Config and providers
    async def get_config(self) -> Config: ...

    async def save_config(self, config: Config) -> bool: ...

    async def add_provider(self, provider_id: str, provider: Provider) -> bool: ...

    async def update_provider(self, provider_id: str, provider: Provider) -> bool: ...

    async def delete_provider(self, provider_id: str) -> bool: ...

    async def get_config_path(self) -> str: ...

    # Credentials
    async def get_credentials(self) -> Credentials: ...

    async def set_credential(self, provider_id: str, api_key: str) -> bool: ...

    async def delete_credential(self, provider_id: str) -> bool: ...

    async def has_credential(self, provider_id: str) -> bool: ...

    # MCP servers
    async def get_mcp_servers(self) -> Dict[str, AnyMcpServer]: ...

    async def add_mcp_server(self, name: str, server: AnyMcpServer) -> bool: ...

    async def update_mcp_server(self, name: str, server: AnyMcpServer) -> bool: ...

    async def delete_mcp_server(self, name: str) -> bool: ...

    async def toggle_mcp_server(self, name: str, enabled: bool) -> bool: ...

    # Instructions
    async def get_instructions(self) -> List[str]: ...

    async def add_instruction(self, path: str) -> bool: ...

    async def remove_instruction(self, path: str) -> bool: ...

    async def update_instructions(self, paths: List[str]) -> bool: ...

    # Prompts
    async def get_prompts(self) -> Dict[str, Prompt]: ...

    async def upsert_prompt(self, prompt: Prompt) -> bool: ...

    async def delete_prompt(self, prompt_id: str) -> bool: ...

    async def enable_prompt(self, prompt_id: str) -> bool: ...

    async def import_prompt_from_file(self) -> str: ...

    async def get_current_prompt_file_content(self) -> Optional[str]: ...
