"""Domain types for providers, MCP servers, prompts and credentials.

Every record is a pydantic model whose aliases match the on-disk opencode
format (``baseURL``, ``setCacheKey``, ``createdAt``...). Use ``to_wire`` to
get the minimal JSON-ready form: unset optional fields are omitted rather
than written as ``null``.
"""

from __future__ import annotations

from enum import Enum
from typing import Annotated, Any, Dict, List, Literal, Optional, Union

from pydantic import (
    BaseModel,
    ConfigDict,
    Discriminator,
    Field,
    NonNegativeInt,
    Tag,
    TypeAdapter,
)


DEFAULT_SCHEMA_URL = "https://opencode.ai/config.json"


class SdkType(str, Enum):
    """SDK adapters a provider can be driven through."""

    OPENAI_COMPATIBLE = "@ai-sdk/openai-compatible"
    OPENAI = "@ai-sdk/openai"
    ANTHROPIC = "@ai-sdk/anthropic"
    GOOGLE = "@ai-sdk/google"

    @property
    def label(self) -> str:
        return _SDK_LABELS[self]

    @classmethod
    def _short_aliases(cls) -> Dict[str, "SdkType"]:
        return {
            "openai-compatible": cls.OPENAI_COMPATIBLE,
            "openai_compatible": cls.OPENAI_COMPATIBLE,
            "openai compatible": cls.OPENAI_COMPATIBLE,
            "openai": cls.OPENAI,
            "anthropic": cls.ANTHROPIC,
            "google": cls.GOOGLE,
            "gemini": cls.GOOGLE,
        }

    @classmethod
    def _missing_(cls, value: object) -> Optional["SdkType"]:
        """Accept short adapter names such as ``anthropic``."""
        if isinstance(value, str):
            return cls._short_aliases().get(value.strip().lower())
        return None


_SDK_LABELS = {
    SdkType.OPENAI_COMPATIBLE: "OpenAI Compatible",
    SdkType.OPENAI: "OpenAI",
    SdkType.ANTHROPIC: "Anthropic",
    SdkType.GOOGLE: "Google",
}


class ModelEntry(BaseModel):
    """One model exposed by a provider. Flags are only stored when true."""

    model_config = ConfigDict(populate_by_name=True)

    name: str
    thinking: Optional[bool] = None
    set_cache_key: Optional[bool] = Field(default=None, alias="setCacheKey")


class ProviderOptions(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    base_url: str = Field(alias="baseURL", min_length=1)
    # Present in some hand-written configs; the credential store is the
    # place this tool writes keys to.
    api_key: Optional[str] = Field(default=None, alias="apiKey")
    headers: Optional[Dict[str, str]] = None


class Provider(BaseModel):
    """A configured LLM backend, keyed by its id in ``Config.provider``."""

    model_config = ConfigDict(populate_by_name=True)

    # Unknown adapter packages written by other tools are kept as plain strings.
    sdk: Union[SdkType, str] = Field(
        default=SdkType.OPENAI_COMPATIBLE, alias="npm", union_mode="left_to_right"
    )
    display_name: str = Field(alias="name")
    options: ProviderOptions
    # Insertion order is display order.
    models: Dict[str, ModelEntry] = Field(default_factory=dict)

    @property
    def base_url(self) -> str:
        return self.options.base_url

    @property
    def headers(self) -> Optional[Dict[str, str]]:
        return self.options.headers


McpServerType = Literal["local", "remote"]


class _McpServerBase(BaseModel):
    # Absent means enabled.
    enabled: Optional[bool] = None
    # Milliseconds. Forms reject zero; stored configs may carry it.
    timeout: Optional[NonNegativeInt] = None

    @property
    def is_enabled(self) -> bool:
        return self.enabled is not False


class LocalMcpServer(_McpServerBase):
    """An MCP server started from a command line."""

    type: Literal["local"] = "local"
    command: List[str] = Field(min_length=1)
    environment: Optional[Dict[str, str]] = None


class RemoteMcpServer(_McpServerBase):
    """An MCP server reached over HTTP."""

    type: Literal["remote"] = "remote"
    url: str = Field(min_length=1)
    headers: Optional[Dict[str, str]] = None


def _mcp_server_tag(value: Any) -> str:
    if isinstance(value, dict):
        raw = value.get("type")
    else:
        raw = getattr(value, "type", None)
    # Entries without a type are local servers.
    return str(raw or "local")


McpServer = Annotated[
    Union[
        Annotated[LocalMcpServer, Tag("local")],
        Annotated[RemoteMcpServer, Tag("remote")],
    ],
    Discriminator(_mcp_server_tag),
]

_MCP_SERVER_ADAPTER: TypeAdapter[Any] = TypeAdapter(McpServer)
_MCP_SERVER_MAP_ADAPTER: TypeAdapter[Any] = TypeAdapter(Dict[str, McpServer])


def parse_mcp_server(raw: Any) -> Union[LocalMcpServer, RemoteMcpServer]:
    """Validate a raw mapping into the matching MCP server variant."""
    return _MCP_SERVER_ADAPTER.validate_python(raw)


def parse_mcp_servers(raw: Any) -> Dict[str, Union[LocalMcpServer, RemoteMcpServer]]:
    return _MCP_SERVER_MAP_ADAPTER.validate_python(raw or {})


class Prompt(BaseModel):
    """A reusable system prompt. At most one prompt is enabled at a time."""

    model_config = ConfigDict(populate_by_name=True)

    id: str
    name: str
    content: str
    description: Optional[str] = None
    enabled: bool = False
    # Unix milliseconds.
    created_at: Optional[int] = Field(default=None, alias="createdAt")
    updated_at: Optional[int] = Field(default=None, alias="updatedAt")


class Credential(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    type: str = "api"
    key: str


Credentials = Dict[str, Credential]

_CREDENTIALS_ADAPTER: TypeAdapter[Any] = TypeAdapter(Credentials)


def parse_credentials(raw: Any) -> Credentials:
    return _CREDENTIALS_ADAPTER.validate_python(raw or {})


class Config(BaseModel):
    """The host-owned opencode configuration envelope.

    Keys this tool does not manage are preserved as extra fields.
    """

    model_config = ConfigDict(populate_by_name=True, extra="allow")

    schema_url: Optional[str] = Field(default=None, alias="$schema")
    plugin: Optional[List[str]] = None
    provider: Dict[str, Provider] = Field(default_factory=dict)
    mcp: Optional[Dict[str, McpServer]] = None
    instructions: Optional[List[str]] = None

    @classmethod
    def default(cls) -> "Config":
        """Envelope used when no configuration file exists yet."""
        return cls(schema_url=DEFAULT_SCHEMA_URL)


def to_wire(record: BaseModel) -> Dict[str, Any]:
    """Dump a record to its minimal JSON-ready mapping (aliases, no nulls)."""
    return record.model_dump(mode="json", by_alias=True, exclude_none=True)


def to_wire_map(records: Dict[str, Any]) -> Dict[str, Any]:
    return {key: to_wire(value) for key, value in records.items()}
