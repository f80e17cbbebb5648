"""Tests for the wire-format domain models."""

import pytest
from pydantic import ValidationError as PydanticValidationError

from openswitch.core.models import (
    DEFAULT_SCHEMA_URL,
    Config,
    LocalMcpServer,
    Provider,
    RemoteMcpServer,
    SdkType,
    parse_credentials,
    parse_mcp_server,
    parse_mcp_servers,
    to_wire,
)


def test_provider_parses_opencode_aliases():
    provider = Provider.model_validate(
        {
            "npm": "@ai-sdk/anthropic",
            "name": "Claude",
            "options": {"baseURL": "https://api.anthropic.com/v1", "headers": {"X-A": "1"}},
            "models": {"claude-3": {"name": "Claude 3", "thinking": True, "setCacheKey": True}},
        }
    )
    assert provider.sdk is SdkType.ANTHROPIC
    assert provider.display_name == "Claude"
    assert provider.base_url == "https://api.anthropic.com/v1"
    assert provider.headers == {"X-A": "1"}
    assert provider.models["claude-3"].set_cache_key is True


def test_provider_keeps_unknown_sdk_package():
    provider = Provider.model_validate(
        {"npm": "@acme/sdk", "name": "Acme", "options": {"baseURL": "https://acme"}}
    )
    assert provider.sdk == "@acme/sdk"
    assert to_wire(provider)["npm"] == "@acme/sdk"


def test_provider_requires_base_url():
    with pytest.raises(PydanticValidationError):
        Provider.model_validate({"name": "x", "options": {"baseURL": ""}})


def test_to_wire_omits_unset_fields():
    provider = Provider.model_validate(
        {
            "name": "Local",
            "options": {"baseURL": "http://localhost:8080"},
            "models": {"m": {"name": "m"}},
        }
    )
    assert to_wire(provider) == {
        "npm": "@ai-sdk/openai-compatible",
        "name": "Local",
        "options": {"baseURL": "http://localhost:8080"},
        "models": {"m": {"name": "m"}},
    }


@pytest.mark.parametrize(
    "raw,expected",
    [
        ("anthropic", SdkType.ANTHROPIC),
        ("OpenAI-Compatible", SdkType.OPENAI_COMPATIBLE),
        ("gemini", SdkType.GOOGLE),
        ("@ai-sdk/openai", SdkType.OPENAI),
    ],
)
def test_sdk_type_accepts_short_names(raw, expected):
    assert SdkType(raw) is expected


def test_sdk_labels():
    assert SdkType.OPENAI_COMPATIBLE.label == "OpenAI Compatible"
    assert SdkType.GOOGLE.label == "Google"


def test_mcp_server_without_type_is_local():
    server = parse_mcp_server({"command": ["npx", "-y", "srv"]})
    assert isinstance(server, LocalMcpServer)
    assert server.enabled is None
    assert server.is_enabled


def test_mcp_server_remote_variant():
    server = parse_mcp_server(
        {"type": "remote", "url": "https://mcp.example.com", "enabled": False, "timeout": 5000}
    )
    assert isinstance(server, RemoteMcpServer)
    assert server.timeout == 5000
    assert server.enabled is False


def test_mcp_server_rejects_unknown_type():
    with pytest.raises(PydanticValidationError):
        parse_mcp_server({"type": "socket", "url": "x"})


def test_mcp_server_loads_zero_timeout():
    assert parse_mcp_server({"command": ["a"], "timeout": 0}).timeout == 0


def test_mcp_server_rejects_negative_timeout():
    with pytest.raises(PydanticValidationError):
        parse_mcp_server({"command": ["a"], "timeout": -1})


def test_parse_mcp_servers_handles_missing_map():
    assert parse_mcp_servers(None) == {}


def test_config_preserves_unmanaged_keys():
    config = Config.model_validate(
        {
            "$schema": DEFAULT_SCHEMA_URL,
            "theme": "tokyonight",
            "mcp": {"fs": {"type": "local", "command": ["fs-mcp"]}},
        }
    )
    wire = to_wire(config)
    assert wire["theme"] == "tokyonight"
    assert wire["$schema"] == DEFAULT_SCHEMA_URL
    assert wire["mcp"] == {"fs": {"type": "local", "command": ["fs-mcp"]}}
    assert "instructions" not in wire


def test_config_default_has_schema_only():
    assert to_wire(Config.default()) == {"$schema": DEFAULT_SCHEMA_URL, "provider": {}}


def test_parse_credentials():
    credentials = parse_credentials({"openai": {"type": "api", "key": "sk-1"}})
    assert credentials["openai"].key == "sk-1"
