"""
OpenSwitch - configuration manager for opencode

Manage LLM provider endpoints, MCP server connections and reusable system
prompts for an AI coding tool host.

Features:
- Providers with per-model flags and separately stored API keys
- Local (command) and remote (URL) MCP servers
- Prompt library with a single active prompt mirrored to AGENTS.md

Quick Start:
    pip install -e .
    openswitch provider list
"""

__version__ = "0.3.0"

__all__ = ["__version__"]
