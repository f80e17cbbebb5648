"""Application settings resolved from the environment."""

import os
from pathlib import Path
from typing import Mapping, Optional

from pydantic import BaseModel, Field

from openswitch.utils.log import get_logger


logger = get_logger()


class Settings(BaseModel):
    """Runtime settings for the cache and the local host."""

    # Cached collections are considered fresh for this long.
    stale_after_seconds: float = Field(default=60.0, ge=0)
    # Extra attempts for a failed refetch of a cached collection. Mutations never retry.
    refetch_retries: int = Field(default=1, ge=0)

    app_home: Path = Field(default_factory=lambda: Path.home() / ".open-switch")
    config_home: Path = Field(default_factory=lambda: Path.home() / ".config" / "opencode")
    data_home: Path = Field(
        default_factory=lambda: Path.home() / ".local" / "share" / "opencode"
    )


def _env_number(env: Mapping[str, str], name: str, cast: type, default: object) -> object:
    raw = env.get(name)
    if raw is None or not raw.strip():
        return default
    try:
        value = cast(raw.strip())
    except ValueError:
        logger.warning(
            "[settings] Ignoring invalid %s=%r",
            name,
            raw,
            extra={"default": default},
        )
        return default
    if value < 0:
        logger.warning("[settings] Ignoring negative %s=%r", name, raw)
        return default
    return value


def load_settings(env: Optional[Mapping[str, str]] = None) -> Settings:
    """Build settings from ``OPENSWITCH_*`` / ``OPENCODE_*`` environment variables."""
    env = os.environ if env is None else env
    defaults = Settings()
    overrides: dict = {
        "stale_after_seconds": _env_number(
            env, "OPENSWITCH_STALE_SECONDS", float, defaults.stale_after_seconds
        ),
        "refetch_retries": _env_number(
            env, "OPENSWITCH_REFETCH_RETRIES", int, defaults.refetch_retries
        ),
    }
    for key, env_name in (
        ("app_home", "OPENSWITCH_HOME"),
        ("config_home", "OPENCODE_CONFIG_HOME"),
        ("data_home", "OPENCODE_DATA_HOME"),
    ):
        raw = env.get(env_name)
        if raw and raw.strip():
            overrides[key] = Path(raw.strip()).expanduser()
    return Settings(**overrides)
