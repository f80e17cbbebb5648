"""Prompt persistence and the rules for the active prompt file.

Prompts live in a JSON file under the application home. The enabled
prompt's content is mirrored to ``AGENTS.md`` in the opencode config
directory, which is what the coding tool actually reads.
"""

from __future__ import annotations

import time
from datetime import datetime
from pathlib import Path
from typing import Callable, Dict, List, Optional

from pydantic import ValidationError as PydanticValidationError

from openswitch.core.errors import HostError
from openswitch.core.models import Prompt, to_wire
from openswitch.utils.files import (
    directory_lock,
    read_json,
    read_text,
    write_json_atomic,
    write_text_atomic,
)
from openswitch.utils.log import get_logger


logger = get_logger()

_STORE_VERSION = 1


def _now_ms() -> int:
    return int(time.time() * 1000)


class PromptStore:
    def __init__(
        self,
        prompts_file: Path,
        agents_file: Path,
        *,
        now_ms: Callable[[], int] = _now_ms,
        now_local: Callable[[], datetime] = datetime.now,
    ) -> None:
        self.prompts_file = prompts_file
        self.agents_file = agents_file
        self._now_ms = now_ms
        self._now_local = now_local

    # ------------------------------------------------------------------
    # Storage
    # ------------------------------------------------------------------

    def load(self) -> Dict[str, Prompt]:
        """All prompts, newest first."""
        data = read_json(self.prompts_file)
        if data is None:
            return {}
        raw_items = data.get("prompts") if isinstance(data, dict) else None
        if not isinstance(raw_items, list):
            raise HostError(
                f"Invalid prompt store: {self.prompts_file}", path=str(self.prompts_file)
            )
        try:
            prompts = [Prompt.model_validate(item) for item in raw_items]
        except PydanticValidationError as exc:
            raise HostError(
                f"Invalid prompt store: {self.prompts_file}: {exc}", path=str(self.prompts_file)
            ) from exc
        prompts.sort(key=lambda prompt: prompt.created_at or 0, reverse=True)
        return {prompt.id: prompt for prompt in prompts}

    def _save(self, prompts: Dict[str, Prompt]) -> None:
        ordered: List[Prompt] = sorted(
            prompts.values(), key=lambda prompt: prompt.created_at or 0, reverse=True
        )
        write_json_atomic(
            self.prompts_file,
            {"version": _STORE_VERSION, "prompts": [to_wire(prompt) for prompt in ordered]},
        )
        logger.debug(
            "[prompts] Saved prompt store",
            extra={"path": str(self.prompts_file), "count": len(ordered)},
        )

    def _put(self, prompt: Prompt) -> None:
        prompts = self.load()
        prompts[prompt.id] = prompt
        self._save(prompts)

    def _stamp(self) -> str:
        return self._now_local().strftime("%Y-%m-%d %H:%M")

    # ------------------------------------------------------------------
    # Commands
    # ------------------------------------------------------------------

    def upsert(self, prompt: Prompt) -> None:
        with directory_lock(self.prompts_file.parent):
            self._put(prompt)
        if prompt.enabled:
            write_text_atomic(self.agents_file, prompt.content)

    def delete(self, prompt_id: str) -> None:
        with directory_lock(self.prompts_file.parent):
            prompts = self.load()
            prompt = prompts.get(prompt_id)
            if prompt is not None and prompt.enabled:
                raise HostError("Cannot delete enabled prompt")
            prompts.pop(prompt_id, None)
            self._save(prompts)

    def enable(self, prompt_id: str) -> None:
        """Demote every prompt, then enable ``prompt_id`` and write its content to AGENTS.md.

        Whatever AGENTS.md held before is kept: the currently enabled prompt
        takes the live file content, and when nothing is enabled the content is
        stored as a backup prompt unless an identical one already exists.
        """
        with directory_lock(self.prompts_file.parent):
            prompts = self.load()
            if prompt_id not in prompts:
                raise HostError(f"Prompt {prompt_id} not found")
            self._backfill_live_content(prompts)

            for other_id, prompt in list(prompts.items()):
                if prompt.enabled:
                    prompts[other_id] = prompt.model_copy(update={"enabled": False})
            target = prompts[prompt_id]
            write_text_atomic(self.agents_file, target.content)
            prompts[prompt_id] = target.model_copy(update={"enabled": True})
            self._save(prompts)
        logger.info("[prompts] Enabled prompt", extra={"prompt_id": prompt_id})

    def _backfill_live_content(self, prompts: Dict[str, Prompt]) -> None:
        if not self.agents_file.exists():
            return
        try:
            live_content = self.agents_file.read_text(encoding="utf-8")
        except (OSError, UnicodeDecodeError) as exc:
            logger.warning(
                "[prompts] Could not read live prompt file: %s: %s",
                type(exc).__name__,
                exc,
                extra={"path": str(self.agents_file)},
            )
            return
        if not live_content.strip():
            return

        enabled = next((prompt for prompt in prompts.values() if prompt.enabled), None)
        timestamp = self._now_ms()
        if enabled is not None:
            prompts[enabled.id] = enabled.model_copy(
                update={"content": live_content, "updated_at": timestamp}
            )
            logger.info(
                "[prompts] Backfilled live content to enabled prompt",
                extra={"prompt_id": enabled.id},
            )
            return

        if any(prompt.content.strip() == live_content.strip() for prompt in prompts.values()):
            return
        backup_id = f"backup-{timestamp}"
        prompts[backup_id] = Prompt(
            id=backup_id,
            name=f"Original Prompt {self._stamp()}",
            content=live_content,
            description="Auto-backup of original prompt",
            enabled=False,
            created_at=timestamp,
            updated_at=timestamp,
        )
        logger.info("[prompts] Created backup prompt", extra={"prompt_id": backup_id})

    def import_from_file(self) -> str:
        if not self.agents_file.exists():
            raise HostError("AGENTS.md file not found", path=str(self.agents_file))
        content = read_text(self.agents_file)
        timestamp = self._now_ms()
        prompt_id = f"imported-{timestamp}"
        prompt = Prompt(
            id=prompt_id,
            name=f"Imported Prompt {self._stamp()}",
            content=content,
            description="Imported from existing AGENTS.md",
            enabled=False,
            created_at=timestamp,
            updated_at=timestamp,
        )
        with directory_lock(self.prompts_file.parent):
            self._put(prompt)
        return prompt_id

    def current_file_content(self) -> Optional[str]:
        if not self.agents_file.exists():
            return None
        return read_text(self.agents_file)

    def import_on_first_launch(self) -> int:
        """Adopt an existing AGENTS.md as the enabled prompt when the store is empty."""
        if self.load():
            return 0
        if not self.agents_file.exists():
            return 0
        try:
            content = self.agents_file.read_text(encoding="utf-8")
        except (OSError, UnicodeDecodeError) as exc:
            logger.warning(
                "[prompts] Failed to read AGENTS.md: %s: %s",
                type(exc).__name__,
                exc,
                extra={"path": str(self.agents_file)},
            )
            return 0
        if not content.strip():
            return 0

        logger.info("[prompts] Auto-importing existing AGENTS.md")
        timestamp = self._now_ms()
        prompt_id = f"auto-imported-{timestamp}"
        with directory_lock(self.prompts_file.parent):
            self._put(
                Prompt(
                    id=prompt_id,
                    name=f"Auto-imported Prompt {self._stamp()}",
                    content=content,
                    description="Automatically imported on first launch",
                    enabled=True,
                    created_at=timestamp,
                    updated_at=timestamp,
                )
            )
        logger.info("[prompts] Auto-import completed", extra={"prompt_id": prompt_id})
        return 1
