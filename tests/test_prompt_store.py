"""Tests for prompt persistence and AGENTS.md handling."""

import json
from datetime import datetime
from itertools import count

import pytest

from openswitch.core.errors import HostError
from openswitch.core.models import Prompt
from openswitch.host.prompt_store import PromptStore


@pytest.fixture
def store(tmp_path):
    ticks = count(1000)
    return PromptStore(
        tmp_path / "app" / "prompts.json",
        tmp_path / "config" / "AGENTS.md",
        now_ms=lambda: next(ticks),
        now_local=lambda: datetime(2024, 5, 1, 9, 30),
    )


def _prompt(prompt_id, created_at, content="text", enabled=False):
    return Prompt(
        id=prompt_id,
        name=prompt_id,
        content=content,
        enabled=enabled,
        created_at=created_at,
        updated_at=created_at,
    )


def test_empty_store(store):
    assert store.load() == {}
    assert store.current_file_content() is None


def test_prompts_are_listed_newest_first(store):
    store.upsert(_prompt("old", 1))
    store.upsert(_prompt("new", 5))
    store.upsert(_prompt("mid", 3))
    assert list(store.load()) == ["new", "mid", "old"]

    raw = json.loads(store.prompts_file.read_text(encoding="utf-8"))
    assert raw["version"] == 1
    assert raw["prompts"][0]["createdAt"] == 5


def test_enable_writes_agents_file_and_is_exclusive(store):
    store.upsert(_prompt("a", 1, content="alpha"))
    store.upsert(_prompt("b", 2, content="beta"))

    store.enable("a")
    assert store.agents_file.read_text(encoding="utf-8") == "alpha"
    store.enable("b")

    prompts = store.load()
    assert [pid for pid, prompt in prompts.items() if prompt.enabled] == ["b"]
    assert store.current_file_content() == "beta"


def test_enable_backfills_live_edits_into_active_prompt(store):
    store.upsert(_prompt("a", 1, content="alpha"))
    store.upsert(_prompt("b", 2, content="beta"))
    store.enable("a")
    store.agents_file.write_text("alpha edited by hand", encoding="utf-8")

    store.enable("b")
    assert store.load()["a"].content == "alpha edited by hand"


def test_enable_backs_up_unknown_agents_file(store):
    store.agents_file.parent.mkdir(parents=True)
    store.agents_file.write_text("hand written rules", encoding="utf-8")
    store.upsert(_prompt("a", 1, content="alpha"))

    store.enable("a")

    backups = [prompt for prompt in store.load().values() if prompt.id.startswith("backup-")]
    assert len(backups) == 1
    assert backups[0].content == "hand written rules"
    assert backups[0].name == "Original Prompt 2024-05-01 09:30"
    assert backups[0].enabled is False


def test_enable_unknown_prompt_fails(store):
    with pytest.raises(HostError, match="not found"):
        store.enable("ghost")


def test_delete_enabled_prompt_is_refused(store):
    store.upsert(_prompt("a", 1))
    store.enable("a")
    with pytest.raises(HostError, match="Cannot delete enabled prompt"):
        store.delete("a")
    store.upsert(_prompt("b", 2))
    store.delete("b")
    assert list(store.load()) == ["a"]


def test_import_from_file(store):
    with pytest.raises(HostError):
        store.import_from_file()
    store.agents_file.parent.mkdir(parents=True)
    store.agents_file.write_text("# Team rules", encoding="utf-8")

    prompt_id = store.import_from_file()
    prompt = store.load()[prompt_id]
    assert prompt_id.startswith("imported-")
    assert prompt.content == "# Team rules"
    assert prompt.enabled is False


def test_first_launch_import_adopts_agents_file_once(store):
    store.agents_file.parent.mkdir(parents=True)
    store.agents_file.write_text("# Existing", encoding="utf-8")

    assert store.import_on_first_launch() == 1
    assert store.import_on_first_launch() == 0
    prompts = list(store.load().values())
    assert len(prompts) == 1
    assert prompts[0].enabled is True
    assert prompts[0].id.startswith("auto-imported-")


def test_first_launch_import_skips_blank_file(store):
    store.agents_file.parent.mkdir(parents=True)
    store.agents_file.write_text("  \n", encoding="utf-8")
    assert store.import_on_first_launch() == 0
    assert store.load() == {}
