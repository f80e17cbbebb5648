"""Tests for atomic file helpers."""

import pytest

from openswitch.core.errors import HostError
from openswitch.utils.files import directory_lock, read_json, write_json_atomic, write_text_atomic


def test_write_json_atomic_creates_parents(tmp_path):
    target = tmp_path / "nested" / "dir" / "data.json"
    write_json_atomic(target, {"name": "Ünïcode", "n": 1})
    assert target.read_text(encoding="utf-8") == '{\n  "name": "Ünïcode",\n  "n": 1\n}\n'
    assert read_json(target) == {"name": "Ünïcode", "n": 1}


def test_atomic_write_leaves_no_temp_files(tmp_path):
    target = tmp_path / "AGENTS.md"
    write_text_atomic(target, "first")
    write_text_atomic(target, "second")
    assert target.read_text(encoding="utf-8") == "second"
    assert sorted(path.name for path in tmp_path.iterdir()) == ["AGENTS.md"]


def test_read_json_missing_file_is_none(tmp_path):
    assert read_json(tmp_path / "missing.json") is None


def test_read_json_reports_parse_errors(tmp_path):
    target = tmp_path / "bad.json"
    target.write_text("{", encoding="utf-8")
    with pytest.raises(HostError) as excinfo:
        read_json(target)
    assert excinfo.value.path == str(target)


def test_directory_lock_can_be_taken_repeatedly(tmp_path):
    with directory_lock(tmp_path / "cfg"):
        pass
    with directory_lock(tmp_path / "cfg"):
        assert (tmp_path / "cfg" / ".lock").exists()
