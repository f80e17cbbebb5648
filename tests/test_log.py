"""Tests for the logging wrapper."""

import json
import logging
from datetime import datetime
from pathlib import Path

from openswitch.utils.log import (
    OpenSwitchLogger,
    StructuredFormatter,
    daily_log_file,
    safe_extra,
)


def test_safe_extra_renames_record_attributes():
    assert safe_extra({"name": "fs", "created": True, "slot": "mcp"}) == {
        "ctx_name": "fs",
        "ctx_created": True,
        "slot": "mcp",
    }
    assert safe_extra(None) is None


def test_colliding_context_is_logged_instead_of_raising(tmp_path):
    log = OpenSwitchLogger("openswitch.test.collide")
    log_file = log.attach_file_handler(tmp_path / "logs" / "test.log")

    log.info("[test] Saved server", extra={"name": "fs", "message": "x", "is_new": True})

    line = log_file.read_text(encoding="utf-8").strip()
    assert "[INFO] [test] Saved server | " in line
    context = json.loads(line.split(" | ", 1)[1])
    assert context == {"ctx_message": "x", "ctx_name": "fs", "is_new": True}


def test_formatter_without_context_prints_plain_line():
    record = logging.LogRecord("openswitch", logging.DEBUG, __file__, 1, "hello %s", ("x",), None)
    line = StructuredFormatter("%(asctime)s [%(levelname)s] %(message)s").format(record)
    assert line.endswith("[DEBUG] hello x")
    stamp = line.split(" ")[0]
    assert "T" in stamp and stamp.endswith("Z")


def test_reattaching_same_file_keeps_one_handler(tmp_path):
    log = OpenSwitchLogger("openswitch.test.reattach")
    target = tmp_path / "a.log"
    log.attach_file_handler(target)
    log.attach_file_handler(target)
    log.attach_file_handler(tmp_path / "b.log")
    file_handlers = [h for h in log.logger.handlers if isinstance(h, logging.FileHandler)]
    assert len(file_handlers) == 1
    assert log.file_path == tmp_path / "b.log"


def test_daily_log_file_name():
    path = daily_log_file(Path("/home/u/.open-switch"), datetime(2024, 3, 9))
    assert path == Path("/home/u/.open-switch/logs/openswitch_20240309.log")
