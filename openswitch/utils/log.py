"""Logging for OpenSwitch.

All modules log through one ``OpenSwitchLogger``. Messages carry a
``[component]`` prefix and structured context goes in ``extra=``; the file
handler appends that context to each line as sorted JSON.
"""

import json
import logging
import os
import sys
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, Mapping, Optional


# Attributes every LogRecord already has, plus the two the formatter adds.
RESERVED_RECORD_KEYS = frozenset(
    logging.LogRecord("", logging.DEBUG, "", 0, "", (), None).__dict__
) | {"message", "asctime"}

CONTEXT_KEY_PREFIX = "ctx_"


def safe_extra(extra: Optional[Mapping[str, Any]]) -> Optional[Dict[str, Any]]:
    """Rename context keys that would overwrite a LogRecord attribute.

    ``logging`` raises ``KeyError`` for such keys, which would turn a log
    line into a failed write. ``{"name": "fs"}`` becomes ``{"ctx_name": "fs"}``.
    """
    if not extra:
        return None
    return {
        (CONTEXT_KEY_PREFIX + key if key in RESERVED_RECORD_KEYS else key): value
        for key, value in extra.items()
    }


class StructuredFormatter(logging.Formatter):
    """``<UTC ISO time> [LEVEL] message | {context}``."""

    def formatTime(self, record: logging.LogRecord, datefmt: Optional[str] = None) -> str:
        stamp = datetime.fromtimestamp(record.created, tz=timezone.utc)
        return stamp.strftime("%Y-%m-%dT%H:%M:%S.%f")[:-3] + "Z"

    def format(self, record: logging.LogRecord) -> str:
        line = super().format(record)
        context = {
            key: value
            for key, value in vars(record).items()
            if key not in RESERVED_RECORD_KEYS and not key.startswith("_")
        }
        if not context:
            return line
        return f"{line} | {json.dumps(context, sort_keys=True, ensure_ascii=True, default=str)}"


class OpenSwitchLogger:
    """Console logging at ``OPENSWITCH_LOG_LEVEL`` plus an optional debug log file."""

    def __init__(self, name: str = "openswitch") -> None:
        self.logger = logging.getLogger(name)
        # The file handler records everything; the console filters by level.
        self.logger.setLevel(logging.DEBUG)
        self.logger.propagate = False
        self.file_path: Optional[Path] = None
        self._file_handler: Optional[logging.Handler] = None

        if not self.logger.handlers:
            level_name = os.getenv("OPENSWITCH_LOG_LEVEL", "WARNING").upper()
            console = logging.StreamHandler(sys.stderr)
            console.setLevel(getattr(logging, level_name, logging.WARNING))
            console.setFormatter(logging.Formatter("%(levelname)s: %(message)s"))
            self.logger.addHandler(console)

    def attach_file_handler(self, log_file: Path) -> Path:
        """Send debug-level output to ``log_file``, replacing any earlier file."""
        if self._file_handler is not None and self.file_path == log_file:
            return log_file
        log_file.parent.mkdir(parents=True, exist_ok=True)
        handler = logging.FileHandler(log_file, encoding="utf-8")
        handler.setLevel(logging.DEBUG)
        handler.setFormatter(StructuredFormatter("%(asctime)s [%(levelname)s] %(message)s"))

        if self._file_handler is not None:
            self.logger.removeHandler(self._file_handler)
            self._file_handler.close()
        self.logger.addHandler(handler)
        self._file_handler = handler
        self.file_path = log_file
        return log_file

    def _log(self, level: int, message: str, args: tuple, kwargs: Dict[str, Any]) -> None:
        if "extra" in kwargs:
            kwargs["extra"] = safe_extra(kwargs["extra"])
        self.logger.log(level, message, *args, **kwargs)

    def debug(self, message: str, *args: Any, **kwargs: Any) -> None:
        self._log(logging.DEBUG, message, args, kwargs)

    def info(self, message: str, *args: Any, **kwargs: Any) -> None:
        self._log(logging.INFO, message, args, kwargs)

    def warning(self, message: str, *args: Any, **kwargs: Any) -> None:
        self._log(logging.WARNING, message, args, kwargs)


_logger: Optional[OpenSwitchLogger] = None


def get_logger() -> OpenSwitchLogger:
    """Get the process-wide logger."""
    global _logger
    if _logger is None:
        _logger = OpenSwitchLogger()
    return _logger


def daily_log_file(app_home: Path, today: Optional[datetime] = None) -> Path:
    """``<app_home>/logs/openswitch_YYYYMMDD.log`` for ``today``."""
    today = today or datetime.now()
    return app_home / "logs" / f"openswitch_{today.strftime('%Y%m%d')}.log"
