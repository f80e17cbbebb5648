"""Helpers for atomic, locked file writes."""

from __future__ import annotations

import contextlib
import json
import os
import tempfile
from pathlib import Path
from typing import Any, Generator, Iterator, TextIO

from openswitch.core.errors import HostError
from openswitch.utils.log import get_logger

try:
    import fcntl

    HAS_FCNTL = True
except ImportError:  # pragma: no cover - Windows
    HAS_FCNTL = False

logger = get_logger()


@contextlib.contextmanager
def file_lock(file_handle: TextIO, exclusive: bool = True) -> Generator[None, None, None]:
    """Acquire a file lock, with fallback for systems without fcntl."""
    if not HAS_FCNTL:
        yield
        return

    lock_type = fcntl.LOCK_EX if exclusive else fcntl.LOCK_SH
    try:
        fcntl.flock(file_handle.fileno(), lock_type)
        yield
    finally:
        with contextlib.suppress(OSError):
            fcntl.flock(file_handle.fileno(), fcntl.LOCK_UN)


@contextlib.contextmanager
def directory_lock(directory: Path) -> Iterator[None]:
    """Exclusive lock on ``directory/.lock`` to coordinate cross-process read-modify-write."""
    directory.mkdir(parents=True, exist_ok=True)
    lock_path = directory / ".lock"
    with lock_path.open("a+", encoding="utf-8") as handle:
        with file_lock(handle, exclusive=True):
            yield


def write_text_atomic(path: Path, content: str) -> None:
    """Write to a temp file beside ``path`` and rename it into place."""
    try:
        path.parent.mkdir(parents=True, exist_ok=True)
        fd, temp_path = tempfile.mkstemp(
            dir=str(path.parent), prefix=f".{path.name}.", suffix=".tmp"
        )
    except OSError as exc:
        raise HostError(f"IO error: {path}: {exc}", path=str(path)) from exc
    try:
        with os.fdopen(fd, "w", encoding="utf-8") as handle:
            handle.write(content)
        os.replace(temp_path, path)
    except OSError as exc:
        raise HostError(f"IO error: {path}: {exc}", path=str(path)) from exc
    finally:
        try:
            if os.path.exists(temp_path):
                os.unlink(temp_path)
        except OSError:
            pass


def write_json_atomic(path: Path, payload: Any) -> None:
    write_text_atomic(path, json.dumps(payload, indent=2, ensure_ascii=False) + "\n")


def read_json(path: Path) -> Any:
    """Load JSON from ``path``; ``None`` when the file does not exist."""
    if not path.exists():
        return None
    try:
        text = path.read_text(encoding="utf-8")
    except (OSError, UnicodeDecodeError) as exc:
        raise HostError(f"IO error: {path}: {exc}", path=str(path)) from exc
    try:
        return json.loads(text)
    except json.JSONDecodeError as exc:
        logger.warning(
            "[files] Failed to parse JSON: %s",
            exc,
            extra={"path": str(path)},
        )
        raise HostError(f"JSON parse error: {path}: {exc}", path=str(path)) from exc


def read_text(path: Path) -> str:
    try:
        return path.read_text(encoding="utf-8")
    except (OSError, UnicodeDecodeError) as exc:
        raise HostError(f"IO error: {path}: {exc}", path=str(path)) from exc
