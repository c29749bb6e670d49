"""File utilities for Fiasco repositories.

Provides atomic write helpers used by the local and Maven repositories plus a
safe text reader that reports errors as tuples.

Design principles:
- Writes land in a temporary sibling first and are moved into place with
  ``os.replace``, so readers never observe a partially written file
- Parent directories are created on demand
- Reads report failures as tuples (value, error_message)
"""

from __future__ import annotations

import os
import shutil
import tempfile
import threading
from pathlib import Path
from typing import Optional, Tuple
from urllib.parse import urlparse
from urllib.request import url2pathname

_APPEND_LOCK = threading.Lock()


def atomic_write_bytes(path: Path, data: bytes) -> None:
    """Write bytes to ``path`` atomically.

    The data is written to a temporary file in the same directory, flushed,
    and renamed over the target. Concurrent writers to the same path are
    last-writer-wins; no writer ever leaves a truncated file behind.

    Args:
        path: Destination file. Parent directories are created as needed.
        data: Bytes to write.

    Raises:
        OSError: If the directory cannot be created or the rename fails.
    """
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)
    fd, temp_name = tempfile.mkstemp(prefix=f".{path.name}.", suffix=".tmp", dir=path.parent)
    try:
        with os.fdopen(fd, "wb") as handle:
            handle.write(data)
            handle.flush()
            os.fsync(handle.fileno())
        os.replace(temp_name, path)
    except BaseException:
        if os.path.exists(temp_name):
            os.unlink(temp_name)
        raise


def atomic_write_text(path: Path, text: str, encoding: str = "utf-8") -> None:
    """Text variant of :func:`atomic_write_bytes`."""
    atomic_write_bytes(path, text.encode(encoding))


def append_line(path: Path, line: str, encoding: str = "utf-8") -> None:
    """Append one newline-terminated line to ``path``.

    Appends from this process are serialized so lines never interleave.
    """
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)
    with _APPEND_LOCK:
        with open(path, "a", encoding=encoding) as handle:
            handle.write(line.rstrip("\n") + "\n")


def read_text_safe(path: Path, encoding: str = "utf-8") -> Tuple[Optional[str], Optional[str]]:
    """Read a text file, returning ``(text, error_message)``.

    A missing file is not an error: it yields ``(None, None)``.
    """
    path = Path(path)
    try:
        return path.read_text(encoding=encoding), None
    except FileNotFoundError:
        return None, None
    except (OSError, UnicodeDecodeError) as exc:
        return None, f"Cannot read {path}: {exc}"


def remove_tree(path: Path) -> bool:
    """Delete a directory tree if it exists. Returns True if anything was removed."""
    path = Path(path)
    if not path.exists():
        return False
    shutil.rmtree(path)
    return True


def fiasco_cache_root() -> Path:
    """Root folder for Fiasco caches: ``$FIASCO_CACHE`` or ``~/.fiasco/cache``."""
    override = os.environ.get("FIASCO_CACHE")
    if override:
        return Path(override).expanduser()
    return Path.home() / ".fiasco" / "cache"


def path_from_uri(uri: str) -> Path:
    """Convert a ``file:`` URI or a plain path string to a Path."""
    parsed = urlparse(str(uri))
    if parsed.scheme == "file":
        return Path(url2pathname(parsed.path))
    return Path(str(uri))
