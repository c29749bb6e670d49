"""Utility modules for Fiasco."""

from .files import (
    atomic_write_bytes,
    atomic_write_text,
    append_line,
    fiasco_cache_root,
    path_from_uri,
    read_text_safe,
    remove_tree,
)

__all__ = [
    "atomic_write_bytes",
    "atomic_write_text",
    "append_line",
    "fiasco_cache_root",
    "path_from_uri",
    "read_text_safe",
    "remove_tree",
]
