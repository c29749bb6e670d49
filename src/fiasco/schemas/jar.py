"""Jar index: the entry table of a jar file, serializable as YAML."""

from __future__ import annotations

import zipfile
from dataclasses import dataclass, field, replace
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, BinaryIO, Dict, List, Optional, Tuple

import yaml


def round_down_to_second(moment: Optional[datetime]) -> Optional[datetime]:
    if moment is None:
        return None
    if moment.tzinfo is None:
        moment = moment.replace(tzinfo=timezone.utc)
    return moment.astimezone(timezone.utc).replace(microsecond=0)


@dataclass(frozen=True)
class JarEntry:
    """One member of a jar: its path, uncompressed size and local header offset."""

    path: str
    size: int = 0
    last_modified: Optional[datetime] = None
    offset: int = 0

    def __post_init__(self) -> None:
        object.__setattr__(self, "last_modified", round_down_to_second(self.last_modified))

    def to_dict(self) -> Dict[str, Any]:
        return {
            "path": self.path,
            "size": self.size,
            "last_modified": self.last_modified.isoformat() if self.last_modified else None,
            "offset": self.offset,
        }

    @classmethod
    def from_dict(cls, payload: Dict[str, Any]) -> "JarEntry":
        last_modified = payload.get("last_modified")
        if isinstance(last_modified, str):
            last_modified = datetime.fromisoformat(last_modified)
        return cls(
            path=payload["path"],
            size=int(payload.get("size", 0)),
            last_modified=last_modified,
            offset=int(payload.get("offset", 0)),
        )


@dataclass(frozen=True)
class JarIndex:
    entries: Tuple[JarEntry, ...] = field(default_factory=tuple)

    def with_entry(self, entry: JarEntry) -> "JarIndex":
        return replace(self, entries=self.entries + (entry,))

    def entry(self, path: str) -> Optional[JarEntry]:
        for entry in self.entries:
            if entry.path == path:
                return entry
        return None

    def paths(self) -> List[str]:
        return [entry.path for entry in self.entries]

    def __len__(self) -> int:
        return len(self.entries)

    @classmethod
    def from_zip(cls, path: Path | str | BinaryIO) -> "JarIndex":
        """Index every file member of a zip or jar archive.

        Each entry's offset is the position of its local file header, so a
        reader can seek straight to one member without the central directory.
        """
        entries = []
        with zipfile.ZipFile(path) as archive:
            for info in archive.infolist():
                if info.is_dir():
                    continue
                entries.append(JarEntry(
                    path=info.filename,
                    size=info.file_size,
                    last_modified=datetime(*info.date_time, tzinfo=timezone.utc),
                    offset=info.header_offset,
                ))
        return cls(entries=tuple(entries))

    def to_yaml(self) -> str:
        return yaml.safe_dump(
            {"entries": [entry.to_dict() for entry in self.entries]},
            sort_keys=False,
        )

    @classmethod
    def from_yaml(cls, text: str) -> "JarIndex":
        payload = yaml.safe_load(text) or {}
        return cls(entries=tuple(JarEntry.from_dict(item) for item in payload.get("entries") or []))
