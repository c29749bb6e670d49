"""Standard project folder layout, derived from a root folder."""

from __future__ import annotations

from dataclasses import dataclass, replace
from pathlib import Path
from typing import List


@dataclass(frozen=True)
class Structure:
    """Folder paths of a project rooted at ``root``.

    Every path is derived; nothing touches the filesystem except the
    ``*_files`` helpers, which list existing files.
    """

    root: Path = Path(".")

    def __post_init__(self) -> None:
        object.__setattr__(self, "root", Path(self.root))

    def with_root(self, root: Path | str) -> "Structure":
        return replace(self, root=Path(root))

    def child(self, path: str) -> "Structure":
        return replace(self, root=self.root / path)

    @property
    def source_folder(self) -> Path:
        return self.root / "src"

    @property
    def main_source_folder(self) -> Path:
        return self.source_folder / "main"

    @property
    def java_source_folder(self) -> Path:
        return self.main_source_folder / "java"

    @property
    def main_resources_folder(self) -> Path:
        return self.main_source_folder / "resources"

    @property
    def test_source_folder(self) -> Path:
        return self.source_folder / "test"

    @property
    def java_test_source_folder(self) -> Path:
        return self.test_source_folder / "java"

    @property
    def test_resources_folder(self) -> Path:
        return self.test_source_folder / "resources"

    @property
    def target_folder(self) -> Path:
        return self.root / "target"

    @property
    def classes_folder(self) -> Path:
        return self.target_folder / "classes"

    @property
    def test_classes_folder(self) -> Path:
        return self.target_folder / "test-classes"

    def java_sources(self) -> List[Path]:
        return sorted(self.java_source_folder.rglob("*.java")) if self.java_source_folder.exists() else []

    def java_test_sources(self) -> List[Path]:
        folder = self.java_test_source_folder
        return sorted(folder.rglob("*.java")) if folder.exists() else []
