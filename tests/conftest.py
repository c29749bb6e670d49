"""Shared fixtures for Fiasco tests."""

from pathlib import Path

import pytest

from fiasco.repository.local import LocalRepository
from fiasco.runtime.librarian import Librarian
from fiasco.schemas import ArtifactContent, Library


@pytest.fixture(autouse=True)
def fiasco_cache(tmp_path: Path, monkeypatch) -> Path:
    """Keep every cache folder inside the test's temporary directory."""
    cache = tmp_path / "cache"
    monkeypatch.setenv("FIASCO_CACHE", str(cache))
    return cache


@pytest.fixture
def local_repo(tmp_path: Path) -> LocalRepository:
    return LocalRepository("local", tmp_path / "repository")


@pytest.fixture
def make_library():
    """Factory for libraries carrying a jar built from their own literal."""

    def _make(literal: str, *dependencies: str, data: bytes | None = None) -> Library:
        content = ArtifactContent.from_bytes(data if data is not None else literal.encode("utf-8"), name="jar")
        return Library(literal).with_content(content).with_dependencies(*dependencies)

    return _make


@pytest.fixture
def populated_librarian(local_repo, make_library) -> Librarian:
    """A librarian over a local repository holding a small dependency graph."""
    for artifact in (
        make_library("com.example:utilities:1.0", "org.hamcrest:hamcrest:2.2"),
        make_library("org.hamcrest:hamcrest:2.2"),
        make_library("org.junit:junit:4.13", "org.hamcrest:hamcrest:2.2"),
    ):
        local_repo.install_artifact(artifact)
    return Librarian([local_repo], install_to=local_repo)
