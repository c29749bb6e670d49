"""Repository abstraction shared by local, Maven and remote repositories."""

from __future__ import annotations

import threading
from typing import Dict, Iterable, List, Optional, Protocol

from fiasco.schemas.artifact import Artifact
from fiasco.schemas.descriptor import ArtifactDescriptor
from fiasco.schemas.protocol import InstallationResult


class Repository(Protocol):
    """Interface every artifact repository implements."""

    name: str
    uri: str

    def is_remote(self) -> bool:
        ...

    def resolve_artifacts(self, descriptors: Iterable[ArtifactDescriptor]) -> List[Artifact]:
        """Return the artifacts in this repository matching any of the descriptors.

        Descriptors may be wildcard queries. Results are sorted by descriptor.
        A descriptor with no match contributes nothing; it is not an error.
        """
        ...

    def install_artifact(self, artifact: Artifact) -> InstallationResult:
        ...

    def remove_artifact(self, descriptor: ArtifactDescriptor) -> bool:
        ...

    def clear(self) -> None:
        ...


class BaseRepository:
    """Repository backed by an in-memory descriptor index.

    The index is loaded on first use through :meth:`_load_all_artifact_metadata`
    and guarded by a re-entrant lock. Subclasses populate it with :meth:`_add`.
    """

    type_tag = "base"

    def __init__(self, name: str, uri: str):
        self.name = name
        self.uri = str(uri)
        self._lock = threading.RLock()
        self._index: Optional[Dict[ArtifactDescriptor, Artifact]] = None

    def __eq__(self, other: object) -> bool:
        if isinstance(other, BaseRepository):
            return self.name == other.name
        return NotImplemented

    def __hash__(self) -> int:
        return hash(self.name)

    def __repr__(self) -> str:
        return f"{type(self).__name__}(name={self.name!r}, uri={self.uri!r})"

    def is_remote(self) -> bool:
        return False

    def resolve_artifacts(self, descriptors: Iterable[ArtifactDescriptor]) -> List[Artifact]:
        queries = [ArtifactDescriptor.coerce(d) for d in descriptors]
        with self._lock:
            index = self._artifact_index()
            matches = {
                artifact
                for query in queries
                for descriptor, artifact in index.items()
                if query.matches(descriptor)
            }
        return sorted(matches)

    def contains(self, artifact: Artifact | ArtifactDescriptor) -> bool:
        descriptor = ArtifactDescriptor.coerce(artifact)
        with self._lock:
            return descriptor in self._artifact_index()

    def artifacts(self) -> List[Artifact]:
        with self._lock:
            return sorted(self._artifact_index().values())

    def install_artifact(self, artifact: Artifact) -> InstallationResult:
        raise NotImplementedError

    def remove_artifact(self, descriptor: ArtifactDescriptor) -> bool:
        with self._lock:
            return self._artifact_index().pop(ArtifactDescriptor.coerce(descriptor), None) is not None

    def clear(self) -> None:
        """Forget the in-memory index. It is reloaded on next access."""
        with self._lock:
            self._index = None

    def _add(self, artifact: Artifact) -> None:
        with self._lock:
            self._artifact_index()[artifact.descriptor] = artifact.with_repository(self.name)

    def _artifact_index(self) -> Dict[ArtifactDescriptor, Artifact]:
        with self._lock:
            if self._index is None:
                self._index = {}
                self._load_all_artifact_metadata()
            return self._index

    def _load_all_artifact_metadata(self) -> None:
        """Populate the index. The default repository starts empty."""
