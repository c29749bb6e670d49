"""Repository backed by a remote Fiasco server."""

from __future__ import annotations

import logging
from typing import Iterable, List, Optional

import requests

from fiasco.exceptions import FiascoError, RepositoryError
from fiasco.schemas.artifact import Artifact
from fiasco.schemas.descriptor import ArtifactDescriptor
from fiasco.schemas.protocol import InstallationResult

from .base import BaseRepository

logger = logging.getLogger(__name__)


class RemoteRepository(BaseRepository):
    """Resolves and installs through a :class:`~fiasco.server.client.FiascoClient`.

    Network or protocol failures are logged, recorded in ``last_failure`` and
    raised as :class:`RepositoryError`, so a librarian moves on to the next
    repository and reports the failure rather than "not found".
    """

    type_tag = "remote"

    def __init__(self, name: str, uri: str, client=None):
        super().__init__(name, uri)
        if client is None:
            from fiasco.server.client import FiascoClient

            client = FiascoClient(self.uri)
        self.client = client
        self.last_failure: Optional[str] = None

    def is_remote(self) -> bool:
        return True

    def resolve_artifacts(self, descriptors: Iterable[ArtifactDescriptor]) -> List[Artifact]:
        queries = [ArtifactDescriptor.coerce(d) for d in descriptors]
        try:
            artifacts = self.client.resolve_artifacts(queries)
        except (requests.RequestException, FiascoError, OSError) as exc:
            self.last_failure = str(exc)
            logger.warning("Remote repository %s could not resolve %s: %s",
                           self.name, ", ".join(str(q) for q in queries), exc)
            raise RepositoryError(self.name, f"resolve failed: {exc}") from exc
        self.last_failure = None
        return sorted(artifact.with_repository(self.name) for artifact in artifacts)

    def install_artifact(self, artifact: Artifact) -> InstallationResult:
        try:
            return self.client.install_artifact(artifact)
        except (requests.RequestException, FiascoError, OSError) as exc:
            self.last_failure = str(exc)
            logger.error("Remote repository %s could not install %s: %s", self.name, artifact, exc)
            return InstallationResult.FAILED

    def remove_artifact(self, descriptor: ArtifactDescriptor) -> bool:
        raise RepositoryError(self.name, "remote repositories do not support removal")

    def clear(self) -> None:
        raise RepositoryError(self.name, "remote repositories cannot be cleared")
