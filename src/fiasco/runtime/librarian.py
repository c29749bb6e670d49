"""Librarian: resolves descriptors against an ordered chain of repositories."""

from __future__ import annotations

import logging
from typing import Dict, Iterable, List, Optional, Sequence, Tuple

import requests

from fiasco.exceptions import RepositoryError, ResolutionError
from fiasco.repository.base import Repository
from fiasco.schemas.artifact import Artifact
from fiasco.schemas.descriptor import ArtifactDescriptor
from fiasco.schemas.protocol import InstallationResult

logger = logging.getLogger(__name__)

FALL_THROUGH_ERRORS = (RepositoryError, OSError, requests.RequestException)


class Librarian:
    """Looks up artifacts in ``look_in`` order.

    The first repository that returns a non-empty match for a descriptor wins;
    results from different repositories are never merged. Repository failures
    fall through to the next repository. Pinned versions rewrite matching
    descriptors before lookup.
    """

    def __init__(
        self,
        look_in: Sequence[Repository] = (),
        install_to: Optional[Repository] = None,
        pinned: Optional[Dict[ArtifactDescriptor, str]] = None,
    ) -> None:
        self.look_in: Tuple[Repository, ...] = tuple(look_in)
        self.install_to = install_to
        self.pinned: Dict[ArtifactDescriptor, str] = dict(pinned or {})

    def __repr__(self) -> str:
        return f"Librarian(look_in={[r.name for r in self.look_in]})"

    def with_repositories(self, *repositories: Repository) -> "Librarian":
        return Librarian(self.look_in + tuple(repositories), self.install_to, self.pinned)

    def with_install_repository(self, repository: Optional[Repository]) -> "Librarian":
        return Librarian(self.look_in, repository, self.pinned)

    def with_pinned_version(self, query: ArtifactDescriptor | str, version: str) -> "Librarian":
        """Resolve every descriptor matching ``query`` at ``version``."""
        if isinstance(query, str):
            query = ArtifactDescriptor.query_of(query)
        pinned = dict(self.pinned)
        pinned[query.without_version()] = version
        return Librarian(self.look_in, self.install_to, pinned)

    def pinned_version_of(self, descriptor: ArtifactDescriptor) -> ArtifactDescriptor:
        for query, version in self.pinned.items():
            if query.matches(descriptor.without_version()):
                return descriptor.with_version(version)
        return descriptor

    def resolve(self, descriptor: ArtifactDescriptor) -> List[Artifact]:
        """Artifacts matching ``descriptor`` from the first repository that has any.

        Raises:
            ResolutionError: If no repository has a match. ``repositories_tried``
                names every repository consulted.
        """
        descriptor = self.pinned_version_of(descriptor)
        tried: List[str] = []
        errors: List[str] = []
        for repository in self.look_in:
            tried.append(repository.name)
            try:
                matches = repository.resolve_artifacts([descriptor])
            except FALL_THROUGH_ERRORS as exc:
                logger.warning("Repository %s failed resolving %s, trying next: %s", repository.name, descriptor, exc)
                errors.append(f"{repository.name}: {exc}")
                continue
            if matches:
                logger.debug("Resolved %s from %s", descriptor, repository.name)
                return [artifact.with_repository(repository.name) for artifact in matches]

        if not tried:
            reason = "no repositories configured"
        elif len(errors) == len(tried):
            reason = f"every repository failed ({'; '.join(errors)})"
        elif errors:
            reason = f"not found in any repository, some failed ({'; '.join(errors)})"
        else:
            reason = "not found in any repository"
        raise ResolutionError(descriptor.to_literal(), reason, tried)

    def resolve_all(self, descriptors: Iterable[ArtifactDescriptor]) -> List[Artifact]:
        resolved = set()
        for descriptor in descriptors:
            resolved.update(self.resolve(descriptor))
        return sorted(resolved)

    def install(self, artifact: Artifact, repository: Optional[Repository] = None) -> InstallationResult:
        target = repository or self.install_to
        if target is None:
            raise RepositoryError("<none>", f"no install repository configured for {artifact}")
        result = target.install_artifact(artifact)
        logger.debug("Install of %s into %s: %s", artifact, target.name, result.value)
        return result


def default_librarian() -> Librarian:
    """The user's local repository followed by Maven Central; installs go to the local repository."""
    from fiasco.repository.local import LocalRepository
    from fiasco.repository.maven import maven_central

    local = LocalRepository("local")
    return Librarian([local, maven_central()], install_to=local)
