"""Resolution and build execution runtime."""

from .dependency_tree import DependencyTree
from .executor import BuildExecutor, BuildReport
from .librarian import Librarian, default_librarian
from .resolved_artifacts import Resolution, ResolvedArtifactSet, WaitResult
from .resolver import ArtifactResolver

__all__ = [
    "ArtifactResolver",
    "BuildExecutor",
    "BuildReport",
    "DependencyTree",
    "Librarian",
    "Resolution",
    "ResolvedArtifactSet",
    "WaitResult",
    "default_librarian",
]
