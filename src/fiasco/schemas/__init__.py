"""Schema exports."""

from .artifact import Artifact, Asset, Library, asset, library
from .base import FrozenSchema, SchemaBase, Severity
from .content import ArtifactAttachment, ArtifactContent, AttachmentType, ContentSignatures
from .descriptor import ArtifactDescriptor, ArtifactType, descriptor, descriptors
from .errors import (
    BuildError,
    BuildErrorCode,
    BuildErrorSource,
    BuilderResult,
    FailureKind,
    PhaseFailure,
    ResolutionFailure,
)
from .event import Event, EventType
from .jar import JarEntry, JarIndex
from .phase import BuilderStatus, PhaseName, PhaseState
from .protocol import (
    HealthResponse,
    InstallArtifactRequest,
    InstallArtifactResponse,
    InstallationResult,
    ResolveArtifactRequest,
    ResolveArtifactResponse,
)
from .settings import BuildSettings, RepositoryKind, RepositorySpec

__all__ = [
    "Artifact",
    "ArtifactAttachment",
    "ArtifactContent",
    "ArtifactDescriptor",
    "ArtifactType",
    "Asset",
    "AttachmentType",
    "BuildError",
    "BuildErrorCode",
    "BuildErrorSource",
    "BuildSettings",
    "BuilderResult",
    "BuilderStatus",
    "ContentSignatures",
    "Event",
    "EventType",
    "FailureKind",
    "FrozenSchema",
    "HealthResponse",
    "InstallArtifactRequest",
    "InstallArtifactResponse",
    "InstallationResult",
    "JarEntry",
    "JarIndex",
    "Library",
    "PhaseFailure",
    "PhaseName",
    "PhaseState",
    "RepositoryKind",
    "RepositorySpec",
    "ResolutionFailure",
    "ResolveArtifactRequest",
    "ResolveArtifactResponse",
    "SchemaBase",
    "Severity",
    "asset",
    "descriptor",
    "descriptors",
    "library",
]
