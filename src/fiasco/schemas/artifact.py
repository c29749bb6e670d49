"""Artifact model: libraries and assets with typed content attachments.

Artifacts are immutable. Every ``with_*`` helper returns a new artifact and
leaves the receiver untouched. Two artifacts are equal when their descriptors
are equal; use :meth:`Artifact.same_as` for a full structural comparison.
"""

from __future__ import annotations

from dataclasses import dataclass, field, replace
from typing import ClassVar, Dict, Iterable, List, Optional, Tuple, Union

from .content import ArtifactAttachment, ArtifactContent, AttachmentType
from .descriptor import ArtifactDescriptor, ArtifactType
from .jar import JarIndex

DependencyLike = Union["Artifact", ArtifactDescriptor, str]

_POM_DEPENDENCY = """        <dependency>
            <groupId>{group}</groupId>
            <artifactId>{name}</artifactId>
            <version>{version}</version>
        </dependency>"""

_POM = """<project
  xmlns="http://maven.apache.org/POM/4.0.0"
  xmlns:xsi="http://www.w3.org/2001/XMLSchema-instance"
  xsi:schemaLocation="http://maven.apache.org/POM/4.0.0 http://maven.apache.org/xsd/maven-4.0.0.xsd">
    <modelVersion>4.0.0</modelVersion>
    <groupId>{group}</groupId>
    <artifactId>{name}</artifactId>
    <version>{version}</version>
{dependencies}</project>
"""


def _to_descriptor(value: DependencyLike) -> ArtifactDescriptor:
    if isinstance(value, str):
        return ArtifactDescriptor.parse(value)
    return ArtifactDescriptor.coerce(value)


def _deduplicate(values: Iterable[ArtifactDescriptor]) -> Tuple[ArtifactDescriptor, ...]:
    seen: Dict[ArtifactDescriptor, None] = {}
    for value in values:
        seen.setdefault(value, None)
    return tuple(seen)


@dataclass(frozen=True, eq=False)
class Artifact:
    """Base artifact: a descriptor, its dependencies and its attachments."""

    artifact_type: ClassVar[Optional[ArtifactType]] = None

    descriptor: ArtifactDescriptor
    dependencies: Tuple[ArtifactDescriptor, ...] = ()
    attachments: Tuple[ArtifactAttachment, ...] = ()
    exclusions: Tuple[ArtifactDescriptor, ...] = ()
    repository_name: Optional[str] = field(default=None)

    def __post_init__(self) -> None:
        descriptor = self.descriptor
        if isinstance(descriptor, str):
            descriptor = ArtifactDescriptor.parse(descriptor)
        if self.artifact_type is not None:
            if descriptor.type is None:
                descriptor = descriptor.with_type(self.artifact_type)
            elif descriptor.type != self.artifact_type:
                raise ValueError(
                    f"{type(self).__name__} cannot carry a {descriptor.type.value} descriptor: {descriptor}"
                )
        object.__setattr__(self, "descriptor", descriptor)
        object.__setattr__(self, "dependencies", _deduplicate(_to_descriptor(d) for d in self.dependencies))
        object.__setattr__(self, "exclusions", _deduplicate(ArtifactDescriptor.coerce(d) for d in self.exclusions))
        by_type: Dict[AttachmentType, ArtifactAttachment] = {}
        for attachment in self.attachments:
            by_type[attachment.type] = attachment
        object.__setattr__(self, "attachments", tuple(by_type.values()))

    @staticmethod
    def from_descriptor(descriptor: ArtifactDescriptor | str) -> "Artifact":
        """Create the artifact variant named by the descriptor's type."""
        if isinstance(descriptor, str):
            descriptor = ArtifactDescriptor.parse(descriptor)
        if descriptor.type == ArtifactType.ASSET:
            return Asset(descriptor)
        if descriptor.type == ArtifactType.LIBRARY:
            return Library(descriptor)
        raise ValueError(f"Descriptor does not describe an artifact type: {descriptor}")

    def __eq__(self, other: object) -> bool:
        if isinstance(other, Artifact):
            return self.descriptor == other.descriptor
        return NotImplemented

    def __hash__(self) -> int:
        return hash(self.descriptor)

    def __lt__(self, other: "Artifact") -> bool:
        return self.descriptor < other.descriptor

    def __str__(self) -> str:
        return self.name

    def __repr__(self) -> str:
        return f"{type(self).__name__}('{self.name}')"

    @property
    def name(self) -> str:
        return self.descriptor.to_literal()

    def same_as(self, other: "Artifact") -> bool:
        """Structural equality: descriptor, dependencies, exclusions and attachments."""
        return (
            type(self) is type(other)
            and self.descriptor == other.descriptor
            and set(self.dependencies) == set(other.dependencies)
            and set(self.exclusions) == set(other.exclusions)
            and self.attachment_map() == other.attachment_map()
        )

    def copy(self) -> "Artifact":
        return replace(self)

    # Queries

    def attachment_map(self) -> Dict[AttachmentType, ArtifactAttachment]:
        return {attachment.type: attachment for attachment in self.attachments}

    def attachment(self, attachment_type: AttachmentType) -> Optional[ArtifactAttachment]:
        return self.attachment_map().get(attachment_type)

    def content(self, attachment_type: AttachmentType) -> Optional[ArtifactContent]:
        attachment = self.attachment(attachment_type)
        return attachment.content if attachment else None

    def jar(self) -> Optional[ArtifactContent]:
        return self.content(AttachmentType.JAR)

    def is_excluded(self, descriptor: ArtifactDescriptor) -> bool:
        return any(exclusion.matches(descriptor) for exclusion in self.exclusions)

    def artifact_dependencies(self) -> List[ArtifactDescriptor]:
        """Dependencies with exclusions applied."""
        return [d for d in self.dependencies if not self.is_excluded(d)]

    def dependencies_matching(self, pattern: str) -> List[ArtifactDescriptor]:
        query = ArtifactDescriptor.query_of(pattern)
        return [d for d in self.dependencies if query.matches(d)]

    def dependency_named(self, name: str) -> ArtifactDescriptor:
        for dependency in self.dependencies:
            if dependency.to_literal() == name or dependency.name == name:
                return dependency
        raise KeyError(f"No dependency {name} found in {self.name}")

    def maven_pom(self) -> str:
        dependencies = ""
        artifacts = self.artifact_dependencies()
        if artifacts:
            entries = "\n".join(
                _POM_DEPENDENCY.format(group=d.group, name=d.name, version=d.version or "")
                for d in artifacts
            )
            dependencies = f"\n    <dependencies>\n{entries}\n    </dependencies>\n\n"
        return _POM.format(
            group=self.descriptor.group,
            name=self.descriptor.name,
            version=self.descriptor.version or "",
            dependencies=dependencies,
        )

    # Copy-on-write mutators

    def with_attachment(self, attachment: ArtifactAttachment) -> "Artifact":
        kept = tuple(a for a in self.attachments if a.type != attachment.type)
        return replace(self, attachments=kept + (attachment,))

    def with_attachments(self, attachments: Iterable[ArtifactAttachment]) -> "Artifact":
        artifact = self
        for attachment in attachments:
            artifact = artifact.with_attachment(attachment)
        return artifact

    def without_attachments(self) -> "Artifact":
        return replace(self, attachments=())

    def with_content(self, content: ArtifactContent) -> "Artifact":
        return self.with_attachment(ArtifactAttachment(AttachmentType.JAR, content))

    def with_dependencies(self, *dependencies: DependencyLike | Iterable[DependencyLike]) -> "Artifact":
        flattened: List[ArtifactDescriptor] = []
        for dependency in dependencies:
            if isinstance(dependency, (str, ArtifactDescriptor, Artifact)):
                flattened.append(_to_descriptor(dependency))
            else:
                flattened.extend(_to_descriptor(d) for d in dependency)
        return replace(self, dependencies=self.dependencies + tuple(flattened))

    def depends_on(self, *dependencies: DependencyLike) -> "Artifact":
        return self.with_dependencies(*dependencies)

    def with_descriptor(self, descriptor: ArtifactDescriptor) -> "Artifact":
        return replace(self, descriptor=descriptor)

    def with_version(self, version: str) -> "Artifact":
        return replace(self, descriptor=self.descriptor.with_version(version))

    def excluding(self, *exclusions: DependencyLike) -> "Artifact":
        queries = tuple(
            ArtifactDescriptor.query_of(e) if isinstance(e, str) else _to_descriptor(e)
            for e in exclusions
        )
        return replace(self, exclusions=self.exclusions + queries)

    def with_repository(self, repository_name: Optional[str]) -> "Artifact":
        return replace(self, repository_name=repository_name)


@dataclass(frozen=True, eq=False)
class Library(Artifact):
    """A code artifact with optional sources and javadoc attachments."""

    artifact_type: ClassVar[Optional[ArtifactType]] = ArtifactType.LIBRARY

    def sources(self) -> Optional[ArtifactContent]:
        return self.content(AttachmentType.SOURCES)

    def javadoc(self) -> Optional[ArtifactContent]:
        return self.content(AttachmentType.JAVADOC)

    def with_sources(self, sources: ArtifactContent) -> "Library":
        return self.with_attachment(ArtifactAttachment(AttachmentType.SOURCES, sources))

    def with_javadoc(self, javadoc: ArtifactContent) -> "Library":
        return self.with_attachment(ArtifactAttachment(AttachmentType.JAVADOC, javadoc))

    def jar_index(self) -> Optional[JarIndex]:
        """Entry table of the jar: the attached one, or one read from the jar bytes."""
        jar = self.jar()
        if jar is None:
            return None
        return jar.index if jar.index is not None else jar.with_jar_index().index

    def with_jar_index(self) -> "Library":
        jar = self.jar()
        if jar is None or jar.index is not None:
            return self
        return self.with_content(jar.with_jar_index())


@dataclass(frozen=True, eq=False)
class Asset(Artifact):
    """An opaque content artifact."""

    artifact_type: ClassVar[Optional[ArtifactType]] = ArtifactType.ASSET


def library(descriptor: ArtifactDescriptor | str) -> Library:
    return Library(descriptor)


def asset(descriptor: ArtifactDescriptor | str) -> Asset:
    return Asset(descriptor)
