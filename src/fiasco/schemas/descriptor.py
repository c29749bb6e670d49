"""Artifact descriptors: the identity key of every artifact.

A descriptor is written ``type:group:name:version``. Any field may be left
empty, in which case the descriptor acts as a wildcard query: ``:g::``
matches every artifact in group ``g``. The short form ``group:name:version``
leaves the type absent.
"""

from __future__ import annotations

import re
from enum import Enum
from typing import Optional, Tuple

from pydantic import field_validator

from fiasco.exceptions import DescriptorParseError

from .base import FrozenSchema

_SEGMENT = re.compile(r"^[A-Za-z0-9._-]*$")


class ArtifactType(str, Enum):
    """Artifact variants. Libraries carry code (jar/sources/javadoc), assets carry opaque content."""

    LIBRARY = "library"
    ASSET = "asset"


class ArtifactDescriptor(FrozenSchema):
    """Immutable ``{type, group, name, version}`` identity key.

    Equality and hashing are structural. Descriptors sort by
    ``(type, group, name, version)`` with absent fields first.
    """

    type: Optional[ArtifactType] = None
    group: Optional[str] = None
    name: Optional[str] = None
    version: Optional[str] = None

    @field_validator("type", mode="before")
    @classmethod
    def _empty_type_is_absent(cls, value):
        if value == "":
            return None
        return value

    @field_validator("group", "name", "version", mode="before")
    @classmethod
    def _empty_is_absent(cls, value):
        if value is None:
            return None
        value = str(value).strip()
        if value == "":
            return None
        if not _SEGMENT.match(value):
            raise ValueError(f"illegal characters in descriptor segment '{value}'")
        return value

    @classmethod
    def parse(cls, text: str, query: bool = False) -> "ArtifactDescriptor":
        """Parse a descriptor literal.

        Args:
            text: ``type:group:name:version`` or ``group:name:version``.
            query: When False, group and name are mandatory.

        Raises:
            DescriptorParseError: If the literal is malformed.
        """
        if not isinstance(text, str):
            raise DescriptorParseError(repr(text), "descriptor must be a string")
        segments = text.strip().split(":")
        if len(segments) == 4:
            type_text, group, name, version = segments
        elif len(segments) == 3:
            type_text = ""
            group, name, version = segments
        else:
            raise DescriptorParseError(text, "expected type:group:name:version")

        for segment in segments:
            if not _SEGMENT.match(segment):
                raise DescriptorParseError(text, f"illegal characters in segment '{segment}'")

        artifact_type: Optional[ArtifactType] = None
        if type_text:
            try:
                artifact_type = ArtifactType(type_text)
            except ValueError:
                raise DescriptorParseError(text, f"unknown artifact type '{type_text}'")

        if not query:
            if not group:
                raise DescriptorParseError(text, "group is required")
            if not name:
                raise DescriptorParseError(text, "artifact name is required")

        return cls(type=artifact_type, group=group, name=name, version=version)

    @classmethod
    def query_of(cls, text: str) -> "ArtifactDescriptor":
        """Parse a descriptor used as a wildcard query."""
        return cls.parse(text, query=True)

    @classmethod
    def coerce(cls, value) -> "ArtifactDescriptor":
        """Accept a descriptor, anything with a ``descriptor`` attribute, or a literal."""
        if isinstance(value, ArtifactDescriptor):
            return value
        descriptor = getattr(value, "descriptor", None)
        if isinstance(descriptor, ArtifactDescriptor):
            return descriptor
        if isinstance(value, str):
            return cls.parse(value, query=True)
        raise TypeError(f"Cannot convert {value!r} to an artifact descriptor")

    def to_literal(self) -> str:
        return ":".join((
            self.type.value if self.type else "",
            self.group or "",
            self.name or "",
            self.version or "",
        ))

    def __str__(self) -> str:
        return self.to_literal()

    def __repr__(self) -> str:
        return f"ArtifactDescriptor('{self.to_literal()}')"

    def sort_key(self) -> Tuple[str, str, str, str]:
        return (
            self.type.value if self.type else "",
            self.group or "",
            self.name or "",
            self.version or "",
        )

    def __lt__(self, other: "ArtifactDescriptor") -> bool:
        if not isinstance(other, ArtifactDescriptor):
            return NotImplemented
        return self.sort_key() < other.sort_key()

    def matches(self, other: "ArtifactDescriptor") -> bool:
        """True if every field present in this (query) descriptor equals the other's."""
        return (
            (self.type is None or self.type == other.type)
            and (self.group is None or self.group == other.group)
            and (self.name is None or self.name == other.name)
            and (self.version is None or self.version == other.version)
        )

    def is_complete(self) -> bool:
        return all(value is not None for value in (self.type, self.group, self.name, self.version))

    def group_and_name(self) -> str:
        return f"{self.group or ''}:{self.name or ''}"

    def maven_name(self) -> str:
        return f"{self.group}:{self.name}:{self.version}"

    def group_path(self) -> str:
        return (self.group or "").replace(".", "/")

    def with_type(self, artifact_type: Optional[ArtifactType]) -> "ArtifactDescriptor":
        return ArtifactDescriptor(type=artifact_type, group=self.group, name=self.name, version=self.version)

    def with_group(self, group: Optional[str]) -> "ArtifactDescriptor":
        return ArtifactDescriptor(type=self.type, group=group, name=self.name, version=self.version)

    def with_name(self, name: Optional[str]) -> "ArtifactDescriptor":
        return ArtifactDescriptor(type=self.type, group=self.group, name=name, version=self.version)

    def with_version(self, version: Optional[str]) -> "ArtifactDescriptor":
        return ArtifactDescriptor(type=self.type, group=self.group, name=self.name, version=version)

    def without_version(self) -> "ArtifactDescriptor":
        return self.with_version(None)


def descriptor(text: str) -> ArtifactDescriptor:
    """Shorthand for :meth:`ArtifactDescriptor.parse`."""
    return ArtifactDescriptor.parse(text)


def descriptors(*texts: str) -> list[ArtifactDescriptor]:
    return [ArtifactDescriptor.parse(text) for text in texts]
