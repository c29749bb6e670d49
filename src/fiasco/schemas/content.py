"""Artifact content and attachments."""

from __future__ import annotations

import hashlib
import io
import struct
import zipfile
import zlib
from dataclasses import dataclass, field, replace
from datetime import datetime, timezone
from enum import Enum
from pathlib import Path
from typing import Optional

from .jar import JarIndex, round_down_to_second


class AttachmentType(str, Enum):
    """Kinds of content an artifact can carry, each with a fixed file suffix."""

    JAR = "jar"
    SOURCES = "sources"
    JAVADOC = "javadoc"
    POM = "pom"
    NONE = "none"

    @property
    def file_suffix(self) -> str:
        return _SUFFIXES[self]


_SUFFIXES = {
    AttachmentType.JAR: ".jar",
    AttachmentType.SOURCES: "-sources.jar",
    AttachmentType.JAVADOC: "-javadoc.jar",
    AttachmentType.POM: ".pom",
    AttachmentType.NONE: "",
}


@dataclass(frozen=True)
class ContentSignatures:
    """ASC signature text plus MD5 and SHA-1 hex digests of a content blob."""

    asc: Optional[str] = None
    md5: Optional[str] = None
    sha1: Optional[str] = None

    @classmethod
    def of(cls, data: bytes, asc: Optional[str] = None) -> "ContentSignatures":
        return cls(
            asc=asc,
            md5=hashlib.md5(data).hexdigest(),
            sha1=hashlib.sha1(data).hexdigest(),
        )

    def with_asc(self, asc: Optional[str]) -> "ContentSignatures":
        return replace(self, asc=asc)

    def with_md5(self, md5: Optional[str]) -> "ContentSignatures":
        return replace(self, md5=md5)

    def with_sha1(self, sha1: Optional[str]) -> "ContentSignatures":
        return replace(self, sha1=sha1)


@dataclass(frozen=True)
class ArtifactContent:
    """A content blob, held inline or referenced by a resource path.

    Content backed by a resource is read lazily: the first call to
    :meth:`read` loads the bytes and caches them on the instance.
    """

    name: Optional[str] = None
    size: int = 0
    last_modified: Optional[datetime] = None
    offset: int = 0
    signatures: Optional[ContentSignatures] = None
    resource: Optional[str] = None
    data: Optional[bytes] = field(default=None, repr=False, compare=False)
    index: Optional[JarIndex] = field(default=None, repr=False, compare=False)
    _cache: dict = field(default_factory=dict, init=False, repr=False, compare=False, hash=False)

    def __post_init__(self) -> None:
        object.__setattr__(self, "last_modified", round_down_to_second(self.last_modified))

    @classmethod
    def from_bytes(
        cls,
        data: bytes,
        name: Optional[str] = None,
        last_modified: Optional[datetime] = None,
        asc: Optional[str] = None,
    ) -> "ArtifactContent":
        return cls(
            name=name,
            size=len(data),
            last_modified=last_modified or datetime.now(timezone.utc),
            offset=0,
            signatures=ContentSignatures.of(data, asc=asc),
            data=bytes(data),
        )

    @classmethod
    def from_path(cls, path: Path | str, signatures: Optional[ContentSignatures] = None) -> "ArtifactContent":
        """Reference a file without reading it."""
        path = Path(path)
        stat = path.stat()
        return cls(
            name=path.name,
            size=stat.st_size,
            last_modified=datetime.fromtimestamp(stat.st_mtime, tz=timezone.utc),
            offset=0,
            signatures=signatures,
            resource=str(path),
        )

    def is_materialized(self) -> bool:
        return self.data is not None or "data" in self._cache

    def read(self) -> bytes:
        """Return the content bytes, loading them from the resource on first use."""
        if self.data is not None:
            return self.data
        if "data" not in self._cache:
            if self.resource is None:
                raise ValueError(f"Content {self.name} has neither inline data nor a resource")
            raw = Path(self.resource).read_bytes()
            self._cache["data"] = raw[self.offset:] if self.offset else raw
        return self._cache["data"]

    def with_data(self, data: bytes) -> "ArtifactContent":
        return replace(self, data=bytes(data), size=len(data))

    def with_name(self, name: Optional[str]) -> "ArtifactContent":
        return replace(self, name=name)

    def with_size(self, size: int) -> "ArtifactContent":
        return replace(self, size=size)

    def with_offset(self, offset: int) -> "ArtifactContent":
        return replace(self, offset=offset)

    def with_last_modified(self, last_modified: Optional[datetime]) -> "ArtifactContent":
        return replace(self, last_modified=last_modified)

    def with_signatures(self, signatures: Optional[ContentSignatures]) -> "ArtifactContent":
        return replace(self, signatures=signatures)

    def with_resource(self, resource: Optional[str]) -> "ArtifactContent":
        return replace(self, resource=resource)

    def with_index(self, index: Optional[JarIndex]) -> "ArtifactContent":
        return replace(self, index=index)

    def with_jar_index(self) -> "ArtifactContent":
        """Attach the entry table of this content, which must be a zip or jar archive."""
        return self.with_index(JarIndex.from_zip(io.BytesIO(self.read())))

    def read_entry(self, path: str) -> bytes:
        """Read one member of this jar.

        With an index attached only that member's bytes are read, starting at
        its recorded local header. Without one (or for a path the index does
        not list) the archive is opened through its central directory.

        Raises:
            KeyError: If the archive has no member ``path``.
            ValueError: If the indexed offset does not point at a local header.
        """
        entry = self.index.entry(path) if self.index is not None else None
        if self.is_materialized() or self.resource is None:
            stream, base = io.BytesIO(self.read()), 0
        else:
            stream, base = open(self.resource, "rb"), self.offset
        with stream:
            if entry is None:
                stream.seek(base)
                with zipfile.ZipFile(io.BytesIO(stream.read())) as archive:
                    return archive.read(path)
            stream.seek(base + entry.offset)
            return _read_local_member(stream, entry.size, path)


@dataclass(frozen=True)
class ArtifactAttachment:
    """One typed content blob attached to an artifact."""

    type: AttachmentType
    content: Optional[ArtifactContent] = None

    def with_content(self, content: Optional[ArtifactContent]) -> "ArtifactAttachment":
        return replace(self, content=content)

    def with_type(self, attachment_type: AttachmentType) -> "ArtifactAttachment":
        return replace(self, type=attachment_type)


# signature, versions, flags, method, time, date, crc, sizes, name and extra lengths
_LOCAL_HEADER = struct.Struct("<4s2B4HL2L2H")
_LOCAL_HEADER_SIGNATURE = b"PK\x03\x04"


def _read_local_member(stream: io.BufferedIOBase, size: int, path: str) -> bytes:
    header = stream.read(_LOCAL_HEADER.size)
    if len(header) < _LOCAL_HEADER.size:
        raise ValueError(f"truncated local header for {path}")
    fields = _LOCAL_HEADER.unpack(header)
    if fields[0] != _LOCAL_HEADER_SIGNATURE:
        raise ValueError(f"no local header at the indexed offset of {path}")
    method, name_length, extra_length = fields[4], fields[10], fields[11]
    stream.seek(name_length + extra_length, io.SEEK_CUR)
    if method == zipfile.ZIP_STORED:
        return stream.read(size)
    if method != zipfile.ZIP_DEFLATED:
        raise ValueError(f"unsupported compression method {method} for {path}")
    decompressor = zlib.decompressobj(-zlib.MAX_WBITS)
    chunks = []
    while not decompressor.eof:
        chunk = stream.read(64 * 1024)
        if not chunk:
            raise ValueError(f"truncated data for {path}")
        chunks.append(decompressor.decompress(chunk))
    return b"".join(chunks)
