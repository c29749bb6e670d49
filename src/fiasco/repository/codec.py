"""Type-tagged JSON codec for artifacts and repositories, plus binary framing.

Every encoded value carries a ``"type"`` discriminator. Decoding dispatches
on it through an explicit table and raises :class:`ProtocolError` for unknown
tags or malformed payloads before any object is built.
"""

from __future__ import annotations

import base64
import binascii
import json
import struct
from datetime import datetime
from typing import Any, Callable, Dict, List, Optional, Tuple

from pydantic import ValidationError

from fiasco.exceptions import DescriptorParseError, ProtocolError
from fiasco.schemas.artifact import Artifact, Asset, Library
from fiasco.schemas.content import (
    ArtifactAttachment,
    ArtifactContent,
    AttachmentType,
    ContentSignatures,
)
from fiasco.schemas.descriptor import ArtifactDescriptor
from fiasco.schemas.jar import JarEntry, JarIndex

ARTIFACT_TYPES: Dict[str, type] = {
    "library": Library,
    "asset": Asset,
}

_HEADER_LENGTH = struct.Struct(">I")


# ===== Content =====

def encode_content(content: ArtifactContent, inline: bool = True) -> Dict[str, Any]:
    payload: Dict[str, Any] = {
        "name": content.name,
        "size": content.size,
        "last_modified": content.last_modified.isoformat() if content.last_modified else None,
        "offset": content.offset,
        "signatures": _encode_signatures(content.signatures),
    }
    if content.index is not None:
        payload["index"] = [entry.to_dict() for entry in content.index.entries]
    if inline or content.resource is None:
        payload["data"] = base64.b64encode(content.read()).decode("ascii")
    else:
        payload["reference"] = content.resource
    return payload


def decode_content(payload: Any, blobs: Optional[List[bytes]] = None) -> ArtifactContent:
    """Decode content. ``blobs`` supplies the bytes of framed content (``"frame": index``)."""
    payload = _expect_mapping(payload, "content")
    last_modified = payload.get("last_modified")
    try:
        if last_modified is not None:
            last_modified = datetime.fromisoformat(last_modified)
        data = None
        if payload.get("frame") is not None:
            if blobs is None or not 0 <= int(payload["frame"]) < len(blobs):
                raise ProtocolError(f"content refers to missing frame {payload['frame']!r}")
            data = blobs[int(payload["frame"])]
        elif payload.get("data") is not None:
            data = base64.b64decode(payload["data"], validate=True)
        elif payload.get("reference") is None:
            raise ProtocolError("content carries neither data nor a reference")
        return ArtifactContent(
            name=payload.get("name"),
            size=int(payload.get("size") or (len(data) if data is not None else 0)),
            last_modified=last_modified,
            offset=int(payload.get("offset") or 0),
            signatures=_decode_signatures(payload.get("signatures")),
            resource=payload.get("reference"),
            data=data,
            index=_decode_index(payload.get("index")),
        )
    except (binascii.Error, KeyError, TypeError, ValueError) as exc:
        raise ProtocolError(f"malformed content: {exc}") from exc


def _decode_index(payload: Any) -> Optional[JarIndex]:
    if payload is None:
        return None
    if not isinstance(payload, list):
        raise ProtocolError("jar index must be a list of entries")
    return JarIndex(entries=tuple(JarEntry.from_dict(_expect_mapping(item, "jar entry")) for item in payload))


def _encode_signatures(signatures: Optional[ContentSignatures]) -> Optional[Dict[str, Any]]:
    if signatures is None:
        return None
    return {"asc": signatures.asc, "md5": signatures.md5, "sha1": signatures.sha1}


def _decode_signatures(payload: Any) -> Optional[ContentSignatures]:
    if payload is None:
        return None
    payload = _expect_mapping(payload, "signatures")
    return ContentSignatures(asc=payload.get("asc"), md5=payload.get("md5"), sha1=payload.get("sha1"))


# ===== Artifacts =====

def encode_artifact(artifact: Artifact, inline: bool = True) -> Dict[str, Any]:
    """Encode an artifact. With ``inline`` False, file-backed content is sent by reference."""
    tag = artifact.descriptor.type.value if artifact.descriptor.type else None
    if tag not in ARTIFACT_TYPES:
        raise ProtocolError(f"cannot encode artifact without a type: {artifact.name}")
    payload: Dict[str, Any] = {
        "type": tag,
        "descriptor": artifact.descriptor.to_literal(),
        "dependencies": [d.to_literal() for d in artifact.dependencies],
        "exclusions": [e.to_literal() for e in artifact.exclusions],
        "attachments": [
            {
                "type": attachment.type.value,
                "content": encode_content(attachment.content, inline=inline) if attachment.content else None,
            }
            for attachment in artifact.attachments
        ],
    }
    if artifact.repository_name:
        payload["repository"] = artifact.repository_name
    return payload


def decode_artifact(payload: Any, blobs: Optional[List[bytes]] = None) -> Artifact:
    payload = _expect_mapping(payload, "artifact")
    factory = ARTIFACT_TYPES.get(payload.get("type"))
    if factory is None:
        raise ProtocolError(f"unknown artifact type tag: {payload.get('type')!r}")
    try:
        descriptor = ArtifactDescriptor.parse(payload["descriptor"])
        dependencies = tuple(ArtifactDescriptor.parse(d) for d in payload.get("dependencies") or [])
        exclusions = tuple(ArtifactDescriptor.query_of(e) for e in payload.get("exclusions") or [])
        attachments = tuple(_decode_attachment(a, blobs) for a in payload.get("attachments") or [])
        return factory(
            descriptor=descriptor,
            dependencies=dependencies,
            attachments=attachments,
            exclusions=exclusions,
            repository_name=payload.get("repository"),
        )
    except KeyError as exc:
        raise ProtocolError(f"artifact payload missing field {exc}") from exc
    except (DescriptorParseError, ValidationError, ValueError) as exc:
        raise ProtocolError(f"malformed artifact: {exc}") from exc


def _decode_attachment(payload: Any, blobs: Optional[List[bytes]] = None) -> ArtifactAttachment:
    payload = _expect_mapping(payload, "attachment")
    try:
        attachment_type = AttachmentType(payload.get("type"))
    except ValueError as exc:
        raise ProtocolError(f"unknown attachment type tag: {payload.get('type')!r}") from exc
    content = payload.get("content")
    return ArtifactAttachment(attachment_type, decode_content(content, blobs) if content is not None else None)


def encode_artifacts(artifacts: List[Artifact], inline: bool = True) -> List[Dict[str, Any]]:
    return [encode_artifact(artifact, inline=inline) for artifact in artifacts]


def decode_artifacts(payload: Any) -> List[Artifact]:
    if not isinstance(payload, list):
        raise ProtocolError("expected a list of artifacts")
    return [decode_artifact(item) for item in payload]


def artifact_to_json(artifact: Artifact, inline: bool = True) -> str:
    return json.dumps(encode_artifact(artifact, inline=inline), sort_keys=True)


def artifact_from_json(text: str) -> Artifact:
    return decode_artifact(_loads(text))


# ===== Repositories =====

def _repository_types() -> Dict[str, Callable[..., Any]]:
    from fiasco.repository.local import LocalRepository
    from fiasco.repository.maven import MavenRepository
    from fiasco.repository.remote import RemoteRepository

    return {
        "local": lambda name, uri: LocalRepository(name, uri),
        "maven": lambda name, uri: MavenRepository(name, uri),
        "remote": lambda name, uri: RemoteRepository(name, uri),
    }


def encode_repository(repository: Any) -> Dict[str, Any]:
    return {"type": repository.type_tag, "name": repository.name, "uri": repository.uri}


def decode_repository(payload: Any):
    payload = _expect_mapping(payload, "repository")
    factory = _repository_types().get(payload.get("type"))
    if factory is None:
        raise ProtocolError(f"unknown repository type tag: {payload.get('type')!r}")
    name, uri = payload.get("name"), payload.get("uri")
    if not isinstance(name, str) or not isinstance(uri, str):
        raise ProtocolError("repository payload requires string name and uri")
    return factory(name, uri)


# ===== Framing =====

def frame(header: Dict[str, Any], contents: List[bytes]) -> bytes:
    """Pack a JSON header and raw content blobs into one frame.

    Layout: 4-byte big-endian header length, the UTF-8 JSON header (with a
    ``content_lengths`` list added), then each blob in order.
    """
    header = dict(header)
    header["content_lengths"] = [len(blob) for blob in contents]
    encoded = json.dumps(header, sort_keys=True).encode("utf-8")
    return _HEADER_LENGTH.pack(len(encoded)) + encoded + b"".join(contents)


def unframe(data: bytes) -> Tuple[Dict[str, Any], List[bytes]]:
    if len(data) < _HEADER_LENGTH.size:
        raise ProtocolError("frame shorter than its length prefix")
    (header_length,) = _HEADER_LENGTH.unpack_from(data)
    start = _HEADER_LENGTH.size
    if len(data) < start + header_length:
        raise ProtocolError("frame truncated inside its header")
    header = _expect_mapping(_loads(data[start:start + header_length]), "frame header")
    lengths = header.pop("content_lengths", None)
    if not isinstance(lengths, list) or not all(isinstance(n, int) and n >= 0 for n in lengths):
        raise ProtocolError("frame header missing content_lengths")
    position = start + header_length
    contents = []
    for length in lengths:
        if position + length > len(data):
            raise ProtocolError("frame truncated inside its content")
        contents.append(data[position:position + length])
        position += length
    if position != len(data):
        raise ProtocolError("trailing bytes after frame content")
    return header, contents


def _loads(text: str | bytes) -> Any:
    try:
        return json.loads(text)
    except (json.JSONDecodeError, UnicodeDecodeError) as exc:
        raise ProtocolError(f"malformed JSON: {exc}") from exc


def _expect_mapping(payload: Any, what: str) -> Dict[str, Any]:
    if not isinstance(payload, dict):
        raise ProtocolError(f"expected a JSON object for {what}")
    return payload


def frame_artifact(artifact: Artifact) -> bytes:
    """Frame an artifact: its JSON in the header, attachment bytes as raw content."""
    payload = encode_artifact(artifact, inline=False)
    contents: List[bytes] = []
    for attachment, encoded in zip(artifact.attachments, payload["attachments"]):
        content = encoded.get("content")
        if content is None:
            continue
        content.pop("data", None)
        content.pop("reference", None)
        content["frame"] = len(contents)
        contents.append(attachment.content.read())
    return frame({"artifact": payload}, contents)


def unframe_artifact(data: bytes) -> Artifact:
    header, contents = unframe(data)
    return decode_artifact(header.get("artifact"), blobs=contents)
