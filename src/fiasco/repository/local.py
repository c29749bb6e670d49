"""Local filesystem repository used as the artifact cache."""

from __future__ import annotations

import io
import json
import logging
import os
import zipfile
from pathlib import Path
from typing import Dict, FrozenSet, Optional, Tuple

from fiasco.exceptions import ProtocolError
from fiasco.schemas.artifact import Artifact
from fiasco.schemas.content import (
    ArtifactAttachment,
    ArtifactContent,
    AttachmentType,
    ContentSignatures,
)
from fiasco.schemas.descriptor import ArtifactDescriptor
from fiasco.schemas.protocol import InstallationResult
from fiasco.utils.files import (
    append_line,
    atomic_write_bytes,
    atomic_write_text,
    fiasco_cache_root,
    path_from_uri,
    remove_tree,
)

from .base import BaseRepository
from .codec import decode_artifact, encode_artifact

logger = logging.getLogger(__name__)

METADATA_FILE = "artifacts.jsonl"


class LocalRepository(BaseRepository):
    """Artifacts stored under a root folder in Maven-style layout.

    Content lives at ``<root>/<group-path>/<name>/<version>/<name>-<version><suffix>``.
    Metadata is appended to ``<root>/artifacts.jsonl``, one artifact per line;
    when a descriptor appears more than once the last line wins.
    """

    type_tag = "local"

    def __init__(self, name: str, root: Path | str | None = None):
        if root is None:
            root = fiasco_cache_root() / name
        self.root = path_from_uri(root) if isinstance(root, str) else Path(root)
        super().__init__(name, self.root.resolve().as_uri())
        self.metadata_file = self.root / METADATA_FILE

    @staticmethod
    def clear_all(root: Path | str | None = None) -> bool:
        """Delete an entire cache root, by default the Fiasco cache folder."""
        return remove_tree(Path(root) if root is not None else fiasco_cache_root())

    def install_artifact(self, artifact: Artifact) -> InstallationResult:
        descriptor = artifact.descriptor
        if not descriptor.is_complete():
            logger.error("Cannot install %s into %s: descriptor is incomplete", descriptor, self.name)
            return InstallationResult.FAILED

        with self._lock:
            try:
                signed = _with_signatures(artifact)
                existing = self._artifact_index().get(descriptor)
                if existing is not None and _fingerprint(existing) == _fingerprint(signed):
                    logger.debug("%s already present in %s", descriptor, self.name)
                    return InstallationResult.ALREADY_PRESENT

                stored = signed.without_attachments()
                for attachment in signed.attachments:
                    stored = stored.with_attachment(self._save_attachment(descriptor, attachment))
                if existing is not None:
                    self._remove_dropped_attachments(existing, stored)
                append_line(self.metadata_file, self._index_line(stored))
                self._add(stored)
            except (OSError, ValueError, zipfile.BadZipFile) as exc:
                logger.error("Unable to install %s into %s: %s", descriptor, self.name, exc)
                return InstallationResult.FAILED

        logger.debug("Installed %s into %s", descriptor, self.name)
        return InstallationResult.INSTALLED

    def remove_artifact(self, descriptor: ArtifactDescriptor) -> bool:
        descriptor = ArtifactDescriptor.coerce(descriptor)
        with self._lock:
            artifact = self._artifact_index().get(descriptor)
            if artifact is None:
                return False
            for attachment in artifact.attachments:
                path = self.attachment_path(descriptor, attachment.type)
                if path.exists():
                    path.unlink()
            super().remove_artifact(descriptor)
            lines = [self._index_line(a) for a in sorted(self._artifact_index().values())]
            atomic_write_text(self.metadata_file, "".join(line + "\n" for line in lines))
        return True

    def clear(self) -> None:
        """Forget every artifact and delete the repository folder."""
        with self._lock:
            super().clear()
            remove_tree(self.root)

    def artifact_folder(self, descriptor: ArtifactDescriptor) -> Path:
        return self.root / descriptor.group_path() / descriptor.name / descriptor.version

    def attachment_path(self, descriptor: ArtifactDescriptor, attachment_type: AttachmentType) -> Path:
        file_name = f"{descriptor.name}-{descriptor.version}{attachment_type.file_suffix}"
        return self.artifact_folder(descriptor) / file_name

    def _save_attachment(self, descriptor: ArtifactDescriptor, attachment: ArtifactAttachment) -> ArtifactAttachment:
        if attachment.content is None:
            return attachment
        path = self.attachment_path(descriptor, attachment.type)
        data = attachment.content.read()
        atomic_write_bytes(path, data)
        content = ArtifactContent(
            name=path.name,
            size=len(data),
            last_modified=attachment.content.last_modified,
            offset=0,
            signatures=attachment.content.signatures,
            resource=str(path),
        )
        if attachment.type == AttachmentType.JAR and zipfile.is_zipfile(io.BytesIO(data)):
            content = content.with_jar_index()
        return attachment.with_content(content)

    def _remove_dropped_attachments(self, previous: Artifact, current: Artifact) -> None:
        """Delete files of attachments ``previous`` had and ``current`` no longer carries."""
        kept = {attachment.type for attachment in current.attachments if attachment.content is not None}
        for attachment in previous.attachments:
            if attachment.type in kept or attachment.content is None:
                continue
            path = self.attachment_path(previous.descriptor, attachment.type)
            if path.exists():
                logger.debug("Removing dropped %s attachment of %s", attachment.type.value, previous.descriptor)
                path.unlink()

    def _index_line(self, artifact: Artifact) -> str:
        payload = encode_artifact(artifact, inline=False)
        for attachment in payload["attachments"]:
            content = attachment.get("content")
            if content and "reference" in content:
                content["reference"] = os.path.relpath(content["reference"], self.root)
        return json.dumps(payload, sort_keys=True)

    def _load_all_artifact_metadata(self) -> None:
        if not self.metadata_file.exists():
            return
        with open(self.metadata_file, encoding="utf-8") as handle:
            for number, line in enumerate(handle, start=1):
                line = line.strip()
                if not line:
                    continue
                try:
                    artifact = decode_artifact(json.loads(line))
                except (json.JSONDecodeError, ProtocolError) as exc:
                    logger.warning("Skipping unreadable entry %s:%d: %s", self.metadata_file, number, exc)
                    continue
                self._add(self._absolute(artifact))

    def _absolute(self, artifact: Artifact) -> Artifact:
        attachments = []
        for attachment in artifact.attachments:
            content = attachment.content
            if content is not None and content.resource is not None:
                content = content.with_resource(str(self.root / content.resource))
            attachments.append(attachment.with_content(content))
        return artifact.without_attachments().with_attachments(attachments)


def _with_signatures(artifact: Artifact) -> Artifact:
    attachments = []
    for attachment in artifact.attachments:
        content = attachment.content
        if content is not None:
            data = content.read()
            computed = ContentSignatures.of(data, asc=content.signatures.asc if content.signatures else None)
            content = content.with_signatures(computed)
        attachments.append(attachment.with_content(content))
    return artifact.without_attachments().with_attachments(attachments)


def _fingerprint(artifact: Artifact) -> Tuple[FrozenSet, FrozenSet, Dict[AttachmentType, Optional[str]]]:
    return (
        frozenset(artifact.dependencies),
        frozenset(artifact.exclusions),
        {
            attachment.type: (
                attachment.content.signatures.sha1
                if attachment.content and attachment.content.signatures
                else None
            )
            for attachment in artifact.attachments
        },
    )
