"""Maven-layout repository, local (``file:``) or remote (``http(s):``)."""

from __future__ import annotations

import logging
import re
import xml.etree.ElementTree as ElementTree
from concurrent.futures import Future
from pathlib import Path
from typing import Any, Dict, List, Optional

import requests

from fiasco.exceptions import RepositoryError
from fiasco.schemas.artifact import Artifact
from fiasco.schemas.content import (
    ArtifactAttachment,
    ArtifactContent,
    AttachmentType,
    ContentSignatures,
)
from fiasco.schemas.descriptor import ArtifactDescriptor, ArtifactType
from fiasco.schemas.protocol import InstallationResult
from fiasco.utils.files import (
    atomic_write_bytes,
    atomic_write_text,
    fiasco_cache_root,
    path_from_uri,
    remove_tree,
)

from .base import BaseRepository

logger = logging.getLogger(__name__)

MAVEN_CENTRAL_URI = "https://repo1.maven.org/maven2"

SIGNATURE_EXTENSIONS = ("asc", "md5", "sha1")

_INCLUDED_SCOPES = {"", "compile", "runtime"}
_PROPERTY = re.compile(r"\$\{([^}]+)\}")


class MavenRepository(BaseRepository):
    """Repository reading and writing the standard Maven directory layout.

    Remote repositories are read-only. Content downloaded from them is kept in
    a local cache folder so every resolved artifact refers to a local file.
    """

    type_tag = "maven"

    def __init__(
        self,
        name: str,
        uri: str | Path,
        cache_root: Path | str | None = None,
        session: Any = None,
        timeout: int = 30,
    ):
        uri = str(uri) if not isinstance(uri, Path) else uri.resolve().as_uri()
        if "://" not in uri:
            uri = Path(uri).resolve().as_uri()
        super().__init__(name, uri.rstrip("/"))
        self.timeout = timeout
        self._session = session
        self._reading: Dict[ArtifactDescriptor, Future] = {}
        if self.is_remote():
            self.root: Optional[Path] = None
            self.cache_root = Path(cache_root) if cache_root else fiasco_cache_root() / "maven" / name
        else:
            self.root = path_from_uri(self.uri)
            self.cache_root = self.root

    def is_remote(self) -> bool:
        return not self.uri.startswith("file:")

    @property
    def session(self):
        if self._session is None:
            self._session = requests.Session()
        return self._session

    # ===== Resolution =====

    def resolve_artifacts(self, descriptors) -> List[Artifact]:
        queries = [ArtifactDescriptor.coerce(d) for d in descriptors]
        for query in queries:
            if query.group and query.name and query.version:
                self._read_once(query.with_type(query.type or ArtifactType.LIBRARY))
        return super().resolve_artifacts(queries)

    def _read_once(self, descriptor: ArtifactDescriptor) -> None:
        """Read ``descriptor`` into the index unless it is there already.

        The lock covers only the index; downloads run outside it. Threads
        asking for a descriptor another thread is already reading wait for
        that read and share its outcome.
        """
        with self._lock:
            if descriptor in self._artifact_index():
                return
            pending = self._reading.get(descriptor)
            if pending is None:
                future: Future = Future()
                self._reading[descriptor] = future
        if pending is not None:
            pending.result()
            return

        try:
            artifact = self._read_artifact(descriptor)
            if artifact is not None:
                self._add(artifact)
        except BaseException as exc:
            future.set_exception(exc)
            raise
        else:
            future.set_result(artifact)
        finally:
            with self._lock:
                self._reading.pop(descriptor, None)

    def _load_all_artifact_metadata(self) -> None:
        """Index every ``<name>-<version>.jar`` already in a local tree."""
        if self.is_remote() or not self.root.is_dir():
            return
        for jar in sorted(self.root.rglob("*.jar")):
            relative = jar.relative_to(self.root)
            if len(relative.parts) < 4:
                continue
            *group_parts, name, version, file_name = relative.parts
            if file_name != f"{name}-{version}.jar":
                continue
            try:
                descriptor = ArtifactDescriptor(
                    type=ArtifactType.LIBRARY, group=".".join(group_parts), name=name, version=version,
                )
            except ValueError as exc:
                logger.debug("Skipping %s in %s: %s", relative, self.name, exc)
                continue
            artifact = self._read_artifact(descriptor)
            if artifact is not None:
                self._add(artifact)

    def _read_artifact(self, descriptor: ArtifactDescriptor) -> Optional[Artifact]:
        descriptor = descriptor.with_type(descriptor.type or ArtifactType.LIBRARY)
        jar = self._read_content(descriptor, AttachmentType.JAR)
        if jar is None:
            logger.debug("%s not found in %s", descriptor, self.name)
            return None

        artifact = Artifact.from_descriptor(descriptor).with_content(jar)
        for attachment_type in (AttachmentType.SOURCES, AttachmentType.JAVADOC, AttachmentType.POM):
            content = self._read_content(descriptor, attachment_type)
            if content is not None:
                artifact = artifact.with_attachment(ArtifactAttachment(attachment_type, content))

        pom = artifact.content(AttachmentType.POM)
        if pom is not None:
            artifact = artifact.with_dependencies(parse_pom_dependencies(pom.read()))
        logger.debug("Read %s from %s", descriptor, self.name)
        return artifact

    def _read_content(self, descriptor: ArtifactDescriptor, attachment_type: AttachmentType) -> Optional[ArtifactContent]:
        relative = self.relative_path(descriptor, attachment_type)
        path = self._fetch_to_file(relative)
        if path is None:
            return None
        signatures = {}
        for extension in SIGNATURE_EXTENSIONS:
            sidecar = self._fetch_to_file(f"{relative}.{extension}")
            if sidecar is not None:
                text = sidecar.read_text(encoding="utf-8").strip()
                signatures[extension] = text if extension == "asc" else (text.split() or [""])[0]
        return ArtifactContent.from_path(path, ContentSignatures(**signatures))

    def _fetch_to_file(self, relative: str) -> Optional[Path]:
        """Return a local path for ``relative``, downloading it first for remote repositories.

        Returns None if the file does not exist.

        Raises:
            RepositoryError: On transport failures other than "not found".
        """
        local = self.cache_root / relative
        if local.exists():
            return local
        if not self.is_remote():
            return None

        url = f"{self.uri}/{relative}"
        try:
            response = self.session.get(url, timeout=self.timeout)
        except requests.RequestException as exc:
            raise RepositoryError(self.name, f"GET {url} failed: {exc}") from exc
        if response.status_code == 404:
            return None
        if response.status_code >= 400:
            raise RepositoryError(self.name, f"GET {url} returned HTTP {response.status_code}")
        atomic_write_bytes(local, response.content)
        return local

    @staticmethod
    def relative_path(descriptor: ArtifactDescriptor, attachment_type: AttachmentType) -> str:
        return "/".join((
            descriptor.group_path(),
            descriptor.name,
            descriptor.version,
            f"{descriptor.name}-{descriptor.version}{attachment_type.file_suffix}",
        ))

    # ===== Installation =====

    def install_artifact(self, artifact: Artifact) -> InstallationResult:
        if self.is_remote():
            raise RepositoryError(self.name, "cannot install into a remote Maven repository")
        descriptor = artifact.descriptor
        if not descriptor.is_complete():
            logger.error("Cannot install %s into %s: descriptor is incomplete", descriptor, self.name)
            return InstallationResult.FAILED

        with self._lock:
            jar = artifact.jar()
            jar_path = self.root / self.relative_path(descriptor, AttachmentType.JAR)
            if jar is not None and jar_path.exists():
                if ContentSignatures.of(jar_path.read_bytes()).sha1 == ContentSignatures.of(jar.read()).sha1:
                    return InstallationResult.ALREADY_PRESENT
            try:
                for attachment in artifact.attachments:
                    if attachment.content is not None and attachment.type != AttachmentType.POM:
                        self._write_content(descriptor, attachment.type, attachment.content.read(),
                                            attachment.content.signatures)
                self._write_content(descriptor, AttachmentType.POM, artifact.maven_pom().encode("utf-8"), None)
            except OSError as exc:
                logger.error("Unable to install %s into %s: %s", descriptor, self.name, exc)
                return InstallationResult.FAILED
            self._artifact_index().pop(descriptor, None)
            installed = self._read_artifact(descriptor)
            if installed is not None:
                self._add(installed)
        logger.debug("Installed %s into %s", descriptor, self.name)
        return InstallationResult.INSTALLED

    def _write_content(
        self,
        descriptor: ArtifactDescriptor,
        attachment_type: AttachmentType,
        data: bytes,
        signatures: Optional[ContentSignatures],
    ) -> None:
        relative = self.relative_path(descriptor, attachment_type)
        computed = ContentSignatures.of(data, asc=signatures.asc if signatures else None)
        atomic_write_bytes(self.root / relative, data)
        atomic_write_text(self.root / f"{relative}.md5", computed.md5)
        atomic_write_text(self.root / f"{relative}.sha1", computed.sha1)
        if computed.asc:
            atomic_write_text(self.root / f"{relative}.asc", computed.asc)

    def remove_artifact(self, descriptor: ArtifactDescriptor) -> bool:
        if self.is_remote():
            raise RepositoryError(self.name, "cannot remove from a remote Maven repository")
        descriptor = ArtifactDescriptor.coerce(descriptor)
        folder = self.root / descriptor.group_path() / descriptor.name / descriptor.version
        with self._lock:
            self._artifact_index().pop(descriptor, None)
            return remove_tree(folder)

    def clear(self) -> None:
        """Forget resolved artifacts and delete the local tree (or download cache)."""
        with self._lock:
            super().clear()
            remove_tree(self.cache_root)


def parse_pom_dependencies(pom: bytes | str) -> List[ArtifactDescriptor]:
    """Direct compile/runtime dependencies declared by a POM.

    Optional dependencies and test/provided/system scopes are skipped.
    ``${...}`` references are resolved from ``<properties>`` and the
    project coordinates. Dependencies without a resolvable version are
    looked up in ``<dependencyManagement>`` and dropped if still missing.
    """
    try:
        root = ElementTree.fromstring(pom)
    except ElementTree.ParseError as exc:
        logger.warning("Ignoring unparseable POM: %s", exc)
        return []

    namespace = ""
    if root.tag.startswith("{"):
        namespace = root.tag[:root.tag.index("}") + 1]

    def child_text(element, tag: str) -> str:
        found = element.find(f"{namespace}{tag}") if element is not None else None
        return (found.text or "").strip() if found is not None else ""

    parent = root.find(f"{namespace}parent")
    properties: Dict[str, str] = {
        "project.groupId": child_text(root, "groupId") or child_text(parent, "groupId"),
        "project.artifactId": child_text(root, "artifactId"),
        "project.version": child_text(root, "version") or child_text(parent, "version"),
        "project.parent.version": child_text(parent, "version"),
    }
    properties["pom.version"] = properties["project.version"]
    properties_element = root.find(f"{namespace}properties")
    if properties_element is not None:
        for element in properties_element:
            properties[element.tag[len(namespace):]] = (element.text or "").strip()

    def expand(value: str) -> str:
        for _ in range(10):
            expanded = _PROPERTY.sub(lambda m: properties.get(m.group(1), m.group(0)), value)
            if expanded == value:
                break
            value = expanded
        return value

    managed: Dict[str, str] = {}
    for dependency in root.iterfind(f"{namespace}dependencyManagement/{namespace}dependencies/{namespace}dependency"):
        key = f"{expand(child_text(dependency, 'groupId'))}:{expand(child_text(dependency, 'artifactId'))}"
        managed[key] = expand(child_text(dependency, "version"))

    descriptors: List[ArtifactDescriptor] = []
    for dependency in root.iterfind(f"{namespace}dependencies/{namespace}dependency"):
        if child_text(dependency, "optional").lower() == "true":
            continue
        if child_text(dependency, "scope") not in _INCLUDED_SCOPES:
            continue
        group = expand(child_text(dependency, "groupId"))
        name = expand(child_text(dependency, "artifactId"))
        version = expand(child_text(dependency, "version")) or managed.get(f"{group}:{name}", "")
        if not version or "${" in version or "${" in group or "${" in name:
            logger.debug("Skipping dependency %s:%s with unresolved version", group, name)
            continue
        try:
            descriptors.append(ArtifactDescriptor(type=ArtifactType.LIBRARY, group=group, name=name, version=version))
        except ValueError as exc:
            logger.debug("Skipping malformed dependency %s:%s:%s: %s", group, name, version, exc)
    return descriptors


def maven_central(cache_root: Path | str | None = None) -> MavenRepository:
    """A fresh Maven Central repository caching under the current Fiasco cache folder."""
    return MavenRepository("maven-central", MAVEN_CENTRAL_URI, cache_root=cache_root)
