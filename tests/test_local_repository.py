import io
import json
import threading
import zipfile
from pathlib import Path

from fiasco.repository.local import LocalRepository
from fiasco.schemas import (
    ArtifactContent,
    ArtifactDescriptor,
    AttachmentType,
    ContentSignatures,
    InstallationResult,
    Library,
)


def test_install_then_resolve(local_repo: LocalRepository, make_library) -> None:
    artifact = make_library("com.example:core:1.0", "org.junit:junit:4.13", data=b"core-jar")
    assert local_repo.install_artifact(artifact) == InstallationResult.INSTALLED

    resolved = local_repo.resolve_artifacts([ArtifactDescriptor.parse("library:com.example:core:1.0")])
    assert len(resolved) == 1
    found = resolved[0]
    assert found == artifact
    assert found.repository_name == "local"
    assert found.jar().read() == b"core-jar"
    assert [d.to_literal() for d in found.dependencies] == [":org.junit:junit:4.13"]

    jar_path = local_repo.attachment_path(artifact.descriptor, AttachmentType.JAR)
    assert jar_path == local_repo.root / "com" / "example" / "core" / "1.0" / "core-1.0.jar"
    assert jar_path.read_bytes() == b"core-jar"


def test_reinstalling_identical_artifact_is_already_present(local_repo, make_library) -> None:
    artifact = make_library("com.example:core:1.0")
    assert local_repo.install_artifact(artifact) == InstallationResult.INSTALLED
    assert local_repo.install_artifact(artifact) == InstallationResult.ALREADY_PRESENT
    changed = make_library("com.example:core:1.0", data=b"rebuilt")
    assert local_repo.install_artifact(changed) == InstallationResult.INSTALLED
    assert local_repo.resolve_artifacts(["com.example:core:1.0"])[0].jar().read() == b"rebuilt"


def test_metadata_survives_reopening(tmp_path: Path, make_library) -> None:
    root = tmp_path / "repository"
    LocalRepository("local", root).install_artifact(make_library("com.example:core:1.0", data=b"bytes"))

    reopened = LocalRepository("local", root)
    found = reopened.resolve_artifacts(["com.example:core:1.0"])
    assert [a.name for a in found] == ["library:com.example:core:1.0"]
    assert found[0].jar().read() == b"bytes"

    line = json.loads((root / "artifacts.jsonl").read_text().splitlines()[0])
    reference = line["attachments"][0]["content"]["reference"]
    assert not Path(reference).is_absolute()


def test_wildcard_group_query_is_sorted(local_repo, make_library) -> None:
    for literal in ("g:b:1", "h:c:1", "g:a:2", "g:a:1"):
        local_repo.install_artifact(make_library(literal))
    found = local_repo.resolve_artifacts([ArtifactDescriptor.query_of(":g::")])
    assert [a.name for a in found] == ["library:g:a:1", "library:g:a:2", "library:g:b:1"]


def test_unknown_descriptor_resolves_to_nothing(local_repo) -> None:
    assert local_repo.resolve_artifacts(["com.example:missing:1.0"]) == []


def test_incomplete_descriptor_cannot_be_installed(local_repo) -> None:
    assert local_repo.install_artifact(Library("com.example:core:")) == InstallationResult.FAILED


def test_remove_artifact_rewrites_metadata(local_repo, make_library) -> None:
    keep = make_library("g:keep:1")
    drop = make_library("g:drop:1")
    local_repo.install_artifact(keep)
    local_repo.install_artifact(drop)

    assert local_repo.remove_artifact(drop.descriptor)
    assert not local_repo.remove_artifact(drop.descriptor)
    assert not local_repo.attachment_path(drop.descriptor, AttachmentType.JAR).exists()

    reopened = LocalRepository("local", local_repo.root)
    assert [a.name for a in reopened.artifacts()] == ["library:g:keep:1"]


def test_unreadable_metadata_lines_are_skipped(local_repo, make_library) -> None:
    local_repo.install_artifact(make_library("g:a:1"))
    with open(local_repo.metadata_file, "a", encoding="utf-8") as handle:
        handle.write("{not json\n")
        handle.write(json.dumps({"type": "widget", "descriptor": "widget:g:b:1"}) + "\n")
    reopened = LocalRepository("local", local_repo.root)
    assert [a.name for a in reopened.artifacts()] == ["library:g:a:1"]


def test_clear_deletes_the_repository(local_repo, make_library) -> None:
    local_repo.install_artifact(make_library("g:a:1"))
    local_repo.clear()
    assert not local_repo.root.exists()
    assert local_repo.artifacts() == []


def test_default_root_is_under_the_cache(fiasco_cache: Path) -> None:
    repository = LocalRepository("scratch")
    assert repository.root == fiasco_cache / "scratch"
    assert repository.uri.startswith("file:")


def test_clear_all_removes_the_cache(fiasco_cache: Path, make_library) -> None:
    LocalRepository("scratch").install_artifact(make_library("g:a:1"))
    assert fiasco_cache.exists()
    assert LocalRepository.clear_all() is True
    assert not fiasco_cache.exists()
    assert LocalRepository.clear_all() is False


def test_reinstall_removes_dropped_attachments(local_repo, make_library) -> None:
    with_sources = make_library("com.example:core:1.0").with_sources(ArtifactContent.from_bytes(b"sources"))
    local_repo.install_artifact(with_sources)
    sources_path = local_repo.attachment_path(with_sources.descriptor, AttachmentType.SOURCES)
    assert sources_path.read_bytes() == b"sources"

    without_sources = make_library("com.example:core:1.0", data=b"rebuilt")
    assert local_repo.install_artifact(without_sources) == InstallationResult.INSTALLED
    assert not sources_path.exists()
    assert local_repo.attachment_path(without_sources.descriptor, AttachmentType.JAR).read_bytes() == b"rebuilt"

    reopened = LocalRepository("local", local_repo.root)
    found = reopened.resolve_artifacts(["com.example:core:1.0"])[0]
    assert found.sources() is None


def test_jar_index_is_kept_with_the_metadata(tmp_path: Path) -> None:
    buffer = io.BytesIO()
    with zipfile.ZipFile(buffer, "w", compression=zipfile.ZIP_DEFLATED) as archive:
        archive.writestr("META-INF/MANIFEST.MF", b"Manifest-Version: 1.0\n")
        archive.writestr("com/example/Core.class", b"core class")
    root = tmp_path / "repository"
    artifact = Library("com.example:core:1.0").with_content(ArtifactContent.from_bytes(buffer.getvalue()))
    assert LocalRepository("local", root).install_artifact(artifact) == InstallationResult.INSTALLED

    line = json.loads((root / "artifacts.jsonl").read_text().splitlines()[-1])
    assert [entry["path"] for entry in line["attachments"][0]["content"]["index"]] == [
        "META-INF/MANIFEST.MF",
        "com/example/Core.class",
    ]

    jar = LocalRepository("local", root).resolve_artifacts(["com.example:core:1.0"])[0].jar()
    assert jar.index.paths() == ["META-INF/MANIFEST.MF", "com/example/Core.class"]
    assert jar.read_entry("com/example/Core.class") == b"core class"
    assert not jar.is_materialized()


def test_plain_jars_carry_no_index(local_repo, make_library) -> None:
    local_repo.install_artifact(make_library("g:a:1", data=b"not a zip"))
    assert local_repo.resolve_artifacts(["g:a:1"])[0].jar().index is None


def test_concurrent_installs_of_one_descriptor_leave_one_whole_entry(local_repo, make_library) -> None:
    payloads = [f"build-{n}".encode() * 512 for n in range(8)]
    barrier = threading.Barrier(len(payloads))
    results = []

    def install(data):
        barrier.wait()
        results.append(local_repo.install_artifact(make_library("com.example:core:1.0", data=data)))

    threads = [threading.Thread(target=install, args=(data,)) for data in payloads]
    for thread in threads:
        thread.start()
    for thread in threads:
        thread.join(10)

    assert results == [InstallationResult.INSTALLED] * len(payloads)
    lines = (local_repo.root / "artifacts.jsonl").read_text().splitlines()
    assert len(lines) == len(payloads)
    assert all(json.loads(line)["descriptor"] == "library:com.example:core:1.0" for line in lines)

    reopened = LocalRepository("local", local_repo.root)
    found = reopened.resolve_artifacts(["com.example:core:1.0"])
    assert len(found) == 1
    data = found[0].jar().read()
    assert data in payloads
    assert found[0].jar().signatures.sha1 == ContentSignatures.of(data).sha1
    folder = local_repo.artifact_folder(found[0].descriptor)
    assert sorted(p.name for p in folder.iterdir()) == ["core-1.0.jar"]
