from pathlib import Path

import pytest

from fiasco.build import BaseBuild, Build
from fiasco.exceptions import ConfigError
from fiasco.repository.local import LocalRepository
from fiasco.schemas import BuildSettings, RepositorySpec


class ProjectBuild(BaseBuild):
    def configure(self, root):
        return root.with_artifact_descriptor("com.example:project:1.0").depends_on(root.derive_builder("utilities"))


def test_settings_and_arguments_toggle_phases(tmp_path: Path) -> None:
    settings = BuildSettings(enabled_phases=["package"], disabled_phases=["document"])
    build = ProjectBuild(root_folder=tmp_path / "project", arguments=["-test"], settings=settings)
    root = build.root_builder()

    assert isinstance(build, Build)
    assert root.name == "project"
    assert root.is_enabled("package") and root.is_enabled("compile")
    assert not root.is_enabled("document")
    assert not root.is_enabled("test")
    assert build.root_builder() is root
    assert [b.name for b in build.dependency_tree()] == ["utilities", "project"]


def test_unknown_phase_in_settings(tmp_path: Path) -> None:
    build = ProjectBuild(root_folder=tmp_path, settings=BuildSettings(enabled_phases=["publish"]))
    with pytest.raises(ConfigError) as excinfo:
        build.root_builder()
    assert "publish" in str(excinfo.value)


def test_librarian_from_settings(tmp_path: Path) -> None:
    settings = BuildSettings(
        repositories=[RepositorySpec(type="local", name="project", uri=str(tmp_path / "repo"))]
    )
    librarian = ProjectBuild(root_folder=tmp_path, settings=settings).librarian()
    assert isinstance(librarian.install_to, LocalRepository)
    assert [r.name for r in librarian.look_in] == ["project"]


def test_build_runs_every_builder(tmp_path: Path) -> None:
    settings = BuildSettings(
        builder_threads=2,
        repositories=[RepositorySpec(type="local", name="project", uri=str(tmp_path / "repo"))],
    )
    report = ProjectBuild(root_folder=tmp_path / "project", arguments=["compile"], settings=settings).build(2)
    assert report.succeeded
    assert report.order == ["utilities", "project"]
