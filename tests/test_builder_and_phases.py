from pathlib import Path

import pytest

from fiasco.build import Builder, Phase, PhaseList, standard_phases
from fiasco.runtime import DependencyTree, Librarian
from fiasco.exceptions import BuildGraphError
from fiasco.schemas import ArtifactDescriptor, ArtifactType, PhaseName


# ==================== PHASES ====================

def test_standard_phase_order() -> None:
    assert standard_phases().names() == [
        "start",
        "clean",
        "prepare",
        "compile",
        "test",
        "document",
        "package",
        "integration-test",
        "install",
        "deploy-packages",
        "deploy-documentation",
        "end",
    ]


def test_only_start_and_end_are_enabled_by_default() -> None:
    phases = standard_phases()
    assert [p.name for p in phases.enabled_phases()] == ["start", "end"]


def test_enabling_a_phase_enables_its_dependencies() -> None:
    phases = standard_phases().enable("package")
    assert [p.name for p in phases.enabled_phases()] == [
        "start", "prepare", "compile", "test", "document", "package", "end",
    ]
    assert not phases.is_enabled("clean")


def test_disabling_a_phase_leaves_its_dependencies() -> None:
    phases = standard_phases().enable("package").disable("test")
    assert not phases.is_enabled("test")
    assert phases.is_enabled("compile")
    assert phases.disable("start").is_enabled("start")


def test_phase_insertion_and_replacement() -> None:
    lint = Phase("lint", depends_on=("prepare",))
    phases = standard_phases().add_phase_after("compile", lint)
    assert phases.names()[phases.names().index("compile") + 1] == "lint"
    phases = phases.add_phase_before("start", Phase("bootstrap"))
    assert phases.names()[0] == "bootstrap"
    replaced = phases.replace_phase("lint", Phase("format"))
    assert "lint" not in replaced and "format" in replaced
    with pytest.raises(ValueError):
        phases.add(Phase("lint"))
    with pytest.raises(KeyError):
        phases.require("missing")


def test_phase_actions_are_copy_on_write() -> None:
    calls = []
    phase = Phase("compile")
    active = phase.with_action_before(lambda b: calls.append("before")).with_action(lambda b: calls.append("during"))
    active = active.with_action_after(lambda b: calls.append("after"))
    assert not phase.has_actions()
    active.run_before(None)
    active.run(None)
    active.run_after(None)
    assert calls == ["before", "during", "after"]
    assert not active.without_actions().has_actions()


# ==================== BUILDERS ====================

def test_parsed_command_line_toggles_phases() -> None:
    builder = Builder("app").with_parsed_command_line(["compile", "-test", " "])
    assert builder.is_enabled("compile")
    assert builder.is_enabled("prepare")
    assert not builder.is_enabled("test")
    builder = builder.with_parsed_command_line(["package", "-test"])
    assert builder.is_enabled("package") and builder.is_enabled("document")
    assert not builder.is_enabled(PhaseName.TEST)
    with pytest.raises(KeyError):
        builder.with_parsed_command_line(["deploy-everything"])


def test_builders_are_immutable() -> None:
    original = Builder("app")
    changed = original.with_artifact_descriptor("com.example:app:1.0").depends_on("org.junit:junit:4.13")
    assert original.descriptor is None
    assert original.dependencies == ()
    assert changed.descriptor.type == ArtifactType.LIBRARY
    assert changed.artifact_dependencies() == [ArtifactDescriptor.parse("org.junit:junit:4.13")]


def test_artifact_identity_helpers() -> None:
    builder = Builder("app").with_artifact_group("com.example").with_artifact_version("2.0")
    assert builder.descriptor.to_literal() == "library:com.example:app:2.0"
    assert builder.with_artifact_name("core").descriptor.name == "core"


def test_derive_builder(tmp_path: Path) -> None:
    librarian = Librarian()
    root = (
        Builder("project")
        .with_root_folder(tmp_path)
        .with_librarian(librarian)
        .with_artifact_descriptor("com.example:project:1.0")
        .with_enabled("compile")
        .depends_on("org.junit:junit:4.13")
    )
    child = root.derive_builder("utilities")
    assert child.name == "utilities"
    assert child.root_folder == tmp_path / "utilities"
    assert child.structure.java_source_folder == tmp_path / "utilities" / "src" / "main" / "java"
    assert child.descriptor.to_literal() == "library:com.example:utilities:1.0"
    assert child.dependencies == ()
    assert child.librarian is librarian
    assert child.is_enabled("compile")


def test_depends_on_separates_builders_from_artifacts() -> None:
    utilities = Builder("utilities").with_artifact_descriptor("com.example:utilities:1.0")
    app = Builder("app").depends_on(utilities, "org.junit:junit:4.13", ["org.hamcrest:hamcrest:2.2", utilities])
    assert app.builder_dependencies() == [utilities]
    assert [d.name for d in app.artifact_dependencies()] == ["junit", "hamcrest"]
    assert app.with_no_dependencies().builder_dependencies() == []


def test_builder_lookup_by_name_and_descriptor() -> None:
    utilities = Builder("utilities").with_artifact_descriptor("com.example:utilities:1.0")
    app = Builder("app").depends_on(utilities)
    assert app.builder("utilities") is utilities
    assert app.builder(":com.example:utilities:") is utilities
    assert app.builder("app") is app
    with pytest.raises(KeyError):
        app.builder("model")


def test_pinned_versions_reach_the_librarian() -> None:
    builder = Builder("app").with_pinned_version("org.apache.ant:ant:", "1.0.3")
    pinned = builder.librarian.pinned_version_of(ArtifactDescriptor.parse("org.apache.ant:ant:1.9"))
    assert pinned.version == "1.0.3"


def test_phase_actions_on_builders() -> None:
    builder = Builder("app").with_action_before_phase("compile", lambda b: None)
    assert builder.phases.require("compile").has_actions()
    assert not builder.without_actions("compile").phases.require("compile").has_actions()
    assert not Builder("app").phases.require("compile").has_actions()


def test_package_file_and_artifact(tmp_path: Path) -> None:
    builder = Builder("app").with_root_folder(tmp_path).with_artifact_descriptor("com.example:app:1.0")
    assert builder.package_file == tmp_path / "target" / "app-1.0.jar"
    assert builder.package_artifact() is None
    builder.package_file.parent.mkdir(parents=True)
    builder.package_file.write_bytes(b"jar")
    artifact = builder.package_artifact()
    assert artifact.jar().read() == b"jar"


# ==================== DEPENDENCY TREE ====================

def test_dependency_tree_orders_dependencies_first() -> None:
    utilities = Builder("utilities")
    model = Builder("model").depends_on(utilities)
    app = Builder("app").depends_on(model, utilities)
    tree = DependencyTree(app)
    assert [b.name for b in tree.depth_first()] == ["utilities", "model", "app"]
    assert [b.name for b in tree.dependents_of(utilities)] == ["model", "app"]
    assert [b.name for b in tree.dependencies_of(app)] == ["model", "utilities"]
    assert len(tree) == 3


def test_dependency_cycle_is_rejected() -> None:
    b = Builder("b").depends_on(Builder("a"))
    a = Builder("a").depends_on(b)
    with pytest.raises(BuildGraphError) as excinfo:
        DependencyTree(a)
    assert "a -> b -> a" in str(excinfo.value)


def test_structure_folders(tmp_path: Path) -> None:
    structure = Builder("app").with_root_folder(tmp_path).structure
    assert structure.main_resources_folder == tmp_path / "src" / "main" / "resources"
    assert structure.test_resources_folder == tmp_path / "src" / "test" / "resources"
    assert structure.classes_folder == tmp_path / "target" / "classes"
    assert structure.test_classes_folder == tmp_path / "target" / "test-classes"
    assert structure.java_sources() == []

    source = structure.java_source_folder / "com" / "example" / "App.java"
    source.parent.mkdir(parents=True)
    source.write_text("class App {}")
    (structure.java_test_source_folder).mkdir(parents=True)
    assert structure.java_sources() == [source]
    assert structure.java_test_sources() == []
