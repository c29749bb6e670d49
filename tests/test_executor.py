import threading
from pathlib import Path

import pytest

from fiasco.build import Builder
from fiasco.exceptions import BuildGraphError
from fiasco.repository.base import BaseRepository
from fiasco.runtime import ArtifactResolver, BuildExecutor, Librarian
from fiasco.schemas import ArtifactDescriptor, BuilderStatus, FailureKind, PhaseState
from fiasco.telemetry import BuildTelemetry


class GatedRepository(BaseRepository):
    """Repository whose lookups block until the gate opens."""

    def __init__(self, gate: threading.Event):
        super().__init__("gated", "memory:gated")
        self.gate = gate

    def resolve_artifacts(self, descriptors):
        self.gate.wait(5)
        return super().resolve_artifacts(descriptors)


def _fail(builder: Builder) -> None:
    raise RuntimeError("boom")


# ==================== FIXTURES ====================

@pytest.fixture
def compiled():
    return []


@pytest.fixture
def base(tmp_path: Path, compiled) -> Builder:
    """A compile-enabled builder whose compile action records the builder name."""
    lock = threading.Lock()

    def record(builder: Builder) -> None:
        with lock:
            compiled.append(builder.name)

    return (
        Builder("app")
        .with_root_folder(tmp_path)
        .with_librarian(Librarian())
        .with_enabled("compile")
        .with_action_during_phase("compile", record)
    )


# ==================== ORDERING ====================

def test_dependencies_build_before_dependents(base, populated_librarian, compiled) -> None:
    base = base.with_librarian(populated_librarian)
    utilities = base.derive_builder("utilities").depends_on("com.example:utilities:1.0")
    root = base.depends_on("org.junit:junit:4.13", utilities)

    report = root.build(threads=2)

    assert report.succeeded
    assert compiled == ["utilities", "app"]
    assert report.order == ["utilities", "app"]
    assert report.result("app").phase_states["compile"] == PhaseState.DONE
    assert report.result("app").phase_states["test"] == PhaseState.SKIPPED
    assert report.resolution_failures == []


def test_independent_builders_all_run(base, compiled) -> None:
    children = [base.derive_builder(name) for name in ("a", "b", "c")]
    report = base.depends_on(children).build(threads=3)
    assert report.succeeded
    assert sorted(compiled[:3]) == ["a", "b", "c"]
    assert compiled[-1] == "app"


def test_phase_actions_run_once_in_order(base) -> None:
    calls = []
    builder = (
        base.with_action_before_phase("prepare", lambda b: calls.append("prepare"))
        .with_action_before_phase("compile", lambda b: calls.append("before"))
        .with_action_during_phase("compile", lambda b: calls.append("during"))
        .with_action_after_phase("compile", lambda b: calls.append("after"))
    )
    assert builder.build().succeeded
    assert calls == ["prepare", "before", "during", "after"]


def test_failing_after_action_fails_the_phase(base) -> None:
    report = base.with_action_after_phase("compile", _fail).build()
    result = report.result("app")
    assert result.status == BuilderStatus.FAILED
    assert result.phase_states["compile"] == PhaseState.FAILED
    assert result.failure.describe() == "app: compile failed: boom"


def test_invalid_thread_count(base) -> None:
    with pytest.raises(ValueError):
        BuildExecutor(base, threads=0)


def test_dependency_cycle_runs_nothing(base, compiled) -> None:
    b = base.derive_builder("b").depends_on(base.derive_builder("a"))
    a = base.derive_builder("a").depends_on(b)
    with pytest.raises(BuildGraphError) as excinfo:
        a.build()
    assert "dependency cycle: a -> b -> a" in str(excinfo.value)
    assert compiled == []


# ==================== FAILURES ====================

@pytest.fixture
def failing_graph(base):
    broken = base.derive_builder("broken").with_action_during_phase("compile", _fail)
    middle = base.derive_builder("middle").depends_on(broken)
    fine = base.derive_builder("fine")
    return base.depends_on(middle, fine)


def test_failure_blocks_only_dependents(failing_graph, compiled) -> None:
    report = failing_graph.build(threads=1)

    assert not report.succeeded
    assert report.order == ["broken", "middle", "fine", "app"]
    assert report.result("broken").status == BuilderStatus.FAILED
    assert report.result("broken").phase_states["compile"] == PhaseState.FAILED
    assert report.result("broken").phase_states["end"] == PhaseState.SKIPPED
    assert report.result("fine").status == BuilderStatus.SUCCEEDED
    for name in ("middle", "app"):
        result = report.result(name)
        assert result.status == BuilderStatus.BLOCKED
        assert result.blocked_by == "broken"
        assert result.failure.kind == FailureKind.BLOCKED
    assert "middle" not in compiled and "app" not in compiled
    assert report.failed_builders() == ["broken"]
    assert report.summary().splitlines() == [
        "broken: compile failed: boom",
        "middle: blocked by broken",
        "fine: succeeded",
        "app: blocked by broken",
    ]


def test_fail_fast_blocks_unrelated_builders(failing_graph, compiled) -> None:
    report = failing_graph.build(threads=1, fail_fast=True)
    assert report.result("fine").status == BuilderStatus.BLOCKED
    assert report.result("fine").blocked_by == "broken"
    assert "fine" not in compiled


def test_missing_dependency_fails_before_compile(base, populated_librarian, compiled) -> None:
    builder = base.with_librarian(populated_librarian).depends_on(
        "org.junit:junit:4.13", "com.example:missing:1.0"
    )
    report = builder.build()

    failure = report.result("app").failure
    assert failure.kind == FailureKind.MISSING_DEPENDENCY
    assert failure.phase == "compile"
    assert failure.message == "builder app missing dependency :com.example:missing:1.0"
    assert failure.missing == [":com.example:missing:1.0"]
    assert report.result("app").phase_states["prepare"] == PhaseState.DONE
    assert compiled == []
    assert [f.descriptor for f in report.resolution_failures] == [":com.example:missing:1.0"]


def test_missing_dependency_is_harmless_without_compile(tmp_path, populated_librarian) -> None:
    builder = (
        Builder("app")
        .with_root_folder(tmp_path)
        .with_librarian(populated_librarian)
        .depends_on("com.example:missing:1.0")
    )
    report = builder.build()
    assert report.succeeded
    assert len(report.resolution_failures) == 1


def test_resolution_timeout(base) -> None:
    gate = threading.Event()
    resolver = ArtifactResolver(Librarian([GatedRepository(gate)]), threads=2)
    builder = base.depends_on("g:slow:1")
    try:
        report = BuildExecutor(builder, resolver=resolver, resolution_timeout=0.05).run()
    finally:
        gate.set()
        resolver.shutdown()

    failure = report.result("app").failure
    assert failure.kind == FailureKind.RESOLUTION_TIMEOUT
    assert "timed out after 0.05s" in failure.message
    assert failure.missing == [":g:slow:1"]


# ==================== INSTALL ====================

def test_install_phase_installs_the_package(tmp_path, local_repo, populated_librarian) -> None:
    def package(builder: Builder) -> None:
        builder.package_file.parent.mkdir(parents=True, exist_ok=True)
        builder.package_file.write_bytes(b"compiled classes")

    builder = (
        Builder("app")
        .with_root_folder(tmp_path / "app")
        .with_librarian(populated_librarian)
        .with_artifact_descriptor("com.example:app:1.0")
        .with_enabled("install")
        .with_action_during_phase("package", package)
    )
    report = builder.build()

    assert report.succeeded
    descriptor = ArtifactDescriptor.parse("library:com.example:app:1.0")
    assert local_repo.contains(descriptor)
    installed = local_repo.resolve_artifacts([descriptor])[0]
    assert installed.jar().read() == b"compiled classes"


# ==================== TELEMETRY ====================

def test_build_emits_telemetry(base, populated_librarian) -> None:
    telemetry = BuildTelemetry()
    builder = base.with_librarian(populated_librarian).depends_on("org.junit:junit:4.13")
    report = builder.build(telemetry=telemetry)

    assert report.succeeded
    assert telemetry.events_of("build_started")[0].payload["builders"] == ["app"]
    completed = telemetry.events_of("build_completed")[0]
    assert completed.payload["succeeded"] is True
    assert completed.payload["summary"] == {"app": "succeeded"}
    phases = [e.phase for e in telemetry.events_of("phase_completed")]
    assert phases == ["start", "prepare", "compile", "end"]
    resolved = {e.payload["descriptor"] for e in telemetry.events_of("artifact_resolved")}
    assert resolved == {"library:org.junit:junit:4.13", "library:org.hamcrest:hamcrest:2.2"}
