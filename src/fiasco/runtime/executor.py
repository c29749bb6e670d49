"""Build executor: walks the builder graph and drives each builder's phases."""

from __future__ import annotations

import logging
import threading
from concurrent.futures import FIRST_COMPLETED, Future, ThreadPoolExecutor, wait
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Dict, List, Optional

from fiasco.schemas.errors import BuilderResult, FailureKind, PhaseFailure, ResolutionFailure
from fiasco.schemas.phase import BuilderStatus, PhaseName, PhaseState
from fiasco.telemetry import BuildTelemetry, _now_iso

from .dependency_tree import DependencyTree
from .librarian import default_librarian
from .resolver import ArtifactResolver

if TYPE_CHECKING:
    from fiasco.build.builder import Builder
    from fiasco.build.phases import Phase

logger = logging.getLogger(__name__)

CLASSPATH_PHASE = PhaseName.COMPILE.value


@dataclass
class BuildReport:
    """Outcome of one build run. ``stamp`` is metadata only."""

    results: Dict[str, BuilderResult] = field(default_factory=dict)
    order: List[str] = field(default_factory=list)
    stamp: str = ""
    resolution_failures: List[ResolutionFailure] = field(default_factory=list)

    @property
    def succeeded(self) -> bool:
        return all(result.succeeded for result in self.results.values())

    def result(self, builder: str) -> BuilderResult:
        return self.results[builder]

    def failed_builders(self) -> List[str]:
        return [name for name in self.order if self.results[name].status == BuilderStatus.FAILED]

    def summary(self) -> str:
        """One line per builder, in build order, naming the failed phase and why."""
        lines = []
        for name in self.order:
            result = self.results[name]
            if result.status == BuilderStatus.SUCCEEDED:
                lines.append(f"{name}: succeeded")
            elif result.status == BuilderStatus.BLOCKED:
                lines.append(f"{name}: blocked by {result.blocked_by}")
            elif result.failure is not None:
                lines.append(f"{name}: {result.failure.phase} failed: {result.failure.message}")
            else:
                lines.append(f"{name}: {result.status.value}")
        return "\n".join(lines)


class BuildExecutor:
    """Runs a root builder and every builder it depends on.

    Builders start once all their builder dependencies succeeded; with
    ``threads > 1`` independent builders run side by side. A failed builder
    blocks its dependents; unrelated branches keep going unless
    ``fail_fast`` is set. Artifact dependencies are resolved in the
    background from the start of the run and awaited before ``compile``
    (or the first enabled phase that depends on it).
    """

    def __init__(
        self,
        root: Builder,
        resolver: Optional[ArtifactResolver] = None,
        threads: int = 1,
        resolution_timeout: Optional[float] = None,
        fail_fast: bool = False,
        telemetry: Optional[BuildTelemetry] = None,
        resolver_threads: int = 16,
    ) -> None:
        if threads < 1:
            raise ValueError(f"threads must be at least 1, got {threads}")
        self.root = root
        self.threads = threads
        self.resolution_timeout = resolution_timeout
        self.fail_fast = fail_fast
        self.telemetry = telemetry
        self._owns_resolver = resolver is None
        self.resolver = resolver or ArtifactResolver(
            root.librarian or default_librarian(),
            threads=resolver_threads,
            telemetry=telemetry,
        )
        self._lock = threading.Lock()
        self._results: Dict[str, BuilderResult] = {}
        self._first_failure: Optional[str] = None

    def run(self) -> BuildReport:
        """Build everything under the root.

        Raises:
            BuildGraphError: If the builder graph has a cycle. Nothing runs.
        """
        tree = DependencyTree(self.root)
        order = tree.depth_first()
        for builder in order:
            self._results[builder.name] = BuilderResult(
                builder=builder.name,
                phase_states={phase.name: PhaseState.PENDING for phase in builder.phases},
            )
        if self.telemetry:
            self.telemetry.build_started(self.root.name, [b.name for b in order])
        logger.info("Building %s (%d builders, %d threads)", self.root.name, len(order), self.threads)

        try:
            self.resolver.resolve_builder(self.root)
            self._schedule(tree, order)
        finally:
            if self._owns_resolver:
                self.resolver.shutdown()

        report = BuildReport(
            results=dict(self._results),
            order=[b.name for b in order],
            stamp=_now_iso(),
            resolution_failures=self.resolver.resolved.failures(),
        )
        if self.telemetry:
            statuses = {name: result.status.value for name, result in report.results.items()}
            self.telemetry.build_completed(self.root.name, report.succeeded, statuses)
        if report.succeeded:
            logger.info("Build of %s succeeded", self.root.name)
        else:
            logger.error("Build of %s failed:\n%s", self.root.name, report.summary())
        return report

    # ===== Scheduling =====

    def _schedule(self, tree: DependencyTree, order: List[Builder]) -> None:
        remaining = list(order)
        running: Dict[Future, str] = {}
        with ThreadPoolExecutor(max_workers=self.threads, thread_name_prefix="fiasco-builder") as pool:
            while remaining or running:
                for builder in list(remaining):
                    blocker = self._blocker(tree.dependencies_of(builder))
                    if blocker is None:
                        blocker = self._halted_by()
                    if blocker is not None:
                        self._block(builder, blocker)
                        remaining.remove(builder)
                    elif self._ready(tree.dependencies_of(builder)):
                        running[pool.submit(self._run_builder, builder)] = builder.name
                        remaining.remove(builder)
                if not running:
                    break
                done, _ = wait(list(running), return_when=FIRST_COMPLETED)
                for future in done:
                    running.pop(future)
                    future.result()

    def _halted_by(self) -> Optional[str]:
        """Under ``fail_fast``, the first builder that failed."""
        if not self.fail_fast:
            return None
        with self._lock:
            return self._first_failure

    def _status(self, name: str) -> BuilderStatus:
        with self._lock:
            return self._results[name].status

    def _ready(self, dependencies: List[Builder]) -> bool:
        return all(self._status(d.name) == BuilderStatus.SUCCEEDED for d in dependencies)

    def _blocker(self, dependencies: List[Builder]) -> Optional[str]:
        """Name of the builder whose failure blocks a builder with these dependencies."""
        with self._lock:
            for dependency in dependencies:
                result = self._results[dependency.name]
                if result.status == BuilderStatus.FAILED:
                    return dependency.name
                if result.status == BuilderStatus.BLOCKED:
                    return result.blocked_by
        return None

    def _block(self, builder: Builder, blocker: str) -> None:
        logger.warning("Builder %s blocked by failure of %s", builder.name, blocker)
        with self._lock:
            result = self._results[builder.name]
            result.status = BuilderStatus.BLOCKED
            result.blocked_by = blocker
            result.phase_states = {name: PhaseState.SKIPPED for name in result.phase_states}
            result.failure = PhaseFailure(
                builder=builder.name,
                phase=PhaseName.START.value,
                message=f"blocked by failure of {blocker}",
                kind=FailureKind.BLOCKED,
            )

    # ===== Phases =====

    def _set_phase(self, builder: Builder, phase: str, state: PhaseState) -> None:
        with self._lock:
            self._results[builder.name].phase_states[phase] = state

    def _run_builder(self, builder: Builder) -> None:
        halted_by = self._halted_by()
        if halted_by is not None:
            self._block(builder, halted_by)
            return
        with self._lock:
            self._results[builder.name].status = BuilderStatus.RUNNING
        logger.debug("Builder %s started", builder.name)

        failure: Optional[PhaseFailure] = None
        awaited = not builder.artifact_dependencies()
        for phase in builder.phases:
            if failure is not None or not builder.phases.is_enabled(phase.name):
                self._set_phase(builder, phase.name, PhaseState.SKIPPED)
                continue
            if not awaited and _needs_classpath(phase):
                awaited = True
                failure = self._await_dependencies(builder, phase.name)
                if failure is not None:
                    self._set_phase(builder, phase.name, PhaseState.FAILED)
                    if self.telemetry:
                        self.telemetry.phase_failed(builder.name, phase.name, failure.message)
                    continue
            failure = self._run_phase(builder, phase)

        with self._lock:
            result = self._results[builder.name]
            result.failure = failure
            result.status = BuilderStatus.FAILED if failure else BuilderStatus.SUCCEEDED
            if failure and self._first_failure is None:
                self._first_failure = builder.name
        logger.debug("Builder %s finished: %s", builder.name, result.status.value)

    def _run_phase(self, builder: Builder, phase: Phase) -> Optional[PhaseFailure]:
        self._set_phase(builder, phase.name, PhaseState.RUNNING)
        if self.telemetry:
            self.telemetry.phase_started(builder.name, phase.name)
        logger.debug("%s: %s", builder.name, phase.name)
        try:
            phase.run_before(builder)
            phase.run(builder)
        except Exception as exc:
            return self._phase_failed(builder, phase, exc)
        self._set_phase(builder, phase.name, PhaseState.DONE)
        if self.telemetry:
            self.telemetry.phase_completed(builder.name, phase.name)

        # After-actions observe a phase that is already DONE.
        try:
            phase.run_after(builder)
        except Exception as exc:
            return self._phase_failed(builder, phase, exc)
        return None

    def _phase_failed(self, builder: Builder, phase: Phase, exc: Exception) -> PhaseFailure:
        logger.error("Builder %s failed in phase %s: %s", builder.name, phase.name, exc)
        self._set_phase(builder, phase.name, PhaseState.FAILED)
        if self.telemetry:
            self.telemetry.phase_failed(builder.name, phase.name, exc)
        return PhaseFailure(builder=builder.name, phase=phase.name, message=str(exc) or type(exc).__name__)

    def _await_dependencies(self, builder: Builder, phase: str) -> Optional[PhaseFailure]:
        wanted = builder.artifact_dependencies()
        logger.debug("Builder %s waiting for %d artifact dependencies", builder.name, len(wanted))
        waited = self.resolver.wait_for_resolution_of(wanted, timeout=self.resolution_timeout)
        if waited.failed:
            missing = [d.to_literal() for d in wanted if d in waited.failed]
            message = "; ".join(f"builder {builder.name} missing dependency {m}" for m in missing)
            logger.error(message)
            return PhaseFailure(
                builder=builder.name,
                phase=phase,
                message=message,
                kind=FailureKind.MISSING_DEPENDENCY,
                missing=missing,
            )
        if waited.timed_out:
            pending = [d.to_literal() for d in waited.pending]
            message = (
                f"builder {builder.name} timed out after {self.resolution_timeout}s "
                f"waiting for {', '.join(pending)}"
            )
            logger.error(message)
            return PhaseFailure(
                builder=builder.name,
                phase=phase,
                message=message,
                kind=FailureKind.RESOLUTION_TIMEOUT,
                missing=pending,
            )
        return None


def _needs_classpath(phase: Phase) -> bool:
    return phase.name == CLASSPATH_PHASE or CLASSPATH_PHASE in phase.depends_on
