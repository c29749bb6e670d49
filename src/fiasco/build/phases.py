"""Build phases and ordered phase lists.

A phase is a named step with three action lists (before, during, after).
A :class:`PhaseList` orders phases and tracks which are enabled; enabling a
phase also enables every phase it depends on. Both are immutable: every
mutator returns a new value.
"""

from __future__ import annotations

from dataclasses import dataclass, replace
from typing import TYPE_CHECKING, Callable, FrozenSet, Iterator, List, Optional, Tuple

from fiasco.schemas.phase import PhaseName

if TYPE_CHECKING:
    from fiasco.build.builder import Builder

BuildAction = Callable[["Builder"], None]

ALWAYS_ENABLED = (PhaseName.START.value, PhaseName.END.value)


def _name(phase: "Phase | PhaseName | str") -> str:
    if isinstance(phase, Phase):
        return phase.name
    if isinstance(phase, PhaseName):
        return phase.value
    return str(phase)


@dataclass(frozen=True)
class Phase:
    name: str
    depends_on: Tuple[str, ...] = ()
    before: Tuple[BuildAction, ...] = ()
    during: Tuple[BuildAction, ...] = ()
    after: Tuple[BuildAction, ...] = ()
    description: str = ""

    def __str__(self) -> str:
        return self.name

    def with_action_before(self, action: BuildAction) -> "Phase":
        return replace(self, before=self.before + (action,))

    def with_action(self, action: BuildAction) -> "Phase":
        return replace(self, during=self.during + (action,))

    def with_action_after(self, action: BuildAction) -> "Phase":
        return replace(self, after=self.after + (action,))

    def without_actions(self) -> "Phase":
        return replace(self, before=(), during=(), after=())

    def has_actions(self) -> bool:
        return bool(self.before or self.during or self.after)

    def run_before(self, builder: Builder) -> None:
        for action in self.before:
            action(builder)

    def run(self, builder: Builder) -> None:
        for action in self.during:
            action(builder)

    def run_after(self, builder: Builder) -> None:
        for action in self.after:
            action(builder)


@dataclass(frozen=True)
class PhaseList:
    phases: Tuple[Phase, ...] = ()
    enabled: FrozenSet[str] = frozenset()

    def __iter__(self) -> Iterator[Phase]:
        return iter(self.phases)

    def __len__(self) -> int:
        return len(self.phases)

    def __contains__(self, phase: object) -> bool:
        return self.phase(_name(phase)) is not None

    def names(self) -> List[str]:
        return [phase.name for phase in self.phases]

    def phase(self, name: "PhaseName | str") -> Optional[Phase]:
        name = _name(name)
        for phase in self.phases:
            if phase.name == name:
                return phase
        return None

    def require(self, name: "PhaseName | str") -> Phase:
        phase = self.phase(name)
        if phase is None:
            raise KeyError(f"No phase named '{_name(name)}'")
        return phase

    def _index(self, name: "PhaseName | str") -> int:
        return self.phases.index(self.require(name))

    def add(self, phase: Phase) -> "PhaseList":
        if self.phase(phase.name) is not None:
            raise ValueError(f"Phase with name '{phase.name}' already exists")
        return replace(self, phases=self.phases + (phase,))

    def add_phase_before(self, name: "PhaseName | str", phase: Phase) -> "PhaseList":
        at = self._index(name)
        return replace(self, phases=self.phases[:at] + (phase,) + self.phases[at:])

    def add_phase_after(self, name: "PhaseName | str", phase: Phase) -> "PhaseList":
        at = self._index(name) + 1
        return replace(self, phases=self.phases[:at] + (phase,) + self.phases[at:])

    def replace_phase(self, name: "PhaseName | str", phase: Phase) -> "PhaseList":
        at = self._index(name)
        enabled = self.enabled
        if self.phases[at].name in enabled and phase.name != self.phases[at].name:
            enabled = (enabled - {self.phases[at].name}) | {phase.name}
        return replace(self, phases=self.phases[:at] + (phase,) + self.phases[at + 1:], enabled=enabled)

    def updated(self, name: "PhaseName | str", update: Callable[[Phase], Phase]) -> "PhaseList":
        """Replace a phase with ``update(phase)``."""
        return self.replace_phase(name, update(self.require(name)))

    def enable(self, name: "PhaseName | str") -> "PhaseList":
        """Enable a phase and, transitively, every phase it depends on."""
        names = set(self.enabled)
        pending = [self.require(name).name]
        while pending:
            current = pending.pop()
            if current in names:
                continue
            names.add(current)
            pending.extend(self.require(current).depends_on)
        return replace(self, enabled=frozenset(names))

    def disable(self, name: "PhaseName | str") -> "PhaseList":
        """Disable one phase. Its dependencies stay enabled; start and end cannot be disabled."""
        name = self.require(name).name
        if name in ALWAYS_ENABLED:
            return self
        return replace(self, enabled=self.enabled - {name})

    def is_enabled(self, name: "PhaseName | str") -> bool:
        return _name(name) in self.enabled

    def enabled_phases(self) -> List[Phase]:
        return [phase for phase in self.phases if phase.name in self.enabled]


def _standard(name: PhaseName, *depends_on: PhaseName, description: str = "") -> Phase:
    return Phase(name=name.value, depends_on=tuple(d.value for d in depends_on), description=description)


def standard_phases() -> PhaseList:
    """The standard pipeline; only ``start`` and ``end`` are enabled."""
    prepare, compile_, test = PhaseName.PREPARE, PhaseName.COMPILE, PhaseName.TEST
    document, package = PhaseName.DOCUMENT, PhaseName.PACKAGE
    phases = PhaseList(phases=(
        _standard(PhaseName.START, description="Start of the build"),
        _standard(PhaseName.CLEAN, description="Remove build output"),
        _standard(prepare, description="Copy resources into place"),
        _standard(compile_, prepare, description="Compile sources"),
        _standard(test, prepare, compile_, description="Run unit tests"),
        _standard(document, prepare, compile_, description="Build documentation"),
        _standard(package, prepare, compile_, test, document, description="Build packages"),
        _standard(PhaseName.INTEGRATION_TEST, prepare, compile_, test, document, package,
                  description="Run integration tests"),
        _standard(PhaseName.INSTALL, prepare, compile_, test, document, package, PhaseName.INTEGRATION_TEST,
                  description="Install packages into the local repository").with_action(_install_package),
        _standard(PhaseName.DEPLOY_PACKAGES, prepare, compile_, test, document, package, PhaseName.INSTALL,
                  description="Deploy packages to remote repositories"),
        _standard(PhaseName.DEPLOY_DOCUMENTATION, prepare, compile_, document,
                  description="Deploy documentation"),
        _standard(PhaseName.END, description="End of the build"),
    ))
    for name in ALWAYS_ENABLED:
        phases = phases.enable(name)
    return phases


def _install_package(builder: Builder) -> None:
    builder.install_package()
