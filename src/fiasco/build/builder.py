"""Builders: one buildable unit of a project.

A builder names the artifact it produces, the artifacts and child builders it
depends on, its folder structure and its phase pipeline. Builders are
immutable; every ``with_*`` method returns a modified copy, so a build script
can derive many builders from one template.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field, replace
from pathlib import Path
from typing import TYPE_CHECKING, Iterable, List, Optional, Sequence, Tuple, Union

from fiasco.exceptions import DescriptorParseError, PhaseError
from fiasco.schemas.artifact import Artifact, Library
from fiasco.schemas.content import ArtifactContent
from fiasco.schemas.descriptor import ArtifactDescriptor, ArtifactType
from fiasco.schemas.phase import PhaseName
from fiasco.schemas.protocol import InstallationResult

from .phases import BuildAction, Phase, PhaseList, standard_phases
from .structure import Structure

if TYPE_CHECKING:
    from fiasco.runtime.executor import BuildReport
    from fiasco.runtime.librarian import Librarian

logger = logging.getLogger(__name__)

PhaseRef = Union[Phase, PhaseName, str]
Dependency = Union["Builder", Artifact, ArtifactDescriptor, str]


def _phase_name(phase: PhaseRef) -> str:
    if isinstance(phase, Phase):
        return phase.name
    if isinstance(phase, PhaseName):
        return phase.value
    return phase


@dataclass(frozen=True, eq=False)
class Builder:
    """A named build unit with artifact and builder dependencies."""

    name: str
    descriptor: Optional[ArtifactDescriptor] = None
    structure: Structure = field(default_factory=Structure)
    phases: PhaseList = field(default_factory=standard_phases)
    dependencies: Tuple[ArtifactDescriptor, ...] = ()
    builders: Tuple["Builder", ...] = ()
    librarian: Optional["Librarian"] = None
    description: str = ""

    def __repr__(self) -> str:
        return f"Builder({self.name!r})"

    def __str__(self) -> str:
        return self.name

    # ===== Dependencies =====

    def depends_on(self, *dependencies: Dependency | Iterable[Dependency]) -> "Builder":
        """Add artifact dependencies (descriptors, artifacts, literals) and child builders."""
        descriptors = list(self.dependencies)
        builders = list(self.builders)
        for dependency in _flatten(dependencies):
            if isinstance(dependency, Builder):
                if all(b.name != dependency.name for b in builders):
                    builders.append(dependency)
            else:
                descriptor = _artifact_descriptor(dependency)
                if descriptor not in descriptors:
                    descriptors.append(descriptor)
        return replace(self, dependencies=tuple(descriptors), builders=tuple(builders))

    def with_no_dependencies(self) -> "Builder":
        return replace(self, dependencies=(), builders=())

    def artifact_dependencies(self) -> List[ArtifactDescriptor]:
        return list(self.dependencies)

    def builder_dependencies(self) -> List["Builder"]:
        return list(self.builders)

    def builder(self, query: str) -> "Builder":
        """Find this builder or a descendant by name or descriptor query."""
        for candidate in self._all_builders():
            if candidate.name == query:
                return candidate
        try:
            descriptor_query = ArtifactDescriptor.query_of(query)
        except DescriptorParseError:
            descriptor_query = None
        if descriptor_query is not None:
            for candidate in self._all_builders():
                if candidate.descriptor is not None and descriptor_query.matches(candidate.descriptor):
                    return candidate
        raise KeyError(f"No builder matching '{query}' under {self.name}")

    def _all_builders(self) -> List["Builder"]:
        seen, stack, found = set(), [self], []
        while stack:
            current = stack.pop(0)
            if current.name in seen:
                continue
            seen.add(current.name)
            found.append(current)
            stack.extend(current.builders)
        return found

    # ===== Identity and structure =====

    def with_name(self, name: str) -> "Builder":
        return replace(self, name=name)

    def with_description(self, description: str) -> "Builder":
        return replace(self, description=description)

    def with_artifact_descriptor(self, descriptor: ArtifactDescriptor | str) -> "Builder":
        if isinstance(descriptor, str):
            descriptor = ArtifactDescriptor.parse(descriptor)
        if descriptor.type is None:
            descriptor = descriptor.with_type(ArtifactType.LIBRARY)
        return replace(self, descriptor=descriptor)

    def _descriptor(self) -> ArtifactDescriptor:
        return self.descriptor or ArtifactDescriptor(type=ArtifactType.LIBRARY, name=self.name)

    def with_artifact_name(self, name: str) -> "Builder":
        return replace(self, descriptor=self._descriptor().with_name(name))

    def with_artifact_group(self, group: str) -> "Builder":
        return replace(self, descriptor=self._descriptor().with_group(group))

    def with_artifact_version(self, version: str) -> "Builder":
        return replace(self, descriptor=self._descriptor().with_version(version))

    def with_root_folder(self, root: Path | str) -> "Builder":
        return replace(self, structure=self.structure.with_root(root))

    @property
    def root_folder(self) -> Path:
        return self.structure.root

    def derive_builder(self, path: str) -> "Builder":
        """A copy rooted at ``root/path`` named after the last path segment, without dependencies."""
        name = Path(path).name
        derived = replace(
            self,
            name=name,
            structure=self.structure.child(path),
            dependencies=(),
            builders=(),
        )
        if self.descriptor is not None:
            derived = derived.with_artifact_name(name)
        return derived

    # ===== Librarian =====

    def with_librarian(self, librarian: "Librarian") -> "Builder":
        return replace(self, librarian=librarian)

    def with_pinned_version(self, query: Artifact | ArtifactDescriptor | str, version: str) -> "Builder":
        from fiasco.runtime.librarian import Librarian

        librarian = self.librarian or Librarian()
        if not isinstance(query, str):
            query = ArtifactDescriptor.coerce(query)
        return replace(self, librarian=librarian.with_pinned_version(query, version))

    # ===== Phases =====

    def with_phases(self, phases: PhaseList) -> "Builder":
        return replace(self, phases=phases)

    def with_enabled(self, phase: PhaseRef) -> "Builder":
        return replace(self, phases=self.phases.enable(_phase_name(phase)))

    def with_disabled(self, phase: PhaseRef) -> "Builder":
        return replace(self, phases=self.phases.disable(_phase_name(phase)))

    def is_enabled(self, phase: PhaseRef) -> bool:
        return self.phases.is_enabled(_phase_name(phase))

    def with_action_before_phase(self, phase: PhaseRef, action: BuildAction) -> "Builder":
        return replace(self, phases=self.phases.updated(_phase_name(phase), lambda p: p.with_action_before(action)))

    def with_action_during_phase(self, phase: PhaseRef, action: BuildAction) -> "Builder":
        return replace(self, phases=self.phases.updated(_phase_name(phase), lambda p: p.with_action(action)))

    def with_action_after_phase(self, phase: PhaseRef, action: BuildAction) -> "Builder":
        return replace(self, phases=self.phases.updated(_phase_name(phase), lambda p: p.with_action_after(action)))

    def without_actions(self, phase: PhaseRef) -> "Builder":
        return replace(self, phases=self.phases.updated(_phase_name(phase), lambda p: p.without_actions()))

    def with_parsed_command_line(self, arguments: Sequence[str]) -> "Builder":
        """Apply phase toggles such as ``["compile", "-test"]``.

        A phase name enables that phase and the phases it depends on. A name
        preceded by a dash disables just that phase. Toggles apply in order.

        Raises:
            KeyError: For an unknown phase name.
        """
        builder = self
        for argument in arguments:
            argument = argument.strip()
            if not argument:
                continue
            if argument.startswith("-"):
                builder = builder.with_disabled(argument[1:])
            else:
                builder = builder.with_enabled(argument)
        return builder

    # ===== Packaging =====

    @property
    def package_file(self) -> Path:
        descriptor = self._descriptor()
        suffix = f"-{descriptor.version}" if descriptor.version else ""
        return self.structure.target_folder / f"{descriptor.name}{suffix}.jar"

    def package_artifact(self) -> Optional[Artifact]:
        """The artifact this builder produced, if its package file exists."""
        if self.descriptor is None or not self.package_file.exists():
            return None
        content = ArtifactContent.from_path(self.package_file)
        return Library(self.descriptor).with_content(content).with_dependencies(self.dependencies)

    def install_package(self) -> None:
        """Install the package artifact into the librarian's install repository, when both exist.

        Raises:
            PhaseError: If the repository reports a failed installation.
        """
        artifact = self.package_artifact()
        if artifact is None or self.librarian is None or self.librarian.install_to is None:
            logger.debug("%s: nothing to install", self.name)
            return
        result = self.librarian.install(artifact)
        if result == InstallationResult.FAILED:
            raise PhaseError(self.name, PhaseName.INSTALL.value, f"unable to install {artifact}")

    # ===== Running =====

    def build(self, threads: int = 1, **options) -> "BuildReport":
        """Run this builder and its builder dependencies."""
        from fiasco.runtime.executor import BuildExecutor

        return BuildExecutor(self, threads=threads, **options).run()


def _flatten(values) -> List[Dependency]:
    flattened: List[Dependency] = []
    for value in values:
        if isinstance(value, (Builder, Artifact, ArtifactDescriptor, str)):
            flattened.append(value)
        else:
            flattened.extend(_flatten(value))
    return flattened


def _artifact_descriptor(value: Artifact | ArtifactDescriptor | str) -> ArtifactDescriptor:
    if isinstance(value, str):
        return ArtifactDescriptor.parse(value)
    return ArtifactDescriptor.coerce(value)
