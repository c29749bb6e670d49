"""Build scripts: the user-facing entry point of a project build.

A project's ``fiasco/build.py`` defines one subclass of :class:`BaseBuild`
and overrides :meth:`BaseBuild.configure` to shape the root builder::

    class ProjectBuild(BaseBuild):
        def configure(self, root):
            utilities = root.derive_builder("utilities").depends_on("org.junit:junit:4.13")
            return root.with_artifact_descriptor("com.example:app:1.0").depends_on(utilities)

The ``fiasco`` command locates that file, instantiates the class and calls
:meth:`BaseBuild.build`.
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Optional, Protocol, Sequence, runtime_checkable

from fiasco.config_loader import repositories_from_settings
from fiasco.exceptions import ConfigError
from fiasco.runtime.dependency_tree import DependencyTree
from fiasco.runtime.executor import BuildExecutor, BuildReport
from fiasco.runtime.librarian import Librarian, default_librarian
from fiasco.runtime.resolver import ArtifactResolver
from fiasco.schemas.settings import BuildSettings
from fiasco.telemetry import BuildTelemetry

from .builder import Builder

logger = logging.getLogger(__name__)


@runtime_checkable
class Build(Protocol):
    """What the command line needs from a build script."""

    def configure(self, root: Builder) -> Builder:
        ...

    def run(self, threads: Optional[int] = None) -> BuildReport:
        ...

    def build(self, thread_count: int) -> BuildReport:
        ...


class BaseBuild:
    """Base class for build scripts.

    Args:
        root_folder: Project root; defaults to the current directory.
        arguments: Phase toggles such as ``["compile", "-test"]``.
        settings: Thread counts, timeouts, repositories and default phases.
        telemetry: Event bus that receives build, phase and resolution events.
    """

    def __init__(
        self,
        root_folder: Path | str | None = None,
        arguments: Sequence[str] = (),
        settings: Optional[BuildSettings] = None,
        telemetry: Optional[BuildTelemetry] = None,
    ) -> None:
        self.root_folder = Path(root_folder) if root_folder is not None else Path.cwd()
        self.arguments = list(arguments)
        self.settings = settings or BuildSettings()
        self.telemetry = telemetry
        self._root: Optional[Builder] = None

    @property
    def name(self) -> str:
        return self.root_folder.resolve().name or "build"

    def configure(self, root: Builder) -> Builder:
        """Shape the root builder. Subclasses override this; the default builds the bare root."""
        return root

    def librarian(self) -> Librarian:
        repositories = repositories_from_settings(self.settings)
        if not repositories:
            return default_librarian()
        return Librarian(repositories, install_to=repositories[0])

    def new_builder(self) -> Builder:
        """A builder rooted at the project folder with settings and command-line phases applied."""
        builder = Builder(name=self.name).with_root_folder(self.root_folder).with_librarian(self.librarian())
        toggles = list(self.settings.enabled_phases)
        toggles += [f"-{name}" for name in self.settings.disabled_phases]
        try:
            builder = builder.with_parsed_command_line(toggles)
        except KeyError as exc:
            raise ConfigError("build settings", exc.args[0]) from exc
        return builder.with_parsed_command_line(self.arguments)

    def root_builder(self) -> Builder:
        """The configured root builder, built once per instance."""
        if self._root is None:
            self._root = self.configure(self.new_builder())
        return self._root

    def dependency_tree(self) -> DependencyTree:
        return DependencyTree(self.root_builder())

    def run(self, threads: Optional[int] = None) -> BuildReport:
        root = self.root_builder()
        settings = self.settings
        resolver = ArtifactResolver(
            root.librarian or self.librarian(),
            threads=settings.resolver_threads,
            max_retries=settings.max_retries,
            retry_backoff=settings.retry_backoff,
            telemetry=self.telemetry,
        )
        with resolver:
            executor = BuildExecutor(
                root,
                resolver=resolver,
                threads=threads or settings.builder_threads,
                resolution_timeout=settings.resolution_timeout,
                fail_fast=settings.fail_fast,
                telemetry=self.telemetry,
            )
            return executor.run()

    def build(self, thread_count: int) -> BuildReport:
        logger.debug("Running build %s with %d threads", type(self).__name__, thread_count)
        return self.run(threads=thread_count)
