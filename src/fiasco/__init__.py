"""Fiasco package root.

Build scripts should import from this package: builders, build base classes,
repositories and the schema types exposed in ``fiasco.schemas``.
"""

__version__ = "0.9.0"

from fiasco.build import BaseBuild, Build, Builder, Phase, PhaseList, Structure  # noqa: F401
from fiasco.repository import LocalRepository, MavenRepository, RemoteRepository  # noqa: F401
from fiasco.runtime import Librarian  # noqa: F401
from fiasco.schemas import *  # noqa: F401,F403
from fiasco.schemas import __all__ as SCHEMA_EXPORTS

__all__ = [
    "__version__",
    "BaseBuild",
    "Build",
    "Builder",
    "Librarian",
    "LocalRepository",
    "MavenRepository",
    "Phase",
    "PhaseList",
    "RemoteRepository",
    "Structure",
] + SCHEMA_EXPORTS
