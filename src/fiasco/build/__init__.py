"""Builders, phases and build scripts."""

from .build import BaseBuild, Build
from .builder import Builder
from .phases import Phase, PhaseList, standard_phases
from .structure import Structure

__all__ = ["BaseBuild", "Build", "Builder", "Phase", "PhaseList", "Structure", "standard_phases"]
