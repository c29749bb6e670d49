"""Build settings schemas."""

from __future__ import annotations

from enum import Enum
from typing import List, Optional

from pydantic import Field, field_validator

from .base import SchemaBase


class RepositoryKind(str, Enum):
    LOCAL = "local"
    MAVEN = "maven"
    REMOTE = "remote"


class RepositorySpec(SchemaBase):
    """Declarative description of one repository in the look-in chain."""

    type: RepositoryKind
    name: str
    uri: str


class BuildSettings(SchemaBase):
    builder_threads: int = Field(default=1, ge=1)
    resolver_threads: int = Field(default=16, ge=1)
    resolution_timeout: Optional[float] = Field(default=None, gt=0)
    max_retries: int = Field(default=0, ge=0)
    retry_backoff: float = Field(default=0.0, ge=0)
    fail_fast: bool = Field(default=False)
    cache_root: Optional[str] = Field(default=None)
    enabled_phases: List[str] = Field(default_factory=list)
    disabled_phases: List[str] = Field(default_factory=list)
    repositories: List[RepositorySpec] = Field(default_factory=list)

    @field_validator("enabled_phases", "disabled_phases")
    @classmethod
    def _strip_phase_names(cls, value: List[str]) -> List[str]:
        return [name.strip() for name in value if name and name.strip()]
