"""Failure records carried in build reports."""

from __future__ import annotations

from enum import Enum
from typing import Any, Dict, List, Optional

from pydantic import Field

from .base import SchemaBase, Severity
from .phase import BuilderStatus, PhaseState


class FailureKind(str, Enum):
    ACTION = "action"
    MISSING_DEPENDENCY = "missing_dependency"
    RESOLUTION_TIMEOUT = "resolution_timeout"
    BLOCKED = "blocked"


class BuildErrorCode(str, Enum):
    CONFIG = "config"
    VALIDATION = "validation"
    REPOSITORY = "repository"
    PROTOCOL = "protocol"
    UNKNOWN = "unknown"


class BuildErrorSource(str, Enum):
    CONFIG_LOADER = "config_loader"
    RESOLVER = "resolver"
    EXECUTOR = "executor"
    SERVER = "server"
    CLI = "cli"


class ResolutionFailure(SchemaBase):
    descriptor: str
    reason: str
    repositories_tried: List[str] = Field(default_factory=list)


class PhaseFailure(SchemaBase):
    builder: str
    phase: str
    message: str
    kind: FailureKind = Field(default=FailureKind.ACTION)
    missing: List[str] = Field(default_factory=list)

    def describe(self) -> str:
        return f"{self.builder}: {self.phase} failed: {self.message}"


class BuilderResult(SchemaBase):
    builder: str
    status: BuilderStatus = Field(default=BuilderStatus.PENDING)
    phase_states: Dict[str, PhaseState] = Field(default_factory=dict)
    failure: Optional[PhaseFailure] = Field(default=None)
    blocked_by: Optional[str] = Field(default=None)

    @property
    def succeeded(self) -> bool:
        return self.status == BuilderStatus.SUCCEEDED


class BuildError(SchemaBase):
    error_id: str
    code: BuildErrorCode
    message: str
    source: BuildErrorSource
    severity: Severity = Field(default=Severity.ERROR)
    details: Optional[Dict[str, Any]] = Field(default=None)
