"""Fiasco wire protocol envelopes.

Artifacts travel as the type-tagged JSON produced by
:mod:`fiasco.repository.codec`; these envelopes only carry them.
"""

from __future__ import annotations

from enum import Enum
from typing import Any, Dict, List, Optional

from pydantic import Field

from .base import SchemaBase

API_VERSION = "0.9"
API_PREFIX = f"/v{API_VERSION}"
RESOLVE_ARTIFACTS_PATH = f"{API_PREFIX}/resolve-artifacts"
INSTALL_ARTIFACT_PATH = f"{API_PREFIX}/install-artifact"
HEALTH_PATH = "/healthz"
FRAME_MEDIA_TYPE = "application/x-fiasco-frame"


class InstallationResult(str, Enum):
    INSTALLED = "INSTALLED"
    ALREADY_PRESENT = "ALREADY_PRESENT"
    FAILED = "FAILED"


class ResolveArtifactRequest(SchemaBase):
    descriptors: List[str] = Field(default_factory=list)


class ResolveArtifactResponse(SchemaBase):
    artifacts: List[Dict[str, Any]] = Field(default_factory=list)


class InstallArtifactRequest(SchemaBase):
    artifact: Dict[str, Any]


class InstallArtifactResponse(SchemaBase):
    result: InstallationResult
    message: Optional[str] = Field(default=None)


class HealthResponse(SchemaBase):
    status: str = "ok"
    api_version: str = API_VERSION
    repository: Optional[str] = None
