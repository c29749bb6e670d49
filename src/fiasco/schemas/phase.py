"""Phase names and per-builder phase states."""

from __future__ import annotations

from enum import Enum


class PhaseName(str, Enum):
    START = "start"
    CLEAN = "clean"
    PREPARE = "prepare"
    COMPILE = "compile"
    TEST = "test"
    DOCUMENT = "document"
    PACKAGE = "package"
    INTEGRATION_TEST = "integration-test"
    INSTALL = "install"
    DEPLOY_PACKAGES = "deploy-packages"
    DEPLOY_DOCUMENTATION = "deploy-documentation"
    END = "end"


class PhaseState(str, Enum):
    PENDING = "pending"
    RUNNING = "running"
    DONE = "done"
    FAILED = "failed"
    SKIPPED = "skipped"


class BuilderStatus(str, Enum):
    PENDING = "pending"
    RUNNING = "running"
    SUCCEEDED = "succeeded"
    FAILED = "failed"
    BLOCKED = "blocked"
