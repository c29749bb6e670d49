"""Configuration loader for Fiasco build settings."""

from __future__ import annotations

import json
import os
from pathlib import Path
from typing import Any, Dict, List, Optional, Tuple

import yaml
from pydantic import ValidationError

from fiasco.repository.base import Repository
from fiasco.schemas.base import Severity
from fiasco.schemas.errors import BuildError, BuildErrorCode, BuildErrorSource
from fiasco.schemas.settings import BuildSettings, RepositoryKind, RepositorySpec
from fiasco.utils.files import read_text_safe

SETTINGS_FILE_NAMES = ("settings.yaml", "settings.yml", "settings.json")


def load_build_settings(path: Optional[Path]) -> Tuple[Optional[BuildSettings], Optional[BuildError]]:
    """Load build settings from a YAML or JSON file.

    A missing path yields default settings. ``$FIASCO_CACHE`` overrides the
    file's ``cache_root``.
    """
    payload, err = _load_file(path)
    if err:
        return None, err
    payload = payload or {}
    if not isinstance(payload, dict):
        return None, _error(f"Settings file {path.name} must contain a mapping")

    override = os.environ.get("FIASCO_CACHE")
    if override:
        payload = {**payload, "cache_root": override}

    try:
        return BuildSettings.model_validate(payload), None
    except ValidationError as exc:
        return None, _error(
            "Build settings validation failed",
            {"errors": exc.errors(include_url=False, include_context=False)},
            code=BuildErrorCode.VALIDATION,
        )


def find_settings_file(folder: Path) -> Optional[Path]:
    """First ``settings.{yaml,yml,json}`` in ``folder``, if any."""
    for name in SETTINGS_FILE_NAMES:
        candidate = folder / name
        if candidate.exists():
            return candidate
    return None


def repositories_from_settings(settings: BuildSettings) -> List[Repository]:
    """Build the look-in chain described by ``settings.repositories``, in order."""
    return [repository_from_spec(spec, settings.cache_root) for spec in settings.repositories]


def repository_from_spec(spec: RepositorySpec, cache_root: Optional[str] = None) -> Repository:
    from fiasco.repository.local import LocalRepository
    from fiasco.repository.maven import MavenRepository
    from fiasco.repository.remote import RemoteRepository

    if spec.type == RepositoryKind.LOCAL:
        return LocalRepository(spec.name, spec.uri)
    if spec.type == RepositoryKind.MAVEN:
        maven_cache = Path(cache_root) / "maven" / spec.name if cache_root else None
        return MavenRepository(spec.name, spec.uri, cache_root=maven_cache)
    return RemoteRepository(spec.name, spec.uri)


def _load_file(path: Optional[Path]):
    if path is None:
        return None, None

    text, read_error = read_text_safe(path)
    if read_error:
        return None, _error(read_error)
    if text is None:
        return None, None
    try:
        if path.suffix.lower() in {".yaml", ".yml"}:
            return yaml.safe_load(text), None
        return json.loads(text), None
    except (yaml.YAMLError, json.JSONDecodeError) as exc:
        return None, _error(f"Failed to parse settings {path.name}", {"error": str(exc)})


def _error(message: str, details: Optional[Dict[str, Any]] = None, code: BuildErrorCode = BuildErrorCode.CONFIG) -> BuildError:
    return BuildError(
        error_id="config_error",
        code=code,
        message=message,
        source=BuildErrorSource.CONFIG_LOADER,
        severity=Severity.ERROR,
        details=details,
    )
