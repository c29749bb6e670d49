"""Common schema utilities and base classes."""

from __future__ import annotations

from enum import Enum

from pydantic import BaseModel, ConfigDict


class SchemaBase(BaseModel):
    """Base model with common config for Fiasco schemas."""

    model_config = ConfigDict(populate_by_name=True, str_strip_whitespace=True)


class FrozenSchema(SchemaBase):
    """Immutable, hashable schema value."""

    model_config = ConfigDict(populate_by_name=True, str_strip_whitespace=True, frozen=True)


class Severity(str, Enum):
    INFO = "info"
    WARNING = "warning"
    ERROR = "error"
    CRITICAL = "critical"
