"""Event schemas."""

from __future__ import annotations

from enum import Enum
from typing import Any, Dict, Optional

from pydantic import Field

from .base import SchemaBase


class EventType(str, Enum):
    BUILD = "build"
    PHASE = "phase"
    RESOLUTION = "resolution"
    REPOSITORY = "repository"
    ERROR = "error"


class Event(SchemaBase):
    event_id: str
    builder: Optional[str] = Field(default=None)
    phase: Optional[str] = Field(default=None)
    type: EventType
    timestamp: Optional[str] = Field(default=None)
    payload: Dict[str, Any]
    metadata: Dict[str, Any] = Field(default_factory=dict)
