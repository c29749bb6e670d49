"""Telemetry/event bus for builds."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Callable, Dict, List, Optional
from zoneinfo import ZoneInfo
import logging
import threading
import time

from fiasco.schemas.event import Event, EventType

logger = logging.getLogger(__name__)

Listener = Callable[[Event], None]


def _now_iso() -> str:
    """Generate ISO-8601 timestamp."""
    return datetime.now(ZoneInfo("UTC")).isoformat()


@dataclass
class BuildTelemetry:
    events: List[Event] = field(default_factory=list)
    listeners: List[Listener] = field(default_factory=list)
    strict: bool = False

    def __post_init__(self):
        """Initialize start time tracking dicts."""
        self._lock = threading.Lock()
        self._build_start_times: dict[str, float] = {}
        self._phase_start_times: dict[str, float] = {}

    def subscribe(self, listener: Listener) -> None:
        self.listeners.append(listener)

    def emit(self, event: Event) -> None:
        """Record an event and hand it to every listener.

        Builders run on several threads, so recording is serialized. A failing
        listener is logged and skipped unless ``strict`` is set.

        Args:
            event: Event to emit
        """
        with self._lock:
            self.events.append(event)
        for listener in list(self.listeners):
            try:
                listener(event)
            except Exception:
                if self.strict:
                    raise
                logger.exception("Telemetry listener failed on %s", event.event_id)

    def _event_id(self, name: str) -> str:
        with self._lock:
            return f"{name}-{len(self.events)}"

    def events_of(self, name: str) -> List[Event]:
        """Recorded events whose payload ``event`` field equals ``name``."""
        with self._lock:
            return [e for e in self.events if e.payload.get("event") == name]

    # Build Events
    def build_started(self, builder: str, builders: List[str]) -> None:
        self._build_start_times[builder] = time.time()
        self.emit(Event(
            event_id=self._event_id("build_started"),
            builder=builder,
            type=EventType.BUILD,
            timestamp=_now_iso(),
            payload={"event": "build_started", "builders": builders},
        ))

    def build_completed(self, builder: str, succeeded: bool, summary: Dict[str, Any]) -> None:
        """Emit build completed event with the total duration."""
        payload: Dict[str, Any] = {"event": "build_completed", "succeeded": succeeded, "summary": summary}
        started = self._build_start_times.pop(builder, None)
        if started is not None:
            payload["duration_ms"] = (time.time() - started) * 1000
        self.emit(Event(
            event_id=self._event_id("build_completed"),
            builder=builder,
            type=EventType.BUILD,
            timestamp=_now_iso(),
            payload=payload,
        ))

    # Phase Events
    def phase_started(self, builder: str, phase: str) -> None:
        with self._lock:
            self._phase_start_times[f"{builder}:{phase}"] = time.time()
        self.emit(Event(
            event_id=self._event_id("phase_started"),
            builder=builder,
            phase=phase,
            type=EventType.PHASE,
            timestamp=_now_iso(),
            payload={"event": "phase_started"},
        ))

    def phase_completed(self, builder: str, phase: str) -> None:
        self.emit(Event(
            event_id=self._event_id("phase_completed"),
            builder=builder,
            phase=phase,
            type=EventType.PHASE,
            timestamp=_now_iso(),
            payload={"event": "phase_completed", **self._duration(builder, phase)},
        ))

    def phase_failed(self, builder: str, phase: str, error: Any) -> None:
        self.emit(Event(
            event_id=self._event_id("phase_failed"),
            builder=builder,
            phase=phase,
            type=EventType.ERROR,
            timestamp=_now_iso(),
            payload={"event": "phase_failed", "error": str(error), **self._duration(builder, phase)},
        ))

    def _duration(self, builder: str, phase: str) -> Dict[str, float]:
        with self._lock:
            started = self._phase_start_times.pop(f"{builder}:{phase}", None)
        if started is None:
            return {}
        return {"duration_ms": (time.time() - started) * 1000}

    # Resolution Events
    def artifact_resolved(self, descriptor: str, repository: Optional[str]) -> None:
        self.emit(Event(
            event_id=self._event_id("artifact_resolved"),
            type=EventType.RESOLUTION,
            timestamp=_now_iso(),
            payload={"event": "artifact_resolved", "descriptor": descriptor, "repository": repository},
        ))

    def artifact_failed(self, descriptor: str, reason: str) -> None:
        self.emit(Event(
            event_id=self._event_id("artifact_failed"),
            type=EventType.ERROR,
            timestamp=_now_iso(),
            payload={"event": "artifact_failed", "descriptor": descriptor, "reason": reason},
        ))
