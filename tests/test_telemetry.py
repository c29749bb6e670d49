import logging

import pytest

from fiasco.schemas import EventType
from fiasco.telemetry import BuildTelemetry


def test_phase_events_carry_duration() -> None:
    telemetry = BuildTelemetry()
    telemetry.phase_started("app", "compile")
    telemetry.phase_completed("app", "compile")
    telemetry.phase_failed("app", "test", RuntimeError("3 tests failed"))

    started, completed, failed = telemetry.events
    assert started.type == EventType.PHASE and started.phase == "compile"
    assert completed.payload["duration_ms"] >= 0
    assert failed.type == EventType.ERROR
    assert failed.payload["error"] == "3 tests failed"
    assert "duration_ms" not in failed.payload
    assert len({e.event_id for e in telemetry.events}) == 3


def test_listeners_receive_events() -> None:
    seen = []
    telemetry = BuildTelemetry()
    telemetry.subscribe(seen.append)
    telemetry.artifact_resolved("library:g:a:1", "local")
    telemetry.artifact_failed(":g:b:1", "not found in any repository")
    assert [e.payload["event"] for e in seen] == ["artifact_resolved", "artifact_failed"]
    assert telemetry.events_of("artifact_failed")[0].payload["descriptor"] == ":g:b:1"


def test_failing_listener_is_logged(caplog) -> None:
    def broken(event):
        raise ValueError("listener bug")

    telemetry = BuildTelemetry(listeners=[broken])
    with caplog.at_level(logging.ERROR, logger="fiasco.telemetry"):
        telemetry.build_started("app", ["app"])
    assert len(telemetry.events) == 1
    assert "Telemetry listener failed" in caplog.text


def test_strict_telemetry_raises() -> None:
    def broken(event):
        raise ValueError("listener bug")

    telemetry = BuildTelemetry(listeners=[broken], strict=True)
    with pytest.raises(ValueError):
        telemetry.build_completed("app", True, {})
