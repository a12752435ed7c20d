"""Tests for the command-line helpers."""

from __future__ import annotations

import json
from pathlib import Path

import pytest

from pagepilot.ai.orchestration.event_log import BrowserEvent, EventRecorder, EventType
from pagepilot.ai.services.model_limits import ModelLimit, ModelLimitsService
from pagepilot.scripts import model_limits, tail_events


def _seed_log(path: Path) -> None:
    recorder = EventRecorder(path)
    recorder.record(BrowserEvent(type=EventType.PAGE_LOAD, url="https://a.test", title="A"))
    recorder.log_tool_call("getTabs", "{}")
    recorder.log_tool_result("getTabs", '{"error": "x"}', duration=0.1, error="x")
    recorder.log_tool_result("getLinks", "[]", duration=0.2)


def test_tail_events_filters_errors(tmp_path: Path, capsys: pytest.CaptureFixture[str]) -> None:
    log = tmp_path / "events.jsonl"
    _seed_log(log)

    assert tail_events.main(["--log", str(log), "--errors", "--json"]) == 0

    lines = capsys.readouterr().out.strip().splitlines()
    assert len(lines) == 1
    assert json.loads(lines[0])["details"]["toolName"] == "getTabs"


def test_tail_events_by_type_and_count(tmp_path: Path, capsys: pytest.CaptureFixture[str]) -> None:
    log = tmp_path / "events.jsonl"
    _seed_log(log)

    assert tail_events.main(["--log", str(log), "--type", "tool-result", "-n", "1"]) == 0

    output = capsys.readouterr().out.strip().splitlines()
    assert len(output) == 1
    assert "[Tool Result] getLinks" in output[0]


def test_tail_events_rejects_unknown_type(tmp_path: Path) -> None:
    log = tmp_path / "events.jsonl"
    _seed_log(log)

    assert tail_events.main(["--log", str(log), "--type", "teleport"]) == 2


def test_tail_events_missing_log(tmp_path: Path) -> None:
    assert tail_events.main(["--log", str(tmp_path / "absent.jsonl")]) == 1


def test_model_limits_lookup(tmp_path: Path, capsys: pytest.CaptureFixture[str]) -> None:
    cache = tmp_path / "models.json"
    service = ModelLimitsService(cache)
    service.set_models({"gpt-4o-mini": ModelLimit(128_000, 16_384)})
    service.save_cache()

    assert model_limits.main(["gpt-4o-mini-2024-07-18", "--cache", str(cache), "--refresh", "never"]) == 0
    assert "128000" in capsys.readouterr().out

    assert model_limits.main(["mystery-model", "--cache", str(cache), "--refresh", "never"]) == 3
