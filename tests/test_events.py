from __future__ import annotations

import json
from pathlib import Path

from studio_engine.runs.events import EventWriter


def test_event_writer(tmp_path: Path) -> None:
    path = tmp_path / "events.jsonl"
    writer = EventWriter(path, "session-123")
    writer.emit("prompt_submitted", prompt="add a red hat", history_len=2)
    lines = path.read_text(encoding="utf-8").strip().splitlines()
    assert len(lines) == 1
    payload = json.loads(lines[0])
    assert payload["type"] == "prompt_submitted"
    assert payload["session_id"] == "session-123"
    assert "ts" in payload
    assert payload["prompt"] == "add a red hat"
    assert payload["history_len"] == 2


def test_event_writer_omits_image_payloads(tmp_path: Path) -> None:
    path = tmp_path / "nested" / "events.jsonl"
    writer = EventWriter(path, "session-1")
    event = writer.emit(
        "turn_succeeded",
        imageBase64="aGVsbG8=",
        request={"prompt": "x", "baseImage": "aGVsbG8="},
        mime_type="image/png",
    )
    assert event["imageBase64"] == "<omitted>"
    assert event["request"] == {"prompt": "x", "baseImage": "<omitted>"}
    assert event["mime_type"] == "image/png"
    assert json.loads(path.read_text(encoding="utf-8"))["type"] == "turn_succeeded"


def test_event_writer_appends(tmp_path: Path) -> None:
    path = tmp_path / "events.jsonl"
    writer = EventWriter(path, "s")
    writer.emit("session_started")
    writer.emit("reference_cleared")
    types = [json.loads(line)["type"] for line in path.read_text(encoding="utf-8").splitlines()]
    assert types == ["session_started", "reference_cleared"]
