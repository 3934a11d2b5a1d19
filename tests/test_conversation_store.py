from __future__ import annotations

import base64
import json
import threading
import time
from pathlib import Path
from typing import Any, Mapping

import pytest
from PIL import Image

from studio_engine.relay.result import RelayResult
from studio_engine.runs.events import EventWriter
from studio_engine.session.state import ImageValidationError
from studio_engine.session.store import FAILURE, IN_FLIGHT, SUCCESS, ConversationStore


class _GatedClient:
    def __init__(self, result: RelayResult) -> None:
        self.result = result
        self.gate = threading.Event()
        self.requests: list[dict[str, Any]] = []

    def send(self, request: Mapping[str, Any]) -> RelayResult:
        self.requests.append(dict(request))
        self.gate.wait(5)
        return self.result


class _RaisingClient:
    def send(self, request: Mapping[str, Any]) -> RelayResult:
        raise ConnectionError("socket closed")


def _ok(image: str = "aW1n") -> RelayResult:
    return RelayResult(ok=True, status=200, image_base64=image, mime_type="image/png", text="Done.", model="m")


def _write_png(path: Path, size: tuple[int, int] = (8, 8)) -> Path:
    Image.new("RGB", size, (200, 10, 10)).save(path)
    return path


def test_submit_rejects_second_prompt_while_in_flight() -> None:
    client = _GatedClient(_ok())
    store = ConversationStore(client)
    try:
        task = store.submit("draw a cat")
        assert task is not None
        assert task.status == IN_FLIGHT
        assert store.busy

        assert store.submit("draw a dog") is None

        client.gate.set()
        result = task.wait(5)
        assert result is not None and result.ok
        assert task.status == SUCCESS
        assert not store.busy
        assert [m.content for m in store.state.messages][-2:] == ["draw a cat", "Done."]
        assert len(client.requests) == 1
    finally:
        client.gate.set()
        store.close()


def test_blank_submit_returns_none() -> None:
    store = ConversationStore(_GatedClient(_ok()))
    try:
        assert store.submit("   ") is None
        assert len(store.state.messages) == 1
    finally:
        store.close()


def test_successful_turn_chains_into_next_request() -> None:
    client = _GatedClient(_ok("Y2F0"))
    client.gate.set()
    store = ConversationStore(client)
    try:
        store.submit("draw a cat").wait(5)
        store.submit("add a hat").wait(5)
    finally:
        store.close()

    assert "baseImage" not in client.requests[0]
    assert client.requests[1]["baseImage"] == "Y2F0"
    assert client.requests[1]["baseImageMimeType"] == "image/png"


def test_client_exception_becomes_failed_turn() -> None:
    store = ConversationStore(_RaisingClient())
    try:
        task = store.submit("draw")
        result = task.wait(5)
    finally:
        store.close()

    assert result is not None and not result.ok
    assert task.status == FAILURE
    assert store.state.messages[-1].content == "⚠️ socket closed"
    assert store.state.error == "socket closed"
    assert not store.state.busy


def test_upload_file_sets_canvas(tmp_path: Path) -> None:
    image_path = _write_png(tmp_path / "photo.png")
    store = ConversationStore(_GatedClient(_ok()))
    try:
        state = store.upload_file(image_path)
    finally:
        store.close()

    assert state.canvas is not None
    assert state.canvas.mime_type == "image/png"
    assert base64.b64decode(state.canvas.base64) == image_path.read_bytes()
    assert state.use_reference
    assert state.messages[-1].content.startswith('Loaded "photo.png"')


def test_upload_file_rejects_non_images(tmp_path: Path) -> None:
    notes = tmp_path / "notes.txt"
    notes.write_text("hello", encoding="utf-8")
    fake_png = tmp_path / "broken.png"
    fake_png.write_bytes(b"not really a png")
    store = ConversationStore(_GatedClient(_ok()))
    try:
        with pytest.raises(ImageValidationError):
            store.upload_file(notes)
        with pytest.raises(ImageValidationError):
            store.upload_file(fake_png)
        assert store.state.canvas is None
    finally:
        store.close()


def test_save_canvas_writes_bytes(tmp_path: Path) -> None:
    store = ConversationStore(_GatedClient(_ok()))
    try:
        with pytest.raises(ValueError):
            store.save_canvas(tmp_path / "none.png")
        store.upload_file(_write_png(tmp_path / "in.png"))
        out = store.save_canvas(tmp_path / "out" / "canvas.png")
    finally:
        store.close()
    assert out.read_bytes() == (tmp_path / "in.png").read_bytes()


def test_reference_controls_and_model_change(tmp_path: Path) -> None:
    store = ConversationStore(_GatedClient(_ok()))
    try:
        assert store.set_reference_flag(True).use_reference is False
        store.upload_file(_write_png(tmp_path / "in.png"))
        assert store.set_reference_flag(False).use_reference is False
        assert store.clear_reference().canvas is None
        assert store.set_model("gemini-3.0-pro-preview").model == "gemini-3.0-pro-preview"
        with pytest.raises(ValueError):
            store.set_model("unknown")
    finally:
        store.close()


def test_store_emits_session_events(tmp_path: Path) -> None:
    events_path = tmp_path / "events.jsonl"
    client = _GatedClient(_ok())
    client.gate.set()
    store = ConversationStore(client, events=EventWriter(events_path, "session-1"))
    try:
        store.submit("draw").wait(5)
        store.submit("  ")
        store.clear_reference()
    finally:
        store.close()

    events = [json.loads(line) for line in events_path.read_text(encoding="utf-8").splitlines()]
    types = [event["type"] for event in events]
    assert types == ["session_started", "prompt_submitted", "turn_succeeded", "prompt_rejected", "reference_cleared"]
    assert all(event["session_id"] == "session-1" for event in events)
    assert events[3]["reason"] == "empty"


def test_on_change_sees_each_transition() -> None:
    seen: list[bool] = []
    client = _GatedClient(_ok())
    store = ConversationStore(client, on_change=lambda state: seen.append(state.busy))
    try:
        task = store.submit("draw")
        client.gate.set()
        task.wait(5)
    finally:
        store.close()
    assert seen == [True, False]


def test_failing_change_callback_still_resolves_turn() -> None:
    def on_change(state) -> None:
        if not state.busy:
            raise RuntimeError("listener broke")

    client = _GatedClient(_ok())
    store = ConversationStore(client, on_change=on_change)
    try:
        task = store.submit("draw")
        client.gate.set()
        result = task.wait(5)
        assert task.done()
        assert result is not None and result.ok
        assert not store.busy
        assert store.submit("again") is not None
    finally:
        store.close()


def test_unwritable_events_file_still_resolves_turn(tmp_path: Path) -> None:
    client = _GatedClient(_ok())
    client.gate.set()
    blocker = tmp_path / "blocker"
    blocker.write_text("", encoding="utf-8")
    store = ConversationStore(client)
    store.events = EventWriter(blocker / "events.jsonl", "session-1")
    try:
        with pytest.raises(OSError):
            store.submit("draw")
        task_result = _wait_until_idle(store)
    finally:
        store.close()
    assert task_result
    assert store.state.messages[-1].content == "Done."
    assert store.state.canvas is not None


def _wait_until_idle(store: ConversationStore, timeout_s: float = 5.0) -> bool:
    deadline = time.monotonic() + timeout_s
    while time.monotonic() < deadline:
        if not store.busy:
            return True
        time.sleep(0.01)
    return False
