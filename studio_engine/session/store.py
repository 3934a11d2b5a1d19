"""Runtime conversation store: one in-flight turn at a time."""

from __future__ import annotations

import base64
import logging
import mimetypes
import threading
from concurrent.futures import ThreadPoolExecutor
from dataclasses import replace
from pathlib import Path
from typing import Any, Callable, Mapping

from PIL import Image, UnidentifiedImageError

from ..models.registry import DEFAULT_MODEL, ModelRegistry
from ..relay.result import RelayResult
from ..runs.events import EventWriter
from .client import RelayClient
from .state import (
    ImagePayload,
    ImageValidationError,
    SessionState,
    apply_result,
    clear_reference,
    initial_state,
    set_model,
    set_reference_flag,
    set_reference_image,
    submit_prompt,
)

logger = logging.getLogger(__name__)

IN_FLIGHT = "in_flight"
SUCCESS = "success"
FAILURE = "failure"


class TurnTask:
    """Handle for a submitted turn; resolves once the store has applied the reply."""

    def __init__(self, request: Mapping[str, Any]) -> None:
        self.request = dict(request)
        self.result: RelayResult | None = None
        self._done = threading.Event()

    @property
    def status(self) -> str:
        if self.result is None:
            return IN_FLIGHT
        return SUCCESS if self.result.ok else FAILURE

    def done(self) -> bool:
        return self._done.is_set()

    def wait(self, timeout: float | None = None) -> RelayResult | None:
        self._done.wait(timeout)
        return self.result

    def _resolve(self, result: RelayResult) -> None:
        self.result = result
        self._done.set()


class ConversationStore:
    def __init__(
        self,
        client: RelayClient,
        *,
        model: str = DEFAULT_MODEL,
        events: EventWriter | None = None,
        registry: ModelRegistry | None = None,
        state: SessionState | None = None,
        on_change: Callable[[SessionState], None] | None = None,
    ) -> None:
        self.client = client
        self.events = events
        self.registry = registry or ModelRegistry()
        self.on_change = on_change
        self._lock = threading.Lock()
        self._state = state or initial_state(model)
        self._executor = ThreadPoolExecutor(max_workers=1, thread_name_prefix="studio-turn")
        self._emit("session_started", model=self._state.model)

    @property
    def state(self) -> SessionState:
        with self._lock:
            return self._state

    @property
    def busy(self) -> bool:
        return self.state.busy

    def submit(self, text: str) -> TurnTask | None:
        with self._lock:
            busy = self._state.busy
            updated, request = submit_prompt(self._state, text)
            if request is None:
                reason = "busy" if busy else "empty"
            else:
                self._state = updated
        if request is None:
            self._emit("prompt_rejected", reason=reason)
            return None
        task = TurnTask(request)
        self._executor.submit(self._run_turn, task)
        self._emit(
            "prompt_submitted",
            prompt=request["prompt"],
            model=request["model"],
            history_len=len(request["history"]),
            with_reference="baseImage" in request,
        )
        self._notify()
        return task

    def _run_turn(self, task: TurnTask) -> None:
        try:
            result = self.client.send(task.request)
        except Exception as exc:
            logger.exception("Relay client raised")
            result = RelayResult(ok=False, status=0, error=str(exc) or "Unexpected error during generation.", kind="upstream")
        try:
            with self._lock:
                self._state = apply_result(self._state, result)
            if result.ok:
                self._emit("turn_succeeded", model=result.model, mime_type=result.mime_type, text=result.text)
            else:
                self._emit(
                    "turn_failed", kind=result.kind, status=result.status, error=result.error, details=result.details
                )
            self._notify()
        except Exception:
            logger.exception("Applying turn result failed")
            with self._lock:
                if self._state.busy:
                    self._state = replace(self._state, busy=False)
        finally:
            task._resolve(result)

    def upload(self, payload: ImagePayload, filename: str) -> SessionState:
        with self._lock:
            self._state = set_reference_image(self._state, payload, filename)
            state = self._state
        self._emit("reference_uploaded", filename=filename, mime_type=payload.mime_type)
        self._notify()
        return state

    def upload_file(self, path: Path) -> SessionState:
        path = Path(path).expanduser()
        mime_type = mimetypes.guess_type(path.name)[0] or ""
        if not mime_type.startswith("image/"):
            raise ImageValidationError("Please choose a valid image file.")
        data = path.read_bytes()
        try:
            with Image.open(path) as image:
                image.verify()
        except (UnidentifiedImageError, OSError, SyntaxError) as exc:
            raise ImageValidationError(f"Could not read {path.name} as an image.") from exc
        payload = ImagePayload(base64=base64.b64encode(data).decode("ascii"), mime_type=mime_type)
        return self.upload(payload, path.name)

    def clear_reference(self) -> SessionState:
        with self._lock:
            self._state = clear_reference(self._state)
            state = self._state
        self._emit("reference_cleared")
        self._notify()
        return state

    def set_reference_flag(self, value: bool) -> SessionState:
        with self._lock:
            self._state = set_reference_flag(self._state, value)
            state = self._state
        self._emit("reference_toggled", requested=bool(value), use_reference=state.use_reference)
        self._notify()
        return state

    def set_model(self, model_id: str) -> SessionState:
        with self._lock:
            self._state = set_model(self._state, model_id, self.registry)
            state = self._state
        self._emit("model_changed", model=model_id)
        self._notify()
        return state

    def save_canvas(self, path: Path) -> Path:
        canvas = self.state.canvas
        if canvas is None:
            raise ValueError("No canvas image to save.")
        path = Path(path).expanduser()
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_bytes(base64.b64decode(canvas.base64))
        return path

    def close(self) -> None:
        self._executor.shutdown(wait=True)

    def _notify(self) -> None:
        if self.on_change is not None:
            self.on_change(self.state)

    def _emit(self, event_type: str, **payload: Any) -> None:
        if self.events is not None:
            self.events.emit(event_type, **payload)
