"""Conversation and canvas state, updated through pure transitions.

Every transition takes a `SessionState` and returns a new one; nothing here
talks to the network. `ConversationStore` wires these to a relay client.
"""

from __future__ import annotations

from dataclasses import dataclass, replace
from typing import Any, Mapping, Sequence

from ..models.registry import DEFAULT_MODEL, ModelRegistry
from ..relay.result import RelayResult
from ..utils import new_id, now_ms

CLIENT_HISTORY_WINDOW = 10
WELCOME_MESSAGE = (
    "Welcome! I'm your image co-designer. Describe what you'd like to see "
    "or ask me to tweak the current canvas."
)
FALLBACK_CAPTION = "Here's the updated render."
ERROR_PREFIX = "⚠️"


class ImageValidationError(ValueError):
    pass


@dataclass(frozen=True)
class ImagePayload:
    base64: str
    mime_type: str = "image/png"

    def data_url(self) -> str:
        return f"data:{self.mime_type or 'image/png'};base64,{self.base64}"

    def to_dict(self) -> dict[str, str]:
        return {"base64": self.base64, "mimeType": self.mime_type}

    @classmethod
    def from_dict(cls, payload: Mapping[str, Any]) -> "ImagePayload":
        return cls(base64=str(payload["base64"]), mime_type=str(payload.get("mimeType") or "image/png"))


@dataclass(frozen=True)
class Message:
    id: str
    role: str
    content: str
    created_at: int
    image: ImagePayload | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "role": self.role,
            "content": self.content,
            "createdAt": self.created_at,
            "image": self.image.to_dict() if self.image else None,
        }

    @classmethod
    def from_dict(cls, payload: Mapping[str, Any]) -> "Message":
        image = payload.get("image")
        return cls(
            id=str(payload["id"]),
            role=str(payload["role"]),
            content=str(payload.get("content") or ""),
            created_at=int(payload.get("createdAt") or 0),
            image=ImagePayload.from_dict(image) if isinstance(image, Mapping) else None,
        )


@dataclass(frozen=True)
class SessionState:
    messages: tuple[Message, ...] = ()
    model: str = DEFAULT_MODEL
    canvas: ImagePayload | None = None
    use_reference: bool = False
    busy: bool = False
    error: str | None = None

    @property
    def reference_active(self) -> bool:
        return self.use_reference and self.canvas is not None

    def to_dict(self) -> dict[str, Any]:
        return {
            "messages": [message.to_dict() for message in self.messages],
            "model": self.model,
            "canvas": self.canvas.to_dict() if self.canvas else None,
            "useReference": self.use_reference,
            "busy": self.busy,
            "error": self.error,
        }

    @classmethod
    def from_dict(cls, payload: Mapping[str, Any]) -> "SessionState":
        canvas = payload.get("canvas")
        return cls(
            messages=tuple(Message.from_dict(item) for item in payload.get("messages") or ()),
            model=str(payload.get("model") or DEFAULT_MODEL),
            canvas=ImagePayload.from_dict(canvas) if isinstance(canvas, Mapping) else None,
            use_reference=bool(payload.get("useReference")) and isinstance(canvas, Mapping),
            busy=bool(payload.get("busy", False)),
            error=payload.get("error"),
        )


def initial_state(model: str = DEFAULT_MODEL, *, now: int | None = None) -> SessionState:
    welcome = Message(id=new_id(), role="assistant", content=WELCOME_MESSAGE, created_at=now or now_ms())
    return SessionState(messages=(welcome,), model=model)


def history_payload(messages: Sequence[Message]) -> list[dict[str, str]]:
    return [
        {"role": message.role, "content": message.content}
        for message in messages
        if message.role in {"user", "assistant"}
    ]


def build_request(state: SessionState, prompt: str) -> dict[str, Any]:
    request: dict[str, Any] = {
        "prompt": prompt,
        "model": state.model,
        "history": history_payload(state.messages)[-CLIENT_HISTORY_WINDOW:],
    }
    canvas = state.canvas
    if canvas is not None and state.use_reference:
        request["baseImage"] = canvas.base64
        request["baseImageMimeType"] = canvas.mime_type
    return request


def submit_prompt(
    state: SessionState,
    text: str,
    *,
    message_id: str | None = None,
    now: int | None = None,
) -> tuple[SessionState, dict[str, Any] | None]:
    trimmed = (text or "").strip()
    if not trimmed or state.busy:
        return state, None
    user_message = Message(id=message_id or new_id(), role="user", content=trimmed, created_at=now or now_ms())
    updated = replace(state, messages=state.messages + (user_message,), busy=True, error=None)
    return updated, build_request(updated, trimmed)


def apply_result(
    state: SessionState,
    result: RelayResult,
    *,
    message_id: str | None = None,
    now: int | None = None,
) -> SessionState:
    created_at = now or now_ms()
    if not result.ok:
        reason = result.error or f"Request failed with status {result.status}"
        notice = Message(id=message_id or new_id(), role="assistant", content=f"{ERROR_PREFIX} {reason}", created_at=created_at)
        return replace(state, messages=state.messages + (notice,), busy=False, error=reason)

    image = None
    if result.image_base64:
        image = ImagePayload(base64=result.image_base64, mime_type=result.mime_type or "image/png")
    caption = result.text.strip() if result.text and result.text.strip() else FALLBACK_CAPTION
    reply = Message(id=message_id or new_id(), role="assistant", content=caption, created_at=created_at, image=image)
    updated = replace(state, messages=state.messages + (reply,), busy=False, error=None)
    if image is not None:
        # Every returned image becomes the next turn's reference.
        updated = replace(updated, canvas=image, use_reference=True)
    return updated


def set_reference_image(
    state: SessionState,
    payload: ImagePayload,
    filename: str,
    *,
    message_id: str | None = None,
    now: int | None = None,
) -> SessionState:
    if not (payload.mime_type or "").startswith("image/"):
        raise ImageValidationError("Please choose a valid image file.")
    notice = Message(
        id=message_id or new_id(),
        role="assistant",
        content=f'Loaded "{filename}" as the live canvas. Tell me what to adjust!',
        created_at=now or now_ms(),
        image=payload,
    )
    return replace(state, messages=state.messages + (notice,), canvas=payload, use_reference=True, error=None)


def clear_reference(state: SessionState) -> SessionState:
    return replace(state, canvas=None, use_reference=False)


def set_reference_flag(state: SessionState, value: bool) -> SessionState:
    if state.canvas is None:
        return state
    return replace(state, use_reference=bool(value))


def set_model(state: SessionState, model_id: str, registry: ModelRegistry | None = None) -> SessionState:
    registry = registry or ModelRegistry()
    if model_id not in registry:
        raise ValueError(f"Unknown model '{model_id}'. Choose one of: {', '.join(registry.names())}")
    return replace(state, model=model_id)
