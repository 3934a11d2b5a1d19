"""Stateless generation relay.

One call turns a client payload into a multi-turn request for the image
capability, runs it under a bounded execution window and folds the reply
back into a `RelayResult`. Nothing is kept between calls.
"""

from __future__ import annotations

import base64
import logging
from concurrent.futures import ThreadPoolExecutor
from concurrent.futures import TimeoutError as FutureTimeoutError
from dataclasses import dataclass, field
from typing import Any, Mapping, Sequence

from ..models.registry import DEFAULT_MODEL
from ..providers.base import ImageCapability
from ..utils import sanitize_payload, strip_whitespace
from .result import (
    ConfigurationError,
    EmptyResponseError,
    NoImageError,
    RelayError,
    RelayResult,
    RelayTimeoutError,
    UpstreamError,
    ValidationError,
)

logger = logging.getLogger(__name__)

RELAY_HISTORY_WINDOW = 8
DEFAULT_MIME_TYPE = "image/png"
RESPONSE_MODALITIES = ("IMAGE", "TEXT")


@dataclass(frozen=True)
class GenerateRequest:
    prompt: str
    model: str
    history: Sequence[Mapping[str, Any]] = field(default_factory=tuple)
    base_image: str | None = None
    base_image_mime_type: str | None = None


@dataclass(frozen=True)
class GenerationOutput:
    image_base64: str
    mime_type: str
    text: str


def parse_request(payload: Any, default_model: str = DEFAULT_MODEL) -> GenerateRequest:
    if not isinstance(payload, Mapping):
        raise ValidationError("Request body must be a JSON object.")
    prompt = payload.get("prompt")
    if not isinstance(prompt, str) or not prompt.strip():
        raise ValidationError()
    model = payload.get("model")
    history = payload.get("history")
    base_image = payload.get("baseImage")
    base_image_mime_type = payload.get("baseImageMimeType")
    return GenerateRequest(
        prompt=prompt.strip(),
        model=model if isinstance(model, str) and model else default_model,
        history=tuple(history) if isinstance(history, list) else (),
        base_image=base_image if isinstance(base_image, str) and base_image else None,
        base_image_mime_type=(
            base_image_mime_type if isinstance(base_image_mime_type, str) and base_image_mime_type else None
        ),
    )


def normalize_history(history: Sequence[Any], window: int = RELAY_HISTORY_WINDOW) -> list[dict[str, Any]]:
    """Provider-format turns for the last `window` entries, blanks dropped."""
    contents: list[dict[str, Any]] = []
    for entry in list(history)[-window:]:
        if not isinstance(entry, Mapping):
            continue
        raw = entry.get("content")
        text = raw.strip() if isinstance(raw, str) else ""
        if not text:
            continue
        role = "model" if entry.get("role") == "assistant" else "user"
        contents.append({"role": role, "parts": [{"text": text}]})
    return contents


def build_contents(request: GenerateRequest) -> list[dict[str, Any]]:
    contents = normalize_history(request.history)
    parts: list[dict[str, Any]] = [{"text": request.prompt}]
    if request.base_image and request.base_image_mime_type:
        parts.append(
            {
                "inline_data": {
                    "data": strip_whitespace(request.base_image),
                    "mime_type": request.base_image_mime_type,
                }
            }
        )
    contents.append({"role": "user", "parts": parts})
    return contents


def extract_output(response: Any) -> GenerationOutput:
    candidates = _field(response, "candidates") or []
    if not candidates:
        raise EmptyResponseError()
    content = _field(candidates[0], "content")
    parts = _field(content, "parts") or []

    texts: list[str] = []
    image_base64: str | None = None
    mime_type = DEFAULT_MIME_TYPE
    for part in parts:
        text = _field(part, "text")
        if isinstance(text, str) and text:
            texts.append(text)
        if image_base64 is not None:
            continue
        inline = _field(part, "inline_data", "inlineData")
        data = _field(inline, "data")
        if not data:
            continue
        encoded = _encode_image_data(data)
        if not encoded:
            continue
        image_base64 = encoded
        part_mime = _field(inline, "mime_type", "mimeType")
        if isinstance(part_mime, str) and part_mime:
            mime_type = part_mime

    text = "\n".join(texts)
    if not image_base64:
        raise NoImageError(text=text)
    return GenerationOutput(image_base64=image_base64, mime_type=mime_type, text=text)


class GenerationRelay:
    def __init__(
        self,
        capability: ImageCapability | None,
        *,
        default_model: str = DEFAULT_MODEL,
        timeout_s: float = 60.0,
        temperature: float = 0.4,
    ) -> None:
        self.capability = capability
        self.default_model = default_model or DEFAULT_MODEL
        self.timeout_s = timeout_s
        self.temperature = temperature
        if capability is None:
            logger.error("No image capability configured: %s", ConfigurationError.default_message)

    @property
    def configured(self) -> bool:
        return self.capability is not None

    def generation_config(self) -> dict[str, Any]:
        return {"response_modalities": list(RESPONSE_MODALITIES), "temperature": self.temperature}

    def generate(self, payload: Any) -> RelayResult:
        try:
            if self.capability is None:
                raise ConfigurationError()
            request = parse_request(payload, self.default_model)
            contents = build_contents(request)
            logger.debug("Relaying request: %s", sanitize_payload({"model": request.model, "contents": contents}))
            response = self._invoke(self.capability, request.model, contents)
            output = extract_output(response)
        except RelayError as exc:
            if exc.details:
                logger.error("Image generation error (%s): %s", exc.kind, exc.details)
            else:
                logger.warning("Image generation rejected (%s): %s", exc.kind, exc.message)
            return RelayResult.from_error(exc)
        except Exception as exc:
            logger.exception("Unexpected relay failure")
            return RelayResult.from_error(UpstreamError(details=str(exc) or type(exc).__name__))
        return RelayResult.success(
            image_base64=output.image_base64,
            mime_type=output.mime_type,
            text=output.text,
            model=request.model,
        )

    def _invoke(self, capability: ImageCapability, model: str, contents: list[dict[str, Any]]) -> Any:
        executor = ThreadPoolExecutor(max_workers=1, thread_name_prefix="studio-capability")
        try:
            future = executor.submit(
                capability.generate_content,
                model=model,
                contents=contents,
                config=self.generation_config(),
            )
            try:
                return future.result(timeout=self.timeout_s)
            except FutureTimeoutError as exc:
                raise RelayTimeoutError(details=f"No response from {model} after {self.timeout_s:.0f}s.") from exc
            except Exception as exc:
                raise UpstreamError(details=str(exc) or type(exc).__name__) from exc
        finally:
            executor.shutdown(wait=False)


def _field(obj: Any, *names: str) -> Any:
    if obj is None:
        return None
    for name in names:
        if isinstance(obj, Mapping):
            value = obj.get(name)
        else:
            value = getattr(obj, name, None)
        if value is not None:
            return value
    return None


def _encode_image_data(data: Any) -> str:
    if isinstance(data, (bytes, bytearray)):
        return base64.b64encode(bytes(data)).decode("ascii")
    return strip_whitespace(str(data))
