"""Relay failure taxonomy and the tagged result returned to callers."""

from __future__ import annotations

from dataclasses import dataclass
from http import HTTPStatus
from typing import Any, Mapping


class RelayError(Exception):
    kind = "upstream"
    status = HTTPStatus.INTERNAL_SERVER_ERROR
    default_message = "Failed to generate image. See server logs for details."

    def __init__(self, message: str | None = None, *, details: str | None = None, text: str | None = None) -> None:
        self.message = message or self.default_message
        self.details = details
        self.text = text
        super().__init__(self.message)


class ConfigurationError(RelayError):
    kind = "configuration"
    status = HTTPStatus.INTERNAL_SERVER_ERROR
    default_message = "Missing GOOGLE_API_KEY environment variable."


class ValidationError(RelayError):
    kind = "validation"
    status = HTTPStatus.BAD_REQUEST
    default_message = "Prompt is required."


class EmptyResponseError(RelayError):
    kind = "empty_response"
    status = HTTPStatus.UNPROCESSABLE_ENTITY
    default_message = "No response candidates from the model."


class NoImageError(RelayError):
    kind = "no_image"
    status = HTTPStatus.UNPROCESSABLE_ENTITY
    default_message = "The model did not return an image."


class RelayTimeoutError(RelayError):
    kind = "timeout"
    status = HTTPStatus.GATEWAY_TIMEOUT
    default_message = "The model did not respond in time."


class UpstreamError(RelayError):
    kind = "upstream"


@dataclass(frozen=True)
class RelayResult:
    """Outcome of one generation call: either an image payload or a failure."""

    ok: bool
    status: int
    image_base64: str | None = None
    mime_type: str | None = None
    text: str = ""
    model: str | None = None
    error: str | None = None
    kind: str | None = None
    details: str | None = None

    @classmethod
    def success(cls, *, image_base64: str, mime_type: str, text: str, model: str) -> "RelayResult":
        return cls(
            ok=True,
            status=int(HTTPStatus.OK),
            image_base64=image_base64,
            mime_type=mime_type,
            text=text,
            model=model,
        )

    @classmethod
    def from_error(cls, exc: RelayError) -> "RelayResult":
        return cls(
            ok=False,
            status=int(exc.status),
            text=exc.text or "",
            error=exc.message,
            kind=exc.kind,
            details=exc.details,
        )

    @classmethod
    def from_wire(cls, status: int, body: Mapping[str, Any] | None) -> "RelayResult":
        payload = body if isinstance(body, Mapping) else {}
        if 200 <= status < 300:
            image = payload.get("imageBase64")
            return cls(
                ok=True,
                status=status,
                image_base64=image if isinstance(image, str) and image else None,
                mime_type=str(payload.get("mimeType") or "image/png"),
                text=str(payload.get("text") or ""),
                model=payload.get("model") if isinstance(payload.get("model"), str) else None,
            )
        error = payload.get("error")
        return cls(
            ok=False,
            status=status,
            text=str(payload.get("text") or ""),
            error=error if isinstance(error, str) else f"Request failed with status {status}",
            kind=str(payload.get("kind") or "upstream"),
            details=payload.get("details") if isinstance(payload.get("details"), str) else None,
        )

    def to_body(self) -> dict[str, Any]:
        if self.ok:
            return {
                "imageBase64": self.image_base64,
                "mimeType": self.mime_type,
                "text": self.text,
                "model": self.model,
            }
        body: dict[str, Any] = {"error": self.error, "kind": self.kind}
        if self.details:
            body["details"] = self.details
        if self.kind == NoImageError.kind:
            body["text"] = self.text
        return body
