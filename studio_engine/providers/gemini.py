"""Gemini image capability."""

from __future__ import annotations

import base64
from typing import Any, Mapping, Sequence

from google import genai
from google.genai import types


class GeminiCapability:
    name = "gemini"

    def __init__(self, api_key: str | None = None, client: Any | None = None) -> None:
        if client is None:
            if not api_key:
                raise RuntimeError("GOOGLE_API_KEY (or GEMINI_API_KEY) not set.")
            client = genai.Client(api_key=api_key)
        self.client = client

    def generate_content(
        self,
        *,
        model: str,
        contents: Sequence[Mapping[str, Any]],
        config: Mapping[str, Any],
    ) -> types.GenerateContentResponse:
        return self.client.models.generate_content(
            model=model,
            contents=build_gemini_contents(contents),
            config=build_gemini_config(config),
        )


def build_gemini_contents(contents: Sequence[Mapping[str, Any]]) -> list[types.Content]:
    converted: list[types.Content] = []
    for turn in contents:
        parts = [_to_part(part) for part in turn.get("parts") or []]
        converted.append(types.Content(role=str(turn.get("role") or "user"), parts=parts))
    return converted


def build_gemini_config(config: Mapping[str, Any]) -> types.GenerateContentConfig:
    config_kwargs: dict[str, Any] = {
        "response_modalities": list(config.get("response_modalities") or ["IMAGE", "TEXT"]),
    }
    if config.get("temperature") is not None:
        config_kwargs["temperature"] = float(config["temperature"])
    return types.GenerateContentConfig(**config_kwargs)


def _to_part(part: Mapping[str, Any]) -> types.Part:
    inline = part.get("inline_data")
    if isinstance(inline, Mapping):
        # The SDK takes raw bytes and re-encodes them on the wire.
        return types.Part(
            inline_data=types.Blob(
                data=base64.b64decode(str(inline.get("data") or "")),
                mime_type=inline.get("mime_type"),
            )
        )
    return types.Part(text=str(part.get("text") or ""))
