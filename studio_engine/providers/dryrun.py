"""Dry-run image capability (offline)."""

from __future__ import annotations

import base64
import hashlib
import io
from typing import Any, Mapping, Sequence

from google.genai import types
from PIL import Image, ImageDraw, ImageFont

DRYRUN_SIZE = (1024, 1024)


class DryRunCapability:
    """Renders a placeholder image, or annotates the supplied reference."""

    name = "dryrun"

    def generate_content(
        self,
        *,
        model: str,
        contents: Sequence[Mapping[str, Any]],
        config: Mapping[str, Any],
    ) -> types.GenerateContentResponse:
        prompt, reference = _last_user_turn(contents)
        image = _open_reference(reference) or Image.new("RGB", DRYRUN_SIZE, _color_from_prompt(prompt, len(contents)))
        draw = ImageDraw.Draw(image)
        draw.text((20, 20), f"dryrun {model}\n{prompt[:60]}", fill=(255, 255, 255), font=ImageFont.load_default())

        buffer = io.BytesIO()
        image.save(buffer, format="PNG")
        caption = f"Dry run render for: {prompt}" if prompt else "Dry run render."
        return types.GenerateContentResponse(
            candidates=[
                types.Candidate(
                    content=types.Content(
                        role="model",
                        parts=[
                            types.Part(text=caption),
                            types.Part(inline_data=types.Blob(data=buffer.getvalue(), mime_type="image/png")),
                        ],
                    )
                )
            ]
        )


def _last_user_turn(contents: Sequence[Mapping[str, Any]]) -> tuple[str, Mapping[str, Any] | None]:
    if not contents:
        return "", None
    prompt = ""
    reference = None
    for part in contents[-1].get("parts") or []:
        if part.get("text") and not prompt:
            prompt = str(part["text"])
        if isinstance(part.get("inline_data"), Mapping) and reference is None:
            reference = part["inline_data"]
    return prompt, reference


def _open_reference(inline: Mapping[str, Any] | None) -> Image.Image | None:
    if not inline or not inline.get("data"):
        return None
    raw = base64.b64decode(str(inline["data"]))
    with Image.open(io.BytesIO(raw)) as source:
        return source.convert("RGB")


def _color_from_prompt(prompt: str, salt: int) -> tuple[int, int, int]:
    digest = hashlib.sha256(f"{prompt}:{salt}".encode("utf-8")).digest()
    return digest[0], digest[1], digest[2]
