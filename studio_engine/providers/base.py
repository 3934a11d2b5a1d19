"""Capability base classes."""

from __future__ import annotations

from typing import Any, Iterable, Mapping, Protocol, Sequence


class ImageCapability(Protocol):
    """Hosted (or offline) model that answers a multi-turn request.

    `contents` is a list of `{"role", "parts"}` turns whose parts carry either
    `text` or `inline_data` (`data` as base64 text, `mime_type`). The return
    value exposes `candidates[*].content.parts[*]` with `text` and/or
    `inline_data`.
    """

    name: str

    def generate_content(
        self,
        *,
        model: str,
        contents: Sequence[Mapping[str, Any]],
        config: Mapping[str, Any],
    ) -> Any:
        ...


class CapabilityRegistry:
    def __init__(self, capabilities: Iterable[ImageCapability]) -> None:
        self._capabilities = {capability.name: capability for capability in capabilities}

    def get(self, name: str) -> ImageCapability | None:
        return self._capabilities.get(name)

    def list(self) -> list[str]:
        return sorted(self._capabilities.keys())
