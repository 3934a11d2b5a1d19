"""Model registry for the studio."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Iterable, Mapping

DEFAULT_MODEL = "gemini-2.5-flash-image"


@dataclass(frozen=True)
class ModelSpec:
    name: str
    label: str
    description: str
    provider: str

    def as_option(self) -> dict[str, str]:
        return {"id": self.name, "label": self.label, "description": self.description}


_DEFAULT_MODELS: dict[str, ModelSpec] = {
    "gemini-2.5-flash-image": ModelSpec(
        name="gemini-2.5-flash-image",
        label="Gemini 2.5 Flash Image",
        description="Fast, iterative 1024px image generation.",
        provider="gemini",
    ),
    "gemini-3.0-pro-preview": ModelSpec(
        name="gemini-3.0-pro-preview",
        label="Gemini 3.0 Pro Preview",
        description="High-fidelity visuals with 4K output.",
        provider="gemini",
    ),
    "dryrun-image-1": ModelSpec(
        name="dryrun-image-1",
        label="Dry Run",
        description="Offline placeholder renders, no API key required.",
        provider="dryrun",
    ),
}


class ModelRegistry:
    def __init__(self, models: Mapping[str, ModelSpec] | None = None) -> None:
        self._models = dict(models) if models is not None else dict(_DEFAULT_MODELS)

    def get(self, name: str) -> ModelSpec | None:
        return self._models.get(name)

    def list(self) -> Iterable[ModelSpec]:
        return self._models.values()

    def names(self) -> list[str]:
        return list(self._models.keys())

    def __contains__(self, name: object) -> bool:
        return name in self._models
