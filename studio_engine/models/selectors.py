"""Model selection and fallback logic."""

from __future__ import annotations

from dataclasses import dataclass

from .registry import DEFAULT_MODEL, ModelRegistry, ModelSpec


@dataclass(frozen=True)
class ModelSelection:
    model: ModelSpec
    requested: str | None
    fallback_reason: str | None = None


class ModelSelector:
    def __init__(self, registry: ModelRegistry | None = None, default: str = DEFAULT_MODEL) -> None:
        self.registry = registry or ModelRegistry()
        self.default = default

    def select(self, requested: str | None) -> ModelSelection:
        if requested:
            model = self.registry.get(requested)
            if model:
                return ModelSelection(model=model, requested=requested)
            fallback_reason = f"Requested model '{requested}' is not available."
        else:
            fallback_reason = "No model specified; using default."

        model = self.registry.get(self.default)
        if model is None:
            candidates = list(self.registry.list())
            if not candidates:
                raise RuntimeError("No image models registered.")
            model = candidates[0]
        return ModelSelection(model=model, requested=requested, fallback_reason=fallback_reason)
