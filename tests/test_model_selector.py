from __future__ import annotations

import pytest

from studio_engine.models.registry import DEFAULT_MODEL, ModelRegistry, ModelSpec
from studio_engine.models.selectors import ModelSelector
from studio_engine.providers.base import CapabilityRegistry


def _image_model(name: str) -> ModelSpec:
    return ModelSpec(name=name, label=name.title(), description="test model", provider="dryrun")


def test_default_registry_lists_gemini_models() -> None:
    registry = ModelRegistry()
    assert DEFAULT_MODEL in registry
    assert "gemini-3.0-pro-preview" in registry.names()
    assert registry.get(DEFAULT_MODEL).as_option() == {
        "id": "gemini-2.5-flash-image",
        "label": "Gemini 2.5 Flash Image",
        "description": "Fast, iterative 1024px image generation.",
    }


def test_model_selector_returns_requested_model() -> None:
    selection = ModelSelector().select("gemini-3.0-pro-preview")
    assert selection.model.name == "gemini-3.0-pro-preview"
    assert selection.fallback_reason is None


def test_model_selector_falls_back_when_requested_model_unavailable() -> None:
    registry = ModelRegistry({"image-fallback": _image_model("image-fallback")})
    selection = ModelSelector(registry, default="image-fallback").select("missing")

    assert selection.model.name == "image-fallback"
    assert selection.requested == "missing"
    assert selection.fallback_reason == "Requested model 'missing' is not available."


def test_model_selector_no_request_uses_default_with_explanation() -> None:
    selection = ModelSelector().select(None)

    assert selection.model.name == DEFAULT_MODEL
    assert selection.fallback_reason == "No model specified; using default."


def test_model_selector_uses_first_model_when_default_is_unknown() -> None:
    registry = ModelRegistry({"only-model": _image_model("only-model")})
    selection = ModelSelector(registry, default="gone").select(None)
    assert selection.model.name == "only-model"


def test_model_selector_raises_when_registry_is_empty() -> None:
    selector = ModelSelector(ModelRegistry({}))
    with pytest.raises(RuntimeError, match="No image models registered."):
        selector.select("gemini-2.5-flash-image")


def test_capability_registry_lists_sorted_names() -> None:
    registry = CapabilityRegistry([_DummyCapability("z"), _DummyCapability("a"), _DummyCapability("m")])
    assert registry.list() == ["a", "m", "z"]
    assert registry.get("m").name == "m"
    assert registry.get("missing") is None


class _DummyCapability:
    def __init__(self, name: str) -> None:
        self.name = name

    def generate_content(self, *, model, contents, config):  # pragma: no cover - unused
        return None
