"""Capability registry."""

from __future__ import annotations

from typing import TYPE_CHECKING

from .base import CapabilityRegistry, ImageCapability
from .dryrun import DryRunCapability
from .gemini import GeminiCapability

if TYPE_CHECKING:
    from ..config import StudioConfig


def default_registry(api_key: str | None = None) -> CapabilityRegistry:
    capabilities: list[ImageCapability] = [DryRunCapability()]
    if api_key:
        capabilities.append(GeminiCapability(api_key=api_key))
    return CapabilityRegistry(capabilities)


def resolve_capability(config: "StudioConfig") -> ImageCapability | None:
    """Capability for the configured provider, or None when credentials are missing."""
    return default_registry(config.api_key).get(config.provider)
