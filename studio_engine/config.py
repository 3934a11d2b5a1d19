"""Runtime configuration resolved from the environment."""

from __future__ import annotations

import logging
import os
import sys
from dataclasses import dataclass, replace
from typing import Any, Mapping

from .models.registry import DEFAULT_MODEL
from .utils import getenv_flag, getenv_float

API_KEY_ENV_VARS = ("GOOGLE_API_KEY", "GEMINI_API_KEY", "GOOGLE_GENAI_API_KEY")
PROVIDERS = ("gemini", "dryrun")

DEFAULT_HOST = "127.0.0.1"
DEFAULT_PORT = 8787
DEFAULT_TIMEOUT_S = 60.0
DEFAULT_TEMPERATURE = 0.4

LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s: %(message)s"


def resolve_api_key(environ: Mapping[str, str] | None = None) -> str | None:
    env = os.environ if environ is None else environ
    for name in API_KEY_ENV_VARS:
        value = str(env.get(name) or "").strip()
        if value:
            return value
    return None


@dataclass(frozen=True)
class StudioConfig:
    api_key: str | None = None
    provider: str = "gemini"
    default_model: str = DEFAULT_MODEL
    timeout_s: float = DEFAULT_TIMEOUT_S
    temperature: float = DEFAULT_TEMPERATURE
    host: str = DEFAULT_HOST
    port: int = DEFAULT_PORT
    relay_url: str | None = None
    debug: bool = False

    @classmethod
    def from_env(cls) -> "StudioConfig":
        provider = (os.getenv("STUDIO_PROVIDER") or "gemini").strip().lower()
        if provider not in PROVIDERS:
            raise ValueError(f"Unknown STUDIO_PROVIDER '{provider}' (expected one of {', '.join(PROVIDERS)}).")
        raw_port = (os.getenv("STUDIO_PORT") or "").strip()
        try:
            port = int(raw_port) if raw_port else DEFAULT_PORT
        except ValueError as exc:
            raise ValueError(f"STUDIO_PORT must be an integer, got '{raw_port}'.") from exc
        return cls(
            api_key=resolve_api_key(),
            provider=provider,
            default_model=(os.getenv("STUDIO_DEFAULT_MODEL") or "").strip() or DEFAULT_MODEL,
            timeout_s=max(1.0, getenv_float("STUDIO_TIMEOUT_S", DEFAULT_TIMEOUT_S)),
            temperature=getenv_float("STUDIO_TEMPERATURE", DEFAULT_TEMPERATURE),
            host=(os.getenv("STUDIO_HOST") or "").strip() or DEFAULT_HOST,
            port=port,
            relay_url=(os.getenv("STUDIO_RELAY_URL") or "").strip() or None,
            debug=getenv_flag("STUDIO_DEBUG"),
        )

    def with_overrides(self, **overrides: Any) -> "StudioConfig":
        updates = {key: value for key, value in overrides.items() if value is not None}
        if "provider" in updates and updates["provider"] not in PROVIDERS:
            raise ValueError(f"Unknown provider '{updates['provider']}'.")
        return replace(self, **updates)

    @property
    def resolved_relay_url(self) -> str:
        if self.relay_url:
            return self.relay_url
        return f"http://{self.host}:{self.port}/api/generate"


def configure_logging(debug: bool = False) -> None:
    root = logging.getLogger()
    if root.handlers:
        root.setLevel(logging.DEBUG if debug else logging.INFO)
        return
    logging.basicConfig(
        level=logging.DEBUG if debug else logging.INFO,
        format=LOG_FORMAT,
        stream=sys.stderr,
    )
