"""Relay clients used by the conversation store."""

from __future__ import annotations

import json
import logging
from typing import Any, Mapping, Protocol
from urllib.error import HTTPError, URLError
from urllib.request import Request, urlopen

from ..relay.generate import GenerationRelay
from ..relay.result import RelayResult

logger = logging.getLogger(__name__)


class RelayClient(Protocol):
    def send(self, request: Mapping[str, Any]) -> RelayResult:
        ...


class LocalRelayClient:
    """Calls a relay living in the same process."""

    def __init__(self, relay: GenerationRelay) -> None:
        self.relay = relay

    def send(self, request: Mapping[str, Any]) -> RelayResult:
        return self.relay.generate(dict(request))


class HttpRelayClient:
    def __init__(self, url: str, timeout_s: float = 90.0) -> None:
        self.url = url
        self.timeout_s = timeout_s

    def send(self, request: Mapping[str, Any]) -> RelayResult:
        body = json.dumps(dict(request)).encode("utf-8")
        req = Request(self.url, data=body, headers={"Content-Type": "application/json"}, method="POST")
        try:
            with urlopen(req, timeout=self.timeout_s) as response:
                status = int(getattr(response, "status", 200))
                raw = response.read().decode("utf-8")
        except HTTPError as exc:
            status = exc.code
            raw = exc.read().decode("utf-8", errors="replace") if exc.fp else ""
        except (URLError, OSError) as exc:
            logger.warning("Relay request to %s failed: %s", self.url, exc)
            return RelayResult(
                ok=False,
                status=0,
                error=f"Could not reach the relay: {getattr(exc, 'reason', exc)}",
                kind="upstream",
                details=str(exc),
            )
        try:
            payload = json.loads(raw) if raw else {}
        except json.JSONDecodeError:
            payload = {}
        return RelayResult.from_wire(status, payload)
