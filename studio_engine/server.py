"""HTTP front for the generation relay.

Endpoints:
  GET  /healthz
  GET  /api/models
  POST /api/generate
"""

from __future__ import annotations

import json
import logging
from http import HTTPStatus
from http.server import BaseHTTPRequestHandler, ThreadingHTTPServer
from typing import Any
from urllib.parse import urlparse

from .models.registry import ModelRegistry
from .relay.generate import GenerationRelay
from .relay.result import ConfigurationError, RelayResult, ValidationError

logger = logging.getLogger(__name__)

GENERATE_PATH = "/api/generate"
MODELS_PATH = "/api/models"
HEALTH_PATH = "/healthz"
MAX_BODY_BYTES = 32 * 1024 * 1024


def _json_dumps(obj: Any) -> bytes:
    return (json.dumps(obj) + "\n").encode("utf-8")


class StudioServer(ThreadingHTTPServer):
    daemon_threads = True

    def __init__(
        self,
        address: tuple[str, int],
        relay: GenerationRelay,
        registry: ModelRegistry | None = None,
    ) -> None:
        self.relay = relay
        self.registry = registry or ModelRegistry()
        super().__init__(address, _Handler)

    @property
    def url(self) -> str:
        host, port = self.server_address[:2]
        return f"http://{host}:{port}"


class _Handler(BaseHTTPRequestHandler):
    server_version = "image-studio/0"
    server: StudioServer

    def _send_cors_headers(self) -> None:
        self.send_header("Access-Control-Allow-Origin", "*")
        self.send_header("Access-Control-Allow-Headers", "Content-Type")
        self.send_header("Access-Control-Allow-Methods", "GET, POST, OPTIONS")

    def _send_json(self, status: int, payload: Any) -> None:
        body = _json_dumps(payload)
        self.send_response(status)
        self.send_header("Content-Type", "application/json; charset=utf-8")
        self.send_header("Content-Length", str(len(body)))
        self._send_cors_headers()
        self.end_headers()
        self.wfile.write(body)

    def _read_json_body(self) -> Any:
        try:
            length = int(self.headers.get("Content-Length", "0"))
        except ValueError as exc:
            raise ValidationError("Invalid Content-Length header.") from exc
        if length <= 0:
            raise ValidationError("Request body must be a JSON object.")
        if length > MAX_BODY_BYTES:
            raise ValidationError("Request body too large.")
        raw = self.rfile.read(length)
        try:
            return json.loads(raw.decode("utf-8"))
        except (UnicodeDecodeError, json.JSONDecodeError) as exc:
            raise ValidationError("Request body must be valid JSON.") from exc

    def log_message(self, format: str, *args: Any) -> None:  # noqa: A002 (BaseHTTPRequestHandler API)
        logger.info("%s - %s", self.address_string(), format % args)

    def do_OPTIONS(self) -> None:  # noqa: N802 (BaseHTTPRequestHandler API)
        self.send_response(HTTPStatus.NO_CONTENT)
        self._send_cors_headers()
        self.end_headers()

    def do_GET(self) -> None:  # noqa: N802 (BaseHTTPRequestHandler API)
        path = urlparse(self.path).path
        if path == HEALTH_PATH:
            self._send_json(HTTPStatus.OK, {"ok": True, "configured": self.server.relay.configured})
            return
        if path == MODELS_PATH:
            self._send_json(
                HTTPStatus.OK,
                {
                    "models": [spec.as_option() for spec in self.server.registry.list()],
                    "default": self.server.relay.default_model,
                },
            )
            return
        self._send_json(HTTPStatus.NOT_FOUND, {"error": "not found"})

    def do_POST(self) -> None:  # noqa: N802 (BaseHTTPRequestHandler API)
        path = urlparse(self.path).path
        if path != GENERATE_PATH:
            self._send_json(HTTPStatus.NOT_FOUND, {"error": "not found"})
            return
        if not self.server.relay.configured:
            result = RelayResult.from_error(ConfigurationError())
            self._send_json(result.status, result.to_body())
            return
        try:
            payload = self._read_json_body()
        except ValidationError as exc:
            result = RelayResult.from_error(exc)
        else:
            result = self.server.relay.generate(payload)
        self._send_json(result.status, result.to_body())


def serve(relay: GenerationRelay, host: str, port: int, registry: ModelRegistry | None = None) -> None:
    server = StudioServer((host, port), relay, registry)
    logger.info("Relay listening on %s%s", server.url, GENERATE_PATH)
    if not relay.configured:
        logger.warning("Relay has no image capability; generate calls will fail until credentials are set.")
    try:
        server.serve_forever()
    except KeyboardInterrupt:
        logger.info("Shutting down relay")
    finally:
        server.server_close()
