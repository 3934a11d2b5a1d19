from __future__ import annotations

import json
import threading
from typing import Any, Iterator
from urllib.error import HTTPError
from urllib.request import Request, urlopen

import pytest

from studio_engine.providers.dryrun import DryRunCapability
from studio_engine.relay.generate import GenerationRelay
from studio_engine.server import StudioServer
from studio_engine.session.client import HttpRelayClient


def _start(relay: GenerationRelay) -> StudioServer:
    server = StudioServer(("127.0.0.1", 0), relay)
    thread = threading.Thread(target=server.serve_forever, daemon=True)
    thread.start()
    return server


@pytest.fixture
def server() -> Iterator[StudioServer]:
    srv = _start(GenerationRelay(DryRunCapability()))
    try:
        yield srv
    finally:
        srv.shutdown()
        srv.server_close()


def _request(url: str, *, data: bytes | None = None, method: str = "GET") -> tuple[int, Any]:
    req = Request(url, data=data, headers={"Content-Type": "application/json"}, method=method)
    try:
        with urlopen(req, timeout=10) as response:
            return response.status, json.loads(response.read().decode("utf-8"))
    except HTTPError as exc:
        return exc.code, json.loads(exc.read().decode("utf-8"))


def test_http_client_round_trip(server: StudioServer) -> None:
    client = HttpRelayClient(f"{server.url}/api/generate", timeout_s=10)

    result = client.send({"prompt": "a lighthouse", "history": [{"role": "assistant", "content": "Welcome"}]})

    assert result.ok
    assert result.status == 200
    assert result.mime_type == "image/png"
    assert result.text == "Dry run render for: a lighthouse"
    assert result.image_base64


def test_http_client_maps_validation_failure(server: StudioServer) -> None:
    result = HttpRelayClient(f"{server.url}/api/generate", timeout_s=10).send({"prompt": " "})
    assert not result.ok
    assert result.status == 400
    assert result.kind == "validation"
    assert result.error == "Prompt is required."


def test_invalid_json_is_rejected(server: StudioServer) -> None:
    status, body = _request(f"{server.url}/api/generate", data=b"{not json", method="POST")
    assert status == 400
    assert body["kind"] == "validation"


def test_health_and_models(server: StudioServer) -> None:
    status, body = _request(f"{server.url}/healthz")
    assert status == 200
    assert body == {"ok": True, "configured": True}

    status, body = _request(f"{server.url}/api/models")
    assert status == 200
    assert body["default"] == "gemini-2.5-flash-image"
    assert {"id", "label", "description"} <= set(body["models"][0])


def test_unknown_route_is_404(server: StudioServer) -> None:
    status, body = _request(f"{server.url}/nope")
    assert status == 404
    assert body == {"error": "not found"}


def test_unconfigured_relay_reports_missing_credentials() -> None:
    srv = _start(GenerationRelay(None))
    try:
        result = HttpRelayClient(f"{srv.url}/api/generate", timeout_s=10).send({"prompt": "x"})
    finally:
        srv.shutdown()
        srv.server_close()
    assert result.status == 500
    assert result.kind == "configuration"
    assert result.error == "Missing GOOGLE_API_KEY environment variable."


def test_unreachable_relay_is_a_failure_result() -> None:
    srv = StudioServer(("127.0.0.1", 0), GenerationRelay(None))
    url = f"{srv.url}/api/generate"
    srv.server_close()

    result = HttpRelayClient(url, timeout_s=2).send({"prompt": "x"})

    assert not result.ok
    assert result.status == 0
    assert result.kind == "upstream"
    assert result.error.startswith("Could not reach the relay")


def test_unconfigured_relay_reports_credentials_before_body_errors() -> None:
    srv = _start(GenerationRelay(None))
    try:
        status, body = _request(f"{srv.url}/api/generate", data=b"{not json", method="POST")
    finally:
        srv.shutdown()
        srv.server_close()
    assert status == 500
    assert body["kind"] == "configuration"
