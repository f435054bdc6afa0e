from __future__ import annotations

import json
from datetime import datetime, timezone
from typing import Any, Dict, List

import httpx
import pytest
import typer
from typer.testing import CliRunner

from cli.app import app
from cli.client import ApiClient
from cli.config import CLIConfig, load_config
from services.mapper import PayloadMapper

FIXED_NOW = datetime(2024, 5, 1, 12, 30, 15, 123000, tzinfo=timezone.utc)


class StubClient:
    def __init__(self, config) -> None:
        self.config = config
        self.sent: List[Dict[str, Any]] = []
        self.closed = False

    def transform(self, envelope: Dict[str, Any]) -> Dict[str, Any]:
        self.sent.append(envelope)
        return {
            "msg": {**envelope["msg"], "Timestamp": "2024-05-01T12:30:15.123Z"},
            "metadata": envelope["metadata"],
            "msgType": envelope["msgType"],
        }

    def close(self) -> None:
        self.closed = True


@pytest.fixture()
def runner() -> CliRunner:
    return CliRunner()


@pytest.fixture(autouse=True)
def fixed_mapper(monkeypatch) -> None:
    monkeypatch.setattr(
        "cli.app.build_default_mapper", lambda: PayloadMapper(clock=lambda: FIXED_NOW)
    )


def _install_stub(monkeypatch, stub: StubClient) -> None:
    def factory(config):
        stub.config = config
        return stub

    monkeypatch.setattr("cli.app.ApiClient", factory)


def test_map_bare_message_file(runner: CliRunner, tmp_path) -> None:
    path = tmp_path / "reading.json"
    path.write_text(json.dumps({"machine_id": "machine_1", "total_Count": 12, "batch": 1}))

    result = runner.invoke(app, ["map", str(path)])

    assert result.exit_code == 0
    body = json.loads(result.stdout)
    assert body == {
        "msg": {
            "machine_id": "machine_1",
            "total_Count": 12,
            "batch": 1,
            "Flavor": None,
            "Timestamp": "2024-05-01T12:30:15.123Z",
        },
        "metadata": {},
        "msgType": "POST_TELEMETRY_REQUEST",
    }


def test_map_envelope_from_stdin(runner: CliRunner) -> None:
    envelope = {
        "msg": {"machine_id": "M-12", "total_Count": 42, "batch": "B7", "Flavor": "vanilla"},
        "metadata": {"source": "mqtt"},
        "msgType": "reading",
    }

    result = runner.invoke(app, ["map", "-", "--compact"], input=json.dumps(envelope))

    assert result.exit_code == 0
    assert "\n" not in result.stdout.strip()
    body = json.loads(result.stdout)
    assert body["metadata"] == {"source": "mqtt"}
    assert body["msgType"] == "reading"
    assert body["msg"]["Flavor"] == "vanilla"


def test_map_array_keeps_order(runner: CliRunner, tmp_path) -> None:
    path = tmp_path / "readings.json"
    path.write_text(json.dumps([{"machine_id": "a"}, {"msg": {"machine_id": "b"}, "msgType": "x"}]))

    result = runner.invoke(app, ["map", str(path), "--msg-type", "custom"])

    assert result.exit_code == 0
    body = json.loads(result.stdout)
    assert [item["msg"]["machine_id"] for item in body] == ["a", "b"]
    assert [item["msgType"] for item in body] == ["custom", "x"]


def test_map_rejects_invalid_json(runner: CliRunner, tmp_path) -> None:
    path = tmp_path / "broken.json"
    path.write_text("{not json")

    result = runner.invoke(app, ["map", str(path)])

    assert result.exit_code == 2


def test_map_rejects_scalar_document(runner: CliRunner, tmp_path) -> None:
    path = tmp_path / "scalar.json"
    path.write_text("42")

    result = runner.invoke(app, ["map", str(path)])

    assert result.exit_code == 2


def test_remote_renders_response(monkeypatch, runner: CliRunner, tmp_path) -> None:
    stub = StubClient(config=None)
    _install_stub(monkeypatch, stub)
    path = tmp_path / "reading.json"
    path.write_text(json.dumps({"machine_id": "M-12", "Flavor": "mint"}))

    result = runner.invoke(app, ["--base-url", "http://mapper:9000/", "remote", str(path)])

    assert result.exit_code == 0
    assert "Reading" in result.stdout
    assert "machine_id: M-12" in result.stdout
    assert "msgType: POST_TELEMETRY_REQUEST" in result.stdout
    assert stub.config.base_url == "http://mapper:9000"
    assert stub.sent == [
        {"msg": {"machine_id": "M-12", "Flavor": "mint"}, "metadata": {}, "msgType": "POST_TELEMETRY_REQUEST"}
    ]
    assert stub.closed is True


def test_remote_json_output(monkeypatch, runner: CliRunner, tmp_path) -> None:
    stub = StubClient(config=None)
    _install_stub(monkeypatch, stub)
    path = tmp_path / "reading.json"
    path.write_text(json.dumps({"msg": {"machine_id": "M-12"}, "metadata": {"k": "v"}, "msgType": "t"}))

    result = runner.invoke(app, ["remote", str(path), "--json"])

    assert result.exit_code == 0
    body = json.loads(result.stdout)
    assert body["metadata"] == {"k": "v"}
    assert body["msg"]["Timestamp"] == "2024-05-01T12:30:15.123Z"


def test_load_config_reads_environment(monkeypatch) -> None:
    monkeypatch.setenv("API_BASE_URL", "http://example.test/")
    monkeypatch.setenv("CLI_REQUEST_TIMEOUT", "-5")

    config = load_config()

    assert config.base_url == "http://example.test"
    assert config.request_timeout == 30.0


def _client_with_transport(handler) -> ApiClient:
    client = ApiClient(CLIConfig(base_url="http://mapper.test"))
    client._client.close()
    client._client = httpx.Client(
        base_url="http://mapper.test", transport=httpx.MockTransport(handler)
    )
    return client


def test_api_client_posts_envelope() -> None:
    seen: List[Dict[str, Any]] = []

    def handler(request: httpx.Request) -> httpx.Response:
        seen.append(json.loads(request.content))
        assert request.url.path == "/transform"
        return httpx.Response(200, json={"msg": {"machine_id": "M-1"}, "metadata": {}, "msgType": None})

    client = _client_with_transport(handler)
    try:
        payload = client.transform({"msg": {"machine_id": "M-1"}, "metadata": {}, "msgType": None})
    finally:
        client.close()

    assert payload["msg"]["machine_id"] == "M-1"
    assert seen == [{"msg": {"machine_id": "M-1"}, "metadata": {}, "msgType": None}]


def test_api_client_exits_on_http_error(capsys) -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(422, json={"detail": "msg must be an object"})

    client = _client_with_transport(handler)
    try:
        with pytest.raises(typer.Exit) as excinfo:
            client.transform({"msg": "bad"})
    finally:
        client.close()

    assert excinfo.value.exit_code == 1
    assert "Request failed with status 422: msg must be an object" in capsys.readouterr().err


def test_api_client_exits_when_service_unreachable(capsys) -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        raise httpx.ConnectError("connection refused", request=request)

    client = _client_with_transport(handler)
    try:
        with pytest.raises(typer.Exit) as excinfo:
            client.transform({"msg": {}})
    finally:
        client.close()

    assert excinfo.value.exit_code == 1
    assert "Could not reach http://mapper.test: connection refused" in capsys.readouterr().err


def test_api_client_rejects_non_json_response() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(200, text="<html>gateway</html>")

    client = _client_with_transport(handler)
    try:
        with pytest.raises(typer.BadParameter, match="Unexpected response payload"):
            client.transform({"msg": {}})
    finally:
        client.close()


def test_remote_accepts_base_url_after_file(monkeypatch, runner: CliRunner, tmp_path) -> None:
    stub = StubClient(config=None)
    _install_stub(monkeypatch, stub)
    path = tmp_path / "reading.json"
    path.write_text(json.dumps({"machine_id": "M-12"}))

    result = runner.invoke(app, ["remote", str(path), "--base-url", "http://edge-mapper:8080/"])

    assert result.exit_code == 0
    assert stub.config.base_url == "http://edge-mapper:8080"
    assert "Sending message to http://edge-mapper:8080" in result.stdout
