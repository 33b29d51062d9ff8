from __future__ import annotations

import json
from typing import Any, Dict

import pytest
from fastapi.testclient import TestClient

import mcp_http_bridge.api.routes as routes
import mcp_http_bridge.core.session as session_store
import mcp_http_bridge.main as mcp
from mcp_http_bridge.core.config import DEFAULT_PROTOCOL_VERSION, SERVER_CAPABILITIES, SERVER_INFO, SESSION_HEADER
from mcp_http_bridge.core.session import ACTIVE_SESSIONS


@pytest.fixture
def client() -> TestClient:
    return TestClient(mcp.app)


def _rpc(client: TestClient, method: str, params: Any = None, *, request_id: Any = 1, headers: Dict[str, str] | None = None):
    payload: Dict[str, Any] = {"jsonrpc": "2.0", "method": method, "params": params or {}}
    if request_id is not None:
        payload["id"] = request_id
    return client.post("/rpc", json=payload, headers=headers or {})


def test_initialize_list_and_call(client: TestClient) -> None:
    # Act 1: initialize handshake
    init_response = _rpc(
        client,
        "initialize",
        {
            "protocolVersion": "2024-11-05",
            "clientInfo": {"name": "pytest", "version": "1.0"},
            "capabilities": {},
        },
        request_id=7,
    )
    assert init_response.status_code == 200
    init_payload = init_response.json()
    assert init_payload["id"] == 7
    assert init_payload["result"]["protocolVersion"] == "2024-11-05"
    assert init_payload["result"]["capabilities"] == {"tools": {}, "resources": {}, "prompts": {}}
    assert init_payload["result"]["serverInfo"]["name"] == "demo-mcp-server"
    session_id = init_response.headers[SESSION_HEADER]

    # Act 2: notifications/initialized
    ack = _rpc(client, "notifications/initialized", request_id=None, headers={SESSION_HEADER: session_id})
    assert ack.status_code == 204
    assert ack.content == b""
    assert ACTIVE_SESSIONS[session_id].initialized is True

    # Act 3: tools/list
    list_response = _rpc(client, "tools/list", request_id=8)
    assert list_response.status_code == 200
    tools_payload = list_response.json()["result"]["tools"]
    assert [tool["name"] for tool in tools_payload] == ["calculator", "get_weather", "echo"]
    calculator = tools_payload[0]
    assert calculator["inputSchema"]["type"] == "object"
    assert calculator["inputSchema"]["required"] == ["operation", "a", "b"]
    assert calculator["inputSchema"]["properties"]["operation"]["enum"] == ["add", "subtract", "multiply", "divide"]

    # Act 4: tools/call(calculator)
    call_response = _rpc(
        client,
        "tools/call",
        {"name": "calculator", "arguments": {"operation": "multiply", "a": 25, "b": 4}},
        request_id=9,
    )
    assert call_response.status_code == 200
    body = call_response.json()
    assert body["id"] == 9
    content = body["result"]["content"]
    assert len(content) == 1
    assert content[0]["type"] == "text"
    assert json.loads(content[0]["text"]) == {"result": 100, "expression": "25 multiply 4 = 100"}


def test_initialize_defaults_protocol_version(client: TestClient) -> None:
    response = _rpc(client, "initialize", {"clientInfo": {"name": "pytest"}}, request_id="init-1")
    payload = response.json()
    assert payload["id"] == "init-1"
    assert payload["result"]["protocolVersion"] == DEFAULT_PROTOCOL_VERSION


def test_initialize_rejects_non_object_params(client: TestClient) -> None:
    response = client.post("/rpc", json={"jsonrpc": "2.0", "id": 3, "method": "initialize", "params": [1, 2]})
    assert response.status_code == 200
    error = response.json()["error"]
    assert error["code"] == -32603
    assert error["data"]["type"] == "ProtocolError"


def test_unknown_tool_is_in_band_error(client: TestClient) -> None:
    response = _rpc(client, "tools/call", {"name": "teleport", "arguments": {}}, request_id=5)
    assert response.status_code == 200
    payload = response.json()
    assert payload["id"] == 5
    assert "result" not in payload
    assert payload["error"]["code"] == -32603
    assert "teleport" in payload["error"]["message"]
    assert payload["error"]["data"]["type"] == "UnknownCapability"


def test_unknown_method_is_in_band_error(client: TestClient) -> None:
    response = _rpc(client, "resources/list", request_id=6)
    assert response.status_code == 200
    payload = response.json()
    assert payload["error"]["code"] == -32603
    assert "resources/list" in payload["error"]["message"]


def test_division_by_zero_is_reported_as_error(client: TestClient) -> None:
    response = _rpc(
        client,
        "tools/call",
        {"name": "calculator", "arguments": {"operation": "divide", "a": 1, "b": 0}},
        request_id=10,
    )
    payload = response.json()
    assert payload["error"]["message"] == "Division by zero"
    assert payload["error"]["data"]["type"] == "DomainError"


def test_invalid_arguments_are_rejected(client: TestClient) -> None:
    response = _rpc(
        client,
        "tools/call",
        {"name": "calculator", "arguments": {"operation": "multiply", "a": "25"}},
        request_id=11,
    )
    error = response.json()["error"]
    assert error["code"] == -32603
    assert error["data"]["type"] == "InvalidArguments"
    assert "calculator" in error["message"]
    assert "b" in error["message"]


def test_weather_applies_default_units(client: TestClient) -> None:
    response = _rpc(client, "tools/call", {"name": "get_weather", "arguments": {"location": "Oslo"}}, request_id=12)
    data = json.loads(response.json()["result"]["content"][0]["text"])
    assert data["location"] == "Oslo"
    assert data["units"] == "celsius"
    assert 10 <= data["temperature"] <= 39
    assert 40 <= data["humidity"] <= 79


def test_notifications_return_no_content(client: TestClient) -> None:
    response = _rpc(client, "notifications/cancelled", {"requestId": 1}, request_id=None)
    assert response.status_code == 204
    assert response.content == b""


def test_ping(client: TestClient) -> None:
    response = _rpc(client, "ping", request_id=13)
    assert response.json() == {"jsonrpc": "2.0", "result": {}, "id": 13}


def test_session_gate_when_required(client: TestClient, monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setattr(routes, "REQUIRE_INITIALIZE", True)

    blocked = _rpc(client, "tools/list", request_id=1)
    assert blocked.json()["error"]["data"]["type"] == "SessionNotInitialized"

    init = _rpc(client, "initialize", {"protocolVersion": "2025-06-18"}, request_id=2)
    session_id = init.headers[SESSION_HEADER]
    headers = {SESSION_HEADER: session_id}

    # initialize без уведомления ещё не открывает доступ
    still_blocked = _rpc(client, "tools/list", request_id=3, headers=headers)
    assert "error" in still_blocked.json()

    _rpc(client, "notifications/initialized", request_id=None, headers=headers)
    allowed = _rpc(client, "tools/list", request_id=4, headers=headers)
    assert len(allowed.json()["result"]["tools"]) == 3


def test_health_and_info(client: TestClient) -> None:
    health = client.get("/health").json()
    assert health["status"] == "ok"
    assert health["server"] == "mcp-demo"
    assert health["timestamp"]

    info = client.get("/rpc").json()
    assert info["transport"] == {"type": "http", "endpoint": "/rpc", "events": "/sse"}

    local = routes.mcp_info()
    local["capabilities"]["tools"]["listChanged"] = True
    local["serverInfo"]["name"] = "mutated"
    again = client.get("/rpc").json()
    assert again["capabilities"] == {"tools": {}, "resources": {}, "prompts": {}}
    assert again["serverInfo"]["name"] == "demo-mcp-server"
    assert SERVER_CAPABILITIES["tools"] == {}
    assert SERVER_INFO["name"] == "demo-mcp-server"


@pytest.mark.parametrize(
    ("envelope", "expected_id"),
    [
        ({"jsonrpc": "2.0", "id": 1, "method": 42}, 1),
        ({"jsonrpc": "1.0", "id": 2, "method": "ping"}, 2),
        ({"jsonrpc": "2.0", "id": 1.5, "method": "ping"}, None),
        ({"jsonrpc": "2.0", "id": 3}, 3),
        ([{"jsonrpc": "2.0", "id": 4, "method": "ping"}], None),
    ],
)
def test_malformed_envelope_is_in_band_error(client: TestClient, envelope: Any, expected_id: Any) -> None:
    response = client.post("/rpc", json=envelope)
    assert response.status_code == 200
    payload = response.json()
    assert payload["jsonrpc"] == "2.0"
    assert payload["id"] == expected_id
    assert "id" in payload
    assert payload["error"]["code"] == -32603
    assert payload["error"]["data"]["type"] == "ProtocolError"


def test_calculator_overflow_is_in_band_error(client: TestClient) -> None:
    response = _rpc(
        client,
        "tools/call",
        {"name": "calculator", "arguments": {"operation": "multiply", "a": 1e308, "b": 10}},
        request_id=21,
    )
    assert response.status_code == 200
    assert "Infinity" not in response.text
    payload = response.json()
    assert payload["error"]["data"]["type"] == "DomainError"


def test_repeated_initialize_keeps_session_table_bounded(client: TestClient, monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setattr(session_store, "MAX_SESSIONS", 5)

    issued = []
    for request_id in range(50):
        response = _rpc(client, "initialize", {"protocolVersion": "2025-06-18"}, request_id=request_id)
        issued.append(response.headers[SESSION_HEADER])

    assert len(ACTIVE_SESSIONS) == 5
    # вытесняются самые старые сессии
    assert list(ACTIVE_SESSIONS) == issued[-5:]


def test_shutdown_closes_session(client: TestClient) -> None:
    init = _rpc(client, "initialize", {"protocolVersion": "2025-06-18"}, request_id=1)
    session_id = init.headers[SESSION_HEADER]
    assert session_id in ACTIVE_SESSIONS

    response = _rpc(client, "shutdown", request_id=2, headers={SESSION_HEADER: session_id})
    assert response.json() == {"jsonrpc": "2.0", "result": {}, "id": 2}
    assert session_id not in ACTIVE_SESSIONS

    # повторный shutdown и shutdown без сессии не ошибка
    assert "result" in _rpc(client, "shutdown", request_id=3, headers={SESSION_HEADER: session_id}).json()
    assert "result" in _rpc(client, "shutdown", request_id=4).json()
