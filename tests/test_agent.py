from __future__ import annotations

import asyncio
import json
from typing import Any, Dict, List

from mcp_http_bridge.client.agent import ToolCallingAgent, to_function_tool
from mcp_http_bridge.client.session import RemoteTool
from mcp_http_bridge.core.errors import RemoteError
from mcp_http_bridge.tools.handlers import _handle_calculator


class DummyResponse:
    def __init__(self, payload: Dict[str, Any]) -> None:
        self._payload = payload

    def model_dump(self) -> Dict[str, Any]:
        return self._payload


class DummyResponsesAPI:
    def __init__(self, payloads: List[Dict[str, Any]]) -> None:
        self._payloads = payloads
        self.requests: List[Dict[str, Any]] = []

    async def create(self, **kwargs: Any) -> DummyResponse:
        self.requests.append(kwargs)
        index = min(len(self.requests) - 1, len(self._payloads) - 1)
        return DummyResponse(self._payloads[index])


class DummyOpenAIClient:
    def __init__(self, payloads: List[Dict[str, Any]]) -> None:
        self.responses = DummyResponsesAPI(payloads)


class LocalToolClient:
    """Исполняет calculator локально вместо похода на сервер."""

    def __init__(self) -> None:
        self.calls: List[Dict[str, Any]] = []

    async def call_tool(self, name: str, arguments: Dict[str, Any]) -> Dict[str, Any]:
        self.calls.append({"name": name, "arguments": arguments})
        if arguments.get("b") == 0:
            raise RemoteError(-32603, "Division by zero")
        result = _handle_calculator(arguments)
        return {"content": [{"type": "text", "text": json.dumps(result, indent=2)}]}


def _tools(client: LocalToolClient) -> Dict[str, RemoteTool]:
    return {
        "calculator": RemoteTool(
            name="calculator",
            description="Perform basic math operations",
            input_schema={"type": "object", "properties": {}, "required": []},
            client=client,  # type: ignore[arg-type]
        )
    }


def _function_call(call_id: str, arguments: Dict[str, Any]) -> Dict[str, Any]:
    return {
        "type": "function_call",
        "id": f"fc_{call_id}",
        "call_id": call_id,
        "name": "calculator",
        "arguments": json.dumps(arguments),
    }


def test_function_tool_conversion() -> None:
    tool = _tools(LocalToolClient())["calculator"]
    assert to_function_tool(tool) == {
        "type": "function",
        "name": "calculator",
        "description": "Perform basic math operations",
        "parameters": {"type": "object", "properties": {}, "required": []},
    }


def test_agent_executes_tool_calls_and_follows_up() -> None:
    initial = {
        "id": "resp_1",
        "output": [_function_call("call_1", {"operation": "divide", "a": 156, "b": 12})],
    }
    final = {
        "id": "resp_2",
        "output": [
            {
                "type": "message",
                "role": "assistant",
                "content": [{"type": "output_text", "text": "156 / 12 = 13"}],
            }
        ],
    }
    openai_client = DummyOpenAIClient([initial, final])
    tool_client = LocalToolClient()
    agent = ToolCallingAgent(_tools(tool_client), model="gpt-test", client_factory=lambda: openai_client)

    result = asyncio.run(agent.run("What is 156 divided by 12?"))

    assert result.text == "156 / 12 = 13"
    assert result.response_id == "resp_2"
    assert [record.tool_name for record in result.tool_calls] == ["calculator"]
    assert tool_client.calls == [{"name": "calculator", "arguments": {"operation": "divide", "a": 156, "b": 12}}]

    first_request, follow_up = openai_client.responses.requests
    assert first_request["model"] == "gpt-test"
    assert first_request["tools"][0]["name"] == "calculator"
    assert follow_up["previous_response_id"] == "resp_1"
    output = follow_up["input"][0]
    assert output["type"] == "function_call_output"
    assert output["call_id"] == "call_1"
    assert json.loads(output["output"])["result"] == 13


def test_agent_reports_tool_errors_to_model() -> None:
    initial = {"id": "resp_err", "output": [_function_call("call_err", {"operation": "divide", "a": 1, "b": 0})]}
    final = {"id": "resp_done", "output_text": "Cannot divide by zero."}
    openai_client = DummyOpenAIClient([initial, final])
    agent = ToolCallingAgent(_tools(LocalToolClient()), client_factory=lambda: openai_client)

    result = asyncio.run(agent.run("1/0?"))

    assert result.text == "Cannot divide by zero."
    record = result.tool_calls[0]
    assert record.is_error is True
    assert record.to_dict()["output"] == "Error: Division by zero"
    assert openai_client.responses.requests[1]["input"][0]["output"] == "Error: Division by zero"
