"""Цикл tool-calling через OpenAI Responses API поверх инструментов MCP.

Модель получает инструменты сервера как function tools; каждый запрошенный
`function_call` исполняется через `tools/call`, а результат уходит обратно
follow-up запросом с `previous_response_id`.
"""

from __future__ import annotations

import json
import logging
import os
import time
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, List, Mapping, Optional

from openai import AsyncOpenAI

from mcp_http_bridge.client.session import RemoteTool, extract_text
from mcp_http_bridge.core.errors import McpBridgeError

logger = logging.getLogger("mcp_http_bridge.client.agent")

DEFAULT_MODEL = os.getenv("OPENAI_MODEL", "gpt-4.1-mini")


def create_openai_client() -> Any:
    """Создаёт асинхронный клиент OpenAI, используя переменные окружения."""
    api_key = os.getenv("OPENAI_API_KEY")
    if not api_key:
        raise RuntimeError("Missing OPENAI_API_KEY env var")
    base_url = os.getenv("OPENAI_BASE_URL", "https://api.openai.com/v1")
    return AsyncOpenAI(api_key=api_key, base_url=base_url)


def maybe_model_dump(value: Any) -> Dict[str, Any]:
    if isinstance(value, dict):
        return value
    if hasattr(value, "model_dump"):
        try:
            return value.model_dump()
        except Exception:  # pragma: no cover - старые версии SDK
            pass
    if hasattr(value, "to_dict"):
        return value.to_dict()
    return {}


def to_function_tool(tool: RemoteTool) -> Dict[str, Any]:
    """RemoteTool → описание function tool для Responses API."""
    return {
        "type": "function",
        "name": tool.name,
        "description": tool.description,
        "parameters": tool.input_schema or {"type": "object", "properties": {}},
    }


def _output_text(data: Dict[str, Any]) -> str:
    text = data.get("output_text")
    if isinstance(text, str) and text:
        return text
    parts: List[str] = []
    for item in data.get("output") or []:
        if not isinstance(item, dict) or item.get("type") != "message":
            continue
        for block in item.get("content") or []:
            if isinstance(block, dict) and block.get("type") == "output_text":
                parts.append(str(block.get("text", "")))
    return "\n".join(parts)


def _function_calls(data: Dict[str, Any]) -> List[Dict[str, Any]]:
    return [
        item
        for item in data.get("output") or []
        if isinstance(item, dict) and item.get("type") == "function_call"
    ]


@dataclass
class ToolCallRecord:
    """Один выполненный вызов инструмента."""

    call_id: Optional[str]
    tool_name: str
    arguments: Dict[str, Any]
    output: str
    is_error: bool = False

    def to_dict(self) -> Dict[str, Any]:
        return {
            "callId": self.call_id,
            "toolName": self.tool_name,
            "arguments": self.arguments,
            "output": self.output,
            "isError": self.is_error,
        }


@dataclass
class AgentResult:
    text: str
    tool_calls: List[ToolCallRecord] = field(default_factory=list)
    response_id: Optional[str] = None


class ToolCallingAgent:
    def __init__(
        self,
        tools: Mapping[str, RemoteTool],
        *,
        model: str = DEFAULT_MODEL,
        client_factory: Optional[Callable[[], Any]] = None,
        max_turns: int = 8,
    ) -> None:
        self._tools = dict(tools)
        self._model = model
        self._client_factory = client_factory or create_openai_client
        self._client: Optional[Any] = None
        self._max_turns = max_turns

    def _openai(self) -> Any:
        if self._client is None:
            self._client = self._client_factory()
        return self._client

    async def _execute(self, call: Dict[str, Any]) -> ToolCallRecord:
        name = str(call.get("name") or "")
        call_id = call.get("call_id") or call.get("id")
        raw_arguments = call.get("arguments") or "{}"
        try:
            arguments = json.loads(raw_arguments) if isinstance(raw_arguments, str) else dict(raw_arguments)
        except (TypeError, ValueError):
            return ToolCallRecord(call_id, name, {}, f"Error: malformed arguments {raw_arguments!r}", True)

        tool = self._tools.get(name)
        if tool is None:
            return ToolCallRecord(call_id, name, arguments, f"Error: unknown tool '{name}'", True)
        try:
            result = await tool.execute(arguments)
        except McpBridgeError as exc:
            logger.warning("Tool %s failed: %s", name, exc)
            return ToolCallRecord(call_id, name, arguments, f"Error: {exc}", True)
        return ToolCallRecord(call_id, name, arguments, extract_text(result))

    async def run(self, prompt: str) -> AgentResult:
        client = self._openai()
        function_tools = [to_function_tool(tool) for tool in self._tools.values()]
        payload: Dict[str, Any] = {
            "model": self._model,
            "input": [{"role": "user", "content": prompt}],
        }
        if function_tools:
            payload["tools"] = function_tools

        t0 = time.time()
        data = maybe_model_dump(await client.responses.create(**payload))
        logger.info("responses.create ok in %.1f ms (model=%s)", (time.time() - t0) * 1000.0, self._model)

        records: List[ToolCallRecord] = []
        for _ in range(self._max_turns):
            calls = _function_calls(data)
            if not calls:
                return AgentResult(text=_output_text(data), tool_calls=records, response_id=data.get("id"))

            follow_up_inputs: List[Dict[str, Any]] = []
            for call in calls:
                record = await self._execute(call)
                records.append(record)
                follow_up_inputs.append(
                    {"type": "function_call_output", "call_id": record.call_id, "output": record.output}
                )

            follow_up: Dict[str, Any] = {
                "model": self._model,
                "previous_response_id": data.get("id"),
                "input": follow_up_inputs,
            }
            if function_tools:
                follow_up["tools"] = function_tools
            logger.info("Sending OpenAI follow-up with %d tool output(s)", len(follow_up_inputs))
            data = maybe_model_dump(await client.responses.create(**follow_up))

        raise RuntimeError("Reached maximum tool iterations without completion.")


__all__ = [
    "AgentResult",
    "DEFAULT_MODEL",
    "ToolCallRecord",
    "ToolCallingAgent",
    "create_openai_client",
    "maybe_model_dump",
    "to_function_tool",
]
