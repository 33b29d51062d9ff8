"""MCPClient — сессия MCP поверх транспорта с колбэком `onmessage`.

Клиент владеет таблицей ожидающих вызовов: `id` запроса → `asyncio.Future`.
Future регистрируется до `send`, разрешается ровно один раз первым ответом с
тем же `id`, а при таймауте или закрытии клиента завершается ошибкой.
"""

from __future__ import annotations

import asyncio
import json
import logging
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Protocol, Union

from pydantic import ValidationError

from mcp_http_bridge import __version__
from mcp_http_bridge.core.config import DEFAULT_PROTOCOL_VERSION, NOTIFICATION_PREFIX
from mcp_http_bridge.core.errors import RemoteError, RequestTimeout, TransportFailure
from mcp_http_bridge.models.json_rpc import (
    JsonRpcError,
    JsonRpcNotification,
    JsonRpcRequest,
    JsonRpcResponse,
    RequestId,
    parse_incoming,
)

logger = logging.getLogger("mcp_http_bridge.client.session")

Reply = Union[JsonRpcResponse, JsonRpcError]


class MessageTransport(Protocol):
    """Минимальный контракт транспорта, которым пользуется клиент."""

    onmessage: Any

    async def start(self) -> None: ...
    async def send(self, message: Dict[str, Any]) -> None: ...
    async def close(self) -> None: ...


@dataclass
class RemoteTool:
    """Инструмент сервера, обёрнутый в вызываемый объект."""

    name: str
    description: str
    input_schema: Dict[str, Any] = field(default_factory=dict)
    client: Optional["McpClient"] = field(default=None, repr=False)

    async def execute(self, arguments: Dict[str, Any]) -> Dict[str, Any]:
        if self.client is None:
            raise RuntimeError(f"Tool '{self.name}' is not bound to a client")
        return await self.client.call_tool(self.name, arguments)


def extract_text(result: Dict[str, Any]) -> str:
    """Склеивает текстовые блоки результата `tools/call`."""
    content = result.get("content") if isinstance(result, dict) else None
    parts: List[str] = []
    for item in content or []:
        if isinstance(item, dict) and item.get("type") == "text":
            parts.append(str(item.get("text", "")))
    return "\n".join(parts)


def decode_text_result(result: Dict[str, Any]) -> Any:
    """Результат инструментов сервера — JSON в первом текстовом блоке."""
    return json.loads(extract_text(result))


class McpClient:
    """Async context manager, выполняющий handshake и вызовы инструментов.

    Usage::

        transport = HttpTransport(HttpTransportConfig(url="http://localhost:3456/sse"))
        async with McpClient(transport) as client:
            tools = await client.tools()
            result = await tools["calculator"].execute({"operation": "add", "a": 1, "b": 2})
    """

    def __init__(
        self,
        transport: MessageTransport,
        *,
        client_info: Optional[Dict[str, str]] = None,
        protocol_version: str = DEFAULT_PROTOCOL_VERSION,
        request_timeout: Optional[float] = 30.0,
    ) -> None:
        self._transport = transport
        self._transport.onmessage = self._on_message
        self._client_info = client_info or {"name": "mcp-http-bridge-client", "version": __version__}
        self._protocol_version = protocol_version
        self._request_timeout = request_timeout
        self._pending: Dict[RequestId, asyncio.Future] = {}
        self._next_id = 1
        self._closed = False
        self.server_info: Dict[str, Any] = {}
        self.server_capabilities: Dict[str, Any] = {}
        self.negotiated_version: Optional[str] = None

    async def __aenter__(self) -> "McpClient":
        await self.connect()
        return self

    async def __aexit__(self, *_: object) -> None:
        await self.close()

    @property
    def pending_count(self) -> int:
        return len(self._pending)

    async def connect(self) -> None:
        """Запуск транспорта и трёхшаговый handshake initialize → initialized."""
        await self._transport.start()
        result = await self.request(
            "initialize",
            {
                "protocolVersion": self._protocol_version,
                "capabilities": {},
                "clientInfo": self._client_info,
            },
        )
        result = result or {}
        self.negotiated_version = result.get("protocolVersion")
        self.server_info = result.get("serverInfo") or {}
        self.server_capabilities = result.get("capabilities") or {}
        await self.notify(f"{NOTIFICATION_PREFIX}initialized")
        logger.info(
            "Connected to %s %s (protocol %s)",
            self.server_info.get("name"),
            self.server_info.get("version"),
            self.negotiated_version,
        )

    async def close(self) -> None:
        if self._closed:
            return
        self._closed = True
        for request_id, future in list(self._pending.items()):
            if not future.done():
                future.set_exception(TransportFailure(f"Client closed before response to request {request_id!r}"))
        self._pending.clear()
        await self._transport.close()

    async def request(
        self,
        method: str,
        params: Optional[Dict[str, Any]] = None,
        *,
        timeout: Optional[float] = None,
    ) -> Any:
        """Отправить запрос и дождаться коррелированного ответа."""
        if self._closed:
            raise TransportFailure("Client is closed")

        request_id = self._next_id
        self._next_id += 1
        request = JsonRpcRequest(method=method, params=params or {}, id=request_id)

        future: asyncio.Future = asyncio.get_running_loop().create_future()
        self._pending[request_id] = future
        wait_for = self._request_timeout if timeout is None else timeout
        try:
            await self._transport.send(request.model_dump())
            reply: Reply = await asyncio.wait_for(future, wait_for)
        except asyncio.TimeoutError as exc:
            raise RequestTimeout(f"No response to {method} (id={request_id}) within {wait_for}s") from exc
        finally:
            self._pending.pop(request_id, None)

        if isinstance(reply, JsonRpcError):
            raise RemoteError(reply.error.code, reply.error.message, data=reply.error.data)
        return reply.result

    async def notify(self, method: str, params: Optional[Dict[str, Any]] = None) -> None:
        notification = JsonRpcNotification(method=method, params=params or {})
        await self._transport.send(notification.model_dump())

    async def list_tools(self) -> List[RemoteTool]:
        result = await self.request("tools/list") or {}
        tools: List[RemoteTool] = []
        for raw in result.get("tools", []):
            if not isinstance(raw, dict) or not isinstance(raw.get("name"), str):
                logger.warning("Skipping malformed tool descriptor: %s", raw)
                continue
            tools.append(
                RemoteTool(
                    name=raw["name"],
                    description=raw.get("description") or "",
                    input_schema=raw.get("inputSchema") or {"type": "object", "properties": {}},
                    client=self,
                )
            )
        return tools

    async def tools(self) -> Dict[str, RemoteTool]:
        return {tool.name: tool for tool in await self.list_tools()}

    async def call_tool(self, name: str, arguments: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
        return await self.request("tools/call", {"name": name, "arguments": arguments or {}})

    def _on_message(self, payload: Dict[str, Any]) -> None:
        request_id = payload.get("id")
        future = self._pending.get(request_id) if request_id is not None else None
        if future is None or future.done():
            logger.warning("Dropping message without a pending request: id=%r", request_id)
            return
        try:
            future.set_result(parse_incoming(payload))
        except ValidationError as exc:
            future.set_exception(TransportFailure(f"Malformed JSON-RPC response for id={request_id!r}: {exc}"))


__all__ = [
    "McpClient",
    "MessageTransport",
    "RemoteTool",
    "decode_text_result",
    "extract_text",
]
