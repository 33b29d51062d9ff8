"""Pydantic-модели для JSON-RPC сообщений и состояния сессий MCP."""

from __future__ import annotations

from enum import Enum
from typing import Any, Dict, Optional, Literal, Union

from pydantic import BaseModel, Field

RequestId = Union[int, str]


class McpMethod(str, Enum):
    """Закрытый набор методов, которые обслуживает `POST /rpc`."""

    INITIALIZE = "initialize"
    PING = "ping"
    SHUTDOWN = "shutdown"
    TOOLS_LIST = "tools/list"
    TOOLS_CALL = "tools/call"

    @classmethod
    def parse(cls, method: str) -> Optional["McpMethod"]:
        try:
            return cls(method)
        except ValueError:
            return None


class JsonRpcRequest(BaseModel):
    """Входящее JSON-RPC 2.0 сообщение: запрос или уведомление (без `id`)."""

    jsonrpc: Literal["2.0"] = "2.0"
    method: str
    params: Any = None
    id: Optional[RequestId] = None

    @property
    def is_notification(self) -> bool:
        return self.id is None


class JsonRpcNotification(BaseModel):
    """Исходящее уведомление: ответа на него не бывает."""

    jsonrpc: Literal["2.0"] = "2.0"
    method: str
    params: Optional[Dict[str, Any]] = None


class JsonRpcResponse(BaseModel):
    """Успешный JSON-RPC 2.0 ответ."""

    jsonrpc: Literal["2.0"] = "2.0"
    result: Any = None
    id: Optional[RequestId] = None


class JsonRpcErrorObj(BaseModel):
    """Структура ошибки JSON-RPC 2.0."""

    code: int
    message: str
    data: Optional[Any] = None


class JsonRpcError(BaseModel):
    """JSON-RPC 2.0 ответ с ошибкой."""

    jsonrpc: Literal["2.0"] = "2.0"
    error: JsonRpcErrorObj
    id: Optional[RequestId] = None


class InitializeParams(BaseModel):
    """Параметры метода `initialize` MCP."""

    protocolVersion: Optional[str] = None
    clientInfo: Dict[str, Any] = Field(default_factory=dict)
    capabilities: Dict[str, Any] = Field(default_factory=dict)


class ToolCallParams(BaseModel):
    """Параметры метода `tools/call`."""

    name: str
    arguments: Any = None


class SessionState(BaseModel):
    """Минимальное состояние MCP-сессии."""

    id: str
    client_info: Dict[str, Any] = Field(default_factory=dict)
    capabilities: Dict[str, Any] = Field(default_factory=dict)
    protocol_version: Optional[str] = None
    initialized: bool = False


def parse_incoming(payload: Dict[str, Any]) -> Union[JsonRpcResponse, JsonRpcError]:
    """Разбирает ответ сервера в одну из двух форм по наличию поля `error`."""
    if payload.get("error") is not None:
        return JsonRpcError.model_validate(payload)
    return JsonRpcResponse.model_validate(payload)


__all__ = [
    "InitializeParams",
    "JsonRpcError",
    "JsonRpcErrorObj",
    "JsonRpcNotification",
    "JsonRpcRequest",
    "JsonRpcResponse",
    "McpMethod",
    "RequestId",
    "SessionState",
    "ToolCallParams",
    "parse_incoming",
]
