"""Иерархия исключений MCP-моста.

Серверные ошибки (реестр, диспетчер, эндпоинт) перехватываются на границе
`POST /rpc` и кодируются внутри обычного JSON-RPC ответа. Наружу из
клиентского транспорта выходит только `TransportFailure`.
"""

from __future__ import annotations

from typing import Any, Optional


class McpBridgeError(Exception):
    """Базовое исключение пакета."""


class DuplicateCapability(McpBridgeError):
    def __init__(self, name: str) -> None:
        super().__init__(f"Tool already registered: {name}")
        self.name = name


class UnknownCapability(McpBridgeError):
    def __init__(self, name: Any) -> None:
        super().__init__(f"Unknown tool: {name}")
        self.name = name


class InvalidArguments(McpBridgeError):
    def __init__(self, name: str, detail: str, *, errors: Optional[list] = None) -> None:
        super().__init__(f"Invalid arguments for tool '{name}': {detail}")
        self.name = name
        self.errors = errors or []


class DomainError(McpBridgeError):
    """Ошибка предметной области, выброшенная самим инструментом."""


class ProtocolError(McpBridgeError):
    """Неизвестный метод или структурно некорректные параметры."""


class SessionNotInitialized(ProtocolError):
    pass


class TransportFailure(McpBridgeError):
    """Сбой самого HTTP-обмена: ответа, который можно декодировать, нет."""


class RequestTimeout(TransportFailure):
    pass


class RemoteError(McpBridgeError):
    """Клиентское представление JSON-RPC ответа с полем `error`."""

    def __init__(self, code: int, message: str, *, data: Any = None) -> None:
        super().__init__(message)
        self.code = code
        self.data = data


__all__ = [
    "DomainError",
    "DuplicateCapability",
    "InvalidArguments",
    "McpBridgeError",
    "ProtocolError",
    "RemoteError",
    "RequestTimeout",
    "SessionNotInitialized",
    "TransportFailure",
    "UnknownCapability",
]
