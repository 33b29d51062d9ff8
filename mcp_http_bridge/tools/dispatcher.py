"""Вызов инструментов по имени с проверкой аргументов."""

from __future__ import annotations

import logging
from typing import Any, Dict

from mcp_http_bridge.tools.arguments import validate_arguments
from mcp_http_bridge.tools.registry import CapabilityRegistry, ToolResult

logger = logging.getLogger("mcp_http_bridge.tools.dispatcher")


class CapabilityDispatcher:
    """Тонкий слой над реестром: lookup → проверка аргументов → исполнитель.

    Состояния не хранит, поэтому один экземпляр безопасно обслуживает
    параллельные запросы.
    """

    def __init__(self, registry: CapabilityRegistry) -> None:
        self._registry = registry

    @property
    def registry(self) -> CapabilityRegistry:
        return self._registry

    def invoke(self, name: Any, arguments: Any) -> ToolResult:
        entry = self._registry.lookup(name)
        validated: Dict[str, Any] = validate_arguments(entry.spec, entry.arguments_model, arguments)
        logger.debug("Invoking tool %s with %s", entry.spec.name, validated)
        return entry.handler(validated)


__all__ = ["CapabilityDispatcher"]
