"""Описание схем и реестра MCP-инструментов."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Callable, Dict, Iterator, List, Literal, Optional, Type

from pydantic import BaseModel, ConfigDict, Field

from mcp_http_bridge.core.errors import DuplicateCapability, UnknownCapability
from mcp_http_bridge.tools.arguments import build_arguments_model

ToolResult = Any
ToolHandler = Callable[[Dict[str, Any]], ToolResult]

ParameterKind = Literal["string", "number", "integer", "boolean", "object", "array"]


class ParameterSpec(BaseModel):
    """Описание одного именованного аргумента инструмента."""

    model_config = ConfigDict(frozen=True)

    type: ParameterKind
    description: Optional[str] = None
    enum: Optional[List[Any]] = None
    minimum: Optional[float] = None
    maximum: Optional[float] = None
    default: Optional[Any] = None

    def as_dict(self) -> Dict[str, Any]:
        return self.model_dump(exclude_none=True)


class ToolSchema(BaseModel):
    """JSON-схема аргументов инструмента MCP."""

    model_config = ConfigDict(frozen=True)

    type: Literal["object"] = "object"
    properties: Dict[str, ParameterSpec] = Field(default_factory=dict)
    required: List[str] = Field(default_factory=list)
    additionalProperties: bool = False

    def as_dict(self) -> Dict[str, Any]:
        return {
            "type": self.type,
            "properties": {name: spec.as_dict() for name, spec in self.properties.items()},
            "required": list(self.required),
            "additionalProperties": self.additionalProperties,
        }


class ToolSpec(BaseModel):
    """Спецификация инструмента MCP, публикуемая в `tools/list`."""

    model_config = ConfigDict(frozen=True)

    name: str
    description: str
    input_schema: ToolSchema

    def as_mcp_dict(self) -> Dict[str, Any]:
        return {
            "name": self.name,
            "description": self.description,
            "inputSchema": self.input_schema.as_dict(),
        }


@dataclass(frozen=True)
class ToolEntry:
    """Запись реестра: дескриптор, исполнитель и модель для проверки аргументов."""

    spec: ToolSpec
    handler: ToolHandler
    arguments_model: Type[BaseModel]


class CapabilityRegistry:
    """Реестр инструментов: наполняется при старте и дальше только читается.

    Порядок регистрации сохраняется (`dict` упорядочен), поэтому `tools/list`
    всегда отдаёт инструменты в том порядке, в котором их добавили.
    """

    def __init__(self) -> None:
        self._entries: Dict[str, ToolEntry] = {}

    def register(self, spec: ToolSpec, handler: ToolHandler) -> ToolEntry:
        if spec.name in self._entries:
            raise DuplicateCapability(spec.name)
        entry = ToolEntry(
            spec=spec.model_copy(deep=True),
            handler=handler,
            arguments_model=build_arguments_model(spec),
        )
        self._entries[spec.name] = entry
        return entry

    def lookup(self, name: Any) -> ToolEntry:
        if not isinstance(name, str) or name not in self._entries:
            raise UnknownCapability(name)
        return self._entries[name]

    def list_all(self) -> Iterator[ToolSpec]:
        """Новый ленивый итератор дескрипторов при каждом вызове."""
        return (entry.spec for entry in self._entries.values())

    def names(self) -> List[str]:
        return list(self._entries)

    def __contains__(self, name: object) -> bool:
        return name in self._entries

    def __len__(self) -> int:
        return len(self._entries)


__all__ = [
    "CapabilityRegistry",
    "ParameterKind",
    "ParameterSpec",
    "ToolEntry",
    "ToolHandler",
    "ToolResult",
    "ToolSchema",
    "ToolSpec",
]
