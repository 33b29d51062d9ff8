"""Проверка аргументов инструмента по его входной схеме.

Для каждого инструмента при регистрации строится pydantic-модель: вид
параметра превращается в строгий тип, `enum` в `Literal`, границы в `ge`/`le`.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any, Dict, List, Literal, Optional, Set, Tuple, Type, Union

from pydantic import BaseModel, ConfigDict, Field, StrictBool, StrictFloat, StrictInt, StrictStr, ValidationError, create_model

from mcp_http_bridge.core.errors import InvalidArguments

if TYPE_CHECKING:
    from mcp_http_bridge.tools.registry import ParameterSpec, ToolSpec

_KIND_TYPES: Dict[str, Any] = {
    "string": StrictStr,
    "number": Union[StrictInt, StrictFloat],
    "integer": StrictInt,
    "boolean": StrictBool,
    "object": Dict[str, Any],
    "array": List[Any],
}


def _field_for(param: "ParameterSpec", required: bool) -> Tuple[Any, Any]:
    annotation: Any = _KIND_TYPES[param.type]
    if param.enum:
        annotation = Literal[tuple(param.enum)]
    constraints: Dict[str, Any] = {}
    if param.minimum is not None:
        constraints["ge"] = param.minimum
    if param.maximum is not None:
        constraints["le"] = param.maximum
    if param.description:
        constraints["description"] = param.description

    if required:
        return annotation, Field(..., **constraints)
    if param.default is not None:
        return annotation, Field(default=param.default, **constraints)
    return Optional[annotation], Field(default=None, **constraints)


def build_arguments_model(spec: "ToolSpec") -> Type[BaseModel]:
    schema = spec.input_schema
    required = set(schema.required)
    fields = {
        name: _field_for(param, name in required)
        for name, param in schema.properties.items()
    }
    extra = "allow" if schema.additionalProperties else "forbid"
    return create_model(
        f"{spec.name}_arguments",
        __config__=ConfigDict(extra=extra),
        **fields,
    )


def _describe(exc: ValidationError) -> str:
    parts = []
    for err in exc.errors():
        location = ".".join(str(item) for item in err.get("loc", ())) or "<root>"
        parts.append(f"{location}: {err.get('msg')}")
    return "; ".join(parts)


def validate_arguments(spec: "ToolSpec", model: Type[BaseModel], arguments: Any) -> Dict[str, Any]:
    """Возвращает аргументы с подставленными значениями по умолчанию.

    Необязательные параметры без `default`, которые клиент не передал, в
    результат не попадают.
    """
    if arguments is None:
        arguments = {}
    if not isinstance(arguments, dict):
        raise InvalidArguments(spec.name, "'arguments' must be an object")
    try:
        parsed = model.model_validate(arguments)
    except ValidationError as exc:
        raise InvalidArguments(spec.name, _describe(exc), errors=exc.errors()) from exc

    data = parsed.model_dump()
    declared_defaults: Set[str] = {
        name for name, param in spec.input_schema.properties.items() if param.default is not None
    }
    for name in list(data):
        if name not in parsed.model_fields_set and name not in declared_defaults and data[name] is None:
            del data[name]
    return data


__all__ = ["build_arguments_model", "validate_arguments"]
