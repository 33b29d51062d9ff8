"""Демонстрационные MCP-инструменты: калькулятор, погода, эхо."""

from __future__ import annotations

import math
import random
from datetime import datetime, timezone
from typing import Any, Dict, Union

from mcp_http_bridge.core.errors import DomainError
from mcp_http_bridge.tools.registry import CapabilityRegistry, ParameterSpec, ToolSchema, ToolSpec

Number = Union[int, float]

WEATHER_CONDITIONS = ("sunny", "cloudy", "rainy", "partly cloudy")


def _normalise_number(value: Number) -> Number:
    # 100.0 -> 100, чтобы выражение читалось как "25 multiply 4 = 100".
    # С 1e21 и выше остаётся экспоненциальная запись: 1e+308, а не 309 цифр.
    if isinstance(value, float) and value.is_integer() and abs(value) < 1e21:
        return int(value)
    return value


def _now_iso() -> str:
    return datetime.now(timezone.utc).isoformat().replace("+00:00", "Z")


def _handle_calculator(arguments: Dict[str, Any]) -> Dict[str, Any]:
    operation = arguments["operation"]
    a = _normalise_number(arguments["a"])
    b = _normalise_number(arguments["b"])

    try:
        if operation == "add":
            result = a + b
        elif operation == "subtract":
            result = a - b
        elif operation == "multiply":
            result = a * b
        elif operation == "divide":
            if b == 0:
                raise DomainError("Division by zero")
            result = a / b
        else:  # pragma: no cover - enum в схеме не пропустит другое значение
            raise DomainError(f"Unsupported operation: {operation}")
    except OverflowError as exc:
        raise DomainError(f"Result of {operation} is out of range") from exc

    if isinstance(result, float) and not math.isfinite(result):
        raise DomainError(f"Result of {operation} is out of range")

    result = _normalise_number(result)
    return {"result": result, "expression": f"{a} {operation} {b} = {result}"}


def _handle_get_weather(arguments: Dict[str, Any], *, rng: random.Random | None = None) -> Dict[str, Any]:
    rng = rng or random.Random()
    units = arguments.get("units") or "celsius"
    temp = rng.randint(10, 39)
    if units == "fahrenheit":
        temp = math.floor(temp * 9 / 5 + 32)
    return {
        "location": arguments["location"],
        "temperature": temp,
        "units": units,
        "condition": rng.choice(WEATHER_CONDITIONS),
        "humidity": rng.randint(40, 79),
        "wind_speed": rng.randint(5, 24),
    }


def _handle_echo(arguments: Dict[str, Any]) -> Dict[str, Any]:
    return {"echoed_message": arguments["message"], "timestamp": _now_iso()}


CALCULATOR_SPEC = ToolSpec(
    name="calculator",
    description="Perform basic math operations",
    input_schema=ToolSchema(
        properties={
            "operation": ParameterSpec(
                type="string",
                enum=["add", "subtract", "multiply", "divide"],
                description="The operation to perform",
            ),
            "a": ParameterSpec(type="number", description="First number"),
            "b": ParameterSpec(type="number", description="Second number"),
        },
        required=["operation", "a", "b"],
    ),
)

GET_WEATHER_SPEC = ToolSpec(
    name="get_weather",
    description="Get current weather for a location",
    input_schema=ToolSchema(
        properties={
            "location": ParameterSpec(type="string", description="City name or location"),
            "units": ParameterSpec(type="string", enum=["celsius", "fahrenheit"], default="celsius"),
        },
        required=["location"],
    ),
)

ECHO_SPEC = ToolSpec(
    name="echo",
    description="Echo back the input message",
    input_schema=ToolSchema(
        properties={
            "message": ParameterSpec(type="string", description="Message to echo back"),
        },
        required=["message"],
    ),
)


def build_default_registry() -> CapabilityRegistry:
    registry = CapabilityRegistry()
    registry.register(CALCULATOR_SPEC, _handle_calculator)
    registry.register(GET_WEATHER_SPEC, _handle_get_weather)
    registry.register(ECHO_SPEC, _handle_echo)
    return registry


__all__ = [
    "CALCULATOR_SPEC",
    "ECHO_SPEC",
    "GET_WEATHER_SPEC",
    "WEATHER_CONDITIONS",
    "_handle_calculator",
    "_handle_echo",
    "_handle_get_weather",
    "build_default_registry",
]
