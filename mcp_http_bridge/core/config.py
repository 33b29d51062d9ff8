"""Глобальные константы и настройки MCP-моста."""

from __future__ import annotations

import logging
import os
from typing import Dict, Optional

logger = logging.getLogger("mcp_http_bridge.core.config")


def _get_bool(value: Optional[str], default: bool = False) -> bool:
    if value is None:
        return default
    return value.strip().lower() in {"1", "true", "yes", "y", "on"}


def _get_float(name: str, default: float) -> float:
    raw = os.getenv(name)
    if not raw:
        return default
    try:
        return max(0.0, float(raw))
    except ValueError:
        logger.warning("Invalid %s=%r, falling back to %s", name, raw, default)
        return default


def _get_int(name: str, default: int) -> int:
    raw = os.getenv(name)
    if not raw:
        return default
    try:
        return int(raw)
    except ValueError:
        logger.warning("Invalid %s=%r, falling back to %s", name, raw, default)
        return default


DEFAULT_PROTOCOL_VERSION = os.getenv("MCP_PROTOCOL_VERSION", "2025-06-18")
SERVER_INFO: Dict[str, str] = {
    "name": "demo-mcp-server",
    "version": os.getenv("APP_VERSION", "1.0.0"),
}
# Категории объявляются объектами, а не булевыми флагами.
SERVER_CAPABILITIES: Dict[str, Dict[str, object]] = {
    "tools": {},
    "resources": {},
    "prompts": {},
}
HEALTH_SERVER_NAME = "mcp-demo"

RPC_PATH = "/rpc"
SSE_PATH = "/sse"
NOTIFICATION_PREFIX = "notifications/"
SESSION_HEADER = "mcp-session-id"
INTERNAL_ERROR_CODE = -32603

SERVER_HOST = os.getenv("MCP_SERVER_HOST", "127.0.0.1")
SERVER_PORT = _get_int("MCP_SERVER_PORT", 3456)
HEARTBEAT_INTERVAL = _get_float("MCP_HEARTBEAT_INTERVAL", 30.0)
REQUIRE_INITIALIZE = _get_bool(os.getenv("MCP_REQUIRE_INITIALIZE"))
MAX_SESSIONS = max(1, _get_int("MCP_MAX_SESSIONS", 1024))

__all__ = [
    "DEFAULT_PROTOCOL_VERSION",
    "HEALTH_SERVER_NAME",
    "HEARTBEAT_INTERVAL",
    "INTERNAL_ERROR_CODE",
    "MAX_SESSIONS",
    "NOTIFICATION_PREFIX",
    "REQUIRE_INITIALIZE",
    "RPC_PATH",
    "SERVER_CAPABILITIES",
    "SERVER_HOST",
    "SERVER_INFO",
    "SERVER_PORT",
    "SESSION_HEADER",
    "SSE_PATH",
]
