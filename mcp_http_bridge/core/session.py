"""Хранилище и утилиты для управления сессиями MCP.

Таблица ограничена `MAX_SESSIONS`: при переполнении вытесняется самая старая
сессия. Явно сессию закрывает метод `shutdown`.
"""

from __future__ import annotations

from collections import OrderedDict
from threading import Lock
from typing import Optional
from uuid import uuid4

from mcp_http_bridge.core.config import MAX_SESSIONS
from mcp_http_bridge.models.json_rpc import InitializeParams, SessionState

ACTIVE_SESSIONS: "OrderedDict[str, SessionState]" = OrderedDict()

# Маршруты синхронные и выполняются в пуле потоков.
_LOCK = Lock()


def open_session(params: InitializeParams, protocol_version: str) -> SessionState:
    session = SessionState(
        id=str(uuid4()),
        client_info=params.clientInfo,
        capabilities=params.capabilities,
        protocol_version=protocol_version,
    )
    cap = max(1, MAX_SESSIONS)
    with _LOCK:
        ACTIVE_SESSIONS[session.id] = session
        while len(ACTIVE_SESSIONS) > cap:
            ACTIVE_SESSIONS.popitem(last=False)
    return session


def close_session(session_id: Optional[str]) -> bool:
    if not session_id:
        return False
    with _LOCK:
        return ACTIVE_SESSIONS.pop(session_id, None) is not None


def mark_initialized(session_id: Optional[str]) -> Optional[SessionState]:
    """Переводит сессию в состояние *initialized*; повторный вызов ничего не меняет."""
    if not session_id:
        return None
    with _LOCK:
        session = ACTIVE_SESSIONS.get(session_id)
        if session is None or session.initialized:
            return session
        updated = session.model_copy(update={"initialized": True})
        ACTIVE_SESSIONS[session_id] = updated
        return updated


def is_initialized(session_id: Optional[str]) -> bool:
    if not session_id:
        return False
    session = ACTIVE_SESSIONS.get(session_id)
    return session is not None and session.initialized


__all__ = ["ACTIVE_SESSIONS", "close_session", "is_initialized", "mark_initialized", "open_session"]
