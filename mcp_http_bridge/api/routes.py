"""FastAPI-маршруты MCP API: `POST /rpc`, `GET /sse`, `GET /health`."""

from __future__ import annotations

import copy
import json
import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Callable, Dict, Optional

from fastapi import APIRouter, Body, Request, Response
from fastapi.responses import JSONResponse, StreamingResponse
from pydantic import ValidationError

from mcp_http_bridge.api.liveness import LivenessChannel
from mcp_http_bridge.core.config import (
    DEFAULT_PROTOCOL_VERSION,
    HEALTH_SERVER_NAME,
    HEARTBEAT_INTERVAL,
    INTERNAL_ERROR_CODE,
    NOTIFICATION_PREFIX,
    REQUIRE_INITIALIZE,
    RPC_PATH,
    SERVER_CAPABILITIES,
    SERVER_INFO,
    SESSION_HEADER,
    SSE_PATH,
)
from mcp_http_bridge.core.errors import McpBridgeError, ProtocolError, SessionNotInitialized
from mcp_http_bridge.core.session import close_session, is_initialized, mark_initialized, open_session
from mcp_http_bridge.models.json_rpc import (
    InitializeParams,
    JsonRpcError,
    JsonRpcErrorObj,
    JsonRpcRequest,
    JsonRpcResponse,
    McpMethod,
    RequestId,
    ToolCallParams,
)
from mcp_http_bridge.tools.dispatcher import CapabilityDispatcher

logger = logging.getLogger("mcp_http_bridge.api.routes")

router = APIRouter()

_DISPATCHER: Optional[CapabilityDispatcher] = None


def configure_routes(*, dispatcher: CapabilityDispatcher) -> None:
    """Передаём диспетчер маршрутам, чтобы избежать циклов импорта."""
    global _DISPATCHER
    _DISPATCHER = dispatcher


def _dispatcher() -> CapabilityDispatcher:
    if _DISPATCHER is None:
        raise RuntimeError("Routes are not configured: call configure_routes() first")
    return _DISPATCHER


@dataclass
class _Exchange:
    """Один полученный запрос и то, что обработчик может добавить к HTTP-ответу."""

    params: Any
    request_id: Optional[RequestId]
    session_id: Optional[str]
    headers: Dict[str, str] = field(default_factory=dict)


def _params_dict(params: Any) -> Dict[str, Any]:
    if params is None:
        return {}
    if not isinstance(params, dict):
        raise ProtocolError("Invalid params: expected an object")
    return params


def _require_initialized(exchange: _Exchange) -> None:
    if REQUIRE_INITIALIZE and not is_initialized(exchange.session_id):
        raise SessionNotInitialized(
            "Session is not initialized: call 'initialize' and send 'notifications/initialized' first"
        )


def _json_rpc_error(message: str, *, error_type: str, request_id: Any) -> JsonRpcError:
    return JsonRpcError(
        error=JsonRpcErrorObj(code=INTERNAL_ERROR_CODE, message=message, data={"type": error_type}),
        id=request_id,
    )


# Обработчики синхронные: инструменты выполняют только CPU-bound работу,
# FastAPI запускает такой маршрут в пуле потоков.

def _handle_initialize(exchange: _Exchange) -> Dict[str, Any]:
    try:
        parsed = InitializeParams.model_validate(_params_dict(exchange.params))
    except ValidationError as exc:
        raise ProtocolError(f"Invalid initialize params: {exc.error_count()} error(s)") from exc

    protocol_version = parsed.protocolVersion or DEFAULT_PROTOCOL_VERSION
    session = open_session(parsed, protocol_version)
    exchange.headers[SESSION_HEADER] = session.id
    logger.info(
        "initialize: client=%s protocolVersion=%s session=%s",
        parsed.clientInfo.get("name"),
        protocol_version,
        session.id,
    )
    return {
        "protocolVersion": protocol_version,
        "capabilities": copy.deepcopy(SERVER_CAPABILITIES),
        "serverInfo": dict(SERVER_INFO),
    }


def _handle_ping(exchange: _Exchange) -> Dict[str, Any]:
    return {}


def _handle_shutdown(exchange: _Exchange) -> Dict[str, Any]:
    if close_session(exchange.session_id):
        logger.info("shutdown: session=%s closed", exchange.session_id)
    return {}


def _handle_tools_list(exchange: _Exchange) -> Dict[str, Any]:
    _require_initialized(exchange)
    registry = _dispatcher().registry
    return {"tools": [spec.as_mcp_dict() for spec in registry.list_all()]}


def _handle_tools_call(exchange: _Exchange) -> Dict[str, Any]:
    _require_initialized(exchange)
    try:
        params = ToolCallParams.model_validate(_params_dict(exchange.params))
    except ValidationError as exc:
        raise ProtocolError("Invalid tools/call params: 'name' must be a string") from exc

    result = _dispatcher().invoke(params.name, params.arguments)
    return {
        "content": [
            {
                "type": "text",
                "text": json.dumps(result, indent=2, ensure_ascii=False, allow_nan=False),
            }
        ]
    }


_HANDLERS: Dict[McpMethod, Callable[[_Exchange], Dict[str, Any]]] = {
    McpMethod.INITIALIZE: _handle_initialize,
    McpMethod.PING: _handle_ping,
    McpMethod.SHUTDOWN: _handle_shutdown,
    McpMethod.TOOLS_LIST: _handle_tools_list,
    McpMethod.TOOLS_CALL: _handle_tools_call,
}


def _handle_notification(req: JsonRpcRequest, session_id: Optional[str]) -> Response:
    if req.method.startswith(NOTIFICATION_PREFIX):
        logger.info("Notification received: %s", req.method)
        if req.method == f"{NOTIFICATION_PREFIX}initialized":
            mark_initialized(session_id)
    else:
        logger.warning("Ignoring id-less message for method %s", req.method)
    return Response(status_code=204)


@router.get("/health")
def health() -> Dict[str, str]:
    return {
        "status": "ok",
        "server": HEALTH_SERVER_NAME,
        "timestamp": datetime.now(timezone.utc).isoformat().replace("+00:00", "Z"),
    }


@router.get(RPC_PATH)
def mcp_info() -> Dict[str, Any]:
    return {
        "protocolVersion": DEFAULT_PROTOCOL_VERSION,
        "capabilities": copy.deepcopy(SERVER_CAPABILITIES),
        "serverInfo": dict(SERVER_INFO),
        "transport": {"type": "http", "endpoint": RPC_PATH, "events": SSE_PATH},
    }


def _envelope_id(payload: Any) -> Optional[RequestId]:
    # Возвращаем id, только если он сам по себе допустим для JSON-RPC.
    if not isinstance(payload, dict):
        return None
    raw_id = payload.get("id")
    if isinstance(raw_id, (int, str)) and not isinstance(raw_id, bool):
        return raw_id
    return None


def _error_response(
    message: str, *, error_type: str, request_id: Any, headers: Optional[Dict[str, str]] = None
) -> JSONResponse:
    body = _json_rpc_error(message, error_type=error_type, request_id=request_id).model_dump(exclude_none=True)
    # Для неразобранного конверта id остаётся null, но ключ обязателен.
    body.setdefault("id", None)
    return JSONResponse(body, headers=headers)


@router.post(RPC_PATH)
def mcp_rpc(request: Request, payload: Any = Body(...)) -> Response:
    session_id = request.headers.get(SESSION_HEADER)
    try:
        req = JsonRpcRequest.model_validate(payload)
    except ValidationError as exc:
        logger.info("Rejecting malformed JSON-RPC envelope: %s", exc.errors(include_url=False))
        return _error_response(
            f"Invalid JSON-RPC request: {exc.error_count()} error(s)",
            error_type=ProtocolError.__name__,
            request_id=_envelope_id(payload),
        )

    if req.is_notification:
        return _handle_notification(req, session_id)

    exchange = _Exchange(params=req.params, request_id=req.id, session_id=session_id)
    method = McpMethod.parse(req.method)
    try:
        if method is None:
            raise ProtocolError(f"Unknown method: {req.method}")
        result = _HANDLERS[method](exchange)
    except McpBridgeError as exc:
        logger.info("JSON-RPC %s (id=%r) failed: %s", req.method, req.id, exc)
        return _error_response(str(exc), error_type=type(exc).__name__, request_id=req.id, headers=exchange.headers)
    except Exception as exc:
        logger.exception("Unhandled MCP error")
        return _error_response(
            str(exc) or type(exc).__name__, error_type="InternalError", request_id=req.id, headers=exchange.headers
        )

    return JSONResponse(JsonRpcResponse(result=result, id=req.id).model_dump(), headers=exchange.headers)


@router.get(SSE_PATH)
async def mcp_events(request: Request) -> StreamingResponse:
    channel = LivenessChannel(HEARTBEAT_INTERVAL, is_disconnected=request.is_disconnected)
    return StreamingResponse(
        channel.events(),
        media_type="text/event-stream",
        headers={"Cache-Control": "no-cache", "Connection": "keep-alive"},
    )


__all__ = ["configure_routes", "router"]
