# mcp_http_bridge/main.py
"""Точка входа FastAPI: MCP-сервер с демонстрационными инструментами.

Реестр собирается один раз при импорте модуля и дальше только читается.
"""
from __future__ import annotations

import logging

from fastapi import FastAPI

from . import __version__
from .api import configure_routes, router as api_router
from .core.config import RPC_PATH, SSE_PATH
from .tools.dispatcher import CapabilityDispatcher
from .tools.handlers import build_default_registry

logger = logging.getLogger("mcp_http_bridge")
if not logger.handlers:
    logging.basicConfig(level=logging.INFO)


def create_app() -> FastAPI:
    registry = build_default_registry()
    dispatcher = CapabilityDispatcher(registry)

    application = FastAPI(title="MCP HTTP Bridge", version=__version__)
    configure_routes(dispatcher=dispatcher)
    application.include_router(api_router)

    logger.info(
        "MCP server ready: rpc=%s events=%s tools=%s",
        RPC_PATH,
        SSE_PATH,
        ", ".join(registry.names()),
    )
    return application


app = create_app()
