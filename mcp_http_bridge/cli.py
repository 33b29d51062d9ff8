"""Командная строка: `serve` поднимает сервер, `demo` проходит по клиентским сценариям."""

from __future__ import annotations

import argparse
import asyncio
import json
import logging
import os
import sys
from typing import Optional, Sequence

from mcp_http_bridge.client.agent import DEFAULT_MODEL, ToolCallingAgent
from mcp_http_bridge.client.session import McpClient, decode_text_result
from mcp_http_bridge.client.transport import HttpTransport, HttpTransportConfig
from mcp_http_bridge.core.config import SERVER_HOST, SERVER_PORT
from mcp_http_bridge.core.errors import McpBridgeError

logger = logging.getLogger("mcp_http_bridge.cli")

AGENT_PROMPT = "What is 156 divided by 12? Also, what's the weather like in New York?"


def _serve(args: argparse.Namespace) -> int:
    import uvicorn

    logger.info("MCP server on http://%s:%d (rpc=/rpc, events=/sse, health=/health)", args.host, args.port)
    uvicorn.run("mcp_http_bridge.main:app", host=args.host, port=args.port, log_level="info")
    return 0


async def run_demo(config: HttpTransportConfig, *, model: str) -> None:
    async with McpClient(HttpTransport(config)) as client:
        tools = await client.tools()
        print("Found tools:")
        for name in tools:
            print(f"  - {name}")

        print("\nCalculator: 25 * 4")
        calc = await tools["calculator"].execute({"operation": "multiply", "a": 25, "b": 4})
        print("Result:", json.dumps(decode_text_result(calc)))

        print("\nWeather: San Francisco (fahrenheit)")
        weather = await tools["get_weather"].execute({"location": "San Francisco", "units": "fahrenheit"})
        print("Weather:", json.dumps(decode_text_result(weather)))

        if not os.getenv("OPENAI_API_KEY"):
            print("\nSkipping AI example (set OPENAI_API_KEY to enable)")
            return

        print("\nAI model with MCP tools")
        result = await ToolCallingAgent(tools, model=model).run(AGENT_PROMPT)
        print("AI Response:", result.text)
        for record in result.tool_calls:
            print(f"  - {record.tool_name}({json.dumps(record.arguments)})")


def _demo(args: argparse.Namespace) -> int:
    config = HttpTransportConfig.from_env()
    if args.url:
        config.url = args.url
        config.rpc_url = None
    try:
        asyncio.run(run_demo(config, model=args.model))
    except McpBridgeError as exc:
        logger.error("Demo failed: %s", exc)
        print("\nMake sure the MCP server is running: mcp-http-bridge serve", file=sys.stderr)
        return 1
    return 0


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="mcp-http-bridge", description=__doc__)
    sub = parser.add_subparsers(dest="command", required=True)

    serve = sub.add_parser("serve", help="run the MCP server")
    serve.add_argument("--host", default=SERVER_HOST)
    serve.add_argument("--port", type=int, default=SERVER_PORT)
    serve.set_defaults(func=_serve)

    demo = sub.add_parser("demo", help="discover and call tools on a running server")
    demo.add_argument("--url", default=None, help="server events URL, e.g. http://localhost:3456/sse")
    demo.add_argument("--model", default=DEFAULT_MODEL)
    demo.set_defaults(func=_demo)
    return parser


def main(argv: Optional[Sequence[str]] = None) -> int:
    logging.basicConfig(level=logging.INFO)
    args = build_parser().parse_args(argv)
    return args.func(args)


if __name__ == "__main__":
    sys.exit(main())
