"""MCP-мост: JSON-RPC поверх HTTP POST, реестр инструментов и клиентский транспорт."""

__version__ = "1.0.0"
