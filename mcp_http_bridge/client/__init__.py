from .session import McpClient, RemoteTool, decode_text_result
from .transport import HttpTransport, HttpTransportConfig

__all__ = ["HttpTransport", "HttpTransportConfig", "McpClient", "RemoteTool", "decode_text_result"]
