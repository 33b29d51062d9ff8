import sys

from mcp_http_bridge.cli import main

sys.exit(main())
