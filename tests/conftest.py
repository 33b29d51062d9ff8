from __future__ import annotations

import pytest

from mcp_http_bridge.core.session import ACTIVE_SESSIONS


@pytest.fixture(autouse=True)
def clear_sessions() -> None:
    ACTIVE_SESSIONS.clear()
