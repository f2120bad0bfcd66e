"""Tests for the MCP server protocol handlers and context wiring."""

import mcp.types as types
import pytest

from cutsheet_sync.context import SyncContext
from cutsheet_sync.mcp import server as server_mod
from cutsheet_sync.mcp.tools import SYNC_TOOLS


@pytest.fixture
def ctx(mock_config, transport):
    context = SyncContext.from_config(mock_config, transport=transport)
    server_mod.set_context(context)
    yield context
    server_mod.set_context(None)


def test_get_context_before_startup():
    server_mod.set_context(None)
    with pytest.raises(RuntimeError, match="not initialized"):
        server_mod.get_context()


async def test_list_tools():
    tools = await server_mod.handle_list_tools()
    assert [t.name for t in tools] == [t.name for t in SYNC_TOOLS]


async def test_call_status_tool(ctx):
    result = await server_mod.handle_call_tool("cutsheet_sync_status", {})

    assert not result.isError
    assert result.structuredContent["project_id"] == "test"


async def test_unknown_tool(ctx):
    result = await server_mod.handle_call_tool("ticket_get", {"id": 1})

    assert result.isError
    content = result.content[0]
    assert isinstance(content, types.TextContent)
    assert content.text.startswith("Error (unknown_tool): Unknown tool: ticket_get")
