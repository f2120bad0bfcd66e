"""Tests for cutsheet_sync.mcp.lifespan — server startup/shutdown lifecycle.

Tests the server_lifespan() async context manager which:
- Loads config from every source (with optional CLI overrides)
- Builds the SyncContext and reads the persisted manifest
- Fails fast on config errors
- Prints status messages to stderr
"""

from unittest.mock import patch

import pytest

from cutsheet_sync.context import SyncContext
from cutsheet_sync.mcp.lifespan import server_lifespan


class TestServerLifespanSuccess:
    """Tests for the happy path through server_lifespan()."""

    async def test_successful_startup(self, mock_config):
        with (
            patch(
                "cutsheet_sync.mcp.lifespan.load_runtime_config",
                return_value=(mock_config, ["environment variables"]),
            ),
            patch("cutsheet_sync.mcp.lifespan._stderr_print"),
        ):
            async with server_lifespan() as state:
                ctx = state["context"]
                assert isinstance(ctx, SyncContext)
                assert ctx.config is mock_config
                assert ctx.manifests.project_id == "test"
                assert ctx.metadata.cache_path == mock_config.cache_path
                assert ctx.metadata.hash_engine.threshold == 64

    async def test_overrides_passed_through(self, mock_config):
        overrides = {"data_dir": "/cli", "insecure": True}

        with (
            patch(
                "cutsheet_sync.mcp.lifespan.load_runtime_config",
                return_value=(mock_config, []),
            ) as mock_load,
            patch("cutsheet_sync.mcp.lifespan._stderr_print"),
        ):
            async with server_lifespan(overrides):
                mock_load.assert_called_once_with(overrides)

    async def test_prints_status(self, mock_config):
        with (
            patch(
                "cutsheet_sync.mcp.lifespan.load_runtime_config",
                return_value=(mock_config, []),
            ),
            patch("cutsheet_sync.mcp.lifespan._stderr_print") as mock_print,
        ):
            async with server_lifespan():
                pass

        printed = [call.args[0] for call in mock_print.call_args_list]
        assert any("Project: test" in line for line in printed)
        assert printed[-1] == "Cut sheet sync MCP server shutting down."


class TestServerLifespanFailure:
    async def test_config_error_raises_runtime_error(self):
        with (
            patch(
                "cutsheet_sync.mcp.lifespan.load_runtime_config",
                side_effect=ValueError("Invalid upload URL 'x'"),
            ),
            patch("cutsheet_sync.mcp.lifespan._stderr_print") as mock_print,
        ):
            with pytest.raises(RuntimeError, match="Configuration error"):
                async with server_lifespan():
                    pass

        printed = " ".join(call.args[0] for call in mock_print.call_args_list)
        assert "Invalid upload URL" in printed
