"""MCP Server for cut sheet reconciliation using stdio transport.

This module implements the Model Context Protocol server that lets AI
agents inspect and reconcile a project's cut sheet cache.

Transport: stdio (for Claude Desktop/Code integration)
Protocol: JSON-RPC 2.0 over MCP
"""

import argparse
import asyncio
import logging
import sys

import mcp.server.stdio
import mcp.types as types
from mcp.server import NotificationOptions, Server
from mcp.server.models import InitializationOptions

from .. import __version__
from ..context import SyncContext
from ..logger import setup_logging
from .lifespan import server_lifespan
from .tools import SYNC_TOOLS, build_error_response, handle_sync_tool

logger = logging.getLogger(__name__)

server = Server("cutsheet-sync")

# Initialized in main() from the lifespan context
_context: SyncContext | None = None

_TOOL_NAMES = frozenset(tool.name for tool in SYNC_TOOLS)


def get_context() -> SyncContext:
    """Get the global SyncContext instance.

    Raises:
        RuntimeError: If the context is not initialized
    """
    if _context is None:
        raise RuntimeError(
            "SyncContext not initialized. Server lifespan not started."
        )
    return _context


def set_context(ctx: SyncContext | None) -> None:
    """Set the global SyncContext instance, or None to clear it."""
    global _context
    _context = ctx


# ---------------------------------------------------------------------------
# MCP protocol handlers
# ---------------------------------------------------------------------------


@server.list_tools()
async def handle_list_tools() -> list[types.Tool]:
    """List available sync tools."""
    return SYNC_TOOLS


@server.call_tool()
async def handle_call_tool(
    name: str, arguments: dict | None
) -> types.CallToolResult:
    """Handle tool execution.

    Args:
        name: The name of the tool to execute.
        arguments: Tool arguments (optional).

    Returns:
        CallToolResult with tool output content and optional isError flag.
    """
    if name not in _TOOL_NAMES:
        return build_error_response(
            "unknown_tool",
            f"Unknown tool: {name}",
            "Use list_tools to see available tools.",
        )
    return await handle_sync_tool(name, arguments, get_context())


# ---------------------------------------------------------------------------
# Server lifecycle
# ---------------------------------------------------------------------------


async def main(config_overrides: dict | None = None):
    """Run the MCP server with stdio transport.

    Sets up file-only logging, builds the project context via the
    lifespan manager, and serves JSON-RPC over stdio.

    Args:
        config_overrides: Optional dict with config values to override
            (data_dir, project_id, upload_url, insecure, log_file)
    """
    log_file = (
        config_overrides.get("log_file") if config_overrides else None
    )

    # Must run before stdio_server so nothing reaches stdout
    setup_logging(mode="mcp", log_file=log_file)

    # Set here rather than in the lifespan: under `python -m` this module
    # is __main__, and a relative import from lifespan.py would load a
    # second copy whose _context the handlers never see.
    async with server_lifespan(
        config_overrides=config_overrides
    ) as ctx:
        set_context(ctx["context"])
        try:
            async with mcp.server.stdio.stdio_server() as (
                read_stream,
                write_stream,
            ):
                init_options = InitializationOptions(
                    server_name="cutsheet-sync",
                    server_version=__version__,
                    capabilities=server.get_capabilities(
                        notification_options=NotificationOptions(),
                        experimental_capabilities={},
                    ),
                )
                await server.run(
                    read_stream, write_stream, init_options
                )
        finally:
            set_context(None)


def run() -> None:
    """Entry point that handles errors gracefully and parses CLI arguments."""
    parser = argparse.ArgumentParser(
        description="Cut sheet sync MCP server - reconcile PDF cut sheets over MCP",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  # Run with default config (from .env or .cutsheet_sync/config.yml)
  cutsheet-sync-mcp

  # Serve a specific project
  cutsheet-sync-mcp --data-dir /srv/cutsheets --project plant-7

  # Custom log file location
  cutsheet-sync-mcp --log-file /var/log/cutsheet-sync.log

Note: This server uses stdio transport for JSON-RPC communication with MCP clients.
All user-facing messages are written to stderr. Do not pipe stdin/stdout manually.
        """,
    )

    parser.add_argument(
        "--data-dir",
        help="Override data directory (takes precedence over CUTSHEET_DATA_DIR and config files)",
    )
    parser.add_argument(
        "--project",
        help="Override project id (takes precedence over CUTSHEET_PROJECT_ID and config files)",
    )
    parser.add_argument(
        "--upload-url",
        help="Override upload endpoint (takes precedence over UPLOADTHING_URL and config files)",
    )
    parser.add_argument(
        "--insecure",
        action="store_true",
        help="Skip SSL certificate verification (use only for development)",
    )
    parser.add_argument(
        "--log-file",
        default="/tmp/cutsheet-sync.log",
        help="Log file path (default: /tmp/cutsheet-sync.log)",
    )
    parser.add_argument(
        "--version",
        action="version",
        version=f"cutsheet-sync-mcp version {__version__}",
    )

    args = parser.parse_args()

    config_overrides = {}
    if args.data_dir:
        config_overrides["data_dir"] = args.data_dir
    if args.project:
        config_overrides["project_id"] = args.project
    if args.upload_url:
        config_overrides["upload_url"] = args.upload_url
    if args.insecure:
        config_overrides["insecure"] = True
    if args.log_file:
        config_overrides["log_file"] = args.log_file

    if config_overrides:
        print(
            f"Config overrides from CLI: {', '.join(config_overrides)}",
            file=sys.stderr,
        )

    try:
        asyncio.run(
            main(
                config_overrides=config_overrides
                if config_overrides
                else None
            )
        )
    except RuntimeError:
        # Error already printed to stderr by lifespan manager
        sys.exit(1)
    except KeyboardInterrupt:
        print("\nInterrupted.", file=sys.stderr)
        sys.exit(0)


if __name__ == "__main__":
    run()
