"""MCP tool handlers for cut sheet reconciliation.

Defines three tools:

- ``cutsheet_sync`` -- reconcile the local cache with a manifest (with
  optional dry-run and force refresh).
- ``cutsheet_sync_status`` -- show cache and manifest state.
- ``manifest_publish`` -- regenerate the manifest, optionally sharing it.
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Any

import mcp.types as types

from ...context import SyncContext
from ...core.async_utils import run_sync
from ...errors import CutsheetSyncError
from ...sync.reporter import (
    format_plan_preview,
    format_sync_report,
    report_to_json,
)
from .errors import build_error_response, error_response_for

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Tool definitions
# ---------------------------------------------------------------------------


SYNC_TOOLS: list[types.Tool] = [
    types.Tool(
        name="cutsheet_sync",
        description=(
            "Reconcile the local cut sheet cache with a manifest: download "
            "documents that are missing or stale locally, upload documents "
            "the manifest lacks, and republish the project manifest."
        ),
        annotations=types.ToolAnnotations(
            readOnlyHint=False,
            destructiveHint=False,
            idempotentHint=True,
            openWorldHint=True,
        ),
        inputSchema={
            "type": "object",
            "properties": {
                "dry_run": {
                    "type": "boolean",
                    "default": False,
                    "description": "Preview actions without applying them",
                },
                "force_refresh": {
                    "type": "boolean",
                    "default": False,
                    "description": "Re-download every document the manifest lists",
                },
                "manifest": {
                    "type": "string",
                    "description": (
                        "URL or file path of a shared manifest. Defaults to "
                        "the project's own manifest."
                    ),
                },
            },
            "required": [],
        },
    ),
    types.Tool(
        name="cutsheet_sync_status",
        description=(
            "Show cache and manifest state -- tracked documents, documents "
            "with a remote copy, files changed on disk, manifest size."
        ),
        annotations=types.ToolAnnotations(
            readOnlyHint=True,
            destructiveHint=False,
            idempotentHint=True,
            openWorldHint=False,
        ),
        inputSchema={
            "type": "object",
            "properties": {},
            "required": [],
        },
    ),
    types.Tool(
        name="manifest_publish",
        description=(
            "Regenerate the project manifest from the local cache. With "
            "share=true, also upload it and return a URL others can sync from."
        ),
        annotations=types.ToolAnnotations(
            readOnlyHint=False,
            destructiveHint=False,
            idempotentHint=True,
            openWorldHint=True,
        ),
        inputSchema={
            "type": "object",
            "properties": {
                "share": {
                    "type": "boolean",
                    "default": False,
                    "description": "Upload the manifest and return its URL",
                },
            },
            "required": [],
        },
    ),
]


# ---------------------------------------------------------------------------
# Tool handler
# ---------------------------------------------------------------------------


async def handle_sync_tool(
    name: str,
    arguments: dict[str, Any] | None,
    ctx: SyncContext,
) -> types.CallToolResult:
    """Dispatch and execute a sync tool.

    Args:
        name: Tool name.
        arguments: Tool arguments dict.
        ctx: Stores and transport of the configured project.

    Returns:
        ``CallToolResult`` with tool output or error details.
    """
    args = arguments or {}

    try:
        match name:
            case "cutsheet_sync":
                return await _handle_cutsheet_sync(args, ctx)
            case "cutsheet_sync_status":
                return await _handle_status(ctx)
            case "manifest_publish":
                return await _handle_manifest_publish(args, ctx)
            case _:
                raise ValueError(f"Unknown sync tool: {name}")

    except CutsheetSyncError as exc:
        logger.warning("Sync tool %s failed: %s", name, exc)
        return error_response_for(exc)
    except ValueError as exc:
        return build_error_response(
            "validation_error",
            str(exc),
            "Check parameter values and retry.",
        )
    except Exception as exc:
        logger.exception("Sync tool error: %s", exc)
        return build_error_response(
            "server_error",
            str(exc),
            "Check CUTSHEET_DATA_DIR and transport configuration.",
        )


# ---------------------------------------------------------------------------
# Individual handlers
# ---------------------------------------------------------------------------


def _bool_arg(args: dict[str, Any], key: str) -> bool:
    value = args.get(key, False)
    if not isinstance(value, bool):
        raise ValueError(f"{key} must be a boolean")
    return value


async def _handle_cutsheet_sync(
    args: dict[str, Any],
    ctx: SyncContext,
) -> types.CallToolResult:
    """Handle the ``cutsheet_sync`` tool."""
    dry_run = _bool_arg(args, "dry_run")
    force_refresh = _bool_arg(args, "force_refresh")
    source = args.get("manifest")

    if source is not None and not isinstance(source, str):
        raise ValueError("manifest must be a URL or file path string")

    manifest = None
    if source:
        if source.startswith(("http://", "https://")):
            manifest = await run_sync(
                ctx.manifests.fetch, source, ctx.transport
            )
        else:
            manifest = await run_sync(ctx.manifests.load, Path(source))

    report = await ctx.reconciler().reconcile(
        manifest=manifest, force_refresh=force_refresh, dry_run=dry_run
    )

    if dry_run:
        text = format_plan_preview(report)
    else:
        text = format_sync_report(report)

    return types.CallToolResult(
        content=[types.TextContent(type="text", text=text)],
        structuredContent=report_to_json(report),
    )


async def _handle_status(ctx: SyncContext) -> types.CallToolResult:
    """Handle the ``cutsheet_sync_status`` tool."""
    status = await run_sync(ctx.status)

    lines = [
        f"Sync status for project '{status['project_id']}'",
        f"  Tracked files:    {status['tracked_files']}",
        f"  With remote URL:  {status['uploaded']}",
        f"  Changed on disk:  {len(status['changed'])}",
        f"  Manifest entries: {status['manifest_entries']}",
        f"  Generated at:     {status['generated_at']}",
    ]
    return types.CallToolResult(
        content=[types.TextContent(type="text", text="\n".join(lines))],
        structuredContent=status,
    )


async def _handle_manifest_publish(
    args: dict[str, Any],
    ctx: SyncContext,
) -> types.CallToolResult:
    """Handle the ``manifest_publish`` tool."""
    share = _bool_arg(args, "share")

    records = await run_sync(ctx.metadata.list)
    manifest = await run_sync(ctx.manifests.publish, records)
    structured: dict[str, Any] = {
        "project_id": ctx.config.project_id,
        "path": str(ctx.manifests.path),
        "entries": len(manifest),
        "generated_at": manifest.generated_at.isoformat(),
    }
    text = f"Published {len(manifest)} entries to {ctx.manifests.path}"

    if share:
        url = await run_sync(ctx.manifests.share, ctx.transport)
        structured["url"] = url
        text += f"\nShared at: {url}"

    return types.CallToolResult(
        content=[types.TextContent(type="text", text=text)],
        structuredContent=structured,
    )
