"""Command-line interface for cutsheet-sync.

Subcommands:
    scan DIR    Hash every PDF in DIR into the metadata cache.
    publish     Regenerate the project manifest from the cache.
    sync        Reconcile the cache with a manifest.
    status      Show cache and manifest state.
    share       Publish and upload the manifest, print its URL.
"""

import argparse
import json
import logging
import sys
from pathlib import Path

from . import __version__
from .context import SyncContext, load_runtime_config
from .errors import CutsheetSyncError
from .logger import setup_logging
from .sync.models import Manifest
from .sync.reporter import (
    format_plan_preview,
    format_sync_report,
    report_to_json,
)

logger = logging.getLogger(__name__)


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="cutsheet-sync",
        description="Keep a local cache of PDF cut sheets in sync with a remote file store",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  # Track every PDF downloaded for ABB
  cutsheet-sync scan data/cut_sheets/abb

  # Preview what a sync would do
  cutsheet-sync sync --dry-run

  # Pull a manifest shared by a colleague
  cutsheet-sync sync --manifest https://files.example.com/manifest-plant-7.json
        """,
    )
    parser.add_argument("--data-dir", help="Override data directory (CUTSHEET_DATA_DIR)")
    parser.add_argument("--project", help="Override project id (CUTSHEET_PROJECT_ID)")
    parser.add_argument("--upload-url", help="Override upload endpoint (UPLOADTHING_URL)")
    parser.add_argument(
        "--insecure",
        action="store_true",
        help="Skip SSL certificate verification (use only for development)",
    )
    parser.add_argument("--debug", action="store_true", help="Enable debug logging")
    parser.add_argument("--log-file", help="Also write logs to this file")
    parser.add_argument(
        "--json", action="store_true", help="Print machine-readable JSON output"
    )
    parser.add_argument(
        "--version",
        action="version",
        version=f"cutsheet-sync version {__version__}",
    )

    sub = parser.add_subparsers(dest="command", required=True)

    scan = sub.add_parser("scan", help="Hash PDFs in a directory into the cache")
    scan.add_argument("directory", help="Directory containing PDF cut sheets")

    sub.add_parser("publish", help="Regenerate the manifest from the cache")

    sync = sub.add_parser("sync", help="Reconcile the cache with a manifest")
    sync.add_argument(
        "--force",
        action="store_true",
        help="Re-download every document listed in the manifest",
    )
    sync.add_argument(
        "--dry-run", action="store_true", help="Preview actions without applying them"
    )
    sync.add_argument(
        "--manifest",
        help="Manifest URL or file path (default: the project's manifest)",
    )

    sub.add_parser("status", help="Show cache and manifest state")
    sub.add_parser("share", help="Publish and upload the manifest")

    return parser


def _emit(args: argparse.Namespace, text: str, structured: dict) -> None:
    if args.json:
        print(json.dumps(structured, indent=2, default=str))
    else:
        print(text)


# ---------------------------------------------------------------------------
# Subcommand handlers
# ---------------------------------------------------------------------------


def _cmd_scan(ctx: SyncContext, args: argparse.Namespace) -> int:
    records = ctx.metadata.scan_directory(args.directory)
    lines = [f"Tracked {len(records)} documents from {args.directory}"]
    for r in records:
        lines.append(f"  {r.manufacturer} {r.part_number}: {r.file_name} {r.content_hash[:12]}")
    _emit(
        args,
        "\n".join(lines),
        {"directory": args.directory, "records": [r.to_cache() for r in records]},
    )
    return 0


def _cmd_publish(ctx: SyncContext, args: argparse.Namespace) -> int:
    manifest = ctx.manifests.publish(ctx.metadata.list())
    _emit(
        args,
        f"Published {len(manifest)} entries to {ctx.manifests.path}",
        manifest.to_document(),
    )
    return 0


def _resolve_manifest(ctx: SyncContext, source: str | None) -> Manifest | None:
    if not source:
        return None
    if source.startswith(("http://", "https://")):
        return ctx.manifests.fetch(source, ctx.transport)
    return ctx.manifests.load(Path(source))


def _cmd_sync(ctx: SyncContext, args: argparse.Namespace) -> int:
    manifest = _resolve_manifest(ctx, args.manifest)
    report = ctx.reconciler().run(
        manifest=manifest, force_refresh=args.force, dry_run=args.dry_run
    )
    text = format_plan_preview(report) if args.dry_run else format_sync_report(report)
    _emit(args, text, report_to_json(report))
    return 0 if report.success else 1


def _cmd_status(ctx: SyncContext, args: argparse.Namespace) -> int:
    status = ctx.status()
    lines = [
        f"Status for project '{status['project_id']}'",
        f"  Cache:            {status['cache_path']}",
        f"  Tracked files:    {status['tracked_files']}",
        f"  With remote URL:  {status['uploaded']}",
        f"  Changed on disk:  {len(status['changed'])}",
        f"  Manifest:         {status['manifest_path']}",
        f"  Manifest entries: {status['manifest_entries']}",
        f"  Generated at:     {status['generated_at']}",
    ]
    for path in status["changed"]:
        lines.append(f"    changed: {path}")
    _emit(args, "\n".join(lines), status)
    return 0


def _cmd_share(ctx: SyncContext, args: argparse.Namespace) -> int:
    manifest = ctx.manifests.publish(ctx.metadata.list())
    url = ctx.manifests.share(ctx.transport)
    _emit(
        args,
        f"Shared manifest with {len(manifest)} entries: {url}",
        {"url": url, "entries": len(manifest)},
    )
    return 0


_COMMANDS = {
    "scan": _cmd_scan,
    "publish": _cmd_publish,
    "sync": _cmd_sync,
    "status": _cmd_status,
    "share": _cmd_share,
}


def main(argv: list[str] | None = None) -> int:
    """Parse *argv*, run one subcommand, and return the exit code."""
    args = _build_parser().parse_args(argv)

    overrides: dict = {}
    if args.data_dir:
        overrides["data_dir"] = args.data_dir
    if args.project:
        overrides["project_id"] = args.project
    if args.upload_url:
        overrides["upload_url"] = args.upload_url
    if args.insecure:
        overrides["insecure"] = True
    if args.debug:
        overrides["debug"] = True

    try:
        config, sources = load_runtime_config(overrides)
    except ValueError as e:
        print(f"ERROR: Configuration error: {e}", file=sys.stderr)
        return 2

    setup_logging(
        mode="cli",
        debug=config.debug,
        log_file=args.log_file or config.log_file,
        level=config.log_level,
    )
    logger.debug("Configuration loaded from: %s", ", ".join(sources))

    ctx = SyncContext.from_config(config)
    try:
        return _COMMANDS[args.command](ctx, args)
    except CutsheetSyncError as e:
        print(f"ERROR ({type(e).__name__}): {e}", file=sys.stderr)
        return 1


def run() -> None:
    """Console script entry point."""
    try:
        sys.exit(main())
    except KeyboardInterrupt:
        print("\nInterrupted.", file=sys.stderr)
        sys.exit(130)


if __name__ == "__main__":
    run()
