"""Sync report formatting functions.

Provides aggregate counts plus human-readable and machine-readable output
for reconciliation passes:

- ``summarize`` -- pure bucket counts over a list of outcomes.
- ``format_sync_report`` -- full post-sync summary.
- ``format_plan_preview`` -- dry-run preview grouped by planned action.
- ``report_to_json`` -- structured dict for MCP tool output.
"""

from __future__ import annotations

from collections import defaultdict
from collections.abc import Iterable
from typing import TYPE_CHECKING

from .models import PlannedAction, SyncAction, SyncSummary

if TYPE_CHECKING:
    from .models import SyncOutcome, SyncReport

# ------------------------------------------------------------------
# Aggregation
# ------------------------------------------------------------------


def summarize(outcomes: Iterable[SyncOutcome]) -> SyncSummary:
    """Count outcomes per action bucket.

    ``total`` always equals the sum of the four buckets.
    """
    counts: dict[SyncAction, int] = defaultdict(int)
    for outcome in outcomes:
        counts[outcome.action] += 1
    return SyncSummary(
        total=sum(counts.values()),
        downloaded=counts[SyncAction.DOWNLOADED],
        uploaded=counts[SyncAction.UPLOADED],
        up_to_date=counts[SyncAction.UP_TO_DATE],
        failed=counts[SyncAction.FAILED],
    )


# ------------------------------------------------------------------
# Human-readable report
# ------------------------------------------------------------------


def format_sync_report(report: SyncReport) -> str:
    """Format a complete sync report as human-readable text.

    Sections are only included when they contain at least one outcome.
    Up-to-date documents are summarised by count only.

    Args:
        report: The completed sync report.

    Returns:
        Multi-line formatted string.
    """
    lines: list[str] = []

    header = f"Sync report for project '{report.project_id}'"
    if report.dry_run:
        header += " (DRY RUN)"
    lines.append(header)
    lines.append(f"Started: {report.started_at}")
    if report.completed_at:
        lines.append(f"Completed: {report.completed_at}")
    lines.append("")

    summary = summarize(report.outcomes)
    lines.append(
        f"Reconciled {summary.total} documents: "
        f"{summary.downloaded} downloaded, {summary.uploaded} uploaded, "
        f"{summary.up_to_date} up to date, {summary.failed} failed"
    )
    lines.append("")

    if report.downloaded:
        lines.append("Downloaded:")
        for o in report.downloaded:
            lines.append(f"  {o.identity} <- {o.remote_url} ({o.local_path})")
        lines.append("")

    if report.uploaded:
        lines.append("Uploaded:")
        for o in report.uploaded:
            lines.append(f"  {o.identity} -> {o.remote_url}")
        lines.append("")

    if report.failed:
        lines.append("Failed:")
        for o in report.failed:
            lines.append(f"  {o.identity}: [{o.error_kind}] {o.error_detail}")
        lines.append("")

    if report.needs_intervention:
        lines.append("Manual intervention required:")
        for o in report.needs_intervention:
            lines.append(f"  {o.identity}: {o.error_detail}")
        lines.append("")

    return "\n".join(lines).rstrip()


# ------------------------------------------------------------------
# Dry-run preview
# ------------------------------------------------------------------


def format_plan_preview(report: SyncReport) -> str:
    """Format a dry-run preview grouped by planned action.

    Args:
        report: A dry-run sync report (``dry_run=True``).

    Returns:
        Multi-line formatted string.
    """
    lines: list[str] = []
    lines.append("DRY RUN -- No changes will be made")
    lines.append(f"Project: {report.project_id}")
    lines.append("")

    groups: dict[PlannedAction, list[str]] = defaultdict(list)
    for item in report.plan:
        source = ""
        if item.action == PlannedAction.DOWNLOAD and item.remote:
            source = f" <- {item.remote.remote_url}"
        elif item.action == PlannedAction.UPLOAD and item.local:
            source = f" <- {item.local.local_path}"
        groups[item.action].append(f"{item.identity}{source}")

    for action in (PlannedAction.DOWNLOAD, PlannedAction.UPLOAD):
        if action not in groups:
            continue
        lines.append(f"[{action.value.upper()}]")
        for line in groups[action]:
            lines.append(f"  {line}")
        lines.append("")

    unchanged = len(groups.get(PlannedAction.UP_TO_DATE, []))
    if unchanged:
        lines.append(f"Up to date: {unchanged} documents")
        lines.append("")

    if not any(a != PlannedAction.UP_TO_DATE for a in groups):
        lines.append("No changes needed.")
        lines.append("")

    return "\n".join(lines).rstrip()


# ------------------------------------------------------------------
# JSON output
# ------------------------------------------------------------------


def report_to_json(report: SyncReport) -> dict:
    """Convert a sync report to a structured dict for JSON serialisation.

    Suitable for MCP ``structuredContent`` output.

    Args:
        report: The sync report.

    Returns:
        Dict with project info, counts, plan, and per-outcome details.
    """
    outcomes = []
    for o in report.outcomes:
        entry: dict = {
            "manufacturer": o.identity.manufacturer,
            "part_number": o.identity.part_number,
            "action": o.action.value,
        }
        if o.local_path:
            entry["local_path"] = o.local_path
        if o.remote_url:
            entry["remote_url"] = o.remote_url
        if o.error_kind:
            entry["error_kind"] = o.error_kind
            entry["error"] = o.error_detail
        if o.needs_intervention:
            entry["needs_intervention"] = True
        outcomes.append(entry)

    return {
        "project_id": report.project_id,
        "dry_run": report.dry_run,
        "started_at": report.started_at,
        "completed_at": report.completed_at,
        "counts": summarize(report.outcomes).model_dump(),
        "plan": [
            {
                "manufacturer": item.identity.manufacturer,
                "part_number": item.identity.part_number,
                "action": item.action.value,
            }
            for item in report.plan
        ],
        "outcomes": outcomes,
    }
