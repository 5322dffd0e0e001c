"""Sync report formatting functions.

Human-readable and machine-readable output for sync operations:

- ``format_pull_report`` -- summary after ``sync down``.
- ``format_push_report`` -- summary after ``sync up``.
- ``format_conflict_report`` -- per-tab drift, shown when push refuses.
- ``format_status`` -- local datastore and backup overview.
- ``report_to_json`` -- structured dict for MCP tool output.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from pydantic import BaseModel

    from .models import ConflictReport, PullReport, PushReport, SyncStatus


# ------------------------------------------------------------------
# Human-readable reports
# ------------------------------------------------------------------


def _counts_lines(counts: dict[str, int]) -> list[str]:
    return [f"  {tab}: {count} rows" for tab, count in counts.items()]


def format_pull_report(report: PullReport) -> str:
    """Format a completed pull as human-readable text.

    Args:
        report: The completed pull report.

    Returns:
        Multi-line formatted string.
    """
    lines: list[str] = ["Sync down complete"]
    lines.append(f"Started: {report.started_at}")
    if report.completed_at:
        lines.append(f"Completed: {report.completed_at}")
    lines.append("")

    lines.append("Local datastore now holds:")
    lines.extend(_counts_lines(report.counts))
    lines.append("")

    lines.append(
        f"Transactions: {report.inserted} inserted, "
        f"{report.updated} updated, {report.deleted} deleted"
    )
    lines.append(f"Formulas recorded: {report.formulas}")
    lines.append("")

    lines.append("Backups:")
    if report.sqlite_backup:
        lines.append(f"  datastore: {report.sqlite_backup}")
    if report.snapshot:
        lines.append(f"  snapshot: {report.snapshot}")

    return "\n".join(lines).rstrip()


def format_push_report(report: PushReport) -> str:
    """Format a completed push as human-readable text.

    Warnings are listed first when present so they are not missed.
    """
    lines: list[str] = ["Sync up complete"]
    if report.forced:
        lines[0] += " (FORCED)"
    lines.append(f"Started: {report.started_at}")
    if report.completed_at:
        lines.append(f"Completed: {report.completed_at}")
    lines.append("")

    if report.warnings:
        lines.append("Warnings:")
        for warning in report.warnings:
            lines.append(f"  {warning}")
        lines.append("")

    lines.append("Written and verified:")
    lines.extend(_counts_lines(report.counts))
    lines.append(f"Formulas restored: {report.formulas_restored}")
    lines.append("")

    lines.append("Recovery points:")
    if report.sqlite_backup:
        lines.append(f"  datastore: {report.sqlite_backup}")
    if report.pre_push_snapshot:
        lines.append(f"  remote before push: {report.pre_push_snapshot}")
    if report.remote_copy:
        lines.append(f"  spreadsheet copy: {report.remote_copy}")

    return "\n".join(lines).rstrip()


def format_conflict_report(report: ConflictReport) -> str:
    """Format remote drift since the last pull, one block per tab."""
    if not report.has_baseline:
        return (
            "No pull snapshot was found, so remote changes cannot be ruled "
            "out. Run 'sync down' before pushing."
        )
    if report.is_clean:
        return "No remote changes since the last pull."

    lines: list[str] = ["Remote changes since the last pull:"]
    for tab, diff in report.collections.items():
        if diff.is_clean:
            continue
        lines.append(f"  {tab}:")
        if diff.additions:
            lines.append(f"    {diff.additions} added")
        if diff.modifications:
            lines.append(f"    {diff.modifications} modified")
        if diff.deletions:
            lines.append(f"    {diff.deletions} deleted")
        if diff.headers_changed:
            lines.append("    header row changed")
        if diff.reordered:
            lines.append("    rows re-sorted")
    return "\n".join(lines)


def format_status(status: SyncStatus) -> str:
    lines = [f"Tiller home: {status.home}", f"Spreadsheet: {status.spreadsheet_id}"]
    if not status.datastore_exists:
        lines.append("Datastore: not created yet (run 'sync down')")
    else:
        lines.append(
            f"Schema version: {status.schema_version} "
            f"(current {status.current_version})"
        )
        lines.extend(_counts_lines(status.counts))
        lines.append(f"Formulas recorded: {status.formulas}")
    lines.append("Latest backups:")
    for kind, path in status.latest_backups.items():
        lines.append(f"  {kind}: {path or 'none'}")
    lines.append(f"Sync running: {'yes' if status.locked else 'no'}")
    return "\n".join(lines)


# ------------------------------------------------------------------
# JSON output
# ------------------------------------------------------------------


def report_to_json(report: BaseModel) -> dict:
    """Convert any sync report or status to a JSON-safe dict.

    Suitable for MCP ``structuredContent`` output.
    """
    return report.model_dump(mode="json")
