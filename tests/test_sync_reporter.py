"""Tests for sync reporter formatting functions.

Covers:
- format_pull_report and format_push_report sections
- FORCED marker and warnings on push
- format_conflict_report for missing baseline, clean and drifted sheets
- format_status before and after the first pull
- report_to_json structure
"""

from __future__ import annotations

import json

from tiller_sync.sync.models import (
    CollectionDiff,
    ConflictReport,
    PullReport,
    PushReport,
    SyncStatus,
)
from tiller_sync.sync.reporter import (
    format_conflict_report,
    format_pull_report,
    format_push_report,
    format_status,
    report_to_json,
)

# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------

COUNTS = {"Transactions": 3, "Categories": 2, "AutoCat": 1}


def _pull_report(**overrides) -> PullReport:
    values = dict(
        counts=COUNTS,
        inserted=2,
        updated=1,
        deleted=0,
        formulas=3,
        sqlite_backup="/home/.backups/tiller.sqlite.2026-02-07-001",
        snapshot="/home/.backups/sync-down.2026-02-07-001.json",
        started_at="2026-02-07T10:00:00Z",
        completed_at="2026-02-07T10:01:00Z",
    )
    values.update(overrides)
    return PullReport(**values)


def _push_report(**overrides) -> PushReport:
    values = dict(
        counts=COUNTS,
        formulas_restored=3,
        remote_copy="copy-1",
        pre_push_snapshot="/home/.backups/sync-up-pre.2026-02-07-001.json",
        started_at="2026-02-07T11:00:00Z",
        completed_at="2026-02-07T11:00:30Z",
    )
    values.update(overrides)
    return PushReport(**values)


# ---------------------------------------------------------------------------
# Pull
# ---------------------------------------------------------------------------


class TestFormatPullReport:
    def test_header_and_counts(self):
        text = format_pull_report(_pull_report())
        assert text.startswith("Sync down complete")
        assert "  Transactions: 3 rows" in text
        assert "  AutoCat: 1 rows" in text

    def test_upsert_breakdown(self):
        text = format_pull_report(_pull_report())
        assert "Transactions: 2 inserted, 1 updated, 0 deleted" in text
        assert "Formulas recorded: 3" in text

    def test_backups_listed(self):
        text = format_pull_report(_pull_report())
        assert "datastore: /home/.backups/tiller.sqlite.2026-02-07-001" in text
        assert "snapshot: /home/.backups/sync-down.2026-02-07-001.json" in text

    def test_first_pull_has_no_datastore_backup(self):
        text = format_pull_report(_pull_report(sqlite_backup=None))
        assert "datastore:" not in text
        assert not text.endswith("\n")


# ---------------------------------------------------------------------------
# Push
# ---------------------------------------------------------------------------


class TestFormatPushReport:
    def test_normal_push(self):
        text = format_push_report(_push_report())
        assert text.splitlines()[0] == "Sync up complete"
        assert "Formulas restored: 3" in text
        assert "spreadsheet copy: copy-1" in text
        assert "Warnings:" not in text

    def test_forced_push_shows_warnings_first(self):
        report = _push_report(
            forced=True, warnings=["Overwrote remote changes: Categories: 0 added"]
        )
        text = format_push_report(report)

        assert text.splitlines()[0] == "Sync up complete (FORCED)"
        assert text.index("Warnings:") < text.index("Written and verified:")
        assert "  Overwrote remote changes: Categories: 0 added" in text


# ---------------------------------------------------------------------------
# Conflicts
# ---------------------------------------------------------------------------


class TestFormatConflictReport:
    def test_no_baseline(self):
        text = format_conflict_report(ConflictReport(has_baseline=False))
        assert "No pull snapshot was found" in text

    def test_clean(self):
        report = ConflictReport(
            has_baseline=True, collections={"Transactions": CollectionDiff()}
        )
        assert format_conflict_report(report) == "No remote changes since the last pull."

    def test_drift_skips_clean_tabs(self):
        report = ConflictReport(
            has_baseline=True,
            collections={
                "Transactions": CollectionDiff(additions=1, deletions=2),
                "Categories": CollectionDiff(),
                "AutoCat": CollectionDiff(headers_changed=True, reordered=True),
            },
        )

        text = format_conflict_report(report)

        assert "Categories" not in text
        assert "    1 added" in text
        assert "    2 deleted" in text
        assert "modified" not in text
        assert "header row changed" in text
        assert "rows re-sorted" in text

    def test_summary_and_totals(self):
        report = ConflictReport(
            has_baseline=True,
            collections={
                "Transactions": CollectionDiff(modifications=2),
                "AutoCat": CollectionDiff(modifications=1, reordered=True),
            },
        )

        assert report.totals().modifications == 3
        assert report.totals().reordered is True
        assert "AutoCat: 0 added, 1 modified, 0 deleted, rows re-sorted" in report.summary()


# ---------------------------------------------------------------------------
# Status
# ---------------------------------------------------------------------------


class TestFormatStatus:
    def test_before_first_pull(self):
        status = SyncStatus(
            home="/home/tiller",
            spreadsheet_id="abc",
            datastore_exists=False,
            current_version=1,
            latest_backups={"tiller.sqlite": None},
        )

        text = format_status(status)

        assert "Datastore: not created yet" in text
        assert "  tiller.sqlite: none" in text
        assert text.endswith("Sync running: no")

    def test_after_pull_while_locked(self):
        status = SyncStatus(
            home="/home/tiller",
            spreadsheet_id="abc",
            datastore_exists=True,
            schema_version=1,
            current_version=1,
            counts=COUNTS,
            formulas=3,
            locked=True,
        )

        text = format_status(status)

        assert "Schema version: 1 (current 1)" in text
        assert "Formulas recorded: 3" in text
        assert "Sync running: yes" in text


# ---------------------------------------------------------------------------
# JSON
# ---------------------------------------------------------------------------


class TestReportToJson:
    def test_push_report_nests_conflicts(self):
        report = _push_report(
            conflicts=ConflictReport(
                has_baseline=True,
                collections={"Categories": CollectionDiff(modifications=1)},
            )
        )

        data = report_to_json(report)

        assert data["conflicts"]["collections"]["Categories"]["modifications"] == 1
        assert data["warnings"] == []
        json.dumps(data)

    def test_pull_report_keys(self):
        data = report_to_json(_pull_report())
        assert set(data) == {
            "counts",
            "inserted",
            "updated",
            "deleted",
            "formulas",
            "sqlite_backup",
            "snapshot",
            "started_at",
            "completed_at",
        }
