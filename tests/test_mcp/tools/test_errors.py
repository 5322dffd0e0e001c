"""Tests for mcp/tools/errors.py and the error taxonomy it renders."""

from pathlib import Path

import mcp.types as types

from tiller_sync.errors import (
    ConflictError,
    ErrorType,
    ExternalServiceError,
    PreconditionError,
    TillerSyncError,
    recovery_hint,
)
from tiller_sync.mcp.tools.errors import build_error_response
from tiller_sync.sync import ConflictReport


def _get_error_text(result: types.CallToolResult) -> str:
    content = result.content[0]
    assert isinstance(content, types.TextContent)
    return content.text


class TestBuildErrorResponse:
    def test_structure(self):
        result = build_error_response(
            "precondition", "No local datastore", "Run sync_down first."
        )
        assert isinstance(result, types.CallToolResult)
        assert result.isError is True
        assert len(result.content) == 1

    def test_text_format(self):
        result = build_error_response("conflict", "Sheet changed", "Pull first.")
        assert _get_error_text(result) == (
            "Error (conflict): Sheet changed\n\nAction: Pull first."
        )


class TestTillerSyncError:
    def test_default_action_per_type(self):
        err = PreconditionError("No local datastore")
        assert err.error_type is ErrorType.PRECONDITION
        assert "sync down" in err.corrective_action

    def test_explicit_action_wins(self):
        err = TillerSyncError("boom", "Do this instead.")
        assert err.corrective_action == "Do this instead."
        assert err.error_type is ErrorType.INTERNAL

    def test_phase_in_str(self):
        err = ExternalServiceError("Rate limited", status=429)
        assert str(err) == "Rate limited"
        err.phase = "writing"
        assert str(err) == "Rate limited (during writing)"
        assert err.status == 429
        assert err.backups == {}

    def test_conflict_carries_report(self):
        report = ConflictReport(has_baseline=False)
        err = ConflictError("changed", report)
        assert err.report is report
        assert "force=true" in err.corrective_action


class TestRecoveryHint:
    def test_both_backups(self):
        hint = recovery_hint(Path("/b/tiller.sqlite.2025-01-02-001"), "copy-1")
        assert hint == (
            "Recover from local datastore backup /b/tiller.sqlite.2025-01-02-001 "
            "or remote spreadsheet copy copy-1."
        )

    def test_remote_only(self):
        assert recovery_hint(None, "copy-1") == "Recover from remote spreadsheet copy copy-1."

    def test_nothing_taken(self):
        assert "remote sheet was not modified" in recovery_hint(None, None)
