"""Error taxonomy for sync, backup, migration and remote failures.

Every error carries an ``error_type`` (stable, machine-readable) and a
``corrective_action`` naming the next concrete step the operator can take.
MCP tool handlers turn these into ``build_error_response`` payloads; the
engine attaches the ``phase`` it was in when the error escaped.
"""

from __future__ import annotations

from enum import Enum
from pathlib import Path
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from .sync.models import ConflictReport


class ErrorType(str, Enum):
    """Machine-readable error categories."""

    PRECONDITION = "precondition"
    CONFLICT = "conflict"
    FORMULA_INTEGRITY = "formula_integrity"
    MIGRATION = "migration"
    VERIFICATION = "verification"
    EXTERNAL_SERVICE = "external_service"
    BACKUP = "backup"
    CONFIG = "config"
    CONCURRENCY = "concurrency"
    VALIDATION = "validation"
    INTERNAL = "internal"


class TillerSyncError(Exception):
    """Base class for all errors raised by tiller_sync.

    Args:
        message: Human-readable description of what went wrong.
        corrective_action: What the operator should do next.
    """

    error_type: ErrorType = ErrorType.INTERNAL
    default_action = "Check the log file for details and retry."

    def __init__(
        self, message: str, corrective_action: str | None = None
    ) -> None:
        super().__init__(message)
        self.message = message
        self.corrective_action = corrective_action or self.default_action
        self.phase: str | None = None

    def __str__(self) -> str:
        if self.phase:
            return f"{self.message} (during {self.phase})"
        return self.message


class PreconditionError(TillerSyncError):
    error_type = ErrorType.PRECONDITION
    default_action = "Run 'sync down' first to populate the local datastore."


class ConflictError(TillerSyncError):
    """The remote sheet changed since the last pull."""

    error_type = ErrorType.CONFLICT
    default_action = (
        "Run 'sync down' to pick up the remote edits, or retry 'sync up' "
        "with force=true to overwrite them."
    )

    def __init__(
        self,
        message: str,
        report: ConflictReport,
        corrective_action: str | None = None,
    ) -> None:
        super().__init__(message, corrective_action)
        self.report = report


class FormulaIntegrityError(TillerSyncError):
    error_type = ErrorType.FORMULA_INTEGRITY
    default_action = (
        "Retry 'sync up' with formulas=ignore to write values only, or "
        "with force=true to write formulas at their recorded positions anyway."
    )


class MigrationError(TillerSyncError):
    """A schema migration step failed and was rolled back."""

    error_type = ErrorType.MIGRATION
    default_action = (
        "The datastore was left at the last good schema version. Restore "
        "from a tiller.sqlite backup or report the failing migration."
    )

    def __init__(
        self,
        message: str,
        version: int,
        direction: str,
        corrective_action: str | None = None,
    ) -> None:
        super().__init__(message, corrective_action)
        self.version = version
        self.direction = direction


class VerificationError(TillerSyncError):
    error_type = ErrorType.VERIFICATION
    default_action = (
        "Open the sheet and compare it with the local datastore. Restore from "
        "the backup copy listed in the sync log if rows are missing."
    )


class ExternalServiceError(TillerSyncError):
    """A call to Google Sheets or Drive failed.

    Attributes:
        status: HTTP status of the failed call, when known.
        backups: Recovery artifacts taken before the remote was touched.
    """

    error_type = ErrorType.EXTERNAL_SERVICE
    default_action = "Check network connectivity and sheet permissions, then retry."

    def __init__(
        self,
        message: str,
        corrective_action: str | None = None,
        status: int | None = None,
    ) -> None:
        super().__init__(message, corrective_action)
        self.status = status
        self.backups: dict[str, str] = {}


class BackupError(TillerSyncError):
    error_type = ErrorType.BACKUP
    default_action = (
        "Check free disk space and permissions on the .backups directory."
    )


class ConfigError(TillerSyncError):
    error_type = ErrorType.CONFIG
    default_action = "Check TILLER_HOME, TILLER_SHEET_URL and the token file."


class SyncInProgressError(TillerSyncError):
    error_type = ErrorType.CONCURRENCY
    default_action = "Wait for the running sync to finish, then retry."


class DataValidationError(TillerSyncError):
    error_type = ErrorType.VALIDATION
    default_action = "Fix the offending row or header in the sheet and retry."


def recovery_hint(local_backup: Path | None, remote_copy: str | None) -> str:
    """Describe the two recovery paths available after a failed push."""
    parts = []
    if local_backup is not None:
        parts.append(f"local datastore backup {local_backup}")
    if remote_copy is not None:
        parts.append(f"remote spreadsheet copy {remote_copy}")
    if not parts:
        return "No backups were taken; the remote sheet was not modified."
    return "Recover from " + " or ".join(parts) + "."
