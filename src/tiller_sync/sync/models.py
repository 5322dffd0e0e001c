"""Pydantic models for the pull/push sync engine.

Defines the data contracts shared by the sync modules:

- ``PullPhase`` / ``PushPhase``: steps of each operation's state machine.
- ``FormulasMode``: how push treats formulas recorded at pull time.
- ``CollectionDiff`` / ``ConflictReport``: remote drift since the last pull.
- ``FormulaPlan``: what push will do about formulas, and why.
- ``PullReport`` / ``PushReport``: outcome of a completed operation.
- ``SyncStatus``: read-only snapshot of the local side.

All models are frozen (immutable) for safety.
"""

from __future__ import annotations

from enum import Enum

from pydantic import BaseModel


class PullPhase(str, Enum):
    """States of a pull."""

    IDLE = "idle"
    BACKING_UP = "backing_up"
    FETCHING = "fetching"
    SNAPSHOT_WRITING = "snapshot_writing"
    UPSERTING = "upserting"
    DONE = "done"
    FAILED = "failed"


class PushPhase(str, Enum):
    """States of a push."""

    IDLE = "idle"
    PRECONDITION_CHECK = "precondition_check"
    CONFLICT_CHECK = "conflict_check"
    FORMULA_CHECK = "formula_check"
    BACKING_UP = "backing_up"
    WRITING = "writing"
    VERIFYING = "verifying"
    DONE = "done"
    FAILED = "failed"


class FormulasMode(str, Enum):
    """Formula handling on push.

    ``UNKNOWN`` refuses to push when formulas exist, forcing a choice.
    ``PRESERVE`` writes recorded formulas back to their positions.
    ``IGNORE`` writes values only.
    """

    UNKNOWN = "unknown"
    PRESERVE = "preserve"
    IGNORE = "ignore"


class CollectionDiff(BaseModel):
    """Row-level drift of one tab between the last pull and now.

    Attributes:
        additions: Rows present remotely but not in the snapshot.
        modifications: Rows present in both but different.
        deletions: Rows in the snapshot but no longer present remotely.
        headers_changed: True if the header row itself changed.
        reordered: True if rows present in both were re-sorted.
    """

    additions: int = 0
    modifications: int = 0
    deletions: int = 0
    headers_changed: bool = False
    reordered: bool = False

    model_config = {"frozen": True}

    @property
    def is_clean(self) -> bool:
        return not (
            self.additions
            or self.modifications
            or self.deletions
            or self.headers_changed
            or self.reordered
        )


class ConflictReport(BaseModel):
    """Comparison of the current remote sheet with the last pull snapshot.

    ``has_baseline=False`` means there was nothing to compare against,
    which is not the same as "no conflict".
    """

    has_baseline: bool
    collections: dict[str, CollectionDiff] = {}

    model_config = {"frozen": True}

    @property
    def is_clean(self) -> bool:
        return self.has_baseline and all(
            d.is_clean for d in self.collections.values()
        )

    def totals(self) -> CollectionDiff:
        diffs = list(self.collections.values())
        return CollectionDiff(
            additions=sum(d.additions for d in diffs),
            modifications=sum(d.modifications for d in diffs),
            deletions=sum(d.deletions for d in diffs),
            headers_changed=any(d.headers_changed for d in diffs),
            reordered=any(d.reordered for d in diffs),
        )

    def summary(self) -> str:
        """One line per drifted tab, or a short clean/no-baseline message."""
        if not self.has_baseline:
            return "No pull snapshot found to compare against."
        if self.is_clean:
            return "Remote sheet unchanged since the last pull."
        lines = []
        for tab, diff in self.collections.items():
            if diff.is_clean:
                continue
            line = (
                f"{tab}: {diff.additions} added, "
                f"{diff.modifications} modified, {diff.deletions} deleted"
            )
            if diff.headers_changed:
                line += ", headers changed"
            if diff.reordered:
                line += ", rows re-sorted"
            lines.append(line)
        return "\n".join(lines)


class FormulaPlan(BaseModel):
    """Outcome of the formula check before a push.

    Attributes:
        write_formulas: Whether recorded formulas will be written back.
        gaps: Tabs whose ``original_order`` sequence has gaps.
        warning: Set when the push proceeds despite a problem.
    """

    write_formulas: bool
    gaps: list[str] = []
    warning: str | None = None

    model_config = {"frozen": True}


class PullReport(BaseModel):
    """Outcome of a completed pull.

    Attributes:
        counts: Rows now stored per tab.
        inserted / updated / deleted: Transaction upsert breakdown.
        formulas: Formulas recorded across all tabs.
        sqlite_backup: Datastore copy taken before the pull.
        snapshot: Snapshot file written for this pull.
    """

    counts: dict[str, int]
    inserted: int = 0
    updated: int = 0
    deleted: int = 0
    formulas: int = 0
    sqlite_backup: str | None = None
    snapshot: str | None = None
    started_at: str
    completed_at: str | None = None

    model_config = {"frozen": True}

    def summary(self) -> str:
        lines = [
            "Pulled from sheet",
            *(f"  {tab}: {count}" for tab, count in self.counts.items()),
            f"  Transactions inserted/updated/deleted: "
            f"{self.inserted}/{self.updated}/{self.deleted}",
            f"  Formulas recorded: {self.formulas}",
        ]
        return "\n".join(lines)


class PushReport(BaseModel):
    """Outcome of a completed push.

    Attributes:
        counts: Rows written (and verified) per tab.
        formulas_restored: Formulas written back, 0 unless preserving.
        forced: Whether the conflict or gap check was overridden.
        conflicts: The conflict report computed before writing.
        warnings: Non-fatal problems the operator should know about.
        sqlite_backup / pre_push_snapshot / remote_copy: Recovery points.
    """

    counts: dict[str, int]
    formulas_restored: int = 0
    forced: bool = False
    conflicts: ConflictReport | None = None
    warnings: list[str] = []
    sqlite_backup: str | None = None
    pre_push_snapshot: str | None = None
    remote_copy: str | None = None
    started_at: str
    completed_at: str | None = None

    model_config = {"frozen": True}

    def summary(self) -> str:
        lines = [
            "Pushed to sheet",
            *(f"  {tab}: {count}" for tab, count in self.counts.items()),
            f"  Formulas restored: {self.formulas_restored}",
        ]
        lines.extend(f"  Warning: {w}" for w in self.warnings)
        return "\n".join(lines)


class SyncStatus(BaseModel):
    """Read-only view of the local side, for ``sync_status``.

    Attributes:
        datastore_exists: Whether ``tiller.sqlite`` has been created.
        schema_version / current_version: Stored vs. shipped schema.
        counts: Rows stored per tab.
        formulas: Formulas recorded at the last pull.
        latest_backups: Newest backup file per kind, ``None`` if none.
        locked: Whether a sync currently holds the lock.
    """

    home: str
    spreadsheet_id: str
    datastore_exists: bool
    schema_version: int | None = None
    current_version: int
    counts: dict[str, int] = {}
    formulas: int = 0
    latest_backups: dict[str, str | None] = {}
    locked: bool = False

    model_config = {"frozen": True}
