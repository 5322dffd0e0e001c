"""Pull and push between the local datastore and the Tiller sheet.

``SyncEngine`` runs each operation as a small state machine and logs
every phase transition. Both operations hold the datastore's ``SyncLock``
for their whole duration and take their backups before touching anything.

Pull (sync down):

1. Copy an existing datastore file to ``.backups``, then open and
   migrate it. A new datastore is created first and then copied.
2. Fetch all three tabs, values and formulas.
3. Save the fetched data as a ``sync-down`` snapshot.
4. In one transaction, upsert transactions by id, replace categories and
   AutoCat rules, and record headers and formula positions.

Push (sync up):

1. Require a datastore holding at least one transaction.
2. Fetch the remote and compare it with the latest ``sync-down``
   snapshot; refuse on any drift unless forced.
3. Decide about formulas (see ``formulas.plan_formulas``).
4. Save a ``sync-up-pre`` snapshot, copy the datastore file and make a
   full copy of the spreadsheet.
5. Clear and rewrite every tab, then restore formulas if planned.
6. Re-read row counts and compare with what was written.

Any error escaping an operation carries the name of the phase it failed
in. Errors after step 4 of a push also name both recovery points.
"""

from __future__ import annotations

import logging
import sqlite3
from collections.abc import Iterator
from contextlib import contextmanager
from datetime import datetime, timezone
from pathlib import Path
from typing import TYPE_CHECKING

from ..backup import Backup, BackupKind
from ..db import CURRENT_VERSION, Db, open_read_only
from ..errors import (
    BackupError,
    ConflictError,
    ExternalServiceError,
    PreconditionError,
    TillerSyncError,
    recovery_hint,
)
from ..remote import TABS, TillerLedger
from .conflict import detect
from .formulas import has_gap, plan_formulas
from .lock import SyncLock, is_locked
from .models import (
    FormulasMode,
    PullPhase,
    PullReport,
    PushPhase,
    PushReport,
    SyncStatus,
)

if TYPE_CHECKING:
    from ..config import Config

logger = logging.getLogger(__name__)


def _now() -> str:
    return datetime.now(timezone.utc).isoformat()


class SyncEngine:
    """Pull, push and status for one tiller home.

    Args:
        config: Resolved configuration (paths, retention).
        ledger: Access to the remote sheet.
        backup: Backup manager; built from ``config`` when omitted.
    """

    def __init__(
        self,
        config: Config,
        ledger: TillerLedger,
        backup: Backup | None = None,
    ) -> None:
        self.config = config
        self.ledger = ledger
        self.backup = backup or Backup(
            config.backups_dir, config.sqlite_path, config.backup_copies
        )
        self.phase: PullPhase | PushPhase = PullPhase.IDLE

    # ------------------------------------------------------------------
    # Phase tracking
    # ------------------------------------------------------------------

    def _enter(self, phase: PullPhase | PushPhase) -> None:
        self.phase = phase
        logger.info("%s: %s", self._operation(), phase.value)

    def _operation(self) -> str:
        return "pull" if isinstance(self.phase, PullPhase) else "push"

    @contextmanager
    def _tracking(self, start: PullPhase | PushPhase) -> Iterator[None]:
        """Attach the current phase to any error and move to FAILED."""
        self.phase = start
        try:
            yield
        except TillerSyncError as exc:
            self._fail(exc)
            raise
        except Exception as exc:
            err = TillerSyncError(f"Unexpected error: {exc}")
            self._fail(err)
            raise err from exc

    def _fail(self, exc: TillerSyncError) -> None:
        if exc.phase is None:
            exc.phase = self.phase.value
        logger.error(
            "%s failed during %s: %s", self._operation(), exc.phase, exc.message
        )
        self.phase = type(self.phase).FAILED

    # ------------------------------------------------------------------
    # Pull
    # ------------------------------------------------------------------

    def pull(self) -> PullReport:
        """Replace the local datastore contents with the remote sheet.

        Raises:
            SyncInProgressError: If another sync holds the lock.
            TillerSyncError: Any failure, with ``phase`` set. Local changes
                are rolled back; backups taken so far remain.
        """
        with SyncLock(self.config.lock_path), self._tracking(PullPhase.IDLE):
            return self._pull()

    def _pull(self) -> PullReport:
        started_at = _now()
        path = self.config.sqlite_path
        self._enter(PullPhase.BACKING_UP)
        if path.exists():
            # copy before load so the backup predates any schema migration
            sqlite_backup = self.backup.create(BackupKind.SQLITE)
            db = Db.load(path)
        else:
            db = Db.init(path)
            try:
                sqlite_backup = self.backup.create(BackupKind.SQLITE)
            except BackupError:
                db.close()
                raise

        with db:
            self._enter(PullPhase.FETCHING)
            data = self.ledger.get_data()

            self._enter(PullPhase.SNAPSHOT_WRITING)
            snapshot = self.backup.create(BackupKind.SYNC_DOWN, data)

            self._enter(PullPhase.UPSERTING)
            with db.transaction(enforce_foreign_keys=False):
                inserted, updated, deleted = db.sync_transactions(
                    data.transactions.rows
                )
                db.replace_categories(data.categories.rows)
                db.replace_autocats(data.auto_cats.rows)
                for tab_data in data.tabs():
                    db.replace_sheet_metadata(tab_data.TAB, tab_data.headers)
                    db.replace_formulas(tab_data.TAB, tab_data.formulas)

            counts = db.counts()
            formulas = db.count_formulas()

        self._enter(PullPhase.DONE)
        return PullReport(
            counts=counts,
            inserted=inserted,
            updated=updated,
            deleted=deleted,
            formulas=formulas,
            sqlite_backup=str(sqlite_backup),
            snapshot=str(snapshot),
            started_at=started_at,
            completed_at=_now(),
        )

    # ------------------------------------------------------------------
    # Push
    # ------------------------------------------------------------------

    def push(
        self,
        force: bool = False,
        formulas: FormulasMode | str = FormulasMode.UNKNOWN,
    ) -> PushReport:
        """Overwrite the remote sheet with the local datastore.

        Args:
            force: Proceed despite remote drift or formula position gaps.
            formulas: How to treat formulas recorded at the last pull.

        Raises:
            ValueError: If ``formulas`` is not a known mode.
            SyncInProgressError: If another sync holds the lock.
            TillerSyncError: Any failure, with ``phase`` set.
        """
        mode = FormulasMode(formulas)
        with SyncLock(self.config.lock_path), self._tracking(PushPhase.IDLE):
            return self._push(force, mode)

    def _push(self, force: bool, mode: FormulasMode) -> PushReport:
        started_at = _now()
        warnings: list[str] = []
        path = self.config.sqlite_path

        self._enter(PushPhase.PRECONDITION_CHECK)
        if not path.exists():
            raise PreconditionError(f"No local datastore at {path}")

        with Db.load(path) as db:
            if db.count_transactions() == 0:
                raise PreconditionError(
                    "The local datastore has no transactions"
                )

            self._enter(PushPhase.CONFLICT_CHECK)
            remote = self.ledger.get_data()
            conflicts = detect(remote, self.backup.latest_snapshot())
            if not conflicts.is_clean:
                if not force:
                    raise ConflictError(
                        "The remote sheet changed since the last pull:\n"
                        + conflicts.summary(),
                        conflicts,
                    )
                warning = "Overwrote remote changes: " + conflicts.summary()
                logger.warning(warning)
                warnings.append(warning)

            self._enter(PushPhase.FORMULA_CHECK)
            gaps = [tab.value for tab in TABS if has_gap(db.original_orders(tab))]
            plan = plan_formulas(mode, db.count_formulas() > 0, gaps, force)
            if plan.warning:
                warnings.append(plan.warning)

            self._enter(PushPhase.BACKING_UP)
            pre_push = self.backup.create(BackupKind.SYNC_UP_PRE, remote)
            sqlite_backup = self.backup.create(BackupKind.SQLITE)
            remote_copy = self.ledger.copy_spreadsheet()
            logger.info("Remote copy created: %s", remote_copy)

            try:
                self._enter(PushPhase.WRITING)
                data = db.load_data()
                written = self.ledger.clear_and_write(data)
                restored = 0
                if plan.write_formulas:
                    restored = self.ledger.write_formulas(data)
                    recorded = sum(len(t.formulas) for t in data.tabs())
                    if restored < recorded:
                        warnings.append(
                            f"{recorded - restored} formulas were recorded below "
                            "the last data row and were not written"
                        )

                self._enter(PushPhase.VERIFYING)
                self.ledger.verify(written)
            except TillerSyncError as exc:
                _attach_recovery(exc, sqlite_backup, pre_push, remote_copy)
                raise
            except Exception as exc:
                err = TillerSyncError(f"Unexpected error: {exc}")
                _attach_recovery(err, sqlite_backup, pre_push, remote_copy)
                raise err from exc

        self._enter(PushPhase.DONE)
        return PushReport(
            counts=written,
            formulas_restored=restored,
            forced=force and (not conflicts.is_clean or bool(plan.gaps)),
            conflicts=conflicts,
            warnings=warnings,
            sqlite_backup=str(sqlite_backup),
            pre_push_snapshot=str(pre_push),
            remote_copy=remote_copy,
            started_at=started_at,
            completed_at=_now(),
        )

    # ------------------------------------------------------------------
    # Status
    # ------------------------------------------------------------------

    def status(self) -> SyncStatus:
        return read_status(self.config, self.backup)


def read_status(config: Config, backup: Backup | None = None) -> SyncStatus:
    """Describe the local side without taking the lock or writing.

    Needs no remote access, so it works before credentials are set up.
    """
    backup = backup or Backup(
        config.backups_dir, config.sqlite_path, config.backup_copies
    )
    path = config.sqlite_path
    info = {
        "home": str(config.home),
        "spreadsheet_id": config.spreadsheet_id,
        "current_version": CURRENT_VERSION,
        "latest_backups": {
            kind.value: _path_or_none(backup.latest(kind)) for kind in BackupKind
        },
        "locked": is_locked(config.lock_path),
    }
    if not path.exists():
        return SyncStatus(datastore_exists=False, **info)

    try:
        with Db(path, open_read_only(path)) as db:
            version = db.schema_version()
            if version < 1:
                return SyncStatus(
                    datastore_exists=True, schema_version=version, **info
                )
            return SyncStatus(
                datastore_exists=True,
                schema_version=version,
                counts=db.counts(),
                formulas=db.count_formulas(),
                **info,
            )
    except sqlite3.Error as exc:
        raise PreconditionError(
            f"{path} is not a readable tiller datastore: {exc}",
            "Move the file aside and run 'sync down' to create a new "
            "datastore.",
        ) from exc


def _path_or_none(path: Path | None) -> str | None:
    return str(path) if path else None


def _attach_recovery(
    exc: TillerSyncError,
    sqlite_backup: Path,
    pre_push: Path,
    remote_copy: str,
) -> None:
    exc.corrective_action = (
        f"{recovery_hint(sqlite_backup, remote_copy)} {exc.corrective_action}"
    )
    if isinstance(exc, ExternalServiceError):
        exc.backups = {
            "sqlite": str(sqlite_backup),
            "pre_push_snapshot": str(pre_push),
            "remote_copy": remote_copy,
        }
