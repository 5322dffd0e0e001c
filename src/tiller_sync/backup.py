"""Backup creation, lookup and retention.

Every mutating sync operation takes a backup first. Local backups live in
``{home}/.backups`` and are named::

    {prefix}.{YYYY-MM-DD}-{NNN}{extension}

``NNN`` is a zero-padded per-date, per-kind sequence number, so sorting
names lexically sorts them chronologically. Each kind is pruned
independently to the configured retention count.

Key design choices:

* **Atomic writes** -- JSON snapshots are written to a temp file in the
  same directory then moved into place with ``os.replace()``, so a
  snapshot on disk is always complete.
* **Immutable snapshots** -- a backup file is never rewritten; a new
  sequence number is allocated for every call to ``create()``.
"""

from __future__ import annotations

import logging
import os
import re
import shutil
import tempfile
from datetime import date
from enum import Enum
from pathlib import Path

from pydantic import ValidationError

from .errors import BackupError
from .model import TillerData

logger = logging.getLogger(__name__)


class BackupKind(str, Enum):
    """Backup kinds and their file-name prefixes."""

    SQLITE = "tiller.sqlite"
    SYNC_DOWN = "sync-down"
    SYNC_UP_PRE = "sync-up-pre"

    @property
    def extension(self) -> str:
        return "" if self is BackupKind.SQLITE else ".json"


class Backup:
    """Create and prune backups for one tiller home.

    Args:
        backups_dir: Directory holding all backup files.
        sqlite_path: The datastore file copied by ``BackupKind.SQLITE``.
        backup_copies: How many backups of each kind to retain.
    """

    def __init__(
        self, backups_dir: Path, sqlite_path: Path, backup_copies: int = 5
    ) -> None:
        self.backups_dir = backups_dir
        self.sqlite_path = sqlite_path
        self.backup_copies = backup_copies

    # ------------------------------------------------------------------
    # Creation
    # ------------------------------------------------------------------

    def create(
        self, kind: BackupKind, data: TillerData | None = None
    ) -> Path:
        """Write a new backup of ``kind`` and prune old ones.

        Args:
            kind: What to back up.
            data: Sheet data for the JSON kinds; ignored for ``SQLITE``.

        Returns:
            Path of the new backup file.

        Raises:
            BackupError: If the backup could not be written. Callers must
                abort: no sync proceeds without its backup.
        """
        try:
            self.backups_dir.mkdir(parents=True, exist_ok=True)
            target = self.next_path(kind)
            if kind is BackupKind.SQLITE:
                shutil.copy2(self.sqlite_path, target)
            else:
                if data is None:
                    raise ValueError(f"{kind.value} backup needs sheet data")
                self._write_atomic(target, data.model_dump_json(indent=2))
        except (OSError, ValueError) as exc:
            raise BackupError(f"Could not create {kind.value} backup: {exc}") from exc
        logger.info("Created backup %s", target)
        self.prune(kind)
        return target

    def _write_atomic(self, target: Path, text: str) -> None:
        fd, tmp_path = tempfile.mkstemp(
            dir=str(self.backups_dir), suffix=".tmp"
        )
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as fh:
                fh.write(text)
            os.replace(tmp_path, target)
        except BaseException:
            try:
                os.unlink(tmp_path)
            except OSError:
                pass
            raise

    def next_path(self, kind: BackupKind, today: date | None = None) -> Path:
        """Path for the next backup of ``kind`` dated ``today``."""
        day = (today or date.today()).isoformat()
        pattern = re.compile(
            rf"^{re.escape(kind.value)}\.{day}-(\d+){re.escape(kind.extension)}$"
        )
        sequence = 0
        for path in self.list_backups(kind):
            match = pattern.match(path.name)
            if match:
                sequence = max(sequence, int(match.group(1)))
        return self.backups_dir / f"{kind.value}.{day}-{sequence + 1:03d}{kind.extension}"

    # ------------------------------------------------------------------
    # Lookup
    # ------------------------------------------------------------------

    def list_backups(self, kind: BackupKind) -> list[Path]:
        """Existing backups of ``kind``, oldest first."""
        if not self.backups_dir.is_dir():
            return []
        return sorted(
            (p for p in self.backups_dir.iterdir() if is_backup_file(p.name, kind)),
            key=lambda p: p.name,
        )

    def latest(self, kind: BackupKind) -> Path | None:
        backups = self.list_backups(kind)
        return backups[-1] if backups else None

    def load_snapshot(self, path: Path) -> TillerData:
        """Parse a JSON snapshot written by ``create()``.

        Raises:
            BackupError: If the file is unreadable or not a snapshot.
        """
        try:
            return TillerData.model_validate_json(
                path.read_text(encoding="utf-8")
            )
        except (OSError, ValidationError) as exc:
            raise BackupError(
                f"Could not read snapshot {path}: {exc}",
                "Run 'sync down' to take a fresh snapshot.",
            ) from exc

    def latest_snapshot(self) -> TillerData | None:
        """The most recent pull snapshot, or ``None`` if there is none."""
        path = self.latest(BackupKind.SYNC_DOWN)
        return self.load_snapshot(path) if path else None

    # ------------------------------------------------------------------
    # Retention
    # ------------------------------------------------------------------

    def prune(self, kind: BackupKind, retain: int | None = None) -> list[Path]:
        """Delete the oldest backups of ``kind`` beyond ``retain``.

        Returns:
            Paths that were deleted.
        """
        keep = self.backup_copies if retain is None else retain
        backups = self.list_backups(kind)
        excess = backups[: max(len(backups) - keep, 0)]
        for path in excess:
            try:
                path.unlink()
            except OSError as exc:
                raise BackupError(
                    f"Could not delete old backup {path}: {exc}"
                ) from exc
            logger.debug("Pruned backup %s", path)
        return excess


def is_backup_file(name: str, kind: BackupKind) -> bool:
    """True if ``name`` looks like a backup of ``kind``.

    SQLite copies have no extension, so a ``.json`` file never counts as
    one even though it shares the date/sequence shape.
    """
    pattern = (
        rf"^{re.escape(kind.value)}\.\d{{4}}-\d{{2}}-\d{{2}}-\d{{3,}}"
        rf"{re.escape(kind.extension)}$"
    )
    return re.match(pattern, name) is not None
