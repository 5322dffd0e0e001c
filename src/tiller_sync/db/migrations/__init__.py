"""Versioned, transactional schema migrations.

Migration ``N`` ships as two package-data scripts,
``migration_NN_up.sql`` and ``migration_NN_down.sql``. Applying ``up`` for
N moves the datastore from version N-1 to N; applying ``down`` moves it
from N back to N-1.

Each step runs its statements and the ``schema_version`` update inside one
explicit transaction, so a failing step leaves the datastore exactly at the
previous version. Released migrations are never edited; new requirements go
into a new, higher-numbered migration.

The connection must be in autocommit mode (``isolation_level=None``) so
that ``BEGIN``/``COMMIT`` here are the only transaction boundaries.
"""

from __future__ import annotations

import logging
import sqlite3
from dataclasses import dataclass
from importlib.resources import files

from ...errors import MigrationError

logger = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class Migration:
    """Forward and backward scripts for one schema version."""

    version: int
    up: str
    down: str


def _load(version: int) -> Migration:
    package = files(__name__)
    return Migration(
        version=version,
        up=package.joinpath(f"migration_{version:02d}_up.sql").read_text(
            encoding="utf-8"
        ),
        down=package.joinpath(
            f"migration_{version:02d}_down.sql"
        ).read_text(encoding="utf-8"),
    )


MIGRATIONS: list[Migration] = [_load(1)]

CURRENT_VERSION = len(MIGRATIONS)


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def validate_migrations(migrations: list[Migration]) -> None:
    """Check that versions run 1..N without gaps and every script has SQL.

    Raises:
        MigrationError: If the migration list is malformed.
    """
    for expected, migration in enumerate(migrations, start=1):
        if migration.version != expected:
            raise MigrationError(
                f"Migration list is out of order: expected version "
                f"{expected}, found {migration.version}",
                version=migration.version,
                direction="validate",
            )
        if not split_statements(migration.up) or not split_statements(
            migration.down
        ):
            raise MigrationError(
                f"Migration {migration.version} has an empty script",
                version=migration.version,
                direction="validate",
            )


def split_statements(script: str) -> list[str]:
    """Split a SQL script into complete statements.

    ``executescript`` would commit any open transaction first, so scripts
    are executed statement by statement inside our own transaction.
    """
    statements = []
    buffer = ""
    for line in script.splitlines(keepends=True):
        buffer += line
        if sqlite3.complete_statement(buffer):
            statement = buffer.strip()
            if statement:
                statements.append(statement)
            buffer = ""
    if buffer.strip() and not _only_comments(buffer):
        raise ValueError(f"Incomplete SQL statement: {buffer.strip()[:60]}")
    return statements


def _only_comments(text: str) -> bool:
    return all(
        not line.strip() or line.strip().startswith("--")
        for line in text.splitlines()
    )


def bootstrap(conn: sqlite3.Connection) -> None:
    """Create the version table at version 0 if it does not exist."""
    conn.execute("BEGIN")
    try:
        conn.execute(
            "CREATE TABLE IF NOT EXISTS schema_version "
            "(version INTEGER NOT NULL)"
        )
        if conn.execute("SELECT COUNT(*) FROM schema_version").fetchone()[0] == 0:
            conn.execute("INSERT INTO schema_version (version) VALUES (0)")
        conn.execute("COMMIT")
    except sqlite3.Error:
        conn.execute("ROLLBACK")
        raise


def get_schema_version(conn: sqlite3.Connection) -> int:
    row = conn.execute("SELECT version FROM schema_version").fetchone()
    return int(row[0]) if row else 0


# ---------------------------------------------------------------------------
# Runner
# ---------------------------------------------------------------------------


def run_migrations(
    conn: sqlite3.Connection,
    current: int,
    target: int,
    migrations: list[Migration] | None = None,
) -> int:
    """Move the schema from ``current`` to ``target``.

    Forward: ``up`` for ``current+1 .. target`` ascending.
    Backward: ``down`` for ``current .. target+1`` descending.

    Args:
        conn: Autocommit-mode connection.
        current: Version recorded in the datastore.
        target: Desired version.
        migrations: Migration list; defaults to the shipped ``MIGRATIONS``.

    Returns:
        The version the datastore ends at (``target`` on success).

    Raises:
        MigrationError: If the list is malformed, a version is out of
            range, or a step fails. Completed steps stay committed.
    """
    migrations = MIGRATIONS if migrations is None else migrations
    validate_migrations(migrations)
    latest = len(migrations)

    if current > latest:
        raise MigrationError(
            f"Datastore schema version {current} is newer than this build "
            f"supports (latest {latest})",
            version=current,
            direction="down",
            corrective_action="Upgrade tiller-sync to a release that knows this schema.",
        )
    if not 0 <= target <= latest:
        raise MigrationError(
            f"Target schema version {target} is out of range 0..{latest}",
            version=target,
            direction="up" if target > current else "down",
        )

    if current < target:
        for migration in migrations[current:target]:
            _apply_step(conn, migration.version, migration.up, migration.version, "up")
    elif current > target:
        for migration in reversed(migrations[target:current]):
            _apply_step(
                conn,
                migration.version,
                migration.down,
                migration.version - 1,
                "down",
            )
    return target


def _apply_step(
    conn: sqlite3.Connection,
    version: int,
    script: str,
    new_version: int,
    direction: str,
) -> None:
    """Run one script plus the version update atomically."""
    logger.info("Applying migration %d (%s)", version, direction)
    try:
        conn.execute("BEGIN")
        for statement in split_statements(script):
            conn.execute(statement)
        conn.execute("DELETE FROM schema_version")
        conn.execute(
            "INSERT INTO schema_version (version) VALUES (?)",
            (new_version,),
        )
        conn.execute("COMMIT")
    except (sqlite3.Error, ValueError) as exc:
        if conn.in_transaction:
            conn.execute("ROLLBACK")
        logger.error(
            "Migration %d (%s) failed and was rolled back: %s",
            version,
            direction,
            exc,
        )
        raise MigrationError(
            f"Migration {version} ({direction}) failed: {exc}",
            version=version,
            direction=direction,
        ) from exc
    logger.info("Schema now at version %d", new_version)
