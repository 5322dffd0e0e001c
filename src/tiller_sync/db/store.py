"""SQLite access layer for the local copy of the Tiller sheet.

``Db`` owns one read-write connection in autocommit mode; multi-statement
work goes through ``Db.transaction()`` which issues explicit
``BEGIN``/``COMMIT``/``ROLLBACK``. Ad-hoc readers use
``open_read_only()``, which SQLite itself enforces as read-only.
"""

from __future__ import annotations

import json
import logging
import sqlite3
from collections.abc import Iterator
from contextlib import contextmanager
from decimal import Decimal
from pathlib import Path
from typing import Any

from ..errors import DataValidationError, PreconditionError
from ..model import (
    AutoCat,
    AutoCatTab,
    Category,
    CategoryTab,
    FormulaCell,
    LocalId,
    SheetRow,
    Tab,
    TillerData,
    Transaction,
    TransactionId,
    TransactionTab,
    same_row,
    to_column_name,
)
from ..model.columns import CENTS
from .migrations import (
    CURRENT_VERSION,
    bootstrap,
    get_schema_version,
    run_migrations,
)

logger = logging.getLogger(__name__)

# table name, model, identity column used as the stable secondary sort key
_TABLES: dict[Tab, tuple[str, type[SheetRow], str]] = {
    Tab.TRANSACTIONS: ("transactions", Transaction, "transaction_id"),
    Tab.CATEGORIES: ("categories", Category, "category"),
    Tab.AUTOCAT: ("autocat", AutoCat, "id"),
}


def _fields(model: type[SheetRow]) -> list[str]:
    return list(model.HEADERS.values())


def open_read_only(path: Path) -> sqlite3.Connection:
    """Open a connection that SQLite refuses to write through.

    Raises:
        PreconditionError: If the datastore does not exist.
    """
    if not path.exists():
        raise PreconditionError(f"No datastore found at {path}")
    uri = f"{path.resolve().as_uri()}?mode=ro"
    conn = sqlite3.connect(uri, uri=True)
    conn.row_factory = sqlite3.Row
    return conn


class Db:
    """Read-write handle on the local datastore.

    Use ``Db.init`` for a new file, ``Db.load`` for an existing one, or
    ``Db.open`` for either. All three leave the schema at
    ``CURRENT_VERSION``.
    """

    def __init__(self, path: Path, conn: sqlite3.Connection) -> None:
        self.path = path
        self.conn = conn

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    @staticmethod
    def _connect(path: Path) -> sqlite3.Connection:
        conn = sqlite3.connect(str(path), isolation_level=None)
        conn.row_factory = sqlite3.Row
        conn.execute("PRAGMA foreign_keys = ON")
        return conn

    @classmethod
    def init(cls, path: Path) -> Db:
        """Create a new datastore, bootstrap version 0 and migrate forward.

        Raises:
            PreconditionError: If a file already exists at ``path``.
        """
        if path.exists():
            raise PreconditionError(
                f"Datastore already exists at {path}",
                "Use the existing datastore, or move it aside to start over.",
            )
        path.parent.mkdir(parents=True, exist_ok=True)
        logger.info("Creating datastore %s", path)
        conn = cls._connect(path)
        db = cls(path, conn)
        bootstrap(conn)
        db._migrate(CURRENT_VERSION)
        return db

    @classmethod
    def load(cls, path: Path) -> Db:
        """Open an existing datastore and bring its schema up to date.

        Raises:
            PreconditionError: If the file does not exist.
        """
        if not path.exists():
            raise PreconditionError(f"No datastore found at {path}")
        db = cls(path, cls._connect(path))
        bootstrap(db.conn)
        db._migrate(CURRENT_VERSION)
        return db

    @classmethod
    def open(cls, path: Path) -> Db:
        return cls.load(path) if path.exists() else cls.init(path)

    def close(self) -> None:
        self.conn.close()

    def __enter__(self) -> Db:
        return self

    def __exit__(self, *exc_info: Any) -> None:
        self.close()

    def schema_version(self) -> int:
        return get_schema_version(self.conn)

    def _migrate(self, target: int) -> None:
        current = self.schema_version()
        if current != target:
            run_migrations(self.conn, current, target)

    def migrate_to(self, target: int) -> int:
        """Move the schema to ``target`` (forward or backward)."""
        self._migrate(target)
        return self.schema_version()

    @contextmanager
    def transaction(self, enforce_foreign_keys: bool = True) -> Iterator[None]:
        """Run the body inside one transaction.

        Args:
            enforce_foreign_keys: When False, category references are not
                checked for the duration of the transaction (bulk
                delete-all/insert-all replacement). Any dangling references
                left behind are logged after commit.
        """
        if not enforce_foreign_keys:
            self.conn.execute("PRAGMA foreign_keys = OFF")
        try:
            self.conn.execute("BEGIN")
            try:
                yield
                self.conn.execute("COMMIT")
            except BaseException:
                if self.conn.in_transaction:
                    self.conn.execute("ROLLBACK")
                raise
        finally:
            if not enforce_foreign_keys:
                self.conn.execute("PRAGMA foreign_keys = ON")
                self._log_dangling_references()

    def _log_dangling_references(self) -> None:
        for row in self.conn.execute("PRAGMA foreign_key_check"):
            logger.warning(
                "%s row %s references a category missing from the "
                "Categories tab",
                row[0],
                row[1],
            )

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    def count_transactions(self) -> int:
        return self.conn.execute(
            "SELECT COUNT(*) FROM transactions"
        ).fetchone()[0]

    def counts(self) -> dict[str, int]:
        """Row count per tab name."""
        result = {}
        for tab, (table, _, _) in _TABLES.items():
            result[tab.value] = self.conn.execute(
                f"SELECT COUNT(*) FROM {table}"
            ).fetchone()[0]
        return result

    def _rows(self, tab: Tab) -> list[sqlite3.Row]:
        table, _, key = _TABLES[tab]
        return self.conn.execute(
            f"SELECT * FROM {table} "
            f"ORDER BY original_order IS NULL, original_order, {key}"
        ).fetchall()

    def get_transactions(self) -> list[Transaction]:
        """All transactions in push order: by original_order, locals last."""
        return [_to_model(Transaction, r) for r in self._rows(Tab.TRANSACTIONS)]

    def get_categories(self) -> list[Category]:
        return [_to_model(Category, r) for r in self._rows(Tab.CATEGORIES)]

    def get_autocats(self) -> list[AutoCat]:
        return [_to_model(AutoCat, r) for r in self._rows(Tab.AUTOCAT)]

    def get_headers(self, tab: Tab) -> list[str]:
        """Header text of a tab in its recorded column order."""
        rows = self.conn.execute(
            'SELECT header_name FROM sheet_metadata WHERE sheet = ? ORDER BY "order"',
            (tab.value,),
        ).fetchall()
        return [r[0] for r in rows]

    def get_formulas(self, tab: Tab) -> list[FormulaCell]:
        rows = self.conn.execute(
            "SELECT row, col, formula FROM formulas WHERE sheet = ? "
            "ORDER BY row, col",
            (tab.value,),
        ).fetchall()
        return [
            FormulaCell(row=r["row"], col=r["col"], formula=r["formula"])
            for r in rows
        ]

    def count_formulas(self) -> int:
        return self.conn.execute("SELECT COUNT(*) FROM formulas").fetchone()[0]

    def original_orders(self, tab: Tab) -> list[int | None]:
        table = _TABLES[tab][0]
        return [
            r[0]
            for r in self.conn.execute(f"SELECT original_order FROM {table}")
        ]

    def load_data(self) -> TillerData:
        """Everything needed to rebuild the sheet, rows in push order."""
        return TillerData(
            transactions=TransactionTab(
                headers=self.get_headers(Tab.TRANSACTIONS),
                rows=self.get_transactions(),
                formulas=self.get_formulas(Tab.TRANSACTIONS),
            ),
            categories=CategoryTab(
                headers=self.get_headers(Tab.CATEGORIES),
                rows=self.get_categories(),
                formulas=self.get_formulas(Tab.CATEGORIES),
            ),
            auto_cats=AutoCatTab(
                headers=self.get_headers(Tab.AUTOCAT),
                rows=self.get_autocats(),
                formulas=self.get_formulas(Tab.AUTOCAT),
            ),
        )

    # ------------------------------------------------------------------
    # Bulk writes (call inside ``transaction()``)
    # ------------------------------------------------------------------

    def sync_transactions(
        self, incoming: list[Transaction]
    ) -> tuple[int, int, int]:
        """Upsert by id and delete rows whose id is not in ``incoming``.

        Returns:
            ``(inserted, updated, deleted)`` counts.
        """
        existing = {
            r["transaction_id"]: _to_model(Transaction, r)
            for r in self.conn.execute("SELECT * FROM transactions")
        }
        inserted = updated = 0
        for txn in incoming:
            current = existing.pop(txn.key(), None)
            if current is None:
                self._insert(Tab.TRANSACTIONS, txn)
                inserted += 1
            elif not same_row(current, txn):
                self._update_transaction(txn)
                updated += 1
        for stale_id in existing:
            self.conn.execute(
                "DELETE FROM transactions WHERE transaction_id = ?",
                (stale_id,),
            )
        return inserted, updated, len(existing)

    def replace_categories(self, rows: list[Category]) -> int:
        self.conn.execute("DELETE FROM categories")
        for row in rows:
            self._insert(Tab.CATEGORIES, row)
        return len(rows)

    def replace_autocats(self, rows: list[AutoCat]) -> int:
        self.conn.execute("DELETE FROM autocat")
        for row in rows:
            self._insert(Tab.AUTOCAT, row)
        return len(rows)

    def replace_sheet_metadata(self, tab: Tab, headers: list[str]) -> None:
        self.conn.execute(
            "DELETE FROM sheet_metadata WHERE sheet = ?", (tab.value,)
        )
        self.conn.executemany(
            "INSERT INTO sheet_metadata (sheet, column_name, header_name, "
            '"order") VALUES (?, ?, ?, ?)',
            [
                (tab.value, to_column_name(header), header, order)
                for order, header in enumerate(headers)
            ],
        )

    def replace_formulas(self, tab: Tab, cells: list[FormulaCell]) -> None:
        self.conn.execute("DELETE FROM formulas WHERE sheet = ?", (tab.value,))
        self.conn.executemany(
            "INSERT INTO formulas (sheet, row, col, formula) VALUES (?, ?, ?, ?)",
            [(tab.value, c.row, c.col, c.formula) for c in cells],
        )

    def _insert(self, tab: Tab, row: SheetRow) -> None:
        table, model, _ = _TABLES[tab]
        values = _to_record(model, row)
        columns = ", ".join(values)
        marks = ", ".join("?" for _ in values)
        self.conn.execute(
            f"INSERT INTO {table} ({columns}) VALUES ({marks})",
            list(values.values()),
        )

    def _update_transaction(self, txn: Transaction) -> None:
        values = _to_record(Transaction, txn)
        tid = values.pop("transaction_id")
        assignments = ", ".join(f"{col} = ?" for col in values)
        self.conn.execute(
            f"UPDATE transactions SET {assignments} WHERE transaction_id = ?",
            [*values.values(), tid],
        )

    # ------------------------------------------------------------------
    # Single-record edits
    # ------------------------------------------------------------------

    def insert_transaction(self, fields: dict[str, Any]) -> LocalId:
        """Create a transaction locally with a freshly generated id.

        Args:
            fields: Transaction field values (``amount`` is required).

        Returns:
            The new ``LocalId``.
        """
        tid = LocalId.generate()
        txn = Transaction(
            transaction_id=tid,
            original_order=None,
            **{k: v for k, v in fields.items() if k != "transaction_id"},
        )
        with self.transaction():
            self._insert(Tab.TRANSACTIONS, txn)
        logger.info("Inserted local transaction %s", tid)
        return tid

    def delete_transaction(self, tid: TransactionId) -> bool:
        with self.transaction():
            cursor = self.conn.execute(
                "DELETE FROM transactions WHERE transaction_id = ?",
                (tid.value,),
            )
        return cursor.rowcount > 0

    def insert_category(self, category: Category) -> None:
        with self.transaction():
            self._insert(Tab.CATEGORIES, category)

    def rename_category(self, old: str, new: str) -> None:
        """Rename a category; references follow via ON UPDATE CASCADE."""
        with self.transaction():
            self.conn.execute(
                "UPDATE categories SET category = ? WHERE category = ?",
                (new, old),
            )

    def delete_category(self, name: str) -> None:
        """Delete a category that nothing references.

        Raises:
            DataValidationError: If a transaction or rule still uses it.
        """
        try:
            with self.transaction():
                self.conn.execute(
                    "DELETE FROM categories WHERE category = ?", (name,)
                )
        except sqlite3.IntegrityError as exc:
            raise DataValidationError(
                f"Category '{name}' is still referenced: {exc}",
                "Recategorize the transactions and rules that use it first.",
            ) from exc


# ----------------------------------------------------------------------
# Row conversion
# ----------------------------------------------------------------------


def _to_record(model: type[SheetRow], row: SheetRow) -> dict[str, Any]:
    record: dict[str, Any] = {}
    for field in _fields(model):
        value = getattr(row, field)
        if field == "transaction_id":
            value = value.value
        elif isinstance(value, Decimal):
            value = str(value)
        record[field] = value
    record["original_order"] = row.original_order
    record["other_fields"] = (
        json.dumps(row.other_fields, ensure_ascii=False)
        if row.other_fields
        else None
    )
    return record


def _to_model(model: type[SheetRow], row: sqlite3.Row) -> Any:
    data = {field: row[field] for field in _fields(model)}
    if "amount" in data and data["amount"] is not None:
        data["amount"] = Decimal(str(data["amount"])).quantize(CENTS)
    other = row["other_fields"]
    return model(
        original_order=row["original_order"],
        other_fields=json.loads(other) if other else {},
        **data,
    )
