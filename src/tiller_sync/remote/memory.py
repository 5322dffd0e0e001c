"""In-process ``Sheet`` used by tests and by ``TILLER_SYNC_IN_TEST_MODE``.

Behaves like the Sheets API where the engine can tell the difference:
trailing empty cells and rows are trimmed on read, literal cells render
identically under both renderings, and writing a formula keeps the cell's
displayed value (the sheet would recompute it) while recording the
formula text. A formula written into an empty cell shows
``COMPUTED_VALUE``, so it makes the row non-empty like the real sheet.
"""

from __future__ import annotations

import copy
import logging
import re
from typing import Any

from ..errors import ExternalServiceError
from .sheet import Sheet, SheetRange

logger = logging.getLogger(__name__)

_CELL = re.compile(r"^(?P<tab>[^!]+)!(?P<col>[A-Z]+)(?P<row>\d+)(?::.*)?$")

Grid = list[list[str]]

# Shown by a formula written into an empty cell, as the sheet would compute
COMPUTED_VALUE = "0"


def _col_index(letters: str) -> int:
    n = 0
    for ch in letters:
        n = n * 26 + (ord(ch) - ord("A") + 1)
    return n - 1


def _trim(grid: Grid) -> Grid:
    rows = []
    for row in grid:
        cells = list(row)
        while cells and cells[-1] == "":
            cells.pop()
        rows.append(cells)
    while rows and not rows[-1]:
        rows.pop()
    return rows


def _get(grid: Grid, row: int, col: int) -> str:
    if row < len(grid) and col < len(grid[row]):
        return grid[row][col]
    return ""


def _put(grid: Grid, row: int, col: int, value: str) -> None:
    while len(grid) <= row:
        grid.append([])
    cells = grid[row]
    while len(cells) <= col:
        cells.append("")
    cells[col] = value


class InMemorySheet(Sheet):
    """A spreadsheet held in memory.

    Args:
        tabs: Initial displayed values per tab (header row first).
        formulas: Initial formula text per tab, ``{tab: {(row, col): text}}``
            with zero-based sheet coordinates (row 0 is the header row).

    Attributes:
        calls: Every operation performed, as ``(name, argument)`` tuples.
        copies: Snapshots taken by ``copy_spreadsheet``, keyed by file id.
    """

    def __init__(
        self,
        tabs: dict[str, Grid] | None = None,
        formulas: dict[str, dict[tuple[int, int], str]] | None = None,
    ) -> None:
        self._values: dict[str, Grid] = copy.deepcopy(tabs or {})
        self._formulas: dict[str, Grid] = copy.deepcopy(self._values)
        for tab, cells in (formulas or {}).items():
            grid = self._formulas.setdefault(tab, [])
            for (row, col), text in cells.items():
                _put(grid, row, col, text)
        self.calls: list[tuple[str, Any]] = []
        self.copies: dict[str, dict[str, Grid]] = {}
        self.fail_on: str | None = None

    def _record(self, name: str, arg: Any) -> None:
        self.calls.append((name, arg))
        if self.fail_on == name:
            raise ExternalServiceError(f"Simulated failure in {name}")

    def get_values(self, tab: str) -> list[list[Any]]:
        self._record("get_values", tab)
        return _trim(copy.deepcopy(self._values.get(tab, [])))

    def get_formulas(self, tab: str) -> list[list[Any]]:
        self._record("get_formulas", tab)
        return _trim(copy.deepcopy(self._formulas.get(tab, [])))

    def clear_ranges(self, ranges: list[str]) -> None:
        self._record("clear_ranges", list(ranges))
        for rng in ranges:
            tab = rng.split("!", 1)[0]
            self._values[tab] = []
            self._formulas[tab] = []

    def write_ranges(self, data: list[SheetRange]) -> None:
        self._record("write_ranges", list(data))
        for block in data:
            match = _CELL.match(block.range)
            if match is None:
                raise ValueError(f"Unsupported range '{block.range}'")
            tab = match["tab"]
            top = int(match["row"]) - 1
            left = _col_index(match["col"])
            values = self._values.setdefault(tab, [])
            formulas = self._formulas.setdefault(tab, [])
            for r, row in enumerate(block.values):
                for c, text in enumerate(row):
                    text = str(text)
                    _put(formulas, top + r, left + c, text)
                    if not text.startswith("="):
                        _put(values, top + r, left + c, text)
                    elif _get(values, top + r, left + c) == "":
                        _put(values, top + r, left + c, COMPUTED_VALUE)

    def copy_spreadsheet(self, name: str) -> str:
        self._record("copy_spreadsheet", name)
        file_id = f"copy-{len(self.copies) + 1}"
        self.copies[file_id] = copy.deepcopy(self._values)
        logger.info("Copied in-memory sheet to '%s' (%s)", name, file_id)
        return file_id

    # Test helpers

    def set_cell(self, tab: str, row: int, col: int, value: str) -> None:
        """Simulate a user editing a literal cell (zero-based sheet coords)."""
        _put(self._values.setdefault(tab, []), row, col, value)
        _put(self._formulas.setdefault(tab, []), row, col, value)

    def writes(self) -> list[SheetRange]:
        """All ranges written so far, in order."""
        return [r for name, arg in self.calls if name == "write_ranges" for r in arg]


# ---------------------------------------------------------------------------
# Test-mode registry
# ---------------------------------------------------------------------------

_TEST_SHEETS: dict[str, InMemorySheet] = {}


def sample_sheet() -> InMemorySheet:
    """A small Tiller-shaped sheet with one formula column."""
    return InMemorySheet(
        tabs={
            "Transactions": [
                ["Transaction ID", "Date", "Description", "Amount",
                 "Account", "Category", "Abs"],
                ["txn-1", "1/2/2025", "Coffee Shop", "-$4.50",
                 "Checking", "Food", "4.50"],
                ["txn-2", "1/3/2025", "Paycheck", "$2,000.00",
                 "Checking", "Income", "2000.00"],
                ["txn-3", "1/5/2025", "Grocery Store", "-$82.17",
                 "Credit Card", "Food", "82.17"],
            ],
            "Categories": [
                ["Category", "Group", "Type", "Hide from Reports"],
                ["Food", "Living", "Expense", ""],
                ["Income", "Income", "Income", ""],
            ],
            "AutoCat": [
                ["Category", "Description Contains"],
                ["Food", "coffee"],
            ],
        },
        formulas={
            "Transactions": {
                (1, 6): "=ABS(D2)",
                (2, 6): "=ABS(D3)",
                (3, 6): "=ABS(D4)",
            }
        },
    )


def shared_test_sheet(spreadsheet_id: str) -> InMemorySheet:
    """Shared in-memory sheet for a spreadsheet id, seeded on first use."""
    sheet = _TEST_SHEETS.get(spreadsheet_id)
    if sheet is None:
        sheet = _TEST_SHEETS[spreadsheet_id] = sample_sheet()
    return sheet


def reset_test_sheets() -> None:
    _TEST_SHEETS.clear()
