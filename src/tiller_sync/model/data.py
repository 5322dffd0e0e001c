"""Whole-tab and whole-ledger containers.

``TillerData`` is what a fetch of the remote sheet produces, what a pull
snapshot serializes, and what a push writes back.
"""

from __future__ import annotations

from collections import Counter
from enum import Enum
from typing import Any, ClassVar

from pydantic import BaseModel, Field

from ..errors import DataValidationError
from .columns import column_names
from .rows import AutoCat, Category, SheetRow, Transaction


class Tab(str, Enum):
    """Names of the remote sheet tabs."""

    TRANSACTIONS = "Transactions"
    CATEGORIES = "Categories"
    AUTOCAT = "AutoCat"


class FormulaCell(BaseModel):
    """A formula found in a tab.

    Attributes:
        row: Zero-based data row (the header row is not counted).
        col: Zero-based column index.
        formula: Literal formula text, starting with ``=``.
    """

    row: int
    col: int
    formula: str

    model_config = {"frozen": True}


class TabData(BaseModel):
    """Header row, data rows and formulas of one tab."""

    TAB: ClassVar[Tab]
    ROW_TYPE: ClassVar[type[SheetRow]]

    headers: list[str] = Field(default_factory=list)
    rows: list[Any] = Field(default_factory=list)
    formulas: list[FormulaCell] = Field(default_factory=list)

    model_config = {"frozen": True}

    @classmethod
    def from_grid(
        cls, values: list[list[Any]], formulas: list[list[Any]] | None = None
    ) -> TabData:
        """Parse the value grid (and optional formula grid) of a tab.

        Row 0 of each grid is the header row. A cell is recorded as a
        formula when its formula rendering starts with ``=`` and differs
        from its displayed value.

        Raises:
            DataValidationError: On duplicate headers, rows wider than the
                header row, invalid cells, or duplicate row identities.
        """
        tab = cls.TAB.value
        if not values:
            return cls()
        headers = [str(h) for h in values[0]]
        column_names(tab, headers)

        rows = []
        for ix, cells in enumerate(values[1:]):
            if len(cells) > len(headers):
                raise DataValidationError(
                    f"Row {ix + 2} of the {tab} tab has {len(cells)} cells "
                    f"but only {len(headers)} headers",
                    f"Add a header for every column used in the {tab} tab.",
                )
            try:
                rows.append(cls.ROW_TYPE.from_cells(headers, cells, ix))
            except ValueError as exc:
                raise DataValidationError(
                    f"Invalid row {ix + 2} in the {tab} tab: {exc}"
                ) from exc

        cells_out = []
        for ix, formula_row in enumerate((formulas or [])[1:]):
            shown = values[ix + 1] if ix + 1 < len(values) else []
            for col, raw in enumerate(formula_row):
                text = str(raw)
                displayed = str(shown[col]) if col < len(shown) else ""
                if text.startswith("=") and text != displayed:
                    cells_out.append(
                        FormulaCell(row=ix, col=col, formula=text)
                    )

        data = cls(headers=headers, rows=rows, formulas=cells_out)
        data.check_unique()
        return data

    def check_unique(self) -> None:
        """Reject two rows with the same identity."""
        keys = [row.key() for row in self.rows if row.key() is not None]
        dupes = [k for k, n in Counter(keys).items() if n > 1]
        if dupes:
            raise DataValidationError(
                f"Duplicate {self.ROW_TYPE.__name__} in the {self.TAB.value} "
                f"tab: {', '.join(sorted(str(d) for d in dupes))}",
                f"Remove the duplicate rows from the {self.TAB.value} tab.",
            )

    def effective_headers(self) -> list[str]:
        """Recorded headers, or the known headers when none were recorded."""
        return self.headers or list(self.ROW_TYPE.HEADERS)

    def to_grid(self) -> list[list[str]]:
        """Header row followed by every data row, in current row order."""
        headers = self.effective_headers()
        return [headers] + [row.to_cells(headers) for row in self.rows]


class TransactionTab(TabData):
    TAB: ClassVar[Tab] = Tab.TRANSACTIONS
    ROW_TYPE: ClassVar[type[SheetRow]] = Transaction

    rows: list[Transaction] = Field(default_factory=list)


class CategoryTab(TabData):
    TAB: ClassVar[Tab] = Tab.CATEGORIES
    ROW_TYPE: ClassVar[type[SheetRow]] = Category

    rows: list[Category] = Field(default_factory=list)


class AutoCatTab(TabData):
    TAB: ClassVar[Tab] = Tab.AUTOCAT
    ROW_TYPE: ClassVar[type[SheetRow]] = AutoCat

    rows: list[AutoCat] = Field(default_factory=list)


class TillerData(BaseModel):
    """The three tabs of a Tiller sheet."""

    transactions: TransactionTab = Field(default_factory=TransactionTab)
    categories: CategoryTab = Field(default_factory=CategoryTab)
    auto_cats: AutoCatTab = Field(default_factory=AutoCatTab)

    model_config = {"frozen": True}

    def tabs(self) -> list[TabData]:
        return [self.transactions, self.categories, self.auto_cats]

    def counts(self) -> dict[str, int]:
        """Data row count per tab name."""
        return {tab.TAB.value: len(tab.rows) for tab in self.tabs()}

    def has_formulas(self) -> bool:
        return any(tab.formulas for tab in self.tabs())
