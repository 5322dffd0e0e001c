"""Tiller-shaped operations on top of a raw ``Sheet``."""

from __future__ import annotations

import logging
from datetime import datetime

from ..errors import VerificationError
from ..model import (
    AutoCatTab,
    CategoryTab,
    Tab,
    TillerData,
    TransactionTab,
    cell_ref,
)
from .sheet import Sheet, SheetRange, whole_tab

logger = logging.getLogger(__name__)

TABS = [Tab.TRANSACTIONS, Tab.CATEGORIES, Tab.AUTOCAT]

BACKUP_NAME_FORMAT = "tiller-backup-%Y-%m-%d-%H%M%S"


class TillerLedger:
    """Read and rewrite the three Tiller tabs of one spreadsheet.

    Args:
        sheet: Cell-level access to the spreadsheet.
    """

    def __init__(self, sheet: Sheet) -> None:
        self.sheet = sheet

    def get_data(self) -> TillerData:
        """Fetch values and formulas of every tab.

        Raises:
            ExternalServiceError: If a fetch fails.
            DataValidationError: If a tab cannot be parsed.
        """
        grids = {
            tab: (self.sheet.get_values(tab.value), self.sheet.get_formulas(tab.value))
            for tab in TABS
        }
        data = TillerData(
            transactions=TransactionTab.from_grid(*grids[Tab.TRANSACTIONS]),
            categories=CategoryTab.from_grid(*grids[Tab.CATEGORIES]),
            auto_cats=AutoCatTab.from_grid(*grids[Tab.AUTOCAT]),
        )
        logger.info("Fetched sheet: %s", data.counts())
        return data

    def counts(self) -> dict[str, int]:
        """Data rows currently present in each tab."""
        result = {}
        for tab in TABS:
            values = self.sheet.get_values(tab.value)
            result[tab.value] = max(len(values) - 1, 0)
        return result

    def clear_and_write(self, data: TillerData) -> dict[str, int]:
        """Clear every tab, then write header and data rows in one batch.

        Returns:
            Data rows written per tab.
        """
        self.sheet.clear_ranges([whole_tab(tab.value) for tab in TABS])
        ranges = []
        written = {}
        for tab_data in data.tabs():
            grid = tab_data.to_grid()
            ranges.append(SheetRange(range=f"{tab_data.TAB.value}!A1", values=grid))
            written[tab_data.TAB.value] = len(grid) - 1
        self.sheet.write_ranges(ranges)
        logger.info("Wrote sheet: %s", written)
        return written

    def write_formulas(self, data: TillerData) -> int:
        """Write recorded formulas back to their cells.

        Formulas recorded below the last data row of their tab are skipped:
        the sheet would compute a value there and grow a row that
        verification then counts.

        Returns:
            Number of formulas written.
        """
        ranges = []
        skipped = 0
        for tab_data in data.tabs():
            for cell in tab_data.formulas:
                if cell.row >= len(tab_data.rows):
                    skipped += 1
                    continue
                ranges.append(
                    SheetRange(
                        range=cell_ref(tab_data.TAB.value, cell.row, cell.col),
                        values=[[cell.formula]],
                    )
                )
        if ranges:
            self.sheet.write_ranges(ranges)
        if skipped:
            logger.warning("Skipped %d formulas below the last data row", skipped)
        logger.info("Restored %d formulas", len(ranges))
        return len(ranges)

    def copy_spreadsheet(self, now: datetime | None = None) -> str:
        """Make a full copy of the spreadsheet as a recovery point."""
        name = (now or datetime.now()).strftime(BACKUP_NAME_FORMAT)
        return self.sheet.copy_spreadsheet(name)

    def verify(self, expected: dict[str, int]) -> dict[str, int]:
        """Re-read row counts and compare them with what was written.

        Raises:
            VerificationError: On the first tab whose count differs.
        """
        found = self.counts()
        for tab, count in expected.items():
            if found.get(tab, 0) != count:
                raise VerificationError(
                    f"Verification failed: expected {count} rows in the "
                    f"{tab} tab, found {found.get(tab, 0)}"
                )
        return found
