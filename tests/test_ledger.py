"""Tests for tiller_sync.remote: the ledger, the in-memory sheet and test mode."""

from datetime import datetime
from decimal import Decimal
from unittest.mock import patch

import pytest

from tiller_sync.errors import DataValidationError, ExternalServiceError, VerificationError
from tiller_sync.model import Tab
from tiller_sync.remote import (
    TEST_MODE_ENV,
    InMemorySheet,
    SheetRange,
    TillerLedger,
    create_sheet,
    in_test_mode,
    shared_test_sheet,
)


class TestGetData:
    def test_reads_all_tabs(self, ledger):
        data = ledger.get_data()

        assert data.counts() == {"Transactions": 3, "Categories": 2, "AutoCat": 1}
        assert data.transactions.rows[1].amount == Decimal("2000.00")
        assert len(data.transactions.formulas) == 3
        assert data.transactions.formulas[0].formula == "=ABS(D2)"

    def test_missing_tab_is_empty(self):
        ledger = TillerLedger(InMemorySheet(tabs={"Categories": [["Category"], ["Food"]]}))
        data = ledger.get_data()
        assert data.counts() == {"Transactions": 0, "Categories": 1, "AutoCat": 0}

    def test_bad_row_rejected(self, ledger, sheet):
        sheet.set_cell("Transactions", 2, 0, "txn-1")
        with pytest.raises(DataValidationError, match="Duplicate"):
            ledger.get_data()

    def test_service_failure_propagates(self, ledger, sheet):
        sheet.fail_on = "get_formulas"
        with pytest.raises(ExternalServiceError):
            ledger.get_data()


class TestWrites:
    def test_clear_then_single_batch_write(self, ledger, sheet):
        data = ledger.get_data()

        written = ledger.clear_and_write(data)

        assert written == {"Transactions": 3, "Categories": 2, "AutoCat": 1}
        clears = [arg for name, arg in sheet.calls if name == "clear_ranges"]
        assert clears == [["Transactions!A1:ZZ", "Categories!A1:ZZ", "AutoCat!A1:ZZ"]]
        batches = [arg for name, arg in sheet.calls if name == "write_ranges"]
        assert len(batches) == 1
        assert [r.range for r in batches[0]] == [
            "Transactions!A1",
            "Categories!A1",
            "AutoCat!A1",
        ]

    def test_write_formulas(self, ledger, sheet):
        data = ledger.get_data()
        ledger.clear_and_write(data)

        assert ledger.write_formulas(data) == 3

        assert sheet.writes()[-1] == SheetRange(range="Transactions!G4", values=[["=ABS(D4)"]])
        assert sheet.get_values("Transactions")[1][6] == "4.50"

    def test_no_formulas_no_call(self):
        ledger = TillerLedger(InMemorySheet(tabs={"AutoCat": [["Category"], ["Food"]]}))
        assert ledger.write_formulas(ledger.get_data()) == 0
        assert not ledger.sheet.writes()

    def test_formulas_below_last_row_skipped(self, ledger, sheet):
        data = ledger.get_data()
        shorter = data.model_copy(
            update={
                "transactions": data.transactions.model_copy(
                    update={"rows": data.transactions.rows[:2]}
                )
            }
        )
        ledger.clear_and_write(shorter)

        assert ledger.write_formulas(shorter) == 2

        assert [r.range for r in sheet.writes()[-2:]] == ["Transactions!G2", "Transactions!G3"]
        assert ledger.verify({"Transactions": 2, "Categories": 2, "AutoCat": 1})

    def test_formula_in_empty_cell_shows_computed_value(self):
        sheet = InMemorySheet(tabs={"Categories": [["Category", "Total"]]})

        sheet.write_ranges([SheetRange(range="Categories!B2", values=[["=SUM(1)"]])])

        assert sheet.get_values("Categories") == [["Category", "Total"], ["", "0"]]
        assert sheet.get_formulas("Categories")[1] == ["", "=SUM(1)"]

    def test_copy_spreadsheet_name(self, ledger, sheet):
        file_id = ledger.copy_spreadsheet(datetime(2025, 1, 2, 3, 4, 5))
        assert file_id == "copy-1"
        assert ("copy_spreadsheet", "tiller-backup-2025-01-02-030405") in sheet.calls
        assert sheet.copies["copy-1"]["AutoCat"][1] == ["Food", "coffee"]


class TestVerify:
    def test_matching_counts(self, ledger):
        expected = {"Transactions": 3, "Categories": 2, "AutoCat": 1}
        assert ledger.verify(expected) == expected

    def test_mismatch(self, ledger):
        with pytest.raises(VerificationError) as exc_info:
            ledger.verify({"Transactions": 3, "Categories": 5, "AutoCat": 1})
        assert exc_info.value.message == (
            "Verification failed: expected 5 rows in the Categories tab, found 2"
        )


class TestInMemorySheet:
    def test_trailing_blanks_trimmed(self):
        sheet = InMemorySheet(tabs={"AutoCat": [["Category", ""], ["Food", ""], ["", ""]]})
        assert sheet.get_values("AutoCat") == [["Category"], ["Food"]]

    def test_unsupported_range(self):
        with pytest.raises(ValueError, match="Unsupported range"):
            InMemorySheet().write_ranges([SheetRange(range="A1", values=[["x"]])])


class TestCreateSheet:
    def test_test_mode_uses_shared_sheet(self, config, monkeypatch):
        monkeypatch.setenv(TEST_MODE_ENV, "1")

        sheet = create_sheet(config)

        assert in_test_mode()
        assert sheet is shared_test_sheet(config.spreadsheet_id)
        assert sheet.get_values(Tab.CATEGORIES.value)[1][0] == "Food"

    def test_real_mode_loads_credentials(self, config, monkeypatch):
        monkeypatch.delenv(TEST_MODE_ENV, raising=False)

        with (
            patch("tiller_sync.remote.load_credentials", return_value="creds") as mock_creds,
            patch("tiller_sync.remote.GoogleSheet") as mock_sheet,
        ):
            create_sheet(config)

        mock_creds.assert_called_once_with(config.token_path)
        mock_sheet.assert_called_once_with("test-sheet-id", credentials="creds")
