"""Tests for tiller_sync.model: ids, column mapping, rows and tabs."""

from decimal import Decimal

import pytest

from tiller_sync.errors import DataValidationError
from tiller_sync.model import (
    AutoCatTab,
    Category,
    CategoryTab,
    FormulaCell,
    LocalId,
    RemoteId,
    TillerData,
    Transaction,
    TransactionTab,
    cell_ref,
    column_letter,
    column_names,
    format_amount,
    is_local,
    parse_amount,
    parse_transaction_id,
    same_row,
    to_column_name,
)

TXN_HEADERS = ["Transaction ID", "Date", "Description", "Amount", "Memo"]


# ---------------------------------------------------------------------------
# Transaction ids
# ---------------------------------------------------------------------------


class TestTransactionIds:
    def test_remote_id(self):
        tid = parse_transaction_id("abc123")
        assert tid == RemoteId("abc123")
        assert not is_local(tid)

    def test_local_prefix(self):
        tid = parse_transaction_id("user-42")
        assert tid == LocalId("user-42")
        assert is_local(tid)

    def test_whitespace_is_stripped(self):
        assert parse_transaction_id("  abc ").value == "abc"

    @pytest.mark.parametrize("raw", ["", "   ", None])
    def test_blank_id_rejected(self, raw):
        with pytest.raises(ValueError, match="cannot be empty"):
            parse_transaction_id(raw)

    def test_parsed_id_passes_through(self):
        tid = LocalId("user-x")
        assert parse_transaction_id(tid) is tid

    def test_generated_ids_are_local_and_unique(self):
        a, b = LocalId.generate(), LocalId.generate()
        assert a.value.startswith("user-")
        assert a != b


# ---------------------------------------------------------------------------
# Columns and amounts
# ---------------------------------------------------------------------------


class TestColumnNames:
    @pytest.mark.parametrize(
        "header, expected",
        [
            ("Transaction ID", "transaction_id"),
            ("Account #", "account_number"),
            ("Hide from Reports", "hide_from_reports"),
            ("", "no_name"),
            ("2024 Budget", "x_2024_budget"),
            ("Amount ($)", "amount_"),
        ],
    )
    def test_to_column_name(self, header, expected):
        assert to_column_name(header) == expected

    def test_duplicate_header_rejected(self):
        with pytest.raises(DataValidationError, match="Duplicate header 'Date'"):
            column_names("Transactions", ["Date", "Amount", "Date"])

    def test_colliding_column_names_rejected(self):
        with pytest.raises(DataValidationError, match="both map to column"):
            column_names("Transactions", ["Account #", "Account Number"])


class TestAmounts:
    @pytest.mark.parametrize(
        "text, expected",
        [
            ("-$1,234.56", Decimal("-1234.56")),
            ("$50.00", Decimal("50.00")),
            ("($50.00)", Decimal("-50.00")),
            ("12", Decimal("12")),
        ],
    )
    def test_parse_amount(self, text, expected):
        assert parse_amount(text) == expected

    def test_parse_amount_rejects_text(self):
        with pytest.raises(ValueError, match="Invalid amount"):
            parse_amount("lots")

    def test_format_amount(self):
        assert format_amount(Decimal("-50")) == "-50.00"
        assert format_amount(Decimal("1234.5")) == "1234.50"


class TestCellRefs:
    def test_column_letters(self):
        assert column_letter(0) == "A"
        assert column_letter(25) == "Z"
        assert column_letter(26) == "AA"
        assert column_letter(701) == "ZZ"

    def test_cell_ref_skips_header_row(self):
        assert cell_ref("Transactions", 1, 6) == "Transactions!G3"


# ---------------------------------------------------------------------------
# Rows
# ---------------------------------------------------------------------------


class TestRows:
    def test_from_cells_splits_known_and_other(self):
        txn = Transaction.from_cells(
            TXN_HEADERS, ["t1", "1/2/2025", "", "-$4.50", "lunch"], 0
        )
        assert txn.transaction_id == RemoteId("t1")
        assert txn.description is None
        assert txn.amount == Decimal("-4.50")
        assert txn.other_fields == {"Memo": "lunch"}
        assert txn.original_order == 0

    def test_short_rows_are_padded(self):
        txn = Transaction.from_cells(TXN_HEADERS, ["t1", "", "", "1"], 3)
        assert txn.other_fields == {"Memo": ""}

    def test_amount_required(self):
        with pytest.raises(ValueError, match="Amount is required"):
            Transaction.from_cells(TXN_HEADERS, ["t1", "", "", ""], 0)

    def test_to_cells_follows_header_order(self):
        txn = Transaction(
            transaction_id="t1",
            amount=Decimal("-4.5"),
            other_fields={"Memo": "lunch"},
        )
        headers = ["Memo", "Amount", "Transaction ID", "Date"]
        assert txn.to_cells(headers) == ["lunch", "-4.50", "t1", ""]

    def test_same_row_ignores_explicit_defaults(self):
        a = Category(category="Food")
        b = Category(category="Food", category_group=None, other_fields={})
        assert same_row(a, b)
        assert not same_row(a, Category(category="Fun"))


# ---------------------------------------------------------------------------
# Tabs
# ---------------------------------------------------------------------------


class TestTabData:
    def test_empty_grid(self):
        tab = TransactionTab.from_grid([])
        assert tab.headers == []
        assert tab.rows == []

    def test_rows_keep_their_order(self):
        tab = TransactionTab.from_grid(
            [TXN_HEADERS, ["b", "", "", "1"], ["a", "", "", "2"]]
        )
        assert [r.key() for r in tab.rows] == ["b", "a"]
        assert [r.original_order for r in tab.rows] == [0, 1]

    def test_duplicate_ids_rejected(self):
        with pytest.raises(DataValidationError, match="Duplicate Transaction"):
            TransactionTab.from_grid(
                [TXN_HEADERS, ["a", "", "", "1"], ["a", "", "", "2"]]
            )

    def test_blank_id_rejected(self):
        with pytest.raises(DataValidationError, match="Invalid row 2"):
            TransactionTab.from_grid([TXN_HEADERS, ["", "", "", "1"]])

    def test_row_wider_than_headers_rejected(self):
        with pytest.raises(DataValidationError, match="only 2 headers"):
            CategoryTab.from_grid([["Category", "Group"], ["Food", "Living", "x"]])

    def test_formulas_detected(self):
        values = [["Category", "Total"], ["Food", "12"], ["Fun", "=oops"]]
        formulas = [["Category", "Total"], ["Food", "=SUM(B1)"], ["Fun", "=oops"]]
        tab = CategoryTab.from_grid(values, formulas)
        # a literal that only looks like a formula is not recorded
        assert tab.formulas == [FormulaCell(row=0, col=1, formula="=SUM(B1)")]

    def test_autocat_rules_have_no_identity(self):
        tab = AutoCatTab.from_grid(
            [["Category", "Description Contains"], ["Food", "x"], ["Food", "x"]]
        )
        assert len(tab.rows) == 2
        assert tab.rows[0].key() is None

    def test_to_grid_defaults_to_known_headers(self):
        tab = CategoryTab(rows=[Category(category="Food")])
        grid = tab.to_grid()
        assert grid[0] == ["Category", "Group", "Type", "Hide from Reports"]
        assert grid[1] == ["Food", "", "", ""]


class TestTillerData:
    def test_counts_and_formulas(self):
        data = TillerData(
            categories=CategoryTab(
                rows=[Category(category="Food")],
                formulas=[FormulaCell(row=0, col=1, formula="=1")],
            )
        )
        assert data.counts() == {"Transactions": 0, "Categories": 1, "AutoCat": 0}
        assert data.has_formulas()

    def test_json_round_trip_keeps_id_variant(self):
        data = TillerData(
            transactions=TransactionTab(
                headers=["Transaction ID", "Amount"],
                rows=[Transaction(transaction_id="user-1", amount=Decimal("2.00"))],
            )
        )
        restored = TillerData.model_validate_json(data.model_dump_json())
        txn = restored.transactions.rows[0]
        assert isinstance(txn.transaction_id, LocalId)
        assert txn.amount == Decimal("2.00")
