"""Typed rows, tabs and identities shared by the datastore and the ledger."""

from .columns import (
    cell_ref,
    column_letter,
    column_names,
    format_amount,
    parse_amount,
    to_column_name,
)
from .data import (
    AutoCatTab,
    CategoryTab,
    FormulaCell,
    Tab,
    TabData,
    TillerData,
    TransactionTab,
)
from .ids import (
    LOCAL_ID_PREFIX,
    LocalId,
    RemoteId,
    TransactionId,
    is_local,
    parse_transaction_id,
)
from .rows import AutoCat, Category, SheetRow, Transaction, same_row

__all__ = [
    "AutoCat",
    "AutoCatTab",
    "Category",
    "CategoryTab",
    "FormulaCell",
    "LOCAL_ID_PREFIX",
    "LocalId",
    "RemoteId",
    "SheetRow",
    "Tab",
    "TabData",
    "TillerData",
    "Transaction",
    "TransactionId",
    "TransactionTab",
    "cell_ref",
    "column_letter",
    "column_names",
    "format_amount",
    "is_local",
    "parse_amount",
    "parse_transaction_id",
    "same_row",
    "to_column_name",
]
