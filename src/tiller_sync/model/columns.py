"""Header text to column name mapping, amount parsing, and A1 helpers."""

from __future__ import annotations

import re
from decimal import Decimal, InvalidOperation

from ..errors import DataValidationError

_NON_IDENT = re.compile(r"[^a-z0-9_]")

CENTS = Decimal("0.01")


def to_column_name(header: str) -> str:
    """Derive a snake_case datastore column name from sheet header text.

    ``"Account #"`` becomes ``account_number``; an empty header becomes
    ``no_name``; names that would start with a non-letter get an ``x_``
    prefix.
    """
    text = header.strip()
    if not text:
        return "no_name"
    text = text.lower().replace("#", "number").replace(" ", "_")
    text = _NON_IDENT.sub("", text)
    if not text or not text[0].isalpha():
        text = f"x_{text}"
    return text


def column_names(tab: str, headers: list[str]) -> list[str]:
    """Map a header row to column names, rejecting duplicates.

    Raises:
        DataValidationError: If two headers are identical or derive the
            same column name.
    """
    seen_headers: set[str] = set()
    seen_columns: dict[str, str] = {}
    columns = []
    for header in headers:
        if header in seen_headers:
            raise DataValidationError(
                f"Duplicate header '{header}' in the {tab} tab",
                f"Rename one of the '{header}' columns in the {tab} tab.",
            )
        seen_headers.add(header)
        column = to_column_name(header)
        if column in seen_columns:
            raise DataValidationError(
                f"Headers '{seen_columns[column]}' and '{header}' in the "
                f"{tab} tab both map to column '{column}'",
                f"Rename one of the two columns in the {tab} tab.",
            )
        seen_columns[column] = header
        columns.append(column)
    return columns


def parse_amount(text: str) -> Decimal:
    """Parse a displayed amount such as ``-$1,234.56`` or ``($50.00)``.

    Raises:
        ValueError: If the text is not a number.
    """
    cleaned = text.strip().replace("$", "").replace(",", "").replace(" ", "")
    negative = False
    if cleaned.startswith("(") and cleaned.endswith(")"):
        negative = True
        cleaned = cleaned[1:-1]
    try:
        value = Decimal(cleaned)
    except InvalidOperation:
        raise ValueError(f"Invalid amount '{text}'") from None
    return -value if negative else value


def format_amount(value: Decimal) -> str:
    """Plain two-decimal text; the sheet applies its own currency format."""
    return f"{value.quantize(CENTS):f}"


def column_letter(col: int) -> str:
    """Zero-based column index to A1 letters (0 -> A, 26 -> AA)."""
    letters = ""
    n = col + 1
    while n:
        n, rem = divmod(n - 1, 26)
        letters = chr(ord("A") + rem) + letters
    return letters


def cell_ref(tab: str, row: int, col: int) -> str:
    """A1 reference for a zero-based data row (header occupies row 1)."""
    return f"{tab}!{column_letter(col)}{row + 2}"
