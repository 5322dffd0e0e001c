"""Row models for the three Tiller tabs.

Each model knows which sheet headers it owns (``HEADERS``: header text to
field name). Cells under any other header are preserved verbatim in
``other_fields`` so unknown columns survive a pull/push round trip.
"""

from __future__ import annotations

from decimal import Decimal
from typing import Any, ClassVar

from pydantic import BaseModel, Field, field_validator

from .columns import format_amount, parse_amount
from .ids import LocalId, RemoteId, TransactionIdField


class SheetRow(BaseModel):
    """Common behaviour for a row that came from (or goes to) a sheet tab.

    Attributes:
        original_order: Zero-based row position at the last pull, or
            ``None`` for rows created locally since.
        other_fields: Cells under unrecognised headers, keyed by header text.
    """

    HEADERS: ClassVar[dict[str, str]] = {}

    original_order: int | None = None
    other_fields: dict[str, str] = Field(default_factory=dict)

    model_config = {"frozen": True}

    @classmethod
    def from_cells(
        cls, headers: list[str], cells: list[Any], order: int
    ) -> SheetRow:
        """Build a row from one sheet row.

        Missing trailing cells are treated as empty. Empty cells in known
        columns become ``None``.

        Raises:
            ValueError: If a required value is missing or malformed.
        """
        known: dict[str, Any] = {}
        other: dict[str, str] = {}
        for ix, header in enumerate(headers):
            value = str(cells[ix]) if ix < len(cells) else ""
            field = cls.HEADERS.get(header)
            if field is None:
                other[header] = value
            else:
                known[field] = value if value != "" else None
        return cls(original_order=order, other_fields=other, **known)

    def to_cells(self, headers: list[str]) -> list[str]:
        """Render this row in the order of ``headers``."""
        cells = []
        for header in headers:
            field = self.HEADERS.get(header)
            if field is None:
                cells.append(self.other_fields.get(header, ""))
            else:
                cells.append(_cell_text(getattr(self, field)))
        return cells

    def key(self) -> Any:
        """Identity used to match rows across snapshots (None = positional)."""
        return None


def _cell_text(value: Any) -> str:
    match value:
        case None:
            return ""
        case Decimal():
            return format_amount(value)
        case RemoteId() | LocalId():
            return value.value
        case _:
            return str(value)


class Transaction(SheetRow):
    """One row of the Transactions tab."""

    HEADERS: ClassVar[dict[str, str]] = {
        "Transaction ID": "transaction_id",
        "Date": "date",
        "Description": "description",
        "Amount": "amount",
        "Account": "account",
        "Account #": "account_number",
        "Institution": "institution",
        "Month": "month",
        "Week": "week",
        "Full Description": "full_description",
        "Account ID": "account_id",
        "Check Number": "check_number",
        "Date Added": "date_added",
        "Merchant Name": "merchant_name",
        "Category Hint": "category_hint",
        "Category": "category",
        "Note": "note",
        "Tags": "tags",
        "Categorized Date": "categorized_date",
        "Statement": "statement",
        "Metadata": "metadata",
    }

    transaction_id: TransactionIdField
    date: str | None = None
    description: str | None = None
    amount: Decimal
    account: str | None = None
    account_number: str | None = None
    institution: str | None = None
    month: str | None = None
    week: str | None = None
    full_description: str | None = None
    account_id: str | None = None
    check_number: str | None = None
    date_added: str | None = None
    merchant_name: str | None = None
    category_hint: str | None = None
    category: str | None = None
    note: str | None = None
    tags: str | None = None
    categorized_date: str | None = None
    statement: str | None = None
    metadata: str | None = None

    @field_validator("amount", mode="before")
    @classmethod
    def _parse_amount(cls, value: Any) -> Any:
        if value is None:
            raise ValueError("Amount is required")
        if isinstance(value, str):
            return parse_amount(value)
        return value

    def key(self) -> str:
        return self.transaction_id.value


class Category(SheetRow):
    """One row of the Categories tab."""

    HEADERS: ClassVar[dict[str, str]] = {
        "Category": "category",
        "Group": "category_group",
        "Type": "type",
        "Hide from Reports": "hide_from_reports",
    }

    category: str
    category_group: str | None = None
    type: str | None = None
    hide_from_reports: str | None = None

    def key(self) -> str:
        return self.category


class AutoCat(SheetRow):
    """One categorization rule from the AutoCat tab.

    Rules have no natural identity; they are matched by position.
    """

    HEADERS: ClassVar[dict[str, str]] = {
        "Category": "category",
        "Description": "description",
        "Description Contains": "description_contains",
        "Account Contains": "account_contains",
        "Institution Contains": "institution_contains",
        "Amount Min": "amount_min",
        "Amount Max": "amount_max",
        "Amount Equals": "amount_equals",
        "Description Equals": "description_equals",
        "Description Full": "description_full",
        "Full Description Contains": "full_description_contains",
        "Amount Contains": "amount_contains",
    }

    category: str | None = None
    description: str | None = None
    description_contains: str | None = None
    account_contains: str | None = None
    institution_contains: str | None = None
    amount_min: str | None = None
    amount_max: str | None = None
    amount_equals: str | None = None
    description_equals: str | None = None
    description_full: str | None = None
    full_description_contains: str | None = None
    amount_contains: str | None = None


def same_row(a: SheetRow, b: SheetRow) -> bool:
    """Field-by-field equality, independent of which fields were set explicitly."""
    return type(a) is type(b) and a.model_dump() == b.model_dump()
