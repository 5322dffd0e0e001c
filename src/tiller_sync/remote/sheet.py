"""Minimal interface the sync engine needs from a spreadsheet service."""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any

# Whole-tab extents used for reads and clears.
FETCH_EXTENT = "A:ZZ"
CLEAR_EXTENT = "A1:ZZ"


@dataclass(frozen=True, slots=True)
class SheetRange:
    """A block of rows to write, anchored at an A1 range such as ``Tab!A1``."""

    range: str
    values: list[list[str]]


class Sheet(ABC):
    """Low-level access to the cells of one spreadsheet.

    Implementations must raise ``ExternalServiceError`` for service failures.
    """

    @abstractmethod
    def get_values(self, tab: str) -> list[list[Any]]:
        """Displayed (formatted) values of a tab, header row first."""

    @abstractmethod
    def get_formulas(self, tab: str) -> list[list[Any]]:
        """Formula rendering of a tab; literal cells render as their value."""

    @abstractmethod
    def clear_ranges(self, ranges: list[str]) -> None:
        """Clear every range in one batched call."""

    @abstractmethod
    def write_ranges(self, data: list[SheetRange]) -> None:
        """Write every range in one batched call, letting the sheet parse
        numbers, dates and formulas as if typed by a user."""

    @abstractmethod
    def copy_spreadsheet(self, name: str) -> str:
        """Copy the whole document under ``name``; return the new file id."""


def whole_tab(tab: str) -> str:
    """Range covering every used cell of ``tab``, for clearing."""
    return f"{tab}!{CLEAR_EXTENT}"
