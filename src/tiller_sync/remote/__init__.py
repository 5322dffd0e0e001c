"""Access to the remote Tiller spreadsheet.

``create_sheet`` returns a Google-backed ``Sheet`` normally, or a shared
in-memory one when ``TILLER_SYNC_IN_TEST_MODE`` is set, so the whole sync
path can be exercised without a Google account.
"""

from __future__ import annotations

import logging
import os
from typing import TYPE_CHECKING

from .google import SCOPES, GoogleSheet, load_credentials
from .ledger import TABS, TillerLedger
from .memory import InMemorySheet, reset_test_sheets, sample_sheet, shared_test_sheet
from .sheet import Sheet, SheetRange, whole_tab

if TYPE_CHECKING:
    from ..config import Config

logger = logging.getLogger(__name__)

TEST_MODE_ENV = "TILLER_SYNC_IN_TEST_MODE"


def in_test_mode() -> bool:
    return os.getenv(TEST_MODE_ENV, "").lower() in ("1", "true", "yes", "on")


def create_sheet(config: Config) -> Sheet:
    """Build the ``Sheet`` for the configured spreadsheet.

    Raises:
        ConfigError: If credentials are missing or unusable.
    """
    if in_test_mode():
        logger.warning("%s is set; using an in-memory sheet", TEST_MODE_ENV)
        return shared_test_sheet(config.spreadsheet_id)
    creds = load_credentials(config.token_path)
    return GoogleSheet(config.spreadsheet_id, credentials=creds)


__all__ = [
    "GoogleSheet",
    "InMemorySheet",
    "SCOPES",
    "Sheet",
    "SheetRange",
    "TABS",
    "TEST_MODE_ENV",
    "TillerLedger",
    "create_sheet",
    "in_test_mode",
    "load_credentials",
    "reset_test_sheets",
    "sample_sheet",
    "shared_test_sheet",
    "whole_tab",
]
