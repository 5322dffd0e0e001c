"""Shared pytest fixtures for tiller-sync tests."""

import pytest
from dotenv import load_dotenv

from tiller_sync.config import Config, ensure_home
from tiller_sync.remote import TillerLedger, reset_test_sheets, sample_sheet
from tiller_sync.sync import SyncEngine

load_dotenv()

SHEET_URL = "https://docs.google.com/spreadsheets/d/test-sheet-id/edit#gid=0"


def pytest_addoption(parser):
    """Add custom CLI options for test filtering."""
    parser.addoption(
        "--run-live",
        action="store_true",
        default=False,
        help="Run tests that require a live Google Sheet",
    )


def pytest_configure(config):
    """Register custom markers."""
    config.addinivalue_line(
        "markers", "live: mark test as requiring a live Google Sheet"
    )


def pytest_collection_modifyitems(config, items):
    """Skip live tests unless --run-live is passed."""
    if config.getoption("--run-live"):
        return
    skip_live = pytest.mark.skip(reason="need --run-live option to run")
    for item in items:
        if "live" in item.keywords:
            item.add_marker(skip_live)


@pytest.fixture(autouse=True)
def _clean_test_sheets():
    """Shared in-memory sheets must not leak between tests."""
    yield
    reset_test_sheets()


@pytest.fixture
def config(tmp_path):
    """A Config rooted in a fresh temporary tiller home."""
    cfg = Config(home=tmp_path / "tiller", sheet_url=SHEET_URL)
    ensure_home(cfg)
    return cfg


@pytest.fixture
def sheet():
    """The sample Tiller sheet: 3 transactions, 2 categories, 1 rule."""
    return sample_sheet()


@pytest.fixture
def ledger(sheet):
    return TillerLedger(sheet)


@pytest.fixture
def engine(config, ledger):
    return SyncEngine(config, ledger)
