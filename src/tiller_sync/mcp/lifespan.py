"""Lifespan management for MCP server startup and shutdown."""

import logging
import os
import sys
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from typing import Any

from dotenv import load_dotenv
from pydantic import ValidationError

from ..config import ensure_home
from ..config_loader import discover_config_files, load_hierarchical_config
from ..config_schema import LoggingConfig, build_config, to_config
from ..core.async_utils import init_semaphore
from ..remote import TEST_MODE_ENV, in_test_mode

logger = logging.getLogger(__name__)


def _stderr_print(msg: str) -> None:
    """Print message to stderr for user feedback (safe in MCP mode)."""
    print(msg, file=sys.stderr, flush=True)


def _apply_log_level(section: LoggingConfig, debug: bool) -> None:
    """Use the YAML log level unless LOG_LEVEL or debug mode already chose one."""
    if section.level is None or debug or os.getenv("LOG_LEVEL"):
        return
    level = getattr(logging, section.level.upper(), None)
    if not isinstance(level, int):
        logger.warning("Unknown log level in config: %s", section.level)
        return
    logging.getLogger().setLevel(level)


@asynccontextmanager
async def server_lifespan(
    config_overrides: dict[str, Any] | None = None,
) -> AsyncIterator[dict[str, Any]]:
    """
    Manage server startup and shutdown lifecycle.

    On startup:
    - Load .env file (so values are available for env var lookups and YAML interpolation)
    - Load YAML config files if present (as fallback values)
    - Resolve config: CLI > env vars > .env > YAML > defaults
    - Create the tiller home directories
    - Warn (but keep going) when the OAuth token is missing, since
      sync_status still works without it

    Args:
        config_overrides: Optional dict with config values from CLI
            (home, sheet_url, token_path, debug)

    Yields:
        Dict with 'config' key containing the resolved Config

    Raises:
        RuntimeError: If configuration is invalid.
    """
    logger.info("MCP server starting...")
    _stderr_print("Tiller Sync MCP Server starting...")

    try:
        # .env first so ${VAR} interpolation in YAML can see its values
        load_dotenv()

        sources = []
        config_files = discover_config_files()
        unified = build_config(load_hierarchical_config())
        if config_files:
            sources.append(f"config file: {config_files[0]}")

        overrides = config_overrides or {}
        config = to_config(unified, cli_overrides=overrides)
        _apply_log_level(unified.logging, config.debug)

        if overrides:
            sources.append("CLI arguments")
        sources.append("environment variables")
        source_desc = ", ".join(sources)
        logger.info("Configuration loaded from: %s", source_desc)
        _stderr_print(f"  Configuration loaded from: {source_desc}")
    except (ValueError, ValidationError) as e:
        logger.error("Configuration error: %s", e)
        _stderr_print(f"ERROR: Configuration error: {e}")
        _stderr_print("  Ensure TILLER_SHEET_URL is set.")
        raise RuntimeError(
            f"Configuration error: {e}. Ensure TILLER_SHEET_URL is set."
        ) from e

    try:
        ensure_home(config)
    except OSError as e:
        logger.error("Cannot create tiller home %s: %s", config.home, e)
        _stderr_print(f"ERROR: Cannot create tiller home {config.home}: {e}")
        raise RuntimeError(f"Cannot create tiller home: {e}") from e

    logger.info("Tiller home: %s", config.home)
    _stderr_print(f"  Tiller home: {config.home}")
    _stderr_print(f"  Spreadsheet: {config.spreadsheet_id}")

    if in_test_mode():
        _stderr_print(f"  {TEST_MODE_ENV} is set: using an in-memory sheet")
    elif not config.token_path.exists():
        logger.warning("OAuth token not found at %s", config.token_path)
        _stderr_print(
            f"  WARNING: OAuth token not found at {config.token_path}; "
            "sync_down and sync_up will fail until it exists."
        )

    init_semaphore(1)
    _stderr_print("Server ready. Waiting for MCP client connection...")

    yield {"config": config}

    logger.info("MCP server shutting down")
    _stderr_print("Tiller Sync MCP Server shutting down.")
