"""Unified configuration schema for tiller_sync.

Defines Pydantic models for the YAML config structure with dedicated
sections for the tiller home and logging, plus an adapter that turns the
validated YAML into the runtime ``Config`` dataclass.

Usage:
    from tiller_sync.config_schema import UnifiedConfig, build_config, to_config

    raw = load_hierarchical_config()
    unified = build_config(raw)
    config = to_config(unified, cli_overrides={"home": "/data/tiller"})
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from pydantic import BaseModel, Field

if TYPE_CHECKING:
    from .config import Config

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Section models
# ---------------------------------------------------------------------------


class TillerSection(BaseModel):
    """Tiller home and sheet settings.

    All fields are optional to support zero-config: env vars and CLI args
    can supply them at runtime instead.
    """

    home: str | None = Field(
        default=None, description="Directory holding the datastore"
    )
    sheet_url: str | None = Field(
        default=None, description="URL of the Tiller Google Sheet"
    )
    token_path: str | None = Field(
        default=None,
        description="OAuth token file, absolute or relative to home",
    )
    backup_copies: int = Field(
        default=5,
        ge=1,
        le=100,
        description="Backups retained per kind (1-100)",
    )
    debug: bool = Field(default=False, description="Enable debug mode")

    model_config = {"frozen": True}


class LoggingConfig(BaseModel):
    """Logging configuration.

    Attributes:
        level: Log level name (DEBUG, INFO, WARNING, ERROR, CRITICAL),
            applied at startup unless LOG_LEVEL or debug mode is set.
    """

    level: str | None = Field(default=None, description="Log level")

    model_config = {"frozen": True}


# ---------------------------------------------------------------------------
# Top-level unified config
# ---------------------------------------------------------------------------


class UnifiedConfig(BaseModel):
    """Top-level unified configuration.

    Every section has sensible defaults, so ``UnifiedConfig()`` is valid.
    """

    tiller: TillerSection = Field(default_factory=TillerSection)
    logging: LoggingConfig = Field(default_factory=LoggingConfig)

    model_config = {"frozen": True}


# ---------------------------------------------------------------------------
# Factory function
# ---------------------------------------------------------------------------


def build_config(raw_data: dict) -> UnifiedConfig:
    """Construct a ``UnifiedConfig`` from the raw dict returned by
    ``load_hierarchical_config()``.

    Missing sections get defaults.

    Args:
        raw_data: Merged configuration dictionary.

    Returns:
        Validated ``UnifiedConfig`` instance.
    """
    if not raw_data:
        return UnifiedConfig()

    return UnifiedConfig(**raw_data)


# ---------------------------------------------------------------------------
# Adapter: UnifiedConfig -> Config dataclass
# ---------------------------------------------------------------------------


def to_config(
    unified: UnifiedConfig,
    cli_overrides: dict | None = None,
) -> Config:
    """Convert a ``UnifiedConfig`` into the runtime ``Config``, applying
    CLI overrides and environment variables on top.

    CLI overrides dict keys: home, sheet_url, token_path, debug.

    Args:
        unified: The unified config produced by ``build_config()``.
        cli_overrides: Optional dict of CLI argument values.

    Returns:
        Validated ``Config`` instance.

    Raises:
        ValueError: If a required value is missing or invalid.
    """
    from .config import load_config

    overrides = cli_overrides or {}

    return load_config(
        home=overrides.get("home"),
        sheet_url=overrides.get("sheet_url"),
        token_path=overrides.get("token_path"),
        debug=overrides.get("debug", False),
        yaml_fallbacks=unified.tiller.model_dump(exclude_none=True),
    )
