"""MCP tool handlers for syncing with the Tiller sheet.

Defines three tools:

- ``sync_down`` -- pull the sheet into the local datastore.
- ``sync_up`` -- push the local datastore to the sheet.
- ``sync_status`` -- show the local datastore, backups and lock state.

Pull and push run in a worker thread under the single-flight semaphore;
status is read-only and runs alongside them.
"""

from __future__ import annotations

import logging
from typing import Any

import mcp.types as types

from ...config import Config
from ...core.async_utils import run_sync, run_sync_limited
from ...remote import TillerLedger, create_sheet
from ...sync import (
    FormulasMode,
    PullReport,
    PushReport,
    SyncEngine,
    format_pull_report,
    format_push_report,
    format_status,
    read_status,
    report_to_json,
)
from .registry import ToolSpec

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Tool definitions
# ---------------------------------------------------------------------------


SYNC_TOOLS: list[types.Tool] = [
    types.Tool(
        name="sync_down",
        description=(
            "Download the Tiller sheet into the local SQLite datastore. "
            "Transactions are upserted by id; categories and AutoCat rules "
            "are replaced. Backs up the datastore first."
        ),
        annotations=types.ToolAnnotations(
            readOnlyHint=False,
            destructiveHint=True,
            idempotentHint=True,
            openWorldHint=True,
        ),
        inputSchema={
            "type": "object",
            "properties": {},
            "required": [],
        },
    ),
    types.Tool(
        name="sync_up",
        description=(
            "Upload the local datastore to the Tiller sheet, replacing its "
            "contents. Refuses if the sheet changed since the last "
            "sync_down unless force is set. Backs up both sides first."
        ),
        annotations=types.ToolAnnotations(
            readOnlyHint=False,
            destructiveHint=True,
            idempotentHint=False,
            openWorldHint=True,
        ),
        inputSchema={
            "type": "object",
            "properties": {
                "force": {
                    "type": "boolean",
                    "default": False,
                    "description": (
                        "Overwrite remote changes made since the last "
                        "sync_down, and write formulas even if rows were "
                        "deleted locally"
                    ),
                },
                "formulas": {
                    "type": "string",
                    "enum": [mode.value for mode in FormulasMode],
                    "default": FormulasMode.UNKNOWN.value,
                    "description": (
                        "preserve: write recorded formulas back; ignore: "
                        "write values only; unknown: refuse if formulas exist"
                    ),
                },
            },
            "required": [],
        },
    ),
    types.Tool(
        name="sync_status",
        description=(
            "Show the local datastore schema version, row counts, latest "
            "backups and whether a sync is running."
        ),
        annotations=types.ToolAnnotations(
            readOnlyHint=True,
            destructiveHint=False,
            idempotentHint=True,
            openWorldHint=False,
        ),
        inputSchema={
            "type": "object",
            "properties": {},
            "required": [],
        },
    ),
]


# ---------------------------------------------------------------------------
# Blocking work (runs in a worker thread)
# ---------------------------------------------------------------------------


def create_engine(config: Config) -> SyncEngine:
    return SyncEngine(config, TillerLedger(create_sheet(config)))


def _pull(config: Config) -> PullReport:
    return create_engine(config).pull()


def _push(config: Config, force: bool, formulas: FormulasMode) -> PushReport:
    return create_engine(config).push(force=force, formulas=formulas)


# ---------------------------------------------------------------------------
# Handlers
# ---------------------------------------------------------------------------


async def _handle_sync_down(
    config: Config, args: dict[str, Any]
) -> types.CallToolResult:
    report = await run_sync_limited(_pull, config)
    return types.CallToolResult(
        content=[types.TextContent(type="text", text=format_pull_report(report))],
        structuredContent=report_to_json(report),
    )


async def _handle_sync_up(
    config: Config, args: dict[str, Any]
) -> types.CallToolResult:
    """Handle the ``sync_up`` tool.

    Raises:
        ValueError: If ``force`` is not a boolean or ``formulas`` is not a
            known mode.
    """
    force = args.get("force", False)
    if not isinstance(force, bool):
        raise ValueError(f"force must be true or false, got {force!r}")
    raw_mode = args.get("formulas", FormulasMode.UNKNOWN.value)
    try:
        formulas = FormulasMode(raw_mode)
    except ValueError:
        choices = ", ".join(mode.value for mode in FormulasMode)
        raise ValueError(
            f"formulas must be one of {choices}, got {raw_mode!r}"
        ) from None

    report = await run_sync_limited(_push, config, force, formulas)
    return types.CallToolResult(
        content=[types.TextContent(type="text", text=format_push_report(report))],
        structuredContent=report_to_json(report),
    )


async def _handle_sync_status(
    config: Config, args: dict[str, Any]
) -> types.CallToolResult:
    status = await run_sync(read_status, config)
    return types.CallToolResult(
        content=[types.TextContent(type="text", text=format_status(status))],
        structuredContent=report_to_json(status),
    )


# ToolSpec list for registry-based dispatch
SYNC_SPECS: list[ToolSpec] = [
    ToolSpec(tool=SYNC_TOOLS[0], handler=_handle_sync_down),
    ToolSpec(tool=SYNC_TOOLS[1], handler=_handle_sync_up),
    ToolSpec(tool=SYNC_TOOLS[2], handler=_handle_sync_status),
]
