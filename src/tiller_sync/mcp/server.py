"""MCP Server for Tiller sheet sync using stdio transport.

This module implements the Model Context Protocol server that lets AI
agents pull the Tiller sheet into a local SQLite datastore and push
local edits back.

Transport: stdio (for MCP desktop/agent integration)
Protocol: JSON-RPC 2.0 over MCP
"""

import argparse
import asyncio
import logging
import sys

import mcp.server.stdio
import mcp.types as types
from mcp.server import NotificationOptions, Server
from mcp.server.models import InitializationOptions

from .. import __version__
from ..config import Config
from ..logger import DEFAULT_LOG_FILE, setup_logging
from .lifespan import server_lifespan
from .tools import ALL_SPECS, ToolRegistry, build_error_response

logger = logging.getLogger(__name__)

SERVER_NAME = "tiller-sync"

server = Server(SERVER_NAME)

# Global config (initialized in main)
_config: Config | None = None

# Global registry instance (initialized in main)
_registry: ToolRegistry | None = None


# ---------------------------------------------------------------------------
# Global accessors
# ---------------------------------------------------------------------------


def get_config() -> Config:
    """Get the global Config.

    Raises:
        RuntimeError: If config is not initialized
    """
    if _config is None:
        raise RuntimeError("Config not initialized. Server lifespan not started.")
    return _config


def set_config(config: Config | None) -> None:
    global _config
    _config = config


def get_registry() -> ToolRegistry:
    """Get the global ToolRegistry instance.

    Raises:
        RuntimeError: If registry is not initialized
    """
    if _registry is None:
        raise RuntimeError("ToolRegistry not initialized.")
    return _registry


def set_registry(registry: ToolRegistry | None) -> None:
    global _registry
    _registry = registry


# ---------------------------------------------------------------------------
# MCP protocol handlers
# ---------------------------------------------------------------------------


@server.list_tools()
async def handle_list_tools() -> list[types.Tool]:
    return get_registry().list_tools()


@server.call_tool()
async def handle_call_tool(
    name: str, arguments: dict | None
) -> types.CallToolResult:
    """Handle tool execution via ToolRegistry dispatch.

    Args:
        name: The name of the tool to execute.
        arguments: Tool arguments (optional).

    Returns:
        CallToolResult with tool output content and optional isError flag.
    """
    config = get_config()
    try:
        return await get_registry().call_tool(name, arguments, config)
    except ValueError as e:
        return build_error_response(
            "unknown_tool",
            str(e),
            "Use list_tools to see available tools.",
        )


# ---------------------------------------------------------------------------
# Server lifecycle
# ---------------------------------------------------------------------------


async def main(config_overrides: dict | None = None):
    """Run the MCP server with stdio transport.

    Logging goes to a file only, never stdout, which carries the protocol.

    Args:
        config_overrides: Optional dict with values from the command line
            (home, sheet_url, token_path, debug, log_file)
    """
    overrides = dict(config_overrides or {})
    log_file = overrides.pop("log_file", None)

    # Must run before stdio_server so nothing reaches stdout
    setup_logging(mode="mcp", debug=overrides.get("debug", False), log_file=log_file)

    registry = ToolRegistry(ALL_SPECS)
    logger.info("Registered %d tools", registry.tool_count())
    set_registry(registry)

    # set_config is called here rather than in the lifespan so that running
    # this file as __main__ does not update a second copy of the module
    async with server_lifespan(config_overrides=overrides) as ctx:
        set_config(ctx["config"])
        try:
            async with mcp.server.stdio.stdio_server() as (
                read_stream,
                write_stream,
            ):
                init_options = InitializationOptions(
                    server_name=SERVER_NAME,
                    server_version=__version__,
                    capabilities=server.get_capabilities(
                        notification_options=NotificationOptions(),
                        experimental_capabilities={},
                    ),
                )
                await server.run(read_stream, write_stream, init_options)
        finally:
            set_config(None)
            set_registry(None)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="Tiller Sync MCP Server - sync a Tiller Google Sheet with a local SQLite datastore",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  # Run with default config (from .env, config.yml or TILLER_* variables)
  tiller-sync-mcp

  # Use a different tiller home
  tiller-sync-mcp --home ~/finance/tiller

  # Point at a sheet explicitly
  tiller-sync-mcp --sheet-url https://docs.google.com/spreadsheets/d/SPREADSHEET_ID

  # Custom log file location
  tiller-sync-mcp --log-file /var/log/tiller-sync.log

Note: This server uses stdio transport for JSON-RPC communication with MCP clients.
All user-facing messages are written to stderr. Do not pipe stdin/stdout manually.
        """,
    )
    parser.add_argument(
        "--home",
        help="Tiller home directory (takes precedence over TILLER_HOME and config files)",
    )
    parser.add_argument(
        "--sheet-url",
        help="Tiller sheet URL (takes precedence over TILLER_SHEET_URL and config files)",
    )
    parser.add_argument(
        "--token-path",
        help="OAuth token file (default: $TILLER_HOME/.secrets/token.json)",
    )
    parser.add_argument(
        "--debug",
        action="store_true",
        help="Enable debug logging",
    )
    parser.add_argument(
        "--log-file",
        default=DEFAULT_LOG_FILE,
        help=f"Log file path (default: {DEFAULT_LOG_FILE})",
    )
    parser.add_argument(
        "--version",
        action="version",
        version=f"tiller-sync version {__version__}",
    )
    return parser


def run() -> None:
    """Entry point that handles errors gracefully and parses CLI arguments."""
    args = build_parser().parse_args()

    config_overrides = {}
    if args.home:
        config_overrides["home"] = args.home
    if args.sheet_url:
        config_overrides["sheet_url"] = args.sheet_url
    if args.token_path:
        config_overrides["token_path"] = args.token_path
    if args.debug:
        config_overrides["debug"] = True

    if config_overrides:
        print(
            f"Config overrides from CLI: {', '.join(config_overrides)}",
            file=sys.stderr,
        )
    if args.log_file:
        config_overrides["log_file"] = args.log_file

    try:
        asyncio.run(main(config_overrides=config_overrides))
    except RuntimeError:
        # Error already printed to stderr by lifespan manager
        sys.exit(1)
    except KeyboardInterrupt:
        print("\nInterrupted.", file=sys.stderr)
        sys.exit(0)


if __name__ == "__main__":
    run()
