"""ToolSpec and ToolRegistry for MCP tool dispatch.

Key concepts:
- ToolSpec: Immutable dataclass linking a Tool definition to an async
  handler with standardized signature (config, args) -> CallToolResult.
- ToolRegistry: Holds the specs by name and provides list_tools() and
  call_tool() dispatch with error translation.
"""

import logging
from collections.abc import Awaitable, Callable
from dataclasses import dataclass

import mcp.types as types

from ...config import Config
from ...errors import ConflictError, TillerSyncError

logger = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class ToolSpec:
    """Immutable specification for a single MCP tool.

    Attributes:
        tool: The MCP Tool definition (name, description, inputSchema).
        handler: Async handler with signature (config, args) -> CallToolResult.
    """

    tool: types.Tool
    handler: Callable[[Config, dict], Awaitable[types.CallToolResult]]


class ToolRegistry:
    """Registry of ToolSpecs keyed by tool name."""

    def __init__(self, specs: list[ToolSpec]):
        self._specs: dict[str, ToolSpec] = {}
        for spec in specs:
            if spec.tool.name in self._specs:
                raise ValueError(f"Duplicate tool name: {spec.tool.name}")
            self._specs[spec.tool.name] = spec

    def list_tools(self) -> list[types.Tool]:
        return [spec.tool for spec in self._specs.values()]

    def tool_count(self) -> int:
        return len(self._specs)

    async def call_tool(
        self,
        name: str,
        arguments: dict | None,
        config: Config,
    ) -> types.CallToolResult:
        """Dispatch tool call to registered handler.

        Sync errors become structured responses carrying their error type
        and corrective action; parameter errors become validation errors.

        Args:
            name: Tool name to invoke.
            arguments: Tool arguments (may be None).
            config: Resolved server configuration.

        Returns:
            CallToolResult from the handler.

        Raises:
            ValueError: If tool name is not registered.
        """
        from .errors import build_error_response

        spec = self._specs.get(name)
        if spec is None:
            raise ValueError(f"Unknown tool: {name}")
        args = arguments or {}
        try:
            return await spec.handler(config, args)
        except TillerSyncError as e:
            logger.warning("%s failed: %s", name, e)
            result = build_error_response(
                e.error_type.value, str(e), e.corrective_action
            )
            if isinstance(e, ConflictError):
                return types.CallToolResult(
                    content=result.content,
                    structuredContent=e.report.model_dump(mode="json"),
                    isError=True,
                )
            return result
        except ValueError as e:
            return build_error_response(
                "validation_error",
                str(e),
                "Check parameter values and retry.",
            )
        except Exception as e:
            logger.exception("Unexpected error in tool %s", name)
            return build_error_response(
                "server_error",
                str(e),
                "Check the log file for details and retry.",
            )
