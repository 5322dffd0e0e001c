"""Error response builder for MCP tool handlers.

Errors carry a corrective action so an agent can recover without human
intervention: run ``sync_down`` first, retry with ``force``, pick a
formulas mode, and so on.
"""

import mcp.types as types


def build_error_response(
    error_type: str, message: str, corrective_action: str
) -> types.CallToolResult:
    """Build a structured error response with corrective action.

    Args:
        error_type: Error category, usually an ``ErrorType`` value
            (precondition, conflict, formula_integrity, ...), or
            validation_error / server_error / unknown_tool.
        message: Human-readable error description
        corrective_action: Specific action the agent can take to resolve the error

    Returns:
        CallToolResult with isError=True

    Examples:
        >>> build_error_response("precondition", "No local datastore", "Run sync_down first.")
        CallToolResult(content=[TextContent(...)], isError=True)
    """
    error_text = f"Error ({error_type}): {message}\n\nAction: {corrective_action}"

    return types.CallToolResult(
        content=[types.TextContent(type="text", text=error_text)],
        isError=True,
    )
