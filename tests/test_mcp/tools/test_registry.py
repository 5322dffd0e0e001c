"""Tests for ToolSpec and ToolRegistry.

Covers:
- ToolSpec creation and immutability
- ToolRegistry list_tools, tool_count and duplicate detection
- call_tool dispatch and error translation
"""

import asyncio
import unittest
from dataclasses import FrozenInstanceError
from unittest.mock import MagicMock

import mcp.types as types

from tiller_sync.errors import ConflictError, FormulaIntegrityError
from tiller_sync.mcp.tools.registry import ToolRegistry, ToolSpec
from tiller_sync.sync import CollectionDiff, ConflictReport


def _ok(name):
    async def handler(config, args):
        return types.CallToolResult(
            content=[types.TextContent(type="text", text=f"ok:{name}:{args}")]
        )

    return handler


def _raising(exc):
    async def handler(config, args):
        raise exc

    return handler


def _make_spec(name: str, handler=None) -> ToolSpec:
    return ToolSpec(
        tool=types.Tool(
            name=name,
            description=f"Test tool {name}",
            inputSchema={"type": "object", "properties": {}, "required": []},
        ),
        handler=handler or _ok(name),
    )


def _text(result):
    return result.content[0].text


class TestToolSpec(unittest.TestCase):
    def test_creation(self):
        spec = _make_spec("sync_down")
        self.assertEqual(spec.tool.name, "sync_down")

    def test_frozen(self):
        spec = _make_spec("sync_down")
        with self.assertRaises(FrozenInstanceError):
            spec.tool = None


class TestToolRegistry(unittest.TestCase):
    def test_lists_in_registration_order(self):
        registry = ToolRegistry([_make_spec("a"), _make_spec("b")])
        self.assertEqual([t.name for t in registry.list_tools()], ["a", "b"])
        self.assertEqual(registry.tool_count(), 2)

    def test_duplicate_names_rejected(self):
        with self.assertRaises(ValueError):
            ToolRegistry([_make_spec("a"), _make_spec("a")])

    def test_unknown_tool_raises(self):
        registry = ToolRegistry([])
        with self.assertRaises(ValueError):
            asyncio.run(registry.call_tool("nope", {}, MagicMock()))

    def test_dispatch_defaults_arguments(self):
        registry = ToolRegistry([_make_spec("a")])
        result = asyncio.run(registry.call_tool("a", None, MagicMock()))
        self.assertEqual(_text(result), "ok:a:{}")


class TestErrorTranslation(unittest.TestCase):
    def _call(self, exc):
        registry = ToolRegistry([_make_spec("t", _raising(exc))])
        return asyncio.run(registry.call_tool("t", {}, MagicMock()))

    def test_sync_error_keeps_type_and_action(self):
        err = FormulaIntegrityError("formulas exist")
        err.phase = "formula_check"

        result = self._call(err)

        self.assertTrue(result.isError)
        self.assertIn("Error (formula_integrity): formulas exist (during formula_check)", _text(result))
        self.assertIn("formulas=ignore", _text(result))

    def test_conflict_includes_report(self):
        report = ConflictReport(
            has_baseline=True,
            collections={"Transactions": CollectionDiff(modifications=1)},
        )

        result = self._call(ConflictError("changed", report))

        self.assertTrue(result.isError)
        self.assertEqual(
            result.structuredContent["collections"]["Transactions"]["modifications"], 1
        )

    def test_value_error_is_validation(self):
        result = self._call(ValueError("force must be true or false"))
        self.assertIn("Error (validation_error)", _text(result))

    def test_unexpected_error_is_server_error(self):
        result = self._call(KeyError("x"))
        self.assertIn("Error (server_error)", _text(result))
        self.assertIn("Check the log file", _text(result))
