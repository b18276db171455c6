"""Built-in tools available to the agents."""

from __future__ import annotations

import ast
import json
import operator
import re
from typing import Any, Callable, Dict

from .base import Tool, ToolContext, ToolResult
from .registry import ToolRegistry

_UNSAFE_CHARS = re.compile(r"[^0-9+\-*/().\s]")

_BINARY_OPS: Dict[type, Callable[[Any, Any], Any]] = {
    ast.Add: operator.add,
    ast.Sub: operator.sub,
    ast.Mult: operator.mul,
    ast.Div: operator.truediv,
    ast.FloorDiv: operator.floordiv,
    ast.Pow: operator.pow,
}
_UNARY_OPS: Dict[type, Callable[[Any], Any]] = {ast.UAdd: operator.pos, ast.USub: operator.neg}


def _evaluate(node: ast.AST) -> float:
    if isinstance(node, ast.Expression):
        return _evaluate(node.body)
    if isinstance(node, ast.Constant) and isinstance(node.value, (int, float)):
        return node.value
    if isinstance(node, ast.BinOp) and type(node.op) in _BINARY_OPS:
        return _BINARY_OPS[type(node.op)](_evaluate(node.left), _evaluate(node.right))
    if isinstance(node, ast.UnaryOp) and type(node.op) in _UNARY_OPS:
        return _UNARY_OPS[type(node.op)](_evaluate(node.operand))
    raise ValueError(f"Unsupported expression element {type(node).__name__}")


def _format_number(value: float) -> str:
    if isinstance(value, float) and value.is_integer():
        return str(int(value))
    return str(value)


class CalculatorTool(Tool):
    """Performs mathematical calculations. Input should be a math expression like '1000 * 12 / 365'."""

    def run(self, *, input_text: str, context: ToolContext) -> ToolResult:
        sanitized = _UNSAFE_CHARS.sub("", input_text or "").strip()
        try:
            value = _evaluate(ast.parse(sanitized, mode="eval"))
        except (SyntaxError, ValueError, ZeroDivisionError, OverflowError) as exc:
            return ToolResult(content=f"Error in calculation: {exc}", metadata={"ok": "false"})
        return ToolResult(content=f"Calculation result: {_format_number(value)}", metadata={"ok": "true"})


class WebSearchTool(Tool):
    """Searches the web for current information. Input should be a search query."""

    def run(self, *, input_text: str, context: ToolContext) -> ToolResult:
        provider = self.config.get("provider", "Serper")
        return ToolResult(
            content=(
                f'[Web search for "{input_text}" would return real-time results here. '
                f"{provider} API integration needed for production.]"
            ),
            metadata={"simulated": "true"},
        )


def _js_type(value: Any) -> str:
    if isinstance(value, list):
        return "array"
    if isinstance(value, bool):
        return "boolean"
    if isinstance(value, (int, float)):
        return "number"
    if isinstance(value, str):
        return "string"
    return "object"


class DataAnalyzerTool(Tool):
    """Analyzes JSON data and extracts insights. Input should be valid JSON."""

    def run(self, *, input_text: str, context: ToolContext) -> ToolResult:
        try:
            data = json.loads(input_text)
        except json.JSONDecodeError as exc:
            return ToolResult(content=f"Error analyzing data: {exc.msg}", metadata={"ok": "false"})
        is_array = isinstance(data, list)
        if is_array:
            length = len(data)
        elif isinstance(data, dict):
            length = len(data)
        else:
            length = 0
        keys = "N/A" if is_array or not isinstance(data, dict) else ", ".join(data.keys())
        analysis = {
            "type": _js_type(data),
            "length": length,
            "keys": keys,
            "summary": f"Analyzed {'array' if is_array else 'object'} with {length} items",
        }
        return ToolResult(content=json.dumps(analysis, indent=2), metadata={"ok": "true"})


def register_builtin_tools(registry: ToolRegistry) -> None:
    """Register built-in tool factories."""

    registry.register_factory("calculator", lambda: CalculatorTool(name="calculator"), overwrite=True)
    registry.register_factory("web_search", lambda: WebSearchTool(name="web_search"), overwrite=True)
    registry.register_factory("data_analyzer", lambda: DataAnalyzerTool(name="data_analyzer"), overwrite=True)
