"""Tool abstractions and registries."""

from .base import Tool, ToolContext, ToolResult
from .registry import ToolRegistry

__all__ = ["Tool", "ToolContext", "ToolResult", "ToolRegistry"]
