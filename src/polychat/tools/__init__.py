from polychat.tools.base import Tool, ToolParameter
from polychat.tools.registry import ToolProvider, ToolRegistry

__all__ = ["Tool", "ToolParameter", "ToolProvider", "ToolRegistry"]
