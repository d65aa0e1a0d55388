"""
Tools System
============

Tools are the I/O collaborators the specialized agents call: writing a
file, running a shell command, asking git for its status. The orchestration
core never looks inside a tool; it sees only the narrow contract:

    validate(params) -> error message | None
    execute(params, cancel) -> ToolResult{success, content, display_summary}

Each tool has a name, a description and a JSON-Schema parameter
definition (the same shape MCP servers use).

Tool Categories:
1. Filesystem: write, read, list, find
2. Shell: run commands, create directories
3. Git: status, commit, push, pull, log, diff, branch
4. Quality: static code-quality scan
5. Database: SQLite connections and queries
6. MCP: external tool servers over HTTP JSON-RPC

This module provides:
- Tool dataclass for defining tools
- ToolResult for standardized responses
- ToolRegistry for managing available tools
- create_tool_registry() to build a registry with every built-in tool
"""

import asyncio
from dataclasses import dataclass, field
from typing import Any, Awaitable, Callable

from mavens.utils.logger import Logger

logger = Logger("Tools")

CancelSignal = asyncio.Event


@dataclass
class ToolResult:
    """
    Standardized result from tool execution.

    Attributes:
        success: Whether the tool executed successfully
        content: Full textual output (what a model or a log would read)
        display_summary: One-line summary for the terminal
        data: Structured result (varies by tool)
        error: Error message if success is False
    """
    success: bool
    content: str = ""
    display_summary: str = ""
    data: Any = None
    error: str | None = None

    @classmethod
    def ok(cls, content: str, display_summary: str = "", data: Any = None) -> "ToolResult":
        return cls(success=True, content=content, display_summary=display_summary or content, data=data)

    @classmethod
    def fail(cls, error: str, data: Any = None) -> "ToolResult":
        return cls(success=False, content=f"Error: {error}", display_summary=error, data=data, error=error)


ToolFunction = Callable[[dict, "CancelSignal | None"], Awaitable[ToolResult]]
Validator = Callable[[dict], "str | None"]


@dataclass
class Tool:
    """
    Definition of a tool.

    Attributes:
        name: Unique identifier for the tool
        description: What the tool does
        parameters: JSON Schema for the parameters
        execute: Async function that runs the tool
        validator: Optional extra validation beyond required fields

    Example:
        async def _make_directory(params: dict, cancel) -> ToolResult:
            os.makedirs(params["path"], exist_ok=True)
            return ToolResult.ok(f"Created {params['path']}")

        tool = Tool(
            name="make_directory",
            description="Create a directory (and parents)",
            parameters={
                "type": "object",
                "properties": {"path": {"type": "string"}},
                "required": ["path"]
            },
            execute=_make_directory
        )
    """
    name: str
    description: str
    parameters: dict
    execute: ToolFunction
    validator: Validator | None = field(default=None)

    def validate(self, params: dict) -> str | None:
        """
        Check parameters before execution.

        Returns:
            An error message, or None when the parameters are acceptable
        """
        if not isinstance(params, dict):
            return "Parameters must be an object"

        for name in self.parameters.get("required", []):
            value = params.get(name)
            if value is None or (isinstance(value, str) and not value.strip()):
                return f"Parameter '{name}' is required"

        if self.validator:
            return self.validator(params)
        return None


class ToolRegistry:
    """
    Central registry for available tools.

    Example:
        registry = create_tool_registry()

        result = await registry.execute("git_status", {"cwd": "/repo"})
        if result.success:
            print(result.display_summary)
    """

    def __init__(self):
        """Initialize an empty registry."""
        self._tools: dict[str, Tool] = {}

    def register(self, tool: Tool) -> None:
        """
        Register a tool.

        Raises:
            ValueError: If a tool with this name already exists
        """
        if tool.name in self._tools:
            raise ValueError(f"Tool '{tool.name}' is already registered")

        self._tools[tool.name] = tool
        logger.debug(f"Registered tool: {tool.name}")

    def get(self, name: str) -> Tool | None:
        return self._tools.get(name)


    def list_names(self) -> list[str]:
        return list(self._tools.keys())

    async def execute(self, name: str, params: dict, cancel: CancelSignal | None = None) -> ToolResult:
        """
        Validate and execute a tool by name.

        Cancellation (asyncio.CancelledError) propagates; every other
        exception becomes a failed ToolResult.

        Args:
            name: The tool name
            params: Parameters to pass to the tool
            cancel: Optional abort signal forwarded to the tool

        Returns:
            ToolResult from the tool execution
        """
        tool = self.get(name)
        if not tool:
            return ToolResult.fail(f"Tool '{name}' not found")

        problem = tool.validate(params)
        if problem:
            logger.warning(f"Rejected {name} call: {problem}")
            return ToolResult.fail(problem)

        try:
            logger.debug(f"Executing tool: {name}")
            return await tool.execute(params, cancel)
        except asyncio.CancelledError:
            raise
        except Exception as e:
            logger.error(f"Tool execution failed: {name}", e)
            return ToolResult.fail(str(e) or type(e).__name__)


def create_tool_registry() -> ToolRegistry:
    """
    Build a registry holding every built-in tool.

    Each call returns an independent registry (and independent database
    connection table), so tests and concurrent assistants never share tool
    state.
    """
    from mavens.tools.database import register_database_tools
    from mavens.tools.filesystem import register_filesystem_tools
    from mavens.tools.git import register_git_tools
    from mavens.tools.mcp import register_mcp_tools
    from mavens.tools.quality import register_quality_tools
    from mavens.tools.shell import register_shell_tools

    registry = ToolRegistry()
    register_filesystem_tools(registry)
    register_shell_tools(registry)
    register_git_tools(registry)
    register_quality_tools(registry)
    register_database_tools(registry)
    register_mcp_tools(registry)

    logger.debug(f"Registered {len(registry.list_names())} tools")
    return registry


__all__ = [
    "CancelSignal",
    "Tool",
    "ToolResult",
    "ToolRegistry",
    "create_tool_registry",
]
