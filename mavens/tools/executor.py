"""
Tool Executor
=============

Runs tool calls on behalf of the specialized agents.

The executor:
1. Looks the tool up in the registry
2. Validates parameters before anything runs
3. Executes the tool with the turn's abort signal
4. Logs and records every call so the agent can report what it did

Calls in a batch run sequentially. Once the abort signal fires, calls that
have not started are skipped; the call in flight is cancelled by the
orchestrator (its subprocess, if any, is killed by the shell tools).
"""

from dataclasses import dataclass, field
from typing import Any

from mavens.tools import CancelSignal, ToolRegistry, ToolResult, create_tool_registry
from mavens.utils.logger import Logger

logger = Logger("ToolExecutor")


@dataclass
class ToolCall:
    """
    A tool invocation requested by an agent.

    Attributes:
        name: The tool name
        arguments: Parameters for the tool
    """
    name: str
    arguments: dict[str, Any] = field(default_factory=dict)


@dataclass
class ToolCallResult:
    """
    Result of executing a tool call.

    Attributes:
        name: The tool name
        arguments: The parameters it ran with
        result: The tool result
    """
    name: str
    arguments: dict[str, Any]
    result: ToolResult

class ToolExecutor:
    """
    Executes tools for the specialized agents.

    Example:
        executor = ToolExecutor()

        result = await executor.run("git_status", {"cwd": "/repo"}, cancel)

        results = await executor.execute_all([
            ToolCall("run_command", {"command": "npm run build", "cwd": "/app"}),
            ToolCall("run_command", {"command": "npm test", "cwd": "/app"}),
        ], cancel)
    """

    def __init__(self, registry: ToolRegistry | None = None):
        """
        Initialize the tool executor.

        Args:
            registry: Tool registry (default: every built-in tool)
        """
        self.registry = registry or create_tool_registry()

    async def execute_one(self, tool_call: ToolCall, cancel: CancelSignal | None = None) -> ToolCallResult:
        """
        Execute a single tool call.

        Args:
            tool_call: The tool call to execute
            cancel: Abort signal forwarded to the tool

        Returns:
            ToolCallResult with the execution result
        """
        logger.info(f"Executing tool: {tool_call.name}")

        result = await self.registry.execute(tool_call.name, tool_call.arguments, cancel)

        if result.success:
            logger.debug(f"Tool {tool_call.name} succeeded")
        else:
            logger.warning(f"Tool {tool_call.name} failed: {result.error}")

        return ToolCallResult(name=tool_call.name, arguments=tool_call.arguments, result=result)

    async def execute_all(
        self,
        tool_calls: list[ToolCall],
        cancel: CancelSignal | None = None,
        stop_on_failure: bool = False
    ) -> list[ToolCallResult]:
        """
        Execute multiple tool calls in order.

        Args:
            tool_calls: List of tool calls to execute
            cancel: Abort signal; remaining calls are skipped once set
            stop_on_failure: Stop after the first failed call (build then test)

        Returns:
            Results for the calls that ran, in order
        """
        results = []

        for tool_call in tool_calls:
            if cancel is not None and cancel.is_set():
                logger.info(f"Abort requested, skipping {len(tool_calls) - len(results)} tool call(s)")
                break

            result = await self.execute_one(tool_call, cancel)
            results.append(result)

            if stop_on_failure and not result.result.success:
                break

        return results

    async def run(self, name: str, arguments: dict, cancel: CancelSignal | None = None) -> ToolResult:
        """Shorthand for a single call when the caller only needs the ToolResult."""
        return (await self.execute_one(ToolCall(name, arguments), cancel)).result
