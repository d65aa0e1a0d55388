"""
MCP Agent
=========

Reaches external tool servers configured in MAVENS_MCP_SERVERS:

    "list mcp servers"                               -> mcp_list_servers
    "list mcp tools on docs"                         -> mcp_list_tools
    "call tool search on docs with {"q": "httpx"}"   -> mcp_call_tool
"""

import json
import re
from typing import Sequence

from mavens.models import AgentResult, Category, ContextEntry, Intent, IntentMatch, Request
from mavens.specialists.base import SpecializedAgent
from mavens.tools import CancelSignal

CALL_PATTERN = re.compile(
    r"\b(?:call|use|invoke)\s+(?:the\s+)?(?:mcp\s+)?tool\s+[`'\"]?(?P<tool>[\w.-]+)[`'\"]?"
    r"(?:\s+(?:on|from)\s+(?:server\s+)?[`'\"]?(?P<server>[\w.-]+)[`'\"]?)?"
    r"(?:\s+with\s+(?P<arguments>\{.*\}))?",
    re.IGNORECASE | re.DOTALL,
)

SERVER_PATTERN = re.compile(r"\b(?:on|from)\s+(?:server\s+)?[`'\"]?(?P<server>[\w.-]+)", re.IGNORECASE)


class MCPAgent(SpecializedAgent):
    """External MCP tool servers over HTTP."""

    agent_id = "mcp"
    category = Category.MCP
    intents = (
        Intent("servers", ("mcp", "mcp servers", "list servers", "tool servers"), 0.8),
        Intent("tools", ("mcp tools", "list tools", "available tools"), 0.85),
        Intent("call", ("call tool", "call the tool", "use tool", "use the tool", "invoke tool", "call mcp tool"), 0.9),
    )

    def intent_applies(self, intent: Intent, request: Request, tokens: list[str]) -> bool:
        if intent.name == "call":
            return CALL_PATTERN.search(request.message) is not None
        return True

    async def run(
        self,
        request: Request,
        match: IntentMatch,
        cancel: CancelSignal | None,
        history: Sequence[ContextEntry]
    ) -> AgentResult:
        intents = match.intents or ("servers",)

        if "call" in intents:
            return await self._call(request, cancel)
        if "tools" in intents:
            params = {}
            found = SERVER_PATTERN.search(request.message)
            if found:
                params["server"] = found.group("server")
            result = await self.tools.run("mcp_list_tools", params, cancel)
            return self.from_tool(result, "mcp_list_tools", detail=True)

        result = await self.tools.run("mcp_list_servers", {}, cancel)
        return self.from_tool(result, "mcp_list_servers", detail=True)

    async def _call(self, request: Request, cancel: CancelSignal | None) -> AgentResult:
        found = CALL_PATTERN.search(request.message)
        params = {"tool": found.group("tool")}
        if found.group("server"):
            params["server"] = found.group("server")

        if found.group("arguments"):
            try:
                params["arguments"] = json.loads(found.group("arguments"))
            except json.JSONDecodeError as e:
                return self.failure(
                    f"mcp: tool arguments must be a JSON object ({e.msg})",
                    {"kind": "invalid_argument", "argument": "arguments"},
                )

        result = await self.tools.run("mcp_call_tool", params, cancel)
        return self.from_tool(result, "mcp_call_tool", detail=True)
