"""
MCP Tools
=========

Tools for reaching external MCP (Model Context Protocol) servers over
HTTP: list the configured servers, list a server's tools, call a tool.

Servers are named in configuration:

    MAVENS_MCP_SERVERS=docs=http://localhost:8811/mcp,search=http://localhost:9000/mcp

Protocol Notes:
- JSON-RPC 2.0 over HTTP POST (the "streamable HTTP" transport)
- Each call opens a session: initialize -> notifications/initialized ->
  the actual method. The server may hand back an Mcp-Session-Id header
  which is echoed on the following requests
- Responses arrive either as application/json or as a single
  text/event-stream message ("data: {...}")
- tools/list     -> {"tools": [{"name", "description", "inputSchema"}]}
- tools/call     -> {"content": [{"type": "text", "text": ...}], "isError"}
"""

import itertools
import json

import httpx

from mavens.tools import CancelSignal, Tool, ToolRegistry, ToolResult
from mavens.utils.config import get_config
from mavens.utils.logger import Logger

logger = Logger("MCPTools")

PROTOCOL_VERSION = "2025-03-26"
CLIENT_INFO = {"name": "mavens", "version": "0.1.0"}

_request_ids = itertools.count(1)


class MCPProtocolError(Exception):
    """The server answered with a JSON-RPC error or an unreadable payload."""

    def __init__(self, message: str, code: int | None = None):
        self.code = code
        super().__init__(message)


def _decode(response: httpx.Response) -> dict:
    """Extract the JSON-RPC message from a JSON or SSE response body."""
    content_type = response.headers.get("content-type", "")
    if "text/event-stream" in content_type:
        for line in response.text.splitlines():
            if line.startswith("data:"):
                return json.loads(line[5:].strip())
        raise MCPProtocolError("Event stream contained no data")
    return response.json()


class MCPSession:
    """
    One JSON-RPC conversation with an MCP server.

    Example:
        async with MCPSession("http://localhost:8811/mcp") as session:
            tools = await session.request("tools/list")
    """

    def __init__(
        self,
        url: str,
        timeout: float | None = None,
        transport: httpx.AsyncBaseTransport | None = None
    ):
        self.url = url
        self.timeout = timeout or get_config().mcp.timeout
        self.transport = transport
        self.session_id: str | None = None
        self._client: httpx.AsyncClient | None = None

    async def __aenter__(self) -> "MCPSession":
        self._client = httpx.AsyncClient(timeout=self.timeout, transport=self.transport)
        await self.request("initialize", {
            "protocolVersion": PROTOCOL_VERSION,
            "capabilities": {},
            "clientInfo": CLIENT_INFO,
        })
        await self.notify("notifications/initialized")
        return self

    async def __aexit__(self, *exc_info) -> None:
        if self._client:
            await self._client.aclose()
            self._client = None

    def _headers(self) -> dict:
        headers = {
            "Content-Type": "application/json",
            "Accept": "application/json, text/event-stream",
        }
        if self.session_id:
            headers["Mcp-Session-Id"] = self.session_id
        return headers

    async def notify(self, method: str, params: dict | None = None) -> None:
        message = {"jsonrpc": "2.0", "method": method}
        if params is not None:
            message["params"] = params
        response = await self._client.post(self.url, json=message, headers=self._headers())
        response.raise_for_status()

    async def request(self, method: str, params: dict | None = None) -> dict:
        """
        Send a request and return its result.

        Raises:
            httpx.HTTPError: Transport failure or error status
            MCPProtocolError: JSON-RPC error response
        """
        message = {"jsonrpc": "2.0", "id": next(_request_ids), "method": method}
        if params is not None:
            message["params"] = params

        response = await self._client.post(self.url, json=message, headers=self._headers())
        response.raise_for_status()

        session_id = response.headers.get("mcp-session-id")
        if session_id:
            self.session_id = session_id

        try:
            payload = _decode(response)
        except ValueError as e:
            raise MCPProtocolError(f"Invalid JSON from server: {e}") from e

        if "error" in payload:
            error = payload["error"] or {}
            raise MCPProtocolError(error.get("message", "Unknown error"), error.get("code"))
        return payload.get("result") or {}


def _server_url(params: dict) -> tuple[str, str] | ToolResult:
    servers = get_config().mcp.servers
    name = params.get("server")
    if not servers:
        return ToolResult.fail("No MCP servers configured. Set MAVENS_MCP_SERVERS in .env")
    if not name:
        if len(servers) == 1:
            return next(iter(servers.items()))
        return ToolResult.fail(f"Specify a server: {', '.join(sorted(servers))}")
    if name not in servers:
        return ToolResult.fail(f"Unknown MCP server '{name}'. Configured: {', '.join(sorted(servers))}")
    return name, servers[name]


def _transport_failure(name: str, url: str, error: Exception) -> ToolResult:
    if isinstance(error, httpx.ConnectError):
        message = f"MCP server '{name}' is not reachable at {url}"
    elif isinstance(error, httpx.TimeoutException):
        message = f"MCP server '{name}' timed out"
    elif isinstance(error, httpx.HTTPStatusError):
        message = f"MCP server '{name}' returned HTTP {error.response.status_code}"
    else:
        message = f"MCP server '{name}' failed: {error}"
    logger.warning(message)
    return ToolResult.fail(message, data={"server": name, "url": url})


# ==============================================================================
# Tool: List Servers
# ==============================================================================

async def _list_servers(params: dict, cancel: CancelSignal | None = None) -> ToolResult:
    servers = [{"name": name, "url": url} for name, url in sorted(get_config().mcp.servers.items())]
    if not servers:
        return ToolResult.ok(
            content="No MCP servers configured. Set MAVENS_MCP_SERVERS=name=url,...",
            display_summary="No MCP servers configured",
            data={"servers": []}
        )
    return ToolResult.ok(
        content="\n".join(f"{s['name']}: {s['url']}" for s in servers),
        display_summary=f"{len(servers)} MCP server(s) configured",
        data={"servers": servers}
    )


list_servers_tool = Tool(
    name="mcp_list_servers",
    description="List the configured MCP servers.",
    parameters={"type": "object", "properties": {}, "required": []},
    execute=_list_servers
)


# ==============================================================================
# Tool: List Tools
# ==============================================================================

async def _list_tools(params: dict, cancel: CancelSignal | None = None) -> ToolResult:
    resolved = _server_url(params)
    if isinstance(resolved, ToolResult):
        return resolved
    name, url = resolved

    try:
        async with MCPSession(url) as session:
            result = await session.request("tools/list")
    except (httpx.HTTPError, MCPProtocolError) as e:
        return _transport_failure(name, url, e)

    tools = [
        {"name": t.get("name"), "description": t.get("description", "")}
        for t in result.get("tools", [])
    ]
    return ToolResult.ok(
        content="\n".join(f"{t['name']}: {t['description']}" for t in tools) or "No tools",
        display_summary=f"{len(tools)} tool(s) on '{name}'",
        data={"server": name, "tools": tools}
    )


list_tools_tool = Tool(
    name="mcp_list_tools",
    description="List the tools an MCP server offers.",
    parameters={
        "type": "object",
        "properties": {
            "server": {"type": "string", "description": "Configured server name"}
        },
        "required": []
    },
    execute=_list_tools
)


# ==============================================================================
# Tool: Call Tool
# ==============================================================================

async def _call_tool(params: dict, cancel: CancelSignal | None = None) -> ToolResult:
    resolved = _server_url(params)
    if isinstance(resolved, ToolResult):
        return resolved
    name, url = resolved
    tool_name = params["tool"]
    arguments = params.get("arguments") or {}

    try:
        async with MCPSession(url) as session:
            result = await session.request("tools/call", {"name": tool_name, "arguments": arguments})
    except (httpx.HTTPError, MCPProtocolError) as e:
        return _transport_failure(name, url, e)

    text = "\n".join(
        block.get("text", "") for block in result.get("content", []) if block.get("type") == "text"
    )
    data = {"server": name, "tool": tool_name, "arguments": arguments, "result": result}

    if result.get("isError"):
        return ToolResult.fail(f"{tool_name} on '{name}' reported an error: {text or 'no details'}", data=data)

    return ToolResult.ok(
        content=text or json.dumps(result, default=str),
        display_summary=f"Called {tool_name} on '{name}'",
        data=data
    )


call_tool_tool = Tool(
    name="mcp_call_tool",
    description="Call a tool on an MCP server with JSON arguments.",
    parameters={
        "type": "object",
        "properties": {
            "server": {"type": "string", "description": "Configured server name"},
            "tool": {"type": "string", "description": "Tool name on that server"},
            "arguments": {"type": "object", "description": "Tool arguments"}
        },
        "required": ["tool"]
    },
    execute=_call_tool
)


def register_mcp_tools(registry: ToolRegistry) -> None:
    """Register all MCP tools with a registry."""
    registry.register(list_servers_tool)
    registry.register(list_tools_tool)
    registry.register(call_tool_tool)

    logger.debug("MCP tools registered")
