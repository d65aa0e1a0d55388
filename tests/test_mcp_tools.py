"""Tests for the MCP tools."""

import json

import httpx
import pytest

from mavens.tools.executor import ToolExecutor
from mavens.tools.mcp import MCPProtocolError, MCPSession
from mavens.utils.config import reset_config

URL = "http://mcp.test/mcp"


def mock_server(calls: list) -> httpx.MockTransport:
    def handler(request: httpx.Request) -> httpx.Response:
        message = json.loads(request.content)
        calls.append((message["method"], request.headers.get("mcp-session-id")))

        if "id" not in message:
            return httpx.Response(202)
        if message["method"] == "initialize":
            return httpx.Response(
                200,
                json={"jsonrpc": "2.0", "id": message["id"], "result": {"protocolVersion": "2025-03-26"}},
                headers={"Mcp-Session-Id": "abc"},
            )
        if message["method"] == "tools/list":
            body = {"jsonrpc": "2.0", "id": message["id"], "result": {"tools": [{"name": "search"}]}}
            return httpx.Response(
                200,
                text=f"event: message\ndata: {json.dumps(body)}\n\n",
                headers={"content-type": "text/event-stream"},
            )
        return httpx.Response(
            200,
            json={"jsonrpc": "2.0", "id": message["id"], "error": {"code": -32601, "message": "Method not found"}},
        )

    return httpx.MockTransport(handler)


@pytest.mark.asyncio
async def test_session_handshake_and_sse_response():
    calls = []

    async with MCPSession(URL, transport=mock_server(calls)) as session:
        result = await session.request("tools/list")

    assert result == {"tools": [{"name": "search"}]}
    assert calls == [
        ("initialize", None),
        ("notifications/initialized", "abc"),
        ("tools/list", "abc"),
    ]


@pytest.mark.asyncio
async def test_json_rpc_errors_raise():
    async with MCPSession(URL, transport=mock_server([])) as session:
        with pytest.raises(MCPProtocolError) as info:
            await session.request("resources/list")

    assert info.value.code == -32601


@pytest.mark.asyncio
async def test_list_servers_from_configuration(monkeypatch):
    monkeypatch.setenv("MAVENS_MCP_SERVERS", "search=http://localhost:9000/mcp, docs=http://localhost:8811/mcp, broken")
    reset_config()

    result = await ToolExecutor().run("mcp_list_servers", {})

    assert [s["name"] for s in result.data["servers"]] == ["docs", "search"]


@pytest.mark.asyncio
async def test_tools_need_a_configured_server():
    result = await ToolExecutor().run("mcp_list_tools", {})

    assert not result.success
    assert "No MCP servers configured" in result.error


@pytest.mark.asyncio
async def test_unreachable_server_is_a_failed_result(monkeypatch):
    monkeypatch.setenv("MAVENS_MCP_SERVERS", "docs=http://127.0.0.1:9/mcp")
    reset_config()

    result = await ToolExecutor().run("mcp_call_tool", {"tool": "search", "server": "docs"})

    assert not result.success
    assert result.data == {"server": "docs", "url": "http://127.0.0.1:9/mcp"}
