"""Tests for the tool registry, executor, filesystem and shell tools."""

import asyncio
import sys
import time

import pytest

from mavens.tools import Tool, ToolRegistry, ToolResult, create_tool_registry
from mavens.tools.executor import ToolCall, ToolExecutor
from mavens.tools.shell import run_process

pytestmark = pytest.mark.asyncio


def echo_tool(name: str = "echo") -> Tool:
    async def _echo(params: dict, cancel=None) -> ToolResult:
        if params["text"] == "boom":
            raise RuntimeError("exploded")
        return ToolResult.ok(params["text"])

    return Tool(
        name=name,
        description="Echo text back",
        parameters={"type": "object", "properties": {"text": {"type": "string"}}, "required": ["text"]},
        execute=_echo,
    )


# ==============================================================================
# Registry and executor
# ==============================================================================

async def test_registry_rejects_duplicates():
    registry = ToolRegistry()
    registry.register(echo_tool())

    with pytest.raises(ValueError):
        registry.register(echo_tool())


async def test_registry_validates_and_isolates_errors():
    registry = ToolRegistry()
    registry.register(echo_tool())

    assert (await registry.execute("echo", {"text": "hi"})).content == "hi"

    missing = await registry.execute("echo", {"text": "  "})
    assert not missing.success
    assert missing.error == "Parameter 'text' is required"

    crashed = await registry.execute("echo", {"text": "boom"})
    assert not crashed.success
    assert crashed.error == "exploded"

    unknown = await registry.execute("nope", {})
    assert unknown.error == "Tool 'nope' not found"


async def test_default_registry_has_every_builtin_tool():
    names = set(create_tool_registry().list_names())

    assert {
        "write_file", "read_file", "list_directory", "find_files",
        "run_command", "make_directory",
        "git_status", "git_commit", "git_push", "git_pull", "git_log", "git_diff", "git_branch",
        "analyze_quality",
        "db_connect", "db_query", "db_list_tables", "db_list_connections",
        "mcp_list_servers", "mcp_list_tools", "mcp_call_tool",
    } <= names


async def test_execute_all_stops_on_failure():
    registry = ToolRegistry()
    registry.register(echo_tool())
    executor = ToolExecutor(registry)

    results = await executor.execute_all(
        [ToolCall("echo", {"text": "a"}), ToolCall("echo", {"text": "boom"}), ToolCall("echo", {"text": "c"})],
        stop_on_failure=True,
    )

    assert [r.result.success for r in results] == [True, False]


async def test_execute_all_skips_calls_after_abort():
    registry = ToolRegistry()
    registry.register(echo_tool())
    executor = ToolExecutor(registry)
    cancel = asyncio.Event()
    cancel.set()

    assert await executor.execute_all([ToolCall("echo", {"text": "a"})], cancel) == []


# ==============================================================================
# Filesystem
# ==============================================================================

async def test_write_then_read_file(workspace):
    executor = ToolExecutor()
    path = str(workspace / "site" / "demo.html")

    created = await executor.run("write_file", {"file_path": path, "content": "<h1>Hi</h1>"})
    assert created.success
    assert created.display_summary == "Created demo.html"
    assert created.data["action"] == "created"
    assert created.data["language"] == "html"

    updated = await executor.run("write_file", {"file_path": path, "content": "<h1>Bye</h1>"})
    assert updated.data["action"] == "updated"

    read = await executor.run("read_file", {"file_path": path})
    assert read.content == "<h1>Bye</h1>"


async def test_relative_paths_are_rejected(workspace):
    result = await ToolExecutor().run("write_file", {"file_path": "demo.html", "content": "x"})

    assert not result.success
    assert "absolute" in result.error


async def test_read_missing_file(workspace):
    result = await ToolExecutor().run("read_file", {"file_path": str(workspace / "nope.txt")})

    assert not result.success
    assert result.error.startswith("File not found")


async def test_list_directory_sorts_directories_first(workspace):
    (workspace / "b.txt").write_text("b")
    (workspace / "a.py").write_text("a")
    (workspace / "src").mkdir()
    (workspace / ".hidden").write_text("h")

    result = await ToolExecutor().run("list_directory", {"path": str(workspace)})

    assert [e["name"] for e in result.data["entries"]] == ["src", "a.py", "b.txt"]
    assert result.data["directories"] == 1
    assert result.data["files"] == 2


async def test_find_files_by_glob_and_substring(workspace):
    (workspace / "src").mkdir()
    (workspace / "src" / "app.py").write_text("")
    (workspace / "src" / "App.test.js").write_text("")
    (workspace / "node_modules").mkdir()
    (workspace / "node_modules" / "dep.py").write_text("")

    by_glob = await ToolExecutor().run("find_files", {"root": str(workspace), "pattern": "*.py"})
    assert [m.rsplit("/", 1)[-1] for m in by_glob.data["matches"]] == ["app.py"]

    by_word = await ToolExecutor().run("find_files", {"root": str(workspace), "pattern": "app"})
    assert len(by_word.data["matches"]) == 2


# ==============================================================================
# Shell
# ==============================================================================

async def test_run_command_captures_output(workspace):
    result = await ToolExecutor().run("run_command", {"command": "echo hello", "cwd": str(workspace)})

    assert result.success
    assert result.content == "hello"
    assert result.data["exit_code"] == 0


async def test_run_command_non_zero_exit_fails(workspace):
    result = await ToolExecutor().run("run_command", {"command": "echo oops >&2; exit 3", "cwd": str(workspace)})

    assert not result.success
    assert "exit code 3" in result.error
    assert result.content == "oops"


async def test_run_process_timeout_kills(workspace):
    started = time.monotonic()
    outcome = await run_process([sys.executable, "-c", "import time; time.sleep(10)"], str(workspace), timeout=0.5)

    assert outcome.timed_out
    assert not outcome.ok
    assert time.monotonic() - started < 5


async def test_run_process_abort_signal_kills(workspace):
    cancel = asyncio.Event()
    asyncio.get_running_loop().call_later(0.2, cancel.set)

    started = time.monotonic()
    outcome = await run_process("sleep 10", str(workspace), timeout=30, cancel=cancel)

    assert outcome.cancelled
    assert outcome.exit_code != 0
    assert time.monotonic() - started < 5


async def test_shell_timeout_kills_commands_the_shell_started(workspace):
    started = time.monotonic()
    outcome = await run_process("sleep 30; echo finished", str(workspace), timeout=0.5)

    assert outcome.timed_out
    assert "finished" not in outcome.stdout
    assert time.monotonic() - started < 5


async def test_cancelled_task_kills_background_children(workspace):
    task = asyncio.create_task(run_process("sleep 30 & sleep 30; wait", str(workspace), timeout=60))
    await asyncio.sleep(0.3)

    started = time.monotonic()
    task.cancel()
    with pytest.raises(asyncio.CancelledError):
        await task

    assert time.monotonic() - started < 5


async def test_make_directory(workspace):
    target = workspace / "src" / "components"

    first = await ToolExecutor().run("make_directory", {"path": str(target)})
    second = await ToolExecutor().run("make_directory", {"path": str(target)})

    assert target.is_dir()
    assert first.data["created"] is True
    assert second.data["created"] is False
