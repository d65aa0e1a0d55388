"""Tests for the specialized agents, called directly."""

from datetime import datetime, timezone

import pytest

from mavens.models import Category, ContextEntry, Request, Status
from mavens.specialists import (
    AgentRegistry,
    CommandExecAgent,
    ConversationAgent,
    DatabaseAgent,
    FileOpsAgent,
    GitAgent,
    MCPAgent,
    QualityAgent,
)
from mavens.specialists.base import find_filenames, find_phrase, normalize_message
from mavens.specialists.conversation import GREETING_REPLY
from mavens.specialists.database import extract_sql
from mavens.specialists.git import extract_commit_message
from mavens.tools.executor import ToolExecutor

pytestmark = pytest.mark.asyncio


@pytest.fixture
def tools():
    return ToolExecutor()


def ask(message: str, cwd) -> Request:
    return Request(message, str(cwd), "s1")


# ==============================================================================
# Matching helpers
# ==============================================================================

async def test_normalize_and_find_phrase():
    tokens = normalize_message("Show `git status`, please!")

    assert tokens == ["show", "git", "status", "please"]
    assert find_phrase(tokens, "git status") == 1
    assert find_phrase(normalize_message("digit statuses"), "status") == -1


async def test_find_filenames():
    assert find_filenames("create demo.html and src/app.py, see https://x.io/a.html") == ["demo.html", "src/app.py"]
    assert find_filenames("list files") == []


async def test_extractors():
    assert extract_commit_message('commit with message "fix login"') == "fix login"
    assert extract_commit_message("commit") is None
    assert extract_sql("run `SELECT * FROM users` on shop.db") == "SELECT * FROM users"
    assert extract_sql("please select name from users where id = 1;") == "select name from users where id = 1;"
    assert extract_sql("select the best option") is None


async def test_match_strength_and_key(tools):
    match = GitAgent(tools).match(ask("git status", "/tmp"))

    assert match.strength == pytest.approx(0.95)
    assert match.intents == ("status",)
    assert match.pattern_key == "git:status"
    assert GitAgent(tools).can_handle(ask("hello there", "/tmp")) == 0.0


# ==============================================================================
# FileOps
# ==============================================================================

async def test_file_agent_creates_file_with_content(tools, workspace):
    result = await FileOpsAgent(tools).execute(ask("create demo.html with <h1>Hi</h1>", workspace))

    assert result.status == Status.SUCCESS
    assert (workspace / "demo.html").read_text() == "<h1>Hi</h1>"
    assert result.payload["results"][0]["action"] == "created"


async def test_file_agent_write_to_form(tools, workspace):
    await FileOpsAgent(tools).execute(ask('write "hello world" to notes/todo.txt', workspace))

    assert (workspace / "notes" / "todo.txt").read_text() == "hello world"


async def test_file_agent_reads_and_lists(tools, python_project):
    agent = FileOpsAgent(tools)

    read = await agent.execute(ask("show app.py", python_project))
    assert "def main" in read.human_summary

    listing = await agent.execute(ask("list files", python_project))
    assert listing.ok
    assert {e["name"] for e in listing.payload["results"][0]["entries"]} == {"app.py", "pyproject.toml"}


async def test_file_agent_find(tools, python_project):
    result = await FileOpsAgent(tools).execute(ask("find *.py", python_project))

    assert result.ok
    assert result.payload["results"][0]["matches"][0].endswith("app.py")


# ==============================================================================
# CommandExec
# ==============================================================================

async def test_command_agent_runs_explicit_command(tools, workspace):
    result = await CommandExecAgent(tools).execute(ask("run `echo hello`", workspace))

    assert result.ok
    assert result.human_summary == "$ echo hello\nhello"
    assert result.payload["results"][0]["exit_code"] == 0


async def test_command_agent_reports_failures(tools, workspace):
    result = await CommandExecAgent(tools).execute(ask("run `exit 4`", workspace))

    assert result.status == Status.ERROR
    assert result.error["kind"] == "tool_error"


async def test_command_agent_mkdir(tools, workspace):
    result = await CommandExecAgent(tools).execute(ask("mkdir src/lib", workspace))

    assert result.ok
    assert (workspace / "src" / "lib").is_dir()


async def test_command_agent_unknown_project(tools, workspace):
    result = await CommandExecAgent(tools).execute(ask("build the project", workspace))

    assert result.status == Status.ERROR
    assert result.error["kind"] == "unknown_project"


# ==============================================================================
# Git
# ==============================================================================

async def test_git_agent_status_and_commit(tools, git_repo):
    agent = GitAgent(tools)
    (git_repo / "app.py").write_text("x = 1\n")

    status = await agent.execute(ask("git status", git_repo))
    assert status.ok
    assert status.payload["results"][0]["operation"] == "status"
    assert status.payload["results"][0]["untracked"] == ["app.py"]

    commit = await agent.execute(ask("commit with message 'initial import'", git_repo))
    assert commit.ok
    assert commit.payload["results"][0]["message"] == "initial import"


async def test_git_agent_needs_commit_message(tools, workspace):
    result = await GitAgent(tools).execute(ask("commit", workspace))

    assert result.error["kind"] == "missing_argument"


async def test_followup_replays_previous_request(tools, git_repo):
    history = (
        ContextEntry(0, ask("git status", git_repo), "On branch", datetime.now(timezone.utc), frozenset({"git"}), ("git",)),
    )

    result = await GitAgent(tools).execute(ask("do it again", git_repo), history=history)

    assert result.ok
    assert result.payload["results"][0]["operation"] == "status"


# ==============================================================================
# Quality
# ==============================================================================

async def test_quality_agent_analyzes_project(tools, python_project):
    result = await QualityAgent(tools).execute(ask("analyze code quality", python_project))

    assert result.ok
    assert result.payload["results"][0]["score"] is not None


async def test_quality_agent_reviews_file(tools, python_project, fake_llm):
    result = await QualityAgent(tools, fake_llm).execute(ask("review app.py", python_project))

    assert result.ok
    assert result.human_summary.startswith("Review of file app.py")
    assert "def main" in fake_llm.prompts[0]


async def test_quality_review_with_model_down(tools, python_project, offline_llm):
    result = await QualityAgent(tools, offline_llm).execute(ask("review app.py", python_project))

    assert result.status == Status.ERROR
    assert result.error["endpoint"] == "http://localhost:1234"
    assert "http://localhost:1234" in result.human_summary


# ==============================================================================
# Database
# ==============================================================================

async def test_database_agent_connects_and_queries(tools, workspace):
    agent = DatabaseAgent(tools)

    connected = await agent.execute(ask("connect to sqlite:///shop.db", workspace))
    assert connected.ok

    created = await agent.execute(ask("create table users (id integer, name text)", workspace))
    assert created.ok

    await agent.execute(ask("insert into users values (1, 'ada')", workspace))
    selected = await agent.execute(ask("select name from users", workspace))

    assert selected.ok
    assert selected.payload["results"][-1]["rows"] == [["ada"]]


async def test_database_agent_needs_a_target(tools, workspace):
    agent = DatabaseAgent(tools)

    assert agent.match(ask("connect to the database", workspace)).intents == ()


# ==============================================================================
# MCP
# ==============================================================================

async def test_mcp_agent_lists_servers(tools, workspace):
    result = await MCPAgent(tools).execute(ask("list mcp servers", workspace))

    assert result.ok
    assert result.human_summary.startswith("No MCP servers configured")


# ==============================================================================
# Conversation
# ==============================================================================

async def test_conversation_greeting_is_short(tools, workspace):
    result = await ConversationAgent(tools).execute(ask("hi", workspace))

    assert result.ok
    assert result.human_summary == GREETING_REPLY
    assert len(result.human_summary) < 100


async def test_conversation_uses_model_for_questions(tools, workspace, fake_llm):
    result = await ConversationAgent(tools, fake_llm).execute(ask("what is a monad?", workspace))

    assert result.human_summary == "Looks good to me."
    assert "what is a monad?" in fake_llm.prompts[0]


async def test_conversation_reports_model_errors(tools, workspace, offline_llm):
    result = await ConversationAgent(tools, offline_llm).execute(ask("what is a monad?", workspace))

    assert result.status == Status.ERROR
    assert result.error["service"] == "lmstudio"
    assert "LM Studio" in result.human_summary


# ==============================================================================
# Registry
# ==============================================================================

class SecondGitAgent(GitAgent):
    agent_id = "git-mirror"


async def test_registry_allows_one_agent_per_category(tools):
    registry = AgentRegistry(fallback=ConversationAgent(tools))
    registry.register(GitAgent(tools))

    with pytest.raises(ValueError, match="already handled by 'git'"):
        registry.register(SecondGitAgent(tools))
    with pytest.raises(ValueError, match="already registered"):
        registry.register(GitAgent(tools))

    assert registry.agent_ids() == ["git"]
    assert registry.for_category(Category.GIT).agent_id == "git"
    assert registry.for_category(Category.CONVERSATION) is registry.fallback
    assert registry.for_category(Category.FILE) is None
