"""Tests for the git tools."""

import shutil

import pytest

from mavens.tools.executor import ToolExecutor
from mavens.tools.git import format_status, parse_log, parse_numstat, parse_status


def test_parse_status_with_tracking_and_changes():
    output = "\n".join([
        "## main...origin/main [ahead 2, behind 1]",
        "M  staged.py",
        " M modified.py",
        "MM both.py",
        "?? new.txt",
        "UU conflict.py",
        "R  old.py -> renamed.py",
    ])

    status = parse_status(output)

    assert status["branch"] == "main"
    assert status["upstream"] == "origin/main"
    assert (status["ahead"], status["behind"]) == (2, 1)
    assert status["staged"] == ["staged.py", "both.py", "renamed.py"]
    assert status["unstaged"] == ["modified.py", "both.py"]
    assert status["untracked"] == ["new.txt"]
    assert status["conflicts"] == ["conflict.py"]
    assert status["clean"] is False


def test_parse_status_fresh_repository():
    status = parse_status("## No commits yet on master\n")

    assert status["branch"] == "master"
    assert status["upstream"] is None
    assert status["clean"] is True
    assert "Working tree clean" in format_status(status)


def test_parse_status_detached_head():
    assert parse_status("## HEAD (no branch)\n")["branch"] == "HEAD (detached)"


def test_parse_status_dotted_branch_name():
    status = parse_status("## release/1.2...origin/release/1.2\n")

    assert status["branch"] == "release/1.2"
    assert status["upstream"] == "origin/release/1.2"


def test_parse_log_and_numstat():
    commits = parse_log("abc123\x1fDev\x1f2025-06-01\x1fInitial commit\nbroken line")
    assert commits == [{"hash": "abc123", "author": "Dev", "date": "2025-06-01", "subject": "Initial commit"}]

    files = parse_numstat("3\t1\tapp.py\n-\t-\tlogo.png\n")
    assert files == [
        {"path": "app.py", "additions": 3, "deletions": 1},
        {"path": "logo.png", "additions": 0, "deletions": 0},
    ]


@pytest.mark.asyncio
async def test_status_commit_and_log_in_real_repository(git_repo):
    executor = ToolExecutor()
    cwd = str(git_repo)
    (git_repo / "app.py").write_text("print('hi')\n")

    status = await executor.run("git_status", {"cwd": cwd})
    assert status.success
    assert status.data["untracked"] == ["app.py"]

    commit = await executor.run("git_commit", {"cwd": cwd, "message": "Add app"})
    assert commit.success
    assert commit.data["hash"]

    log = await executor.run("git_log", {"cwd": cwd, "limit": 5})
    assert [c["subject"] for c in log.data["commits"]] == ["Add app"]

    clean = await executor.run("git_status", {"cwd": cwd})
    assert clean.data["clean"] is True

    nothing = await executor.run("git_commit", {"cwd": cwd, "message": "Again"})
    assert not nothing.success
    assert nothing.error.startswith("Nothing to commit")


@pytest.mark.asyncio
async def test_diff_and_branch(git_repo):
    executor = ToolExecutor()
    cwd = str(git_repo)
    (git_repo / "app.py").write_text("a\n")
    await executor.run("git_commit", {"cwd": cwd, "message": "init"})
    (git_repo / "app.py").write_text("a\nb\n")

    diff = await executor.run("git_diff", {"cwd": cwd})
    assert diff.data["files"] == [{"path": "app.py", "additions": 1, "deletions": 0}]

    created = await executor.run("git_branch", {"cwd": cwd, "name": "feature"})
    assert created.success

    listing = await executor.run("git_branch", {"cwd": cwd})
    assert listing.data["current"] == "feature"


@pytest.mark.asyncio
async def test_status_outside_repository(workspace):
    if shutil.which("git") is None:
        pytest.skip("git is not installed")

    result = await ToolExecutor().run("git_status", {"cwd": str(workspace)})

    assert not result.success
    assert result.error == "Not a git repository"
