"""
Git Tools
=========

Tools for inspecting and changing a git working tree: status, commit,
push, pull, log, diff and branch.

Every tool shells out to the `git` executable through run_process() with
an argv list (no shell quoting involved) and parses its machine-readable
output:

    git status --porcelain=v1 --branch      -> branch, ahead/behind, file states
    git log --pretty=format:<fields>        -> commit records
    git diff --numstat                      -> per-file additions/deletions

Git Status Notes:
- The "## " header line carries the branch and "[ahead N, behind M]"
- XY status codes: X is the index (staged) side, Y the worktree side
- "??" is untracked; any "U", "AA" or "DD" pair is an unmerged conflict
"""

import re
import shutil

from mavens.tools import CancelSignal, Tool, ToolRegistry, ToolResult
from mavens.tools.shell import ProcessOutcome, run_process
from mavens.utils.logger import Logger

logger = Logger("GitTools")

FIELD_SEP = "\x1f"
CONFLICT_CODES = frozenset({"DD", "AU", "UD", "UA", "DU", "AA", "UU"})
BRANCH_HEADER = re.compile(
    r"^## (?:No commits yet on |Initial commit on )?(?P<branch>[^.\s]+(?:\.[^.\s]+)*?)"
    r"(?:\.\.\.(?P<upstream>\S+))?(?: \[(?P<tracking>[^\]]+)\])?$"
)


async def _git(args: list[str], cwd: str, cancel: CancelSignal | None = None) -> ProcessOutcome:
    return await run_process(["git", *args], cwd, cancel=cancel)


def _git_available() -> str | None:
    if shutil.which("git") is None:
        return "git is not installed or not on PATH"
    return None


def _failure(outcome: ProcessOutcome, action: str) -> ToolResult:
    """Turn a failed git invocation into a readable ToolResult."""
    message = (outcome.stderr or outcome.stdout).strip()
    if "not a git repository" in message.lower():
        return ToolResult.fail("Not a git repository", data=outcome.to_dict())
    if outcome.cancelled:
        return ToolResult.fail(f"git {action} aborted", data=outcome.to_dict())
    if outcome.timed_out:
        return ToolResult.fail(f"git {action} timed out", data=outcome.to_dict())
    first_line = message.splitlines()[0] if message else f"exit code {outcome.exit_code}"
    return ToolResult.fail(f"git {action} failed: {first_line}", data=outcome.to_dict())


# ==============================================================================
# Tool: Status
# ==============================================================================

def parse_status(output: str) -> dict:
    """
    Parse `git status --porcelain=v1 --branch` output.

    Returns:
        Dict with branch, upstream, ahead, behind, staged, unstaged,
        untracked, conflicts and a clean flag
    """
    status = {
        "branch": None,
        "upstream": None,
        "ahead": 0,
        "behind": 0,
        "staged": [],
        "unstaged": [],
        "untracked": [],
        "conflicts": [],
    }

    for line in output.splitlines():
        if line.startswith("## "):
            if line.startswith("## HEAD (no branch)"):
                status["branch"] = "HEAD (detached)"
                continue
            match = BRANCH_HEADER.match(line)
            if match:
                status["branch"] = match.group("branch")
                status["upstream"] = match.group("upstream")
                tracking = match.group("tracking") or ""
                ahead = re.search(r"ahead (\d+)", tracking)
                behind = re.search(r"behind (\d+)", tracking)
                status["ahead"] = int(ahead.group(1)) if ahead else 0
                status["behind"] = int(behind.group(1)) if behind else 0
            continue

        if len(line) < 4:
            continue

        code, path = line[:2], line[3:]
        # Renames are reported as "old -> new"; keep the new name
        if " -> " in path:
            path = path.split(" -> ", 1)[1]

        if code == "??":
            status["untracked"].append(path)
        elif code in CONFLICT_CODES:
            status["conflicts"].append(path)
        else:
            if code[0] not in (" ", "?"):
                status["staged"].append(path)
            if code[1] not in (" ", "?"):
                status["unstaged"].append(path)

    status["clean"] = not (
        status["staged"] or status["unstaged"] or status["untracked"] or status["conflicts"]
    )
    return status


def format_status(status: dict) -> str:
    lines = [f"On branch {status['branch'] or 'unknown'}"]
    if status["ahead"] or status["behind"]:
        lines.append(f"Ahead {status['ahead']}, behind {status['behind']} of {status['upstream']}")
    if status["clean"]:
        lines.append("Working tree clean")
        return "\n".join(lines)

    for label, key in (
        ("Staged", "staged"),
        ("Modified", "unstaged"),
        ("Untracked", "untracked"),
        ("Conflicts", "conflicts"),
    ):
        if status[key]:
            lines.append(f"{label} ({len(status[key])}): {', '.join(status[key])}")
    return "\n".join(lines)


async def _status(params: dict, cancel: CancelSignal | None = None) -> ToolResult:
    """Report branch, tracking and file states of the working tree."""
    outcome = await _git(["status", "--porcelain=v1", "--branch"], params["cwd"], cancel)
    if not outcome.ok:
        return _failure(outcome, "status")

    status = parse_status(outcome.stdout)
    changed = len(status["staged"]) + len(status["unstaged"]) + len(status["untracked"])
    summary = (
        f"On branch {status['branch']}, working tree clean"
        if status["clean"]
        else f"On branch {status['branch']}, {changed} changed file(s)"
    )
    if status["conflicts"]:
        summary += f", {len(status['conflicts'])} conflict(s)"

    return ToolResult.ok(content=format_status(status), display_summary=summary, data=status)


status_tool = Tool(
    name="git_status",
    description="Show the branch, ahead/behind counts and changed files of a git repository.",
    parameters={
        "type": "object",
        "properties": {
            "cwd": {"type": "string", "description": "Repository directory"}
        },
        "required": ["cwd"]
    },
    execute=_status,
    validator=lambda params: _git_available()
)


# ==============================================================================
# Tool: Commit
# ==============================================================================

async def _commit(params: dict, cancel: CancelSignal | None = None) -> ToolResult:
    """
    Stage and commit.

    Stages the listed files, or everything (`git add -A`) when none are given.
    """
    cwd = params["cwd"]
    message = params["message"].strip()
    files = params.get("files") or []

    add = await _git(["add", "--", *files] if files else ["add", "-A"], cwd, cancel)
    if not add.ok:
        return _failure(add, "add")

    outcome = await _git(["commit", "-m", message], cwd, cancel)
    if not outcome.ok:
        text = (outcome.stdout + outcome.stderr).lower()
        if "nothing to commit" in text:
            return ToolResult.fail("Nothing to commit, working tree clean", data=outcome.to_dict())
        return _failure(outcome, "commit")

    head = await _git(["rev-parse", "--short", "HEAD"], cwd, cancel)
    commit_hash = head.stdout.strip() if head.ok else None

    return ToolResult.ok(
        content=outcome.stdout.strip(),
        display_summary=f"Committed {commit_hash}: {message}" if commit_hash else f"Committed: {message}",
        data={"hash": commit_hash, "message": message, "files": files or "all"}
    )


commit_tool = Tool(
    name="git_commit",
    description="Stage changes and create a commit with the given message.",
    parameters={
        "type": "object",
        "properties": {
            "cwd": {"type": "string", "description": "Repository directory"},
            "message": {"type": "string", "description": "Commit message"},
            "files": {
                "type": "array",
                "items": {"type": "string"},
                "description": "Files to stage (default: all changes)"
            }
        },
        "required": ["cwd", "message"]
    },
    execute=_commit,
    validator=lambda params: _git_available()
)


# ==============================================================================
# Tool: Push / Pull
# ==============================================================================

def _remote_args(params: dict) -> list[str]:
    args = []
    if params.get("remote"):
        args.append(params["remote"])
        if params.get("branch"):
            args.append(params["branch"])
    return args


async def _push(params: dict, cancel: CancelSignal | None = None) -> ToolResult:
    outcome = await _git(["push", *_remote_args(params)], params["cwd"], cancel)
    if not outcome.ok:
        return _failure(outcome, "push")

    # git reports push progress on stderr
    detail = (outcome.stderr or outcome.stdout).strip()
    return ToolResult.ok(
        content=detail or "Pushed",
        display_summary="Pushed to remote" if "up-to-date" not in detail else "Everything up-to-date",
        data=outcome.to_dict()
    )


async def _pull(params: dict, cancel: CancelSignal | None = None) -> ToolResult:
    outcome = await _git(["pull", *_remote_args(params)], params["cwd"], cancel)
    if not outcome.ok:
        return _failure(outcome, "pull")

    detail = outcome.stdout.strip()
    return ToolResult.ok(
        content=detail or "Pulled",
        display_summary="Already up to date" if "up to date" in detail.lower() else "Pulled latest changes",
        data=outcome.to_dict()
    )


_remote_parameters = {
    "type": "object",
    "properties": {
        "cwd": {"type": "string", "description": "Repository directory"},
        "remote": {"type": "string", "description": "Remote name (default: tracking remote)"},
        "branch": {"type": "string", "description": "Branch name (used with remote)"}
    },
    "required": ["cwd"]
}

push_tool = Tool(
    name="git_push",
    description="Push local commits to the remote.",
    parameters=_remote_parameters,
    execute=_push,
    validator=lambda params: _git_available()
)

pull_tool = Tool(
    name="git_pull",
    description="Fetch and merge changes from the remote.",
    parameters=_remote_parameters,
    execute=_pull,
    validator=lambda params: _git_available()
)


# ==============================================================================
# Tool: Log
# ==============================================================================

def parse_log(output: str) -> list[dict]:
    commits = []
    for line in output.splitlines():
        parts = line.split(FIELD_SEP)
        if len(parts) != 4:
            continue
        commit_hash, author, date, subject = parts
        commits.append({"hash": commit_hash, "author": author, "date": date, "subject": subject})
    return commits


async def _log(params: dict, cancel: CancelSignal | None = None) -> ToolResult:
    """List recent commits."""
    limit = int(params.get("limit") or 10)
    fmt = FIELD_SEP.join(["%h", "%an", "%ad", "%s"])
    outcome = await _git(
        ["log", f"-n{limit}", f"--pretty=format:{fmt}", "--date=short"], params["cwd"], cancel
    )
    if not outcome.ok:
        if "does not have any commits" in outcome.stderr:
            return ToolResult.ok("No commits yet", data={"commits": []})
        return _failure(outcome, "log")

    commits = parse_log(outcome.stdout)
    content = "\n".join(f"{c['hash']} {c['date']} {c['author']}: {c['subject']}" for c in commits)
    return ToolResult.ok(
        content=content or "No commits yet",
        display_summary=f"Last {len(commits)} commit(s)",
        data={"commits": commits}
    )


log_tool = Tool(
    name="git_log",
    description="Show recent commits (hash, author, date, subject).",
    parameters={
        "type": "object",
        "properties": {
            "cwd": {"type": "string", "description": "Repository directory"},
            "limit": {"type": "integer", "description": "Number of commits (default: 10)"}
        },
        "required": ["cwd"]
    },
    execute=_log,
    validator=lambda params: _git_available()
)


# ==============================================================================
# Tool: Diff
# ==============================================================================

def parse_numstat(output: str) -> list[dict]:
    files = []
    for line in output.splitlines():
        parts = line.split("\t")
        if len(parts) != 3:
            continue
        added, deleted, path = parts
        files.append({
            "path": path,
            # Binary files report "-" for both counts
            "additions": int(added) if added.isdigit() else 0,
            "deletions": int(deleted) if deleted.isdigit() else 0,
        })
    return files


async def _diff(params: dict, cancel: CancelSignal | None = None) -> ToolResult:
    """Summarize changes: per-file line counts plus the patch text."""
    cwd = params["cwd"]
    staged = ["--cached"] if params.get("staged") else []

    numstat = await _git(["diff", *staged, "--numstat"], cwd, cancel)
    if not numstat.ok:
        return _failure(numstat, "diff")

    files = parse_numstat(numstat.stdout)
    if not files:
        label = "staged changes" if staged else "unstaged changes"
        return ToolResult.ok(f"No {label}", data={"files": [], "staged": bool(staged)})

    patch = await _git(["diff", *staged], cwd, cancel)
    additions = sum(f["additions"] for f in files)
    deletions = sum(f["deletions"] for f in files)

    return ToolResult.ok(
        content=patch.stdout if patch.ok else numstat.stdout,
        display_summary=f"{len(files)} file(s) changed, +{additions} -{deletions}",
        data={
            "files": files,
            "staged": bool(staged),
            "additions": additions,
            "deletions": deletions,
        }
    )


diff_tool = Tool(
    name="git_diff",
    description="Show uncommitted changes (or staged changes) with per-file line counts.",
    parameters={
        "type": "object",
        "properties": {
            "cwd": {"type": "string", "description": "Repository directory"},
            "staged": {"type": "boolean", "description": "Diff the index instead of the worktree"}
        },
        "required": ["cwd"]
    },
    execute=_diff,
    validator=lambda params: _git_available()
)


# ==============================================================================
# Tool: Branch
# ==============================================================================

async def _branch(params: dict, cancel: CancelSignal | None = None) -> ToolResult:
    """List branches, or create (and switch to) a new one."""
    cwd = params["cwd"]
    name = (params.get("name") or "").strip()

    if name:
        outcome = await _git(["checkout", "-b", name], cwd, cancel)
        if not outcome.ok:
            return _failure(outcome, "branch")
        return ToolResult.ok(
            content=f"Switched to a new branch '{name}'",
            display_summary=f"Created branch {name}",
            data={"created": name}
        )

    outcome = await _git(["branch", "--list", "--no-color"], cwd, cancel)
    if not outcome.ok:
        return _failure(outcome, "branch")

    branches = []
    current = None
    for line in outcome.stdout.splitlines():
        if not line.strip():
            continue
        branch = line[2:].strip()
        if line.startswith("*"):
            current = branch
        branches.append(branch)

    return ToolResult.ok(
        content="\n".join(f"{'* ' if b == current else '  '}{b}" for b in branches) or "No branches yet",
        display_summary=f"{len(branches)} branch(es), current: {current or 'none'}",
        data={"branches": branches, "current": current}
    )


branch_tool = Tool(
    name="git_branch",
    description="List branches, or create and switch to a new branch when a name is given.",
    parameters={
        "type": "object",
        "properties": {
            "cwd": {"type": "string", "description": "Repository directory"},
            "name": {"type": "string", "description": "New branch name (omit to list)"}
        },
        "required": ["cwd"]
    },
    execute=_branch,
    validator=lambda params: _git_available()
)


# ==============================================================================
# Register All Git Tools
# ==============================================================================

def register_git_tools(registry: ToolRegistry) -> None:
    """Register all git tools with a registry."""
    registry.register(status_tool)
    registry.register(commit_tool)
    registry.register(push_tool)
    registry.register(pull_tool)
    registry.register(log_tool)
    registry.register(diff_tool)
    registry.register(branch_tool)

    logger.debug("Git tools registered")
