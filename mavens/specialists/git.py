"""
Git Agent
=========

Answers repository questions and performs git operations in the request's
working directory:

    "git status"                         -> git_status
    "commit with message 'fix login'"    -> git_commit
    "commit 'wip' and push"              -> git_commit, git_push
    "pull", "show git log", "git diff"   -> git_pull, git_log, git_diff
    "create branch feature/login"        -> git_branch

Operations run in the order mentioned and stop at the first failure.
"""

import re
from typing import Sequence

from mavens.models import AgentResult, Category, ContextEntry, Intent, IntentMatch, Request
from mavens.specialists.base import SpecializedAgent
from mavens.tools import CancelSignal
from mavens.tools.executor import ToolCall

MESSAGE_PATTERN = re.compile(
    r"(?:message|msg|-m)\s*[:=]?\s*(?:\"(?P<double>[^\"]+)\"|'(?P<single>[^']+)'|(?P<bare>[^\n]+?)(?:\s+and\s+push)?$)"
    r"|\"(?P<quoted>[^\"]+)\"|'(?P<quoted_single>[^']+)'",
    re.IGNORECASE,
)

BRANCH_PATTERN = re.compile(
    r"\b(?:create|new|make|checkout\s+-b|switch\s+to\s+a\s+new)\s+(?:a\s+)?(?:new\s+)?branch\s+"
    r"(?:called\s+|named\s+)?[`'\"]?(?P<name>[\w./-]+)",
    re.IGNORECASE,
)

LOG_LIMIT_PATTERN = re.compile(r"\b(?:last|recent)\s+(?P<count>\d+)\b", re.IGNORECASE)

OPERATIONS = {
    "status": "git_status",
    "commit": "git_commit",
    "push": "git_push",
    "pull": "git_pull",
    "log": "git_log",
    "diff": "git_diff",
    "branch": "git_branch",
}


def extract_commit_message(message: str) -> str | None:
    found = MESSAGE_PATTERN.search(message)
    if not found:
        return None
    for group in ("double", "single", "bare", "quoted", "quoted_single"):
        if found.group(group):
            return found.group(group).strip()
    return None


class GitAgent(SpecializedAgent):
    """Repository status and git operations."""

    agent_id = "git"
    category = Category.GIT
    intents = (
        Intent("status", ("git status", "status", "uncommitted", "repo status", "repository status"), 0.85),
        Intent("commit", ("commit", "git commit"), 0.85),
        Intent("push", ("push", "git push"), 0.85),
        Intent("pull", ("pull", "git pull"), 0.85),
        Intent("log", ("git log", "log", "history", "recent commits", "commits"), 0.8),
        Intent("diff", ("git diff", "diff", "what changed", "changes"), 0.8),
        Intent("branch", ("branch", "branches", "new branch", "create branch", "git branch"), 0.8),
    )

    async def run(
        self,
        request: Request,
        match: IntentMatch,
        cancel: CancelSignal | None,
        history: Sequence[ContextEntry]
    ) -> AgentResult:
        cwd = request.working_directory
        calls = []
        for intent in match.intents or ("status",):
            params = {"cwd": cwd}

            if intent == "commit":
                message = extract_commit_message(request.message)
                if not message:
                    return self.failure(
                        "git: a commit needs a message, e.g. commit with message \"fix login redirect\"",
                        {"kind": "missing_argument", "argument": "message"},
                    )
                params["message"] = message
            elif intent == "branch":
                found = BRANCH_PATTERN.search(request.message)
                if found:
                    params["name"] = found.group("name")
            elif intent == "log":
                found = LOG_LIMIT_PATTERN.search(request.message)
                if found:
                    params["limit"] = int(found.group("count"))
            elif intent == "diff":
                params["staged"] = "staged" in request.message.lower()

            calls.append(ToolCall(OPERATIONS[intent], params))

        executed = await self.tools.execute_all(calls, cancel, stop_on_failure=True)

        records = []
        lines = []
        for call in executed:
            result = call.result
            records.append({"operation": call.name.removeprefix("git_"), **(result.data if isinstance(result.data, dict) else {})})
            if result.success:
                detail = result.content.strip()
                lines.append(result.display_summary if detail in ("", result.display_summary) else f"{result.display_summary}\n{detail}")
            else:
                lines.append(f"git {call.name.removeprefix('git_')}: {result.error}")

        failed = next((c for c in executed if not c.result.success), None)
        if failed is not None or len(executed) < len(calls):
            return self.failure(
                "\n".join(lines) or "git: aborted",
                {
                    "kind": "git_error",
                    "operation": failed.name if failed else None,
                    "message": failed.result.error if failed else "aborted",
                },
                records,
            )
        return self.success("\n".join(lines), records)
