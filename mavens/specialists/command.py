"""
CommandExec Agent
=================

Runs shell commands: explicit ones ("run `ls -la`") and the conventional
build/test/install commands of the detected project type ("build and test"
runs `npm run build` then `npm test` in a Node project). Also creates
directories ("mkdir src/components").

Several actions in one message run in the order they were mentioned and
stop at the first failure, so a broken build never proceeds to the tests.
"""

import os
import re
from typing import Sequence

from mavens.models import AgentResult, Category, ContextEntry, Intent, IntentMatch, Request
from mavens.project import detect_project_type, project_command
from mavens.specialists.base import SpecializedAgent
from mavens.tools import CancelSignal, ToolResult
from mavens.tools.executor import ToolCall

EXPLICIT_PATTERN = re.compile(
    r"\b(?:run|execute|exec)\s+(?:the\s+)?(?:command\s+)?"
    r"(?:`(?P<backtick>[^`]+)`|\"(?P<double>[^\"]+)\"|'(?P<single>[^']+)'|(?P<bare>.+))",
    re.IGNORECASE | re.DOTALL,
)

MKDIR_PATTERN = re.compile(
    r"\b(?:mkdir(?:\s+-p)?|(?:make|create|new)\s+(?:a\s+|an\s+|the\s+|new\s+)*(?:directory|folder|dir))"
    r"\s+(?:called\s+|named\s+)?[`'\"]?(?P<path>[^\s`'\"]+)",
    re.IGNORECASE,
)

ACTIONS = ("build", "test", "install")


class CommandExecAgent(SpecializedAgent):
    """Shell commands, project build/test/install and directory creation."""

    agent_id = "command"
    category = Category.COMMAND
    intents = (
        Intent("run", ("run", "execute", "exec"), 0.75),
        Intent("build", ("build", "compile"), 0.8),
        Intent("test", ("test", "tests", "run tests", "unit tests"), 0.8),
        Intent("install", ("install", "npm install", "pip install", "install dependencies"), 0.8),
        Intent(
            "mkdir",
            ("mkdir", "make directory", "create directory", "create folder", "make folder",
             "new directory", "new folder", "create a directory", "create a folder", "make a directory"),
            0.85,
        ),
    )

    async def run(
        self,
        request: Request,
        match: IntentMatch,
        cancel: CancelSignal | None,
        history: Sequence[ContextEntry]
    ) -> AgentResult:
        intents = [i for i in match.intents if i != "run"] or list(match.intents)

        if "mkdir" in intents:
            return await self._mkdir(request, cancel)

        project_actions = [i for i in intents if i in ACTIONS]
        if project_actions:
            return await self._project_actions(request, project_actions, cancel)

        return await self._explicit(request, cancel)

    async def _mkdir(self, request: Request, cancel: CancelSignal | None) -> AgentResult:
        found = MKDIR_PATTERN.search(request.message)
        if not found:
            return self.failure(
                "command: tell me the directory name, e.g. \"mkdir src/components\"",
                {"kind": "missing_argument", "argument": "path"},
            )

        path = os.path.expanduser(found.group("path"))
        if not os.path.isabs(path):
            path = os.path.join(request.working_directory, path)
        result = await self.tools.run("make_directory", {"path": os.path.normpath(path)}, cancel)
        return self.from_tool(result, "make_directory")

    async def _project_actions(
        self,
        request: Request,
        actions: list[str],
        cancel: CancelSignal | None
    ) -> AgentResult:
        cwd = request.working_directory
        project_type = detect_project_type(cwd)

        calls = []
        for action in actions:
            command = project_command(project_type, action, cwd)
            if command is None:
                return self.failure(
                    f"command: I can't tell how to {action} this project "
                    f"(no package.json, pyproject.toml, Cargo.toml, go.mod or pom.xml in {cwd})",
                    {"kind": "unknown_project", "project_type": project_type},
                )
            calls.append(ToolCall("run_command", {"command": command, "cwd": cwd}))

        self.logger.info(f"Running {len(calls)} {project_type} command(s)")
        executed = await self.tools.execute_all(calls, cancel, stop_on_failure=True)

        records = [{"project_type": project_type, **(c.result.data or {})} for c in executed]
        lines = [self._describe(c.arguments["command"], c.result) for c in executed]
        summary = "\n".join(lines)

        failed = next((c for c in executed if not c.result.success), None)
        if failed is not None or len(executed) < len(calls):
            skipped = [c.arguments["command"] for c in calls[len(executed):]]
            if skipped:
                summary += f"\nSkipped: {', '.join(skipped)}"
            return self.failure(
                summary,
                {
                    "kind": "command_failed",
                    "command": failed.arguments["command"] if failed else None,
                    "message": failed.result.error if failed else "aborted",
                },
                records,
            )
        return self.success(summary, records)

    async def _explicit(self, request: Request, cancel: CancelSignal | None) -> AgentResult:
        found = EXPLICIT_PATTERN.search(request.message)
        command = None
        if found:
            command = next(
                (found.group(g) for g in ("backtick", "double", "single", "bare") if found.group(g)),
                None,
            )
        command = command.strip().rstrip("?") if command else ""
        if not command:
            return self.failure(
                "command: tell me what to run, e.g. \"run `ls -la`\"",
                {"kind": "missing_argument", "argument": "command"},
            )

        result = await self.tools.run("run_command", {"command": command, "cwd": request.working_directory}, cancel)
        agent_result = self.from_tool(result, "run_command")
        if result.success:
            return self.success(self._describe(command, result), agent_result.payload["results"])
        return agent_result

    @staticmethod
    def _describe(command: str, result: ToolResult) -> str:
        if result.success:
            output = result.content.strip()
            return f"$ {command}\n{output}" if output else f"$ {command} (done)"
        return f"$ {command}\n{result.error}" + (
            f"\n{result.content}" if result.content and not result.content.startswith("Error:") else ""
        )
