"""
FileOps Agent
=============

Creates, reads, lists and finds files in the request's working directory.

    "create demo.html with <h1>Hi</h1>"   -> write_file
    "show me src/app.py"                  -> read_file
    "list files in src"                   -> list_directory
    "find *.py"                           -> find_files

Create and read only apply when the message names something that looks
like a file, so "create a branch" or "show git status" never reach this
agent.
"""

import os
import re
from typing import Sequence

from mavens.models import AgentResult, Category, ContextEntry, Intent, IntentMatch, Request
from mavens.specialists.base import SpecializedAgent, find_filenames, find_phrase
from mavens.tools import CancelSignal

CREATE_PATTERN = re.compile(
    r"\b(?:create|write|save|make)\s+(?:a\s+|an\s+|the\s+|new\s+)*(?:file\s+)?"
    r"(?:called\s+|named\s+)?[`'\"]?(?P<name>[^\s`'\"]+)[`'\"]?"
    r"(?:\s+(?:with|containing|as|that\s+says)\s+(?P<content>.+))?",
    re.IGNORECASE | re.DOTALL,
)

WRITE_TO_PATTERN = re.compile(
    r"\b(?:write|save|put)\s+(?P<content>.+?)\s+(?:to|into|in)\s+[`'\"]?(?P<name>[^\s`'\"]+\.\w+)[`'\"]?\s*$",
    re.IGNORECASE | re.DOTALL,
)

FIND_PATTERN = re.compile(
    r"\b(?:find|locate|search\s+for|where\s+is|where\s+are)\s+(?:all\s+|the\s+|any\s+)*"
    r"(?:files?\s+)?(?:named\s+|called\s+|matching\s+)?[`'\"]?(?P<pattern>[^\s`'\"]+)",
    re.IGNORECASE,
)

DIRECTORY_PATTERN = re.compile(r"\b(?:in|of|inside|under)\s+[`'\"]?(?P<path>[^\s`'\"?]+)", re.IGNORECASE)

FILE_WORDS = {"file", "files", "all", "the", "any", "every"}
DATABASE_WORDS = {"database", "db", "sqlite", "table", "tables"}


def strip_quotes(text: str) -> str:
    text = text.strip()
    if text.startswith("```") and text.endswith("```") and len(text) >= 6:
        body = text[3:-3]
        # Drop a language tag on the opening fence
        first, _, rest = body.partition("\n")
        return rest if rest and re.fullmatch(r"\w*", first.strip()) else body
    for quote in ("`", '"', "'"):
        if len(text) >= 2 and text.startswith(quote) and text.endswith(quote):
            return text[1:-1]
    return text


class FileOpsAgent(SpecializedAgent):
    """File creation, reading, listing and search."""

    agent_id = "file"
    category = Category.FILE
    intents = (
        Intent("create", ("create", "write", "save", "make", "new file"), 0.8),
        Intent("read", ("read", "show", "cat", "open", "view", "display", "contents of"), 0.7),
        Intent(
            "list",
            ("list files", "ls", "list directory", "list the files", "show files",
             "show the files", "what files", "directory listing", "list contents"),
            0.75,
        ),
        Intent("find", ("find", "locate", "search for", "where is", "where are"), 0.7),
    )

    def intent_applies(self, intent: Intent, request: Request, tokens: list[str]) -> bool:
        if intent.name not in ("create", "read"):
            return True
        if DATABASE_WORDS.intersection(tokens):
            return False

        names = find_filenames(request.message)
        if intent.name == "create":
            return bool(names) or find_phrase(tokens, "new file") >= 0 or "file" in tokens
        return bool(names)

    def _resolve(self, request: Request, path: str) -> str:
        path = os.path.expanduser(path)
        return os.path.normpath(path if os.path.isabs(path) else os.path.join(request.working_directory, path))

    async def run(
        self,
        request: Request,
        match: IntentMatch,
        cancel: CancelSignal | None,
        history: Sequence[ContextEntry]
    ) -> AgentResult:
        intent = match.intents[0] if match.intents else "list"
        self.logger.debug(f"Handling {intent}")

        if intent == "create":
            return await self._create(request, cancel)
        if intent == "read":
            return await self._read(request, cancel)
        if intent == "find":
            return await self._find(request, cancel)
        return await self._list(request, cancel)

    async def _create(self, request: Request, cancel: CancelSignal | None) -> AgentResult:
        match = WRITE_TO_PATTERN.search(request.message) or CREATE_PATTERN.search(request.message)
        names = find_filenames(request.message)
        name = match.group("name") if match else None
        if not name or (names and name not in names and "." not in name):
            name = names[0] if names else None
        if not name:
            return self.failure(
                "file: tell me which file to create, e.g. \"create demo.html with <h1>Hi</h1>\"",
                {"kind": "missing_argument", "argument": "file_path"},
            )

        content = strip_quotes(match.group("content")) if match and match.group("content") else ""
        path = self._resolve(request, name)
        result = await self.tools.run("write_file", {"file_path": path, "content": content}, cancel)
        return self.from_tool(result, "write_file")

    async def _read(self, request: Request, cancel: CancelSignal | None) -> AgentResult:
        names = find_filenames(request.message)
        path = self._resolve(request, names[0])
        result = await self.tools.run("read_file", {"file_path": path}, cancel)
        return self.from_tool(result, "read_file", detail=True)

    async def _list(self, request: Request, cancel: CancelSignal | None) -> AgentResult:
        target = request.working_directory
        found = DIRECTORY_PATTERN.search(request.message)
        if found:
            candidate = self._resolve(request, found.group("path").rstrip("."))
            if os.path.isdir(candidate):
                target = candidate

        result = await self.tools.run("list_directory", {"path": target}, cancel)
        return self.from_tool(result, "list_directory", detail=True)

    async def _find(self, request: Request, cancel: CancelSignal | None) -> AgentResult:
        found = FIND_PATTERN.search(request.message)
        pattern = found.group("pattern").rstrip(".?") if found else ""
        if not pattern or pattern.lower() in FILE_WORDS:
            return self.failure(
                "file: tell me what to look for, e.g. \"find *.py\"",
                {"kind": "missing_argument", "argument": "pattern"},
            )

        result = await self.tools.run(
            "find_files", {"root": request.working_directory, "pattern": pattern}, cancel
        )
        return self.from_tool(result, "find_files", detail=True)
