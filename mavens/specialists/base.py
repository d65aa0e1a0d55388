"""
Specialized Agent Base
======================

Every specialized agent declares what it can do as a set of intents, each
a list of trigger phrases with a base weight:

    class GitAgent(SpecializedAgent):
        agent_id = "git"
        category = Category.GIT
        intents = (
            Intent("status", ("git status", "status"), 0.85),
            Intent("commit", ("commit",), 0.85),
        )

Matching is pure (no I/O, no state) so the router can call it for every
agent on every request:

    tokens   = normalize_message(message)
    intents  = every intent with at least one phrase present
    hits     = distinct phrases found across those intents
    strength = min(1, best_weight + 0.1 * (hits - 1))
    key      = "<agent_id>:<matched intent names, sorted, joined by +>"

Execution (execute) may do I/O through the tool executor or the LLM
provider and may raise; the orchestrator isolates each call.
"""

import re
from abc import ABC, abstractmethod
from typing import TYPE_CHECKING, Sequence

from mavens.llm import LLMProvider
from mavens.models import (
    AgentCapability,
    AgentResult,
    Category,
    ContextEntry,
    Intent,
    IntentMatch,
    Request,
)
from mavens.tools import CancelSignal, ToolResult
from mavens.utils.logger import Logger

if TYPE_CHECKING:
    from mavens.tools.executor import ToolExecutor

logger = Logger("Agents")

# Stripped from the edges of a token; "./src", "demo.html" and "a/b" survive
EDGE_PUNCTUATION = "!\"#$%&'()*+,:;<=>?@[\\]^`{|}"

FILENAME_PATTERN = re.compile(r"(?<![\w@/.:])((?:~|\.{1,2})?/?[\w.-]+(?:/[\w.-]+)*\.[A-Za-z0-9]{1,10})(?![\w/])")


def normalize_message(text: str) -> list[str]:
    """
    Lowercase, strip edge punctuation, split on whitespace.

    Example:
        normalize_message("Show git status, please!")
        # ['show', 'git', 'status', 'please']
    """
    tokens = []
    for raw in text.lower().split():
        token = raw.strip(EDGE_PUNCTUATION).rstrip(".")
        if token:
            tokens.append(token)
    return tokens


def find_phrase(tokens: Sequence[str], phrase: str) -> int:
    """
    Position of a phrase as a contiguous token run, or -1.

    Matching is on whole tokens: "status" matches "git status" but not
    "statuses".
    """
    words = phrase.split()
    if not words:
        return -1
    span = len(words)
    for i in range(len(tokens) - span + 1):
        if list(tokens[i:i + span]) == words:
            return i
    return -1


def find_filenames(message: str) -> list[str]:
    """Tokens that look like file names ("demo.html", "src/app.py")."""
    names = []
    for match in FILENAME_PATTERN.finditer(message):
        name = match.group(1).rstrip(".")
        if name not in names and not name.startswith("http"):
            names.append(name)
    return names


class SpecializedAgent(ABC):
    """
    Base class for the specialized agents.

    Subclasses set agent_id, category and intents, and implement run().
    Override intent_applies() to veto an intent whose phrases matched but
    whose preconditions (a filename, a SQL statement) are missing.
    """

    agent_id: str = ""
    category: Category = Category.CONVERSATION
    intents: tuple[Intent, ...] = ()

    def __init__(self, tools: "ToolExecutor", llm: LLMProvider | None = None):
        """
        Initialize the agent.

        Args:
            tools: Executor the agent runs its tools through
            llm: Language model collaborator (only some agents use it)
        """
        self.tools = tools
        self.llm = llm
        self.logger = logger.child(self.agent_id)

    @property
    def capability(self) -> AgentCapability:
        return AgentCapability(self.agent_id, self.category, self.intents)

    # ==========================================================================
    # Matching
    # ==========================================================================

    def intent_applies(self, intent: Intent, request: Request, tokens: list[str]) -> bool:
        return True

    def match(self, request: Request) -> IntentMatch:
        """
        Pure pattern match of this agent's intents against a request.

        Returns:
            IntentMatch with strength 0 when nothing matched
        """
        tokens = normalize_message(request.message)

        matched: list[tuple[int, Intent]] = []
        phrases: list[str] = []
        for intent in self.intents:
            found = [p for p in intent.phrases if find_phrase(tokens, p) >= 0]
            if not found or not self.intent_applies(intent, request, tokens):
                continue
            position = min(find_phrase(tokens, p) for p in found)
            matched.append((position, intent))
            phrases.extend(p for p in found if p not in phrases)

        if not matched:
            return IntentMatch(self.agent_id, self.category, 0.0)

        # Intents in the order the user mentioned them
        matched.sort(key=lambda item: item[0])
        ordered = tuple(intent.name for _, intent in matched)

        best_weight = max(intent.weight for _, intent in matched)
        strength = min(1.0, best_weight + 0.1 * (len(phrases) - 1))

        return IntentMatch(
            agent_id=self.agent_id,
            category=self.category,
            strength=round(strength, 6),
            intents=ordered,
            phrases=tuple(phrases),
            pattern_key=self.pattern_key(ordered),
        )

    def pattern_key(self, intent_names: Sequence[str]) -> str:
        return f"{self.agent_id}:{'+'.join(sorted(intent_names))}"

    def can_handle(self, request: Request) -> float:
        """Match strength in [0, 1]; pure."""
        return self.match(request).strength

    # ==========================================================================
    # Execution
    # ==========================================================================

    async def execute(
        self,
        request: Request,
        cancel: CancelSignal | None = None,
        history: Sequence[ContextEntry] = ()
    ) -> AgentResult:
        """
        Handle a request.

        A follow-up ("do that again") that matches none of this agent's
        phrases is replayed against the last request this agent handled.

        Args:
            request: The user turn
            cancel: Abort signal forwarded to tools
            history: Recent turns of the session, oldest first

        Returns:
            AgentResult (exceptions propagate to the orchestrator)
        """
        match = self.match(request)
        if not match.matched:
            previous = self.previous_match(history)
            if previous is not None:
                entry, match = previous
                self.logger.debug(f"Replaying previous request: {entry.request.message}")
                request = Request(entry.request.message, request.working_directory, request.session_id)

        return await self.run(request, match, cancel, history)

    def previous_match(self, history: Sequence[ContextEntry]) -> tuple[ContextEntry, IntentMatch] | None:
        """The most recent turn this agent handled by a direct match, with that match."""
        for entry in reversed(history):
            if self.agent_id not in entry.agent_ids:
                continue
            match = self.match(entry.request)
            if match.matched:
                return entry, match
        return None

    @abstractmethod
    async def run(
        self,
        request: Request,
        match: IntentMatch,
        cancel: CancelSignal | None,
        history: Sequence[ContextEntry]
    ) -> AgentResult:
        """Do the agent's work for an already-matched request."""

    # ==========================================================================
    # Result helpers
    # ==========================================================================

    def success(self, summary: str, results: list[dict], **extra) -> AgentResult:
        return AgentResult.success(self.agent_id, self.category, {"results": results, **extra}, summary)

    def failure(self, summary: str, error: dict | None = None, results: list[dict] | None = None) -> AgentResult:
        return AgentResult.failure(
            self.agent_id, self.category, summary, error, {"results": results or []}
        )

    def from_tool(self, result: ToolResult, tool: str, detail: bool = False) -> AgentResult:
        """
        Wrap a single tool result.

        Args:
            result: The tool's result
            tool: Tool name, recorded with the payload
            detail: Append the tool's full content below its summary
        """
        record = {"tool": tool, **(result.data if isinstance(result.data, dict) else {"data": result.data})}
        if not result.success:
            return self.failure(
                f"{self.agent_id}: {result.error}",
                {"kind": "tool_error", "tool": tool, "message": result.error},
                [record],
            )

        summary = result.display_summary
        if detail and result.content and result.content != summary:
            summary = f"{summary}\n{result.content}"
        return self.success(summary, [record])
