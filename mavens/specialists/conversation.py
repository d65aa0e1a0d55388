"""
Conversation Agent
==================

The fallback. The router sends a request here only when no specialized
agent scores above the activation threshold.

- Greetings and thanks get a short canned reply (no model call)
- "help" gets the list of things the assistant can do
- Anything else goes to the LLM with the last few turns as context

The agent declares no intents of its own, so it never competes with the
specialized agents during routing.
"""

from typing import Sequence

from mavens.llm import LLMError
from mavens.models import AgentResult, Category, ContextEntry, IntentMatch, Request
from mavens.specialists.base import SpecializedAgent, find_phrase, normalize_message
from mavens.tools import CancelSignal
from mavens.utils.config import get_config

GREETINGS = (
    "hi", "hello", "hey", "hiya", "yo", "howdy", "good morning", "good afternoon", "good evening",
)
THANKS = ("thanks", "thank you", "thx", "cheers")
HELP = ("help", "what can you do", "commands", "how do i use you")

GREETING_REPLY = "Hi! I'm Mavens, your coding assistant. What are we working on?"
THANKS_REPLY = "You're welcome! Anything else?"

HELP_REPLY = """I can help with your project from the terminal:
- Files: "create demo.html with <h1>Hi</h1>", "show app.py", "list files", "find *.py"
- Commands: "build", "run tests", "install", "run `ls -la`", "mkdir src/lib"
- Git: "git status", "commit with message 'fix bug'", "push", "pull", "git log", "git diff"
- Quality: "analyze code quality", "review app.py"
- Database: "connect to sqlite:///app.db", "select * from users"
- MCP: "list mcp servers", "call tool search on docs with {\\"q\\": \\"x\\"}"
Slash commands: /context, /learning, /clear"""

CONVERSATION_PROMPT = """{history}User: {message}

Answer the user's last message. If it is about their project, you can
suggest one of the assistant's direct commands (file, command, git, quality,
database, mcp) they could run next."""

HISTORY_TURNS = 5


def _is_small_talk(tokens: list[str], phrases: Sequence[str]) -> bool:
    # Short messages only; "hi, can you refactor the parser" deserves a real answer
    return len(tokens) <= 4 and any(find_phrase(tokens, p) >= 0 for p in phrases)


def is_small_talk(tokens: list[str]) -> bool:
    """A short greeting or thanks ("hi there", "thanks again!")."""
    return _is_small_talk(tokens, GREETINGS) or _is_small_talk(tokens, THANKS)


class ConversationAgent(SpecializedAgent):
    """Fallback agent: small talk, help, and free-form questions to the LLM."""

    agent_id = "conversation"
    category = Category.CONVERSATION
    intents = ()

    def match(self, request: Request) -> IntentMatch:
        return IntentMatch(self.agent_id, self.category, 0.0, pattern_key=self.fallback_key)

    @property
    def fallback_key(self) -> str:
        return f"{self.agent_id}:fallback"

    async def execute(
        self,
        request: Request,
        cancel: CancelSignal | None = None,
        history: Sequence[ContextEntry] = ()
    ) -> AgentResult:
        return await self.run(request, self.match(request), cancel, history)

    async def run(
        self,
        request: Request,
        match: IntentMatch,
        cancel: CancelSignal | None,
        history: Sequence[ContextEntry]
    ) -> AgentResult:
        tokens = normalize_message(request.message)
        limit = get_config().response.greeting_max_length

        if _is_small_talk(tokens, GREETINGS):
            return self.success(GREETING_REPLY[:limit], [], reply_kind="greeting")
        if _is_small_talk(tokens, THANKS):
            return self.success(THANKS_REPLY[:limit], [], reply_kind="thanks")
        if _is_small_talk(tokens, HELP):
            return self.success(HELP_REPLY, [], reply_kind="help")

        if self.llm is None:
            return self.failure(
                "I couldn't match that to a command and no language model is configured. Type \"help\" to see what I can do.",
                {"kind": "llm_unavailable"},
            )

        prompt = CONVERSATION_PROMPT.format(history=self._history(history), message=request.message)
        try:
            reply = await self.llm.complete(prompt)
        except LLMError as e:
            self.logger.warning(f"Completion failed: {e}")
            return self.failure(e.user_message(), e.details())

        return self.success(reply, [], reply_kind="completion")

    @staticmethod
    def _history(history: Sequence[ContextEntry]) -> str:
        lines = []
        for entry in list(history)[-HISTORY_TURNS:]:
            lines.append(f"User: {entry.request.message}")
            lines.append(f"Assistant: {entry.response_summary}")
        return "\n".join(lines) + ("\n" if lines else "")
