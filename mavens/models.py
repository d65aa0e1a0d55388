"""
Data Model
==========

The in-process contract of the orchestration core:

    Request ──► ClassificationResult ──► AgentResult* ──► Response
                                                     └──► ContextEntry

Request, IntentMatch, ClassificationResult and AgentResult are transient:
created and discarded within one Orchestrator.process() call. ContextEntry
outlives the call inside the context store's sliding window.

Everything that crosses a component boundary is a frozen dataclass, so an
agent result handed to the aggregator cannot be altered afterwards.
"""

import os
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Iterator

from mavens.errors import RequestValidationError

ELLIPSIS = "…"


class Category(str, Enum):
    """Capability domains; each built-in agent owns exactly one."""
    FILE = "file"
    COMMAND = "command"
    GIT = "git"
    QUALITY = "quality"
    DATABASE = "database"
    MCP = "mcp"
    CONVERSATION = "conversation"


class Status(str, Enum):
    SUCCESS = "success"
    ERROR = "error"
    CANCELLED = "cancelled"


@dataclass(frozen=True)
class Request:
    """
    One user turn.

    Attributes:
        message: The natural-language request
        working_directory: Absolute path the request operates on
        session_id: Opaque conversation identifier
    """
    message: str
    working_directory: str
    session_id: str = "default"

    def validate(self) -> None:
        """
        Reject malformed input before classification begins.

        Raises:
            RequestValidationError: Missing message, missing or relative
                working directory, or missing session id
        """
        if not isinstance(self.message, str) or not self.message.strip():
            raise RequestValidationError("message", "must be non-empty text")
        if not self.working_directory:
            raise RequestValidationError("working_directory", "is required")
        if not os.path.isabs(self.working_directory):
            raise RequestValidationError(
                "working_directory", f"must be absolute, got {self.working_directory}"
            )
        if not self.session_id:
            raise RequestValidationError("session_id", "is required")


@dataclass(frozen=True)
class Intent:
    """
    A named intent an agent claims, with its trigger phrases.

    Phrases are matched as whole-token sequences against the normalized
    message, so "git status" matches "show git status please" but not
    "digit statuses".
    """
    name: str
    phrases: tuple[str, ...]
    weight: float


@dataclass(frozen=True)
class AgentCapability:
    agent_id: str
    category: Category
    intents: tuple[Intent, ...]

    @property
    def priority(self) -> float:
        """Declared priority: the highest base weight among the intents."""
        return max((intent.weight for intent in self.intents), default=0.0)


@dataclass(frozen=True)
class IntentMatch:
    """
    Result of an agent's pure match against a request.

    Attributes:
        agent_id: The matching agent
        category: The agent's category
        strength: Pattern match strength in [0, 1]
        intents: Names of the intents that matched, best first
        phrases: The trigger phrases found in the message
        pattern_key: Learning key ("git:status" style intent signature)
    """
    agent_id: str
    category: Category
    strength: float
    intents: tuple[str, ...] = ()
    phrases: tuple[str, ...] = ()
    pattern_key: str = ""

    @property
    def matched(self) -> bool:
        return self.strength > 0.0


@dataclass(frozen=True)
class Candidate:
    """One routed agent with its final score."""
    agent_id: str
    category: Category
    score: float
    priority: float
    pattern_key: str
    match: IntentMatch


@dataclass(frozen=True)
class ClassificationResult:
    """
    Ordered routing decision. Never empty.

    Attributes:
        candidates: Agents to dispatch, highest score first
        fallback: True when only the conversation fallback was selected
    """
    candidates: tuple[Candidate, ...]
    fallback: bool = False

    def __post_init__(self):
        if not self.candidates:
            raise ValueError("ClassificationResult requires at least one candidate")

    @property
    def top(self) -> Candidate:
        return self.candidates[0]

    def agent_ids(self) -> list[str]:
        return [candidate.agent_id for candidate in self.candidates]

    def scores(self) -> list[tuple[str, float]]:
        return [(candidate.agent_id, candidate.score) for candidate in self.candidates]

    def __iter__(self) -> Iterator[Candidate]:
        return iter(self.candidates)

    def __len__(self) -> int:
        return len(self.candidates)


@dataclass(frozen=True)
class AgentResult:
    """
    What one agent produced for one turn.

    Attributes:
        agent_id: The agent that produced the result
        category: Category the payload belongs to in the Response
        status: success, error or cancelled
        payload: Agent-specific structured records
        human_summary: Text shown to the user
        error: Structured error detail (kind, service, endpoint, ...) on failure
    """
    agent_id: str
    category: Category
    status: Status
    payload: dict[str, Any] = field(default_factory=dict)
    human_summary: str = ""
    error: dict[str, Any] | None = None

    @property
    def ok(self) -> bool:
        return self.status == Status.SUCCESS

    @classmethod
    def success(cls, agent_id: str, category: Category, payload: dict, summary: str) -> "AgentResult":
        return cls(agent_id, category, Status.SUCCESS, payload, summary)

    @classmethod
    def failure(
        cls,
        agent_id: str,
        category: Category,
        summary: str,
        error: dict | None = None,
        payload: dict | None = None
    ) -> "AgentResult":
        return cls(agent_id, category, Status.ERROR, payload or {}, summary, error or {"message": summary})

    @classmethod
    def cancelled(cls, agent_id: str, category: Category) -> "AgentResult":
        return cls(
            agent_id,
            category,
            Status.CANCELLED,
            {},
            f"{agent_id}: cancelled before completion",
            {"kind": "cancelled"},
        )


@dataclass(frozen=True)
class ContextSummary:
    project_type: str
    code_files_count: int


@dataclass
class Response:
    """
    The single aggregated answer to a Request.

    `content` is always the full text; use display_content() for a
    terminal-sized rendering.
    """
    content: str
    status: Status
    file_results: list[dict] = field(default_factory=list)
    command_results: list[dict] = field(default_factory=list)
    git_results: list[dict] = field(default_factory=list)
    quality_results: list[dict] = field(default_factory=list)
    database_results: list[dict] = field(default_factory=list)
    mcp_results: list[dict] = field(default_factory=list)
    agent_results: list[AgentResult] = field(default_factory=list)
    context_summary: ContextSummary | None = None
    routed_agents: list[str] = field(default_factory=list)

    def results_for(self, category: Category) -> list[dict]:
        return {
            Category.FILE: self.file_results,
            Category.COMMAND: self.command_results,
            Category.GIT: self.git_results,
            Category.QUALITY: self.quality_results,
            Category.DATABASE: self.database_results,
            Category.MCP: self.mcp_results,
        }.get(category, [])

    def display_content(self, max_length: int) -> str:
        """
        Content truncated to max_length characters, ending in an ellipsis
        marker when anything was cut.
        """
        if max_length <= 0 or len(self.content) <= max_length:
            return self.content
        return self.content[: max(max_length - len(ELLIPSIS), 0)].rstrip() + ELLIPSIS


@dataclass(frozen=True)
class ContextEntry:
    """One remembered turn."""
    turn_index: int
    request: Request
    response_summary: str
    timestamp: datetime
    extracted_topics: frozenset[str] = frozenset()
    agent_ids: tuple[str, ...] = ()
