"""
Orchestrator
============

The entry point of the assistant core. One call to process() handles one
user turn:

    RECEIVED ──► CLASSIFIED ──► DISPATCHING ──► AGGREGATING ──► COMPLETED

1. Validate the request (the only error that reaches the caller)
2. Read the session's history and the learning snapshot
3. Route the request to an ordered list of agents
4. Await each agent in router order; a failing agent becomes an error
   result and the next agent still runs
5. Merge everything into one Response and record the turn; the learning
   store is written from a worker thread

Turns of one session are serialized; different sessions run concurrently.

Cancellation:
    cancel = asyncio.Event()
    task = asyncio.create_task(orchestrator.process(request, cancel))
    cancel.set()          # in-flight agent is cancelled, status "cancelled"
"""

import asyncio
from contextlib import asynccontextmanager
from typing import AsyncIterator, Sequence

from mavens.agent.aggregator import ResponseAggregator
from mavens.agent.router import IntentRouter
from mavens.llm import LLMClient, LLMProvider
from mavens.memory import ContextManager, LearningSnapshot, LearningSystem
from mavens.models import (
    AgentResult,
    Candidate,
    ClassificationResult,
    ContextEntry,
    ContextSummary,
    Request,
    Response,
)
from mavens.project import analyze_project
from mavens.specialists import AgentRegistry, create_default_agents
from mavens.tools import CancelSignal
from mavens.tools.executor import ToolExecutor
from mavens.utils.logger import Logger

logger = Logger("Orchestrator")


class Orchestrator:
    """
    Routes each request to the specialized agents and aggregates their work.

    Example:
        orchestrator = Orchestrator()

        response = await orchestrator.process(
            Request("show git status", "/home/me/project", session_id="s1")
        )

        print(response.status)            # Status.SUCCESS
        print(response.git_results[0])    # {"operation": "status", "branch": ...}
    """

    def __init__(
        self,
        agents: AgentRegistry | None = None,
        router: IntentRouter | None = None,
        context: ContextManager | None = None,
        learning: LearningSystem | None = None,
        aggregator: ResponseAggregator | None = None,
        llm: LLMProvider | None = None,
        tools: ToolExecutor | None = None
    ):
        """
        Initialize the orchestrator.

        Every collaborator is optional; missing ones are built from the
        application configuration.

        Args:
            agents: Registered agents (default: the built-in set)
            router: Intent router over those agents
            context: Per-session conversation memory
            learning: Pattern confidence store
            aggregator: Response builder writing to context and learning
            llm: Language model used by the review and conversation agents
            tools: Tool executor shared by the built-in agents
        """
        self.llm = llm if llm is not None else LLMClient()
        self.agents = agents or create_default_agents(tools or ToolExecutor(), self.llm)
        self.router = router or IntentRouter(self.agents)
        self.context = context or ContextManager()
        self.learning = learning or LearningSystem()
        # Store writes happen in flush(), off the event loop
        self.learning.autosave = False
        self.aggregator = aggregator or ResponseAggregator(self.context, self.learning)

        # Only sessions with a turn running or waiting hold a lock
        self._session_locks: dict[str, asyncio.Lock] = {}
        self._lock_users: dict[str, int] = {}

        logger.info(f"Orchestrator ready with agents: {', '.join(self.agents.agent_ids())}")

    # ==========================================================================
    # Request processing
    # ==========================================================================

    async def process(self, request: Request, cancel: CancelSignal | None = None) -> Response:
        """
        Handle one user turn.

        Args:
            request: The user turn
            cancel: Optional abort signal; once set, the in-flight agent is
                cancelled and no further agents start

        Returns:
            The aggregated Response (status success, error or cancelled)

        Raises:
            RequestValidationError: Empty message or relative working directory
        """
        request.validate()
        log = logger.child(request.session_id)
        log.debug(f"RECEIVED: {request.message[:80]}")

        async with self._session_turn(request.session_id):
            history, topics, snapshot = self._read_state(request.session_id)

            classification = self.router.classify(request, history, snapshot, topics)
            log.debug(
                "CLASSIFIED",
                {"candidates": classification.scores(), "fallback": classification.fallback},
            )

            log.debug("DISPATCHING")
            results, cancelled = await self._dispatch(request, classification, history, cancel)

            log.debug("AGGREGATING")
            response = self.aggregator.aggregate(results, request, classification, cancelled=cancelled)

        await self._flush_learning()
        response.context_summary = await self._context_summary(request.working_directory)
        log.debug(f"COMPLETED: {response.status.value}")
        return response

    async def _dispatch(
        self,
        request: Request,
        classification: ClassificationResult,
        history: Sequence[ContextEntry],
        cancel: CancelSignal | None
    ) -> tuple[list[AgentResult], bool]:
        """
        Await the routed agents one after another.

        Returns:
            (results in router order, whether the turn was cancelled)
        """
        results: list[AgentResult] = []
        for candidate in classification:
            if cancel is not None and cancel.is_set():
                return results, True

            result = await self._invoke(candidate, request, history, cancel)
            results.append(result)
            if cancel is not None and cancel.is_set():
                return results, True

        return results, False

    async def _invoke(
        self,
        candidate: Candidate,
        request: Request,
        history: Sequence[ContextEntry],
        cancel: CancelSignal | None
    ) -> AgentResult:
        """Run one agent, isolating its failures and honouring the abort signal."""
        agent = self.agents.get(candidate.agent_id)
        if agent is None:
            return AgentResult.failure(
                candidate.agent_id,
                candidate.category,
                f"{candidate.agent_id}: agent is not registered",
                {"kind": "agent_error", "message": "agent is not registered"},
            )

        task = asyncio.create_task(agent.execute(request, cancel, history))
        if cancel is None:
            waiters = {task}
        else:
            waiters = {task, asyncio.create_task(cancel.wait())}

        try:
            done, pending = await asyncio.wait(waiters, return_when=asyncio.FIRST_COMPLETED)
        except asyncio.CancelledError:
            for waiter in waiters:
                waiter.cancel()
            raise

        for waiter in pending:
            waiter.cancel()

        if task not in done:
            await asyncio.gather(task, return_exceptions=True)
            logger.info(f"{candidate.agent_id} cancelled")
            return AgentResult.cancelled(candidate.agent_id, candidate.category)

        try:
            return task.result()
        except asyncio.CancelledError:
            return AgentResult.cancelled(candidate.agent_id, candidate.category)
        except Exception as e:
            logger.error(f"Agent {candidate.agent_id} failed", e)
            return AgentResult.failure(
                candidate.agent_id,
                candidate.category,
                f"{candidate.agent_id}: {str(e) or type(e).__name__}",
                {"kind": "agent_error", "exception": type(e).__name__, "message": str(e)},
            )

    def _read_state(self, session_id: str) -> tuple[tuple[ContextEntry, ...], frozenset[str], LearningSnapshot]:
        """Session history, its topics and a learning snapshot; empty on store failure."""
        try:
            history = self.context.recent(session_id)
            topics = self.context.relevant_topics(session_id)
        except Exception as e:
            logger.error(f"Could not read context for {session_id}", e)
            history, topics = (), frozenset()

        try:
            snapshot = self.learning.snapshot()
        except Exception as e:
            logger.error("Could not read learning store", e)
            snapshot = LearningSnapshot.empty()

        return history, topics, snapshot

    async def _flush_learning(self) -> None:
        try:
            await asyncio.to_thread(self.learning.flush)
        except Exception as e:
            logger.error("Could not save learning store", e)

    async def _context_summary(self, working_directory: str) -> ContextSummary | None:
        try:
            info = await asyncio.to_thread(analyze_project, working_directory)
        except OSError as e:
            logger.warning(f"Could not analyze {working_directory}: {e}")
            return None
        return ContextSummary(info.project_type, info.code_files_count)

    @asynccontextmanager
    async def _session_turn(self, session_id: str) -> AsyncIterator[None]:
        """Serialize turns of one session; the lock is dropped once nobody holds or awaits it."""
        lock = self._session_locks.setdefault(session_id, asyncio.Lock())
        self._lock_users[session_id] = self._lock_users.get(session_id, 0) + 1
        try:
            async with lock:
                yield
        finally:
            self._lock_users[session_id] -= 1
            if not self._lock_users[session_id]:
                del self._lock_users[session_id]
                del self._session_locks[session_id]

    # ==========================================================================
    # Session helpers
    # ==========================================================================

    def learning_report(self) -> str:
        return self.learning.report()

    def context_summary(self, session_id: str) -> dict:
        return self.context.summary(session_id)

    def clear_session(self, session_id: str) -> None:
        """Forget a session's conversation history (learning is kept)."""
        self.context.clear(session_id)

    def active_sessions(self) -> int:
        """Sessions with a turn running or queued."""
        return len(self._session_locks)

    async def close(self) -> None:
        """Save pending learning and release the language model client."""
        await self._flush_learning()
        close = getattr(self.llm, "close", None)
        if close is not None:
            await close()
