"""
Conversation Context
====================

In-memory, per-session sliding window of prior turns. The context store:

- Keeps the last N turns per session (FIFO eviction, N=20 by default)
- Lives only in RAM (cleared on restart)
- Holds at most max_sessions sessions; the least recently active one is
  forgotten first
- Never mutates an entry after it was appended
- Derives "relevant topics" from the most recent turns so the router can
  bias ambiguous follow-ups toward the agents that just worked

This is the assistant's short-term memory: what was asked a moment ago,
which agents answered, and what it was about.

Design Notes:
- A deque with maxlen per session gives strict FIFO eviction for free
- Turn indexes keep counting after eviction, so they stay unique per session
- A lock guards the session table; each session has a single writer (the
  orchestrator holding that session's turn lock)
"""

import threading
from collections import OrderedDict, deque

from mavens.models import ContextEntry
from mavens.utils.config import ContextConfig, get_config
from mavens.utils.logger import Logger

logger = Logger("Context")


class ContextManager:
    """
    Per-session conversation memory.

    Example:
        context = ContextManager(ContextConfig(window_size=20))

        context.append("s1", entry)
        history = context.recent("s1", window=5)
        topics = context.relevant_topics("s1")   # {"git", "status"}

        context.clear("s1")
    """

    def __init__(self, config: ContextConfig | None = None):
        """
        Initialize the context store.

        Args:
            config: Window sizes; defaults to the application configuration
        """
        config = config or get_config().context
        if config.window_size < 1:
            raise ValueError("Context window size must be at least 1")

        self.window_size = config.window_size
        self.topic_window = max(config.topic_window, 1)
        self.max_sessions = max(config.max_sessions, 1)

        # session_id -> bounded deque of entries, oldest first; least recently
        # active session first
        self._sessions: OrderedDict[str, deque[ContextEntry]] = OrderedDict()
        # session_id -> number of turns ever appended
        self._turn_counters: dict[str, int] = {}
        self._lock = threading.Lock()

    def append(self, session_id: str, entry: ContextEntry) -> None:
        """
        Add a turn to a session's window.

        If the window is full the oldest turn is evicted. A new session
        beyond max_sessions evicts the least recently active session.

        Args:
            session_id: The conversation identifier
            entry: The turn to remember
        """
        evicted = None
        with self._lock:
            window = self._sessions.get(session_id)
            if window is None:
                window = deque(maxlen=self.window_size)
                self._sessions[session_id] = window
                if len(self._sessions) > self.max_sessions:
                    evicted, _ = self._sessions.popitem(last=False)
                    self._turn_counters.pop(evicted, None)
            else:
                self._sessions.move_to_end(session_id)

            window.append(entry)
            self._turn_counters[session_id] = max(
                self._turn_counters.get(session_id, 0), entry.turn_index + 1
            )

        logger.debug(
            f"Appended turn {entry.turn_index} to {session_id} "
            f"({len(window)}/{self.window_size})"
        )
        if evicted is not None:
            logger.info(f"Session limit reached, forgot {evicted}")

    def recent(self, session_id: str, window: int | None = None) -> tuple[ContextEntry, ...]:
        """
        Get the most recent turns, oldest first.

        Args:
            session_id: The conversation identifier
            window: Maximum number of turns to return (default: whole window)

        Returns:
            Tuple of ContextEntry in chronological order
        """
        with self._lock:
            entries = tuple(self._sessions.get(session_id, ()))

        if window is not None:
            if window <= 0:
                return ()
            entries = entries[-window:]
        return entries

    def last_entry(self, session_id: str) -> ContextEntry | None:
        entries = self.recent(session_id, 1)
        return entries[0] if entries else None

    def relevant_topics(self, session_id: str) -> frozenset[str]:
        """
        Topics of the last few turns.

        Topics are the categories of agents that succeeded plus the trigger
        phrases they matched, e.g. {"git", "git status"}.

        Args:
            session_id: The conversation identifier

        Returns:
            Union of the extracted topics of the last topic_window turns
        """
        topics: set[str] = set()
        for entry in self.recent(session_id, self.topic_window):
            topics.update(entry.extracted_topics)
        return frozenset(topics)

    def next_turn_index(self, session_id: str) -> int:
        with self._lock:
            return self._turn_counters.get(session_id, 0)

    def turn_count(self, session_id: str) -> int:
        """Number of turns currently held in the window."""
        with self._lock:
            return len(self._sessions.get(session_id, ()))

    def summary(self, session_id: str) -> dict:
        """
        Describe a session's remembered state.

        Returns:
            Dict with turns held, total turns seen, topics and last agents
        """
        entries = self.recent(session_id)
        last = entries[-1] if entries else None
        return {
            "session_id": session_id,
            "turns_in_window": len(entries),
            "total_turns": self.next_turn_index(session_id),
            "window_size": self.window_size,
            "topics": sorted(self.relevant_topics(session_id)),
            "last_agents": list(last.agent_ids) if last else [],
            "last_message": last.request.message if last else None,
        }

    def clear(self, session_id: str) -> None:
        """
        Forget a session's history.

        Turn numbering restarts at zero for the session.
        """
        with self._lock:
            self._sessions.pop(session_id, None)
            self._turn_counters.pop(session_id, None)
        logger.info(f"Cleared context for {session_id}")

    def clear_all(self) -> None:
        with self._lock:
            self._sessions.clear()
            self._turn_counters.clear()

    def session_count(self) -> int:
        """Get the number of sessions with remembered turns."""
        with self._lock:
            return len(self._sessions)
