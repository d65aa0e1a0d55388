"""
Intent Router
=============

Decides which agents handle a request, and in what order.

Routing Algorithm:
    1. Every registered agent matches the request (pure phrase matching)
    2. Follow-up: if nobody matched and the message says "again", "retry",
       "same", ... (and is not small talk like "thanks again") the agents
       of the previous turn are re-selected with a fixed follow-up
       strength, keyed by what they matched back then
    3. Topic bias: a matching agent whose category was a topic of the last
       few turns gets a small boost
    4. score = strength x learning confidence of the agent's pattern key
       (0.5 for keys never observed)
    5. Every agent scoring above the activation threshold is selected,
       ordered by score desc, declared priority desc, registration order
    6. Nothing selected -> the conversation fallback alone, score 1.0

The router reads nothing but its arguments: identical (request, history,
learning snapshot) always produce the identical ClassificationResult.
"""

from typing import Sequence

from mavens.memory.learning import LearningSnapshot
from mavens.models import Candidate, ClassificationResult, ContextEntry, IntentMatch, Request
from mavens.specialists.base import find_phrase, normalize_message
from mavens.specialists.conversation import is_small_talk
from mavens.specialists.registry import AgentRegistry
from mavens.utils.config import RouterConfig, get_config
from mavens.utils.logger import Logger

logger = Logger("Router")

FOLLOWUP_MARKERS = ("again", "repeat", "redo", "same", "retry", "once more", "do it again", "one more time")

# Scores are rounded so float noise never flips an ordering
SCORE_PRECISION = 6


def is_followup(tokens: list[str]) -> bool:
    """A "do it again" style message; "thanks again!" is small talk, not a replay."""
    if is_small_talk(tokens):
        return False
    return any(find_phrase(tokens, marker) >= 0 for marker in FOLLOWUP_MARKERS)


def topics_from_history(history: Sequence[ContextEntry], window: int) -> frozenset[str]:
    if window <= 0:
        return frozenset()
    topics: set[str] = set()
    for entry in list(history)[-window:]:
        topics.update(entry.extracted_topics)
    return frozenset(topics)


class IntentRouter:
    """
    Scores the registered agents against a request.

    Example:
        router = IntentRouter(create_default_agents())

        result = router.classify(request, history, learning.snapshot())
        for candidate in result:
            print(candidate.agent_id, candidate.score)
    """

    def __init__(self, agents: AgentRegistry, config: RouterConfig | None = None):
        """
        Initialize the router.

        Args:
            agents: Registered agents (registration order breaks ties)
            config: Threshold, topic boost and follow-up strength
        """
        self.agents = agents
        self.config = config or get_config().router

    def classify(
        self,
        request: Request,
        history: Sequence[ContextEntry] = (),
        learning: LearningSnapshot | None = None,
        topics: frozenset[str] | None = None
    ) -> ClassificationResult:
        """
        Route a request.

        Args:
            request: The user turn
            history: Recent turns of the session, oldest first
            learning: Pattern confidences (neutral when omitted)
            topics: Relevant topics (default: derived from the last 3 turns)

        Returns:
            ClassificationResult, never empty
        """
        learning = learning or LearningSnapshot.empty()
        if topics is None:
            topics = topics_from_history(history, get_config().context.topic_window)

        matches = [(position, agent, agent.match(request)) for position, agent in self.agents.indexed()]

        if not any(match.matched for _, _, match in matches):
            tokens = normalize_message(request.message)
            if history and is_followup(tokens):
                matches = self._followup_matches(matches, history)

        ranked = []
        for position, agent, match in matches:
            if not match.matched:
                continue

            strength = match.strength
            if agent.category.value in topics:
                strength = min(1.0, strength + self.config.topic_boost)

            confidence = learning.confidence(match.pattern_key)
            score = round(strength * confidence, SCORE_PRECISION)

            logger.debug(
                f"{agent.agent_id}: strength {strength:.2f} x confidence {confidence:.2f} = {score:.3f}",
                {"pattern_key": match.pattern_key, "phrases": list(match.phrases)},
            )

            if score > self.config.activation_threshold:
                priority = agent.capability.priority
                ranked.append((
                    (-score, -priority, position),
                    Candidate(agent.agent_id, agent.category, score, priority, match.pattern_key, match),
                ))

        if not ranked:
            fallback = self.agents.fallback
            match = fallback.match(request)
            logger.debug("No agent above threshold, using conversation fallback")
            return ClassificationResult(
                candidates=(Candidate(fallback.agent_id, fallback.category, 1.0, 0.0, match.pattern_key, match),),
                fallback=True,
            )

        ranked.sort(key=lambda item: item[0])
        result = ClassificationResult(candidates=tuple(candidate for _, candidate in ranked))
        logger.debug(f"Routed to {result.agent_ids()}")
        return result

    def _followup_matches(self, matches: list, history: Sequence[ContextEntry]) -> list:
        """Re-select the previous turn's agents for an "again" style message."""
        previous_agents = set(history[-1].agent_ids)
        replaced = []
        for position, agent, match in matches:
            if agent.agent_id in previous_agents:
                previous = agent.previous_match(history)
                if previous is not None:
                    _, earlier = previous
                    match = IntentMatch(
                        agent_id=agent.agent_id,
                        category=agent.category,
                        strength=self.config.followup_strength,
                        intents=earlier.intents,
                        phrases=earlier.phrases,
                        pattern_key=earlier.pattern_key,
                    )
            replaced.append((position, agent, match))
        return replaced
