"""
Response Aggregator
===================

Merges the ordered agent results of one turn into a single Response, then
records the turn:

    AgentResult* ──► Response            (content + per-category records)
                 ├─► ContextManager      (append one ContextEntry)
                 └─► LearningSystem      (observe outcomes per pattern key)

Learning rule:
- The top-ranked candidate's pattern key observes success if at least one
  result in the top candidate's category succeeded, failure otherwise
- Every other dispatched agent observes its own outcome under its own key
- Cancelled results are never observed

Writes to the stores are best effort: a failing store is logged and the
Response is still returned.
"""

from datetime import datetime, timezone

from mavens.memory.context import ContextManager
from mavens.memory.learning import LearningSystem, Outcome
from mavens.models import (
    AgentResult,
    Category,
    ClassificationResult,
    ContextEntry,
    ELLIPSIS,
    Request,
    Response,
    Status,
)
from mavens.utils.logger import Logger

logger = Logger("Aggregator")

SUMMARY_LENGTH = 200


def extract_topics(results: list[AgentResult], classification: ClassificationResult) -> frozenset[str]:
    """
    Topics of a turn: categories of the agents that succeeded plus the
    trigger phrases they matched.
    """
    succeeded = {r.agent_id for r in results if r.ok}
    topics: set[str] = set()
    for candidate in classification:
        if candidate.agent_id not in succeeded or candidate.category == Category.CONVERSATION:
            continue
        topics.add(candidate.category.value)
        topics.update(candidate.match.phrases)
    return frozenset(topics)


class ResponseAggregator:
    """
    Builds the Response and feeds the context and learning stores.

    Example:
        aggregator = ResponseAggregator(context, learning)
        response = aggregator.aggregate(results, request, classification)
    """

    def __init__(self, context: ContextManager, learning: LearningSystem):
        self.context = context
        self.learning = learning

    def aggregate(
        self,
        results: list[AgentResult],
        request: Request,
        classification: ClassificationResult,
        cancelled: bool = False
    ) -> Response:
        """
        Merge results into a Response and record the turn.

        Args:
            results: Agent results in router order (may be partial if cancelled)
            request: The user turn
            classification: The routing decision the results came from
            cancelled: The turn was aborted before every agent finished

        Returns:
            The Response with full, untruncated content
        """
        if cancelled:
            status = Status.CANCELLED
        elif any(r.ok for r in results):
            status = Status.SUCCESS
        else:
            status = Status.ERROR

        response = Response(
            content="\n\n".join(r.human_summary for r in results if r.human_summary),
            status=status,
            agent_results=list(results),
            routed_agents=classification.agent_ids(),
        )
        for result in results:
            response.results_for(result.category).extend(result.payload.get("results", []))

        if cancelled and not response.content:
            response.content = "Request cancelled."

        self._observe(results, classification)
        self._remember(results, request, classification, response)
        return response

    def _observe(self, results: list[AgentResult], classification: ClassificationResult) -> None:
        top = classification.top
        keys = {c.agent_id: c.pattern_key for c in classification}
        settled = [r for r in results if r.status != Status.CANCELLED]

        top_results = [r for r in settled if r.category == top.category]
        observations = []
        if top_results:
            outcome = Outcome.SUCCESS if any(r.ok for r in top_results) else Outcome.FAILURE
            observations.append((top.pattern_key, outcome))

        for result in settled:
            if result.agent_id == top.agent_id or result.category == top.category:
                continue
            key = keys.get(result.agent_id)
            if key:
                observations.append((key, Outcome.SUCCESS if result.ok else Outcome.FAILURE))

        for key, outcome in observations:
            try:
                self.learning.observe(key, outcome)
            except Exception as e:
                logger.error(f"Learning store rejected observation for {key}", e)

    def _remember(
        self,
        results: list[AgentResult],
        request: Request,
        classification: ClassificationResult,
        response: Response
    ) -> None:
        summary = response.content
        if len(summary) > SUMMARY_LENGTH:
            summary = summary[:SUMMARY_LENGTH].rstrip() + ELLIPSIS

        try:
            entry = ContextEntry(
                turn_index=self.context.next_turn_index(request.session_id),
                request=request,
                response_summary=summary,
                timestamp=datetime.now(timezone.utc),
                extracted_topics=extract_topics(results, classification),
                agent_ids=tuple(r.agent_id for r in results),
            )
            self.context.append(request.session_id, entry)
        except Exception as e:
            logger.error(f"Context store rejected turn for {request.session_id}", e)
