"""
Quality Agent
=============

Code quality checks and reviews:

    "analyze code quality"        -> analyze_quality on the working directory
    "lint src/app.py"             -> analyze_quality on that file
    "review src/app.py"           -> read the file, ask the model for a review
    "review the code"             -> scan the project, ask the model to review the report

Reviews need the LLM provider. If the model server is down the review
fails with the provider's typed error (service, endpoint) while every
other agent in the turn carries on.
"""

import os
from typing import Sequence

from mavens.llm import LLMError, ModelConfig
from mavens.models import AgentResult, Category, ContextEntry, Intent, IntentMatch, Request
from mavens.specialists.base import SpecializedAgent, find_filenames
from mavens.tools import CancelSignal, ToolResult

REVIEW_PROMPT = """Review the following {subject}. Point out bugs, risky constructs and
readability problems, most important first, and suggest concrete fixes.
Keep the review under 300 words.

{body}
"""

REVIEW_SYSTEM_PROMPT = (
    "You are a senior engineer doing a code review. Be specific, cite line numbers "
    "when you can, and do not restate the code."
)

MAX_REVIEW_CHARS = 12_000


class QualityAgent(SpecializedAgent):
    """Static quality scan plus optional model-backed review."""

    agent_id = "quality"
    category = Category.QUALITY
    intents = (
        Intent(
            "analyze",
            ("analyze", "analyse", "lint", "quality", "code quality", "check code", "code smells"),
            0.8,
        ),
        Intent("review", ("review", "code review", "explain", "critique"), 0.75),
    )

    def _target(self, request: Request) -> str:
        for name in find_filenames(request.message):
            path = name if os.path.isabs(name) else os.path.join(request.working_directory, name)
            if os.path.exists(path):
                return os.path.normpath(path)
        return request.working_directory

    async def run(
        self,
        request: Request,
        match: IntentMatch,
        cancel: CancelSignal | None,
        history: Sequence[ContextEntry]
    ) -> AgentResult:
        target = self._target(request)
        wants_review = "review" in match.intents

        if wants_review and os.path.isfile(target):
            source = await self.tools.run("read_file", {"file_path": target}, cancel)
            if not source.success:
                return self.from_tool(source, "read_file")
            return await self._review(
                f"file {os.path.basename(target)}",
                source.content,
                [{"tool": "read_file", "path": target}],
            )

        analysis = await self.tools.run("analyze_quality", {"path": target}, cancel)
        if not analysis.success:
            return self.from_tool(analysis, "analyze_quality")

        if wants_review:
            return await self._review(
                f"code quality report for {target}",
                analysis.content,
                [self._record(analysis)],
            )
        return self.success(analysis.content, [self._record(analysis)])

    @staticmethod
    def _record(result: ToolResult) -> dict:
        data = result.data or {}
        return {
            "tool": "analyze_quality",
            "path": data.get("path"),
            "score": data.get("score"),
            "metrics": data.get("metrics", {}),
            "issues": data.get("issues", []),
        }

    async def _review(self, subject: str, body: str, records: list[dict]) -> AgentResult:
        if self.llm is None:
            return self.failure(
                "quality: no language model is configured for reviews",
                {"kind": "llm_unavailable"},
                records,
            )

        prompt = REVIEW_PROMPT.format(subject=subject, body=body[:MAX_REVIEW_CHARS])
        try:
            review = await self.llm.complete(prompt, ModelConfig(system_prompt=REVIEW_SYSTEM_PROMPT))
        except LLMError as e:
            self.logger.warning(f"Review failed: {e}")
            return self.failure(f"quality: {e.user_message()}", e.details(), records)

        records = [*records, {"review": review}]
        return self.success(f"Review of {subject}:\n{review}", records)
