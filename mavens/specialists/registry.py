"""
Agent Registry
==============

Ordered collection of the specialized agents plus the conversation
fallback. Registration order is the router's last tie-breaker, so the
default order below is part of routing behaviour.
"""

from typing import Iterator

from mavens.llm import LLMProvider
from mavens.models import Category
from mavens.specialists.base import SpecializedAgent
from mavens.specialists.command import CommandExecAgent
from mavens.specialists.conversation import ConversationAgent
from mavens.specialists.database import DatabaseAgent
from mavens.specialists.file_ops import FileOpsAgent
from mavens.specialists.git import GitAgent
from mavens.specialists.mcp import MCPAgent
from mavens.specialists.quality import QualityAgent
from mavens.tools.executor import ToolExecutor
from mavens.utils.logger import Logger

logger = Logger("AgentRegistry")


class AgentRegistry:
    """
    Agents in registration order, with one designated fallback.

    Example:
        registry = AgentRegistry(fallback=ConversationAgent(tools, llm))
        registry.register(GitAgent(tools))

        for position, agent in registry.indexed():
            ...
    """

    def __init__(self, fallback: SpecializedAgent):
        self.fallback = fallback
        self._agents: list[SpecializedAgent] = []

    def register(self, agent: SpecializedAgent) -> None:
        """
        Add an agent after the ones already registered.

        One agent per category: a turn yields at most one result per category.

        Raises:
            ValueError: Duplicate agent id or category
        """
        if agent.agent_id == self.fallback.agent_id or self.get(agent.agent_id):
            raise ValueError(f"Agent '{agent.agent_id}' is already registered")
        owner = self.for_category(agent.category)
        if owner is not None:
            raise ValueError(
                f"Category '{agent.category.value}' is already handled by '{owner.agent_id}'"
            )
        self._agents.append(agent)
        logger.debug(f"Registered agent: {agent.agent_id}")

    def get(self, agent_id: str) -> SpecializedAgent | None:
        if agent_id == self.fallback.agent_id:
            return self.fallback
        return next((a for a in self._agents if a.agent_id == agent_id), None)

    def for_category(self, category: Category) -> SpecializedAgent | None:
        if category == self.fallback.category:
            return self.fallback
        return next((a for a in self._agents if a.category == category), None)

    def indexed(self) -> list[tuple[int, SpecializedAgent]]:
        return list(enumerate(self._agents))

    def agent_ids(self) -> list[str]:
        return [a.agent_id for a in self._agents]

    def __iter__(self) -> Iterator[SpecializedAgent]:
        return iter(self._agents)

    def __len__(self) -> int:
        return len(self._agents)


def create_default_agents(
    tools: ToolExecutor | None = None,
    llm: LLMProvider | None = None
) -> AgentRegistry:
    """
    Build the built-in agent set.

    Args:
        tools: Tool executor shared by the agents (default: all built-in tools)
        llm: Language model for reviews and conversation (None disables both)
    """
    tools = tools or ToolExecutor()
    registry = AgentRegistry(fallback=ConversationAgent(tools, llm))
    registry.register(FileOpsAgent(tools, llm))
    registry.register(CommandExecAgent(tools, llm))
    registry.register(GitAgent(tools, llm))
    registry.register(QualityAgent(tools, llm))
    registry.register(DatabaseAgent(tools, llm))
    registry.register(MCPAgent(tools, llm))
    return registry
