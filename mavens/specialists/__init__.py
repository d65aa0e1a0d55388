"""
Specialized Agents
==================

One agent per capability domain. Each declares trigger phrases (used by the
router, without I/O) and handles matched requests through tools:

1. FileOps: create, read, list and find files
2. CommandExec: shell commands, build/test/install, mkdir
3. Git: status, commit, push, pull, log, diff, branch
4. Quality: static quality scan and model-backed review
5. Database: SQLite connections and SQL
6. MCP: external tool servers
7. Conversation: fallback for everything else

Usage:
    from mavens.specialists import create_default_agents

    agents = create_default_agents(llm=LLMClient())
"""

from mavens.specialists.base import SpecializedAgent, normalize_message
from mavens.specialists.command import CommandExecAgent
from mavens.specialists.conversation import ConversationAgent
from mavens.specialists.database import DatabaseAgent
from mavens.specialists.file_ops import FileOpsAgent
from mavens.specialists.git import GitAgent
from mavens.specialists.mcp import MCPAgent
from mavens.specialists.quality import QualityAgent
from mavens.specialists.registry import AgentRegistry, create_default_agents

__all__ = [
    "SpecializedAgent",
    "normalize_message",
    "FileOpsAgent",
    "CommandExecAgent",
    "GitAgent",
    "QualityAgent",
    "DatabaseAgent",
    "MCPAgent",
    "ConversationAgent",
    "AgentRegistry",
    "create_default_agents",
]
