"""
Mavens - Developer Command Assistant
====================================

A terminal coding assistant built with an agent-based architecture: one
natural-language request is routed to specialized agents whose results are
merged into a single answer.

This package provides:
- Orchestrator with intent routing and per-agent error isolation
- Specialized agents for files, shell commands, git, code quality,
  SQLite databases and MCP tool servers
- Conversation context (sliding window) and adaptive routing confidence
- Local LLM integration (LM Studio / Ollama) for reviews and conversation
"""

__version__ = "0.1.0"
