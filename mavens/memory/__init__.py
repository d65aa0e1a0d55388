"""
Memory System
=============

The two stores that carry state across turns:

1. CONTEXT: per-session sliding window of prior turns (in-memory)
2. LEARNING: process-wide pattern confidences (in-memory, optional JSON file)

Both are passed explicitly into the router and the aggregator; nothing
reads them as ambient globals.

Usage:
    from mavens.memory import ContextManager, LearningSystem

    context = ContextManager()
    learning = LearningSystem()
"""

from mavens.memory.context import ContextManager
from mavens.memory.learning import (
    LearningPattern,
    LearningSnapshot,
    LearningSystem,
    NEUTRAL_CONFIDENCE,
    Outcome,
)

__all__ = [
    "ContextManager",
    "LearningSystem",
    "LearningSnapshot",
    "LearningPattern",
    "Outcome",
    "NEUTRAL_CONFIDENCE",
]
