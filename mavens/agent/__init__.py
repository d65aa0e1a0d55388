"""
Agent System
============

The orchestration core. It:
1. Receives user requests
2. Routes them to the specialized agents (IntentRouter)
3. Awaits each routed agent in order, isolating failures
4. Merges the results into one Response (ResponseAggregator)
5. Records the turn in the context and learning stores

This module provides:
- Orchestrator: Main entry point for processing requests
- IntentRouter: Scores agents against a request
- ResponseAggregator: Builds the Response and feeds the stores
"""

from mavens.agent.aggregator import ResponseAggregator
from mavens.agent.core import Orchestrator
from mavens.agent.router import IntentRouter

__all__ = ["Orchestrator", "IntentRouter", "ResponseAggregator"]
