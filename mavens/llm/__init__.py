"""
LLM Collaborator
================

The model server boundary: a protocol the agents depend on, a default
OpenAI-compatible client for local servers, and the typed errors that
client raises.
"""

from mavens.llm.client import LLMClient, LLMProvider, ModelConfig
from mavens.llm.errors import (
    LLMAPIError,
    LLMError,
    ModelNotFoundError,
    ServiceUnavailableError,
)

__all__ = [
    "LLMClient",
    "LLMProvider",
    "ModelConfig",
    "LLMError",
    "LLMAPIError",
    "ModelNotFoundError",
    "ServiceUnavailableError",
]
