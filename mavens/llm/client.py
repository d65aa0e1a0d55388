"""
LLM Client
==========

Thin client for a local, OpenAI-compatible model server (LM Studio or
Ollama). The orchestration core only depends on the `LLMProvider`
protocol below; this module is the default implementation of it.

Both LM Studio and Ollama expose the OpenAI chat-completions API under
/v1, so the client is the OpenAI SDK's AsyncOpenAI with a local base URL.
SDK exceptions are translated into the typed errors of mavens.llm.errors:

    APIConnectionError / APITimeoutError -> ServiceUnavailableError
    NotFoundError                        -> ModelNotFoundError
    APIStatusError                       -> LLMAPIError (with status code)

No retry loop is implemented here; max_retries is forced to 0 so a dead
server is reported immediately instead of after the SDK's backoff.
"""

from dataclasses import dataclass
from typing import Protocol

import httpx
import openai
from openai import AsyncOpenAI

from mavens.llm.errors import (
    LLMAPIError,
    ModelNotFoundError,
    ServiceUnavailableError,
)
from mavens.utils.config import LLMConfig, get_config
from mavens.utils.logger import Logger

logger = Logger("LLM")

SYSTEM_PROMPT = (
    "You are Next Mavens, an AI coding assistant running in the user's terminal. "
    "Answer concisely and accurately; prefer concrete, actionable guidance."
)


@dataclass(frozen=True)
class ModelConfig:
    """Per-call model settings; None fields fall back to LLMConfig."""
    model: str | None = None
    temperature: float | None = None
    max_tokens: int | None = None
    system_prompt: str | None = None


class LLMProvider(Protocol):
    """What agents need from a language model collaborator."""

    async def complete(self, prompt: str, model_config: ModelConfig | None = None) -> str: ...


class LLMClient:
    """
    Default LLMProvider backed by a local OpenAI-compatible server.

    Example:
        client = LLMClient()
        try:
            text = await client.complete("Explain this stack trace: ...")
        except ServiceUnavailableError as e:
            print(e.user_message())
    """

    def __init__(self, config: LLMConfig | None = None, http_client: httpx.AsyncClient | None = None):
        """
        Initialize the client.

        Args:
            config: Server settings (default: from the environment)
            http_client: Custom HTTP client for the SDK (proxies, test transports)
        """
        self.config = config or get_config().llm
        self.openai = AsyncOpenAI(
            base_url=self.config.base_url,
            api_key=self.config.api_key,
            timeout=self.config.timeout,
            max_retries=0,
            http_client=http_client,
        )
        logger.debug(f"LLM client for {self.config.provider} at {self.config.base_url}")

    @property
    def service(self) -> str:
        return self.config.provider

    async def complete(self, prompt: str, model_config: ModelConfig | None = None) -> str:
        """
        Send one prompt and return the model's text.

        Args:
            prompt: The user-side prompt
            model_config: Optional overrides for model, temperature, tokens

        Returns:
            The completion text, stripped

        Raises:
            ServiceUnavailableError: Server unreachable or timed out
            ModelNotFoundError: Requested model is not loaded
            LLMAPIError: Any other API failure or an empty completion
        """
        overrides = model_config or ModelConfig()
        model = overrides.model or self.config.model

        messages = [
            {"role": "system", "content": overrides.system_prompt or SYSTEM_PROMPT},
            {"role": "user", "content": prompt},
        ]

        try:
            response = await self.openai.chat.completions.create(
                model=model,
                messages=messages,
                temperature=(
                    overrides.temperature
                    if overrides.temperature is not None
                    else self.config.temperature
                ),
                max_tokens=overrides.max_tokens or self.config.max_tokens,
            )
        except openai.APIConnectionError as e:
            raise ServiceUnavailableError(self.service, self._host()) from e
        except openai.NotFoundError as e:
            raise ModelNotFoundError(self.service, model) from e
        except openai.APIStatusError as e:
            raise LLMAPIError(self.service, e.message, status_code=e.status_code) from e
        except openai.APIError as e:
            raise LLMAPIError(self.service, str(e)) from e

        if not response.choices:
            raise LLMAPIError(self.service, "Model returned no choices")

        content = (response.choices[0].message.content or "").strip()
        if not content:
            raise LLMAPIError(self.service, "Model returned an empty response")

        logger.debug(f"Completion received ({len(content)} chars) from {model}")
        return content

    async def list_models(self) -> list[str]:
        """
        Discover the models currently served.

        Raises:
            ServiceUnavailableError: Server unreachable
            LLMAPIError: Listing failed
        """
        try:
            page = await self.openai.models.list()
        except openai.APIConnectionError as e:
            raise ServiceUnavailableError(self.service, self._host()) from e
        except openai.APIStatusError as e:
            raise LLMAPIError(self.service, e.message, status_code=e.status_code) from e

        return sorted(model.id for model in page.data)

    def _host(self) -> str:
        """Endpoint root without the /v1 suffix, as users know it (http://localhost:1234)."""
        url = self.config.base_url.rstrip("/")
        return url[:-3] if url.endswith("/v1") else url

    async def close(self) -> None:
        await self.openai.close()
