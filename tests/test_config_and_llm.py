"""Tests for configuration loading and the LLM client's error mapping."""

from pathlib import Path

import httpx
import pytest

from mavens.llm import LLMAPIError, LLMClient, ModelNotFoundError, ServiceUnavailableError
from mavens.utils.config import LLMConfig, get_config, reset_config


def test_defaults_target_lm_studio():
    config = get_config()

    assert config.llm.provider == "lmstudio"
    assert config.llm.base_url == "http://localhost:1234/v1"
    assert config.router.activation_threshold == 0.2
    assert config.context.window_size == 20
    assert config.learning.store_path is None
    assert config.mcp.servers == {}


def test_environment_overrides(monkeypatch, tmp_path):
    monkeypatch.setenv("MAVENS_LLM_PROVIDER", "ollama")
    monkeypatch.setenv("MAVENS_CONTEXT_WINDOW", "5")
    monkeypatch.setenv("MAVENS_CONTEXT_MAX_SESSIONS", "50")
    monkeypatch.setenv("MAVENS_ROUTER_THRESHOLD", "0.35")
    monkeypatch.setenv("LEARNING_STORE_PATH", str(tmp_path / "learning.json"))
    reset_config()

    config = get_config()

    assert config.llm.base_url == "http://localhost:11434/v1"
    assert config.context.window_size == 5
    assert config.context.max_sessions == 50
    assert config.router.activation_threshold == 0.35
    assert config.learning.store_path == Path(tmp_path / "learning.json")


def test_invalid_values_fall_back_to_defaults(monkeypatch):
    monkeypatch.setenv("MAVENS_LLM_PROVIDER", "mystery")
    monkeypatch.setenv("MAVENS_CONTEXT_WINDOW", "lots")
    monkeypatch.setenv("MAVENS_LEARNING_DECAY", "fast")
    reset_config()

    config = get_config()

    assert config.llm.provider == "lmstudio"
    assert config.context.window_size == 20
    assert config.learning.decay == 0.9


def test_config_is_cached_until_reset(monkeypatch):
    first = get_config()
    monkeypatch.setenv("MAVENS_CONTEXT_WINDOW", "7")

    assert get_config() is first
    reset_config()
    assert get_config().context.window_size == 7


def test_error_messages_name_the_service():
    unavailable = ServiceUnavailableError("lmstudio", "http://localhost:1234")
    assert "LM Studio" in unavailable.user_message()
    assert "http://localhost:1234" in unavailable.user_message()
    assert unavailable.retryable
    assert unavailable.details()["endpoint"] == "http://localhost:1234"

    missing = ModelNotFoundError("ollama", "llama3")
    assert '"llama3"' in missing.user_message()
    assert not missing.retryable

    assert LLMAPIError("ollama", "boom", status_code=503).retryable
    assert not LLMAPIError("ollama", "bad request", status_code=400).retryable
    assert "rate limited" in LLMAPIError("lmstudio", "slow down", status_code=429).user_message()


@pytest.mark.asyncio
async def test_unreachable_server_raises_service_unavailable():
    client = LLMClient(LLMConfig(
        provider="lmstudio",
        base_url="http://127.0.0.1:9/v1",
        model="local-model",
        api_key="lmstudio",
        timeout=5.0,
    ))

    with pytest.raises(ServiceUnavailableError) as info:
        await client.complete("hello")

    assert info.value.endpoint == "http://127.0.0.1:9"
    await client.close()


def local_config() -> LLMConfig:
    return LLMConfig(
        provider="ollama",
        base_url="http://localhost:11434/v1",
        model="llama3",
        api_key="ollama",
        timeout=5.0,
    )


def mock_server(handler) -> httpx.AsyncClient:
    return httpx.AsyncClient(transport=httpx.MockTransport(handler))


@pytest.mark.asyncio
async def test_complete_returns_stripped_text():
    requests = []

    def handler(request: httpx.Request) -> httpx.Response:
        requests.append(request)
        return httpx.Response(200, json={
            "id": "chatcmpl-1",
            "object": "chat.completion",
            "created": 0,
            "model": "llama3",
            "choices": [{
                "index": 0,
                "message": {"role": "assistant", "content": "  Use a context manager.\n"},
                "finish_reason": "stop",
            }],
        })

    client = LLMClient(local_config(), http_client=mock_server(handler))
    assert await client.complete("How do I close files?") == "Use a context manager."
    assert requests[0].url.path == "/v1/chat/completions"
    await client.close()


@pytest.mark.asyncio
async def test_list_models_is_sorted():
    def handler(request: httpx.Request) -> httpx.Response:
        assert request.url.path == "/v1/models"
        return httpx.Response(200, json={
            "object": "list",
            "data": [
                {"id": "qwen2.5-coder", "object": "model", "created": 0, "owned_by": "library"},
                {"id": "llama3", "object": "model", "created": 0, "owned_by": "library"},
            ],
        })

    client = LLMClient(local_config(), http_client=mock_server(handler))
    assert await client.list_models() == ["llama3", "qwen2.5-coder"]
    await client.close()


@pytest.mark.asyncio
async def test_http_errors_map_to_typed_errors():
    statuses = iter([404, 500])

    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(next(statuses), json={"error": {"message": "nope"}})

    client = LLMClient(local_config(), http_client=mock_server(handler))

    with pytest.raises(ModelNotFoundError) as missing:
        await client.complete("hello")
    assert missing.value.model_id == "llama3"

    with pytest.raises(LLMAPIError) as failed:
        await client.complete("hello")
    assert failed.value.status_code == 500
    assert failed.value.retryable

    await client.close()
