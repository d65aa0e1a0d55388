"""
Configuration Management
========================

Centralized configuration for the assistant. All environment variables are
read, typed and defaulted here so the rest of the code never calls
os.getenv() directly.

Nothing is required: the assistant talks to a local model server by default
(LM Studio on port 1234), keeps its learning table in memory, and every
tunable of the router, context window and learning decay has a default.

Usage:
    from mavens.utils.config import get_config

    config = get_config()
    print(config.llm.base_url)
    print(config.router.activation_threshold)
"""

import os
from dataclasses import dataclass, field
from pathlib import Path

from dotenv import load_dotenv

from mavens.utils.logger import Logger

logger = Logger("Config")


def _optional(name: str, default: str) -> str:
    """
    Get an optional environment variable with a default.

    Args:
        name: The environment variable name
        default: Default value if not set

    Returns:
        The value or the default
    """
    return os.getenv(name, default)


def _optional_int(name: str, default: int) -> int:
    """
    Get an optional integer environment variable.

    Args:
        name: The environment variable name
        default: Default value if not set or invalid

    Returns:
        The integer value or the default
    """
    value = os.getenv(name)
    if not value:
        return default
    try:
        return int(value)
    except ValueError:
        logger.warning(f"{name} is not a valid integer, using default: {default}")
        return default


def _optional_float(name: str, default: float) -> float:
    value = os.getenv(name)
    if not value:
        return default
    try:
        return float(value)
    except ValueError:
        logger.warning(f"{name} is not a valid number, using default: {default}")
        return default


def _optional_path(name: str) -> Path | None:
    value = os.getenv(name)
    return Path(value).expanduser() if value else None


def _parse_servers(value: str) -> dict[str, str]:
    """
    Parse MAVENS_MCP_SERVERS ("name=url,other=url") into a mapping.

    Malformed items are skipped with a warning.
    """
    servers: dict[str, str] = {}
    for item in value.split(","):
        item = item.strip()
        if not item:
            continue
        name, sep, url = item.partition("=")
        if not sep or not name.strip() or not url.strip():
            logger.warning(f"Ignoring malformed MCP server entry: {item}")
            continue
        servers[name.strip()] = url.strip()
    return servers


# ==============================================================================
# Configuration Dataclasses
# ==============================================================================

PROVIDER_URLS = {
    "lmstudio": "http://localhost:1234/v1",
    "ollama": "http://localhost:11434/v1",
}


@dataclass(frozen=True)
class LLMConfig:
    """Local model server configuration."""
    provider: str          # "lmstudio" or "ollama"
    base_url: str          # OpenAI-compatible endpoint root
    model: str             # Model id passed to chat completions
    api_key: str           # Local servers accept any non-empty key
    timeout: float         # Seconds per completion request
    temperature: float = 0.7
    max_tokens: int = 2000


@dataclass(frozen=True)
class RouterConfig:
    """Intent router tuning."""
    activation_threshold: float = 0.2
    topic_boost: float = 0.1
    followup_strength: float = 0.6


@dataclass(frozen=True)
class ContextConfig:
    """Conversation context window."""
    window_size: int = 20
    topic_window: int = 3
    max_sessions: int = 1000


@dataclass(frozen=True)
class LearningConfig:
    """Adaptive routing confidence."""
    decay: float = 0.9
    bucket_seconds: int = 3600
    prior_strength: float = 1.0
    store_path: Path | None = None


@dataclass(frozen=True)
class ResponseConfig:
    """Response rendering limits."""
    max_content_length: int = 4000
    greeting_max_length: int = 100


@dataclass(frozen=True)
class ShellConfig:
    """Shell command execution."""
    command_timeout: float = 120.0


@dataclass(frozen=True)
class MCPConfig:
    """External tool servers reachable over HTTP JSON-RPC."""
    servers: dict[str, str] = field(default_factory=dict)
    timeout: float = 15.0


@dataclass(frozen=True)
class Config:
    """
    Root configuration object.

    Access via:
        config = get_config()
        config.llm.model
        config.learning.decay
    """
    llm: LLMConfig
    router: RouterConfig
    context: ContextConfig
    learning: LearningConfig
    response: ResponseConfig
    shell: ShellConfig
    mcp: MCPConfig
    log_level: str


def load_config() -> Config:
    """
    Load all configuration from the environment (and a .env file if any).

    Returns:
        Config: The typed configuration
    """
    load_dotenv()

    provider = _optional("MAVENS_LLM_PROVIDER", "lmstudio").lower()
    if provider not in PROVIDER_URLS:
        logger.warning(f"Unknown LLM provider '{provider}', falling back to lmstudio")
        provider = "lmstudio"

    return Config(
        llm=LLMConfig(
            provider=provider,
            base_url=_optional("MAVENS_LLM_BASE_URL", PROVIDER_URLS[provider]),
            model=_optional("MAVENS_LLM_MODEL", "local-model"),
            api_key=_optional("MAVENS_LLM_API_KEY", provider),
            timeout=_optional_float("MAVENS_LLM_TIMEOUT", 60.0),
            temperature=_optional_float("MAVENS_LLM_TEMPERATURE", 0.7),
            max_tokens=_optional_int("MAVENS_LLM_MAX_TOKENS", 2000),
        ),
        router=RouterConfig(
            activation_threshold=_optional_float("MAVENS_ROUTER_THRESHOLD", 0.2),
            topic_boost=_optional_float("MAVENS_ROUTER_TOPIC_BOOST", 0.1),
            followup_strength=_optional_float("MAVENS_ROUTER_FOLLOWUP_STRENGTH", 0.6),
        ),
        context=ContextConfig(
            window_size=_optional_int("MAVENS_CONTEXT_WINDOW", 20),
            topic_window=_optional_int("MAVENS_TOPIC_WINDOW", 3),
            max_sessions=_optional_int("MAVENS_CONTEXT_MAX_SESSIONS", 1000),
        ),
        learning=LearningConfig(
            decay=_optional_float("MAVENS_LEARNING_DECAY", 0.9),
            bucket_seconds=_optional_int("MAVENS_LEARNING_BUCKET_SECONDS", 3600),
            prior_strength=_optional_float("MAVENS_LEARNING_PRIOR", 1.0),
            store_path=_optional_path("LEARNING_STORE_PATH"),
        ),
        response=ResponseConfig(
            max_content_length=_optional_int("MAVENS_MAX_CONTENT_LENGTH", 4000),
        ),
        shell=ShellConfig(
            command_timeout=_optional_float("MAVENS_COMMAND_TIMEOUT", 120.0),
        ),
        mcp=MCPConfig(
            servers=_parse_servers(_optional("MAVENS_MCP_SERVERS", "")),
        ),
        log_level=_optional("LOG_LEVEL", "warning"),
    )


# ==============================================================================
# Singleton
# ==============================================================================

_config_instance: Config | None = None


def get_config() -> Config:
    """
    Get the singleton configuration instance.

    The configuration is loaded on first access and cached for subsequent calls.

    Returns:
        Config: The application configuration
    """
    global _config_instance
    if _config_instance is None:
        _config_instance = load_config()
    return _config_instance


def reset_config() -> None:
    """Drop the cached configuration so the next get_config() re-reads the environment."""
    global _config_instance
    _config_instance = None
