"""
Configuration Management
========================

Centralized configuration for the triage bot. All environment variables
are read, typed and validated here; the rest of the code only sees the
frozen dataclasses below.

Values are loaded from the process environment, with a .env file
(python-dotenv) filling in anything that is not already set.

Usage:
    from triage_bot.utils.config import get_config

    config = get_config()
    print(config.slack.bot_token)
    print(config.openai.assistant_agent_model)
"""

import os
from dataclasses import dataclass
from pathlib import Path

from dotenv import load_dotenv


REASONING_EFFORTS = ("low", "medium", "high")


def _required(name: str) -> str:
    """
    Get a required environment variable.

    Raises:
        ValueError: If the variable is not set
    """
    value = os.getenv(name)
    if not value:
        raise ValueError(
            f"Missing required environment variable: {name}\n"
            f"Please ensure {name} is set in your environment or .env file."
        )
    return value


def _optional(name: str, default: str) -> str:
    """Get an optional environment variable with a default."""
    value = os.getenv(name)
    return value if value else default


def _optional_int(name: str, default: int) -> int:
    """
    Get an optional integer environment variable.

    Raises:
        ValueError: If the variable is set but is not an integer
    """
    value = os.getenv(name)
    if not value:
        return default
    try:
        return int(value)
    except ValueError:
        raise ValueError(f"{name} must be an integer, got {value!r}") from None


def _optional_float(name: str, default: float) -> float:
    """
    Get an optional float environment variable.

    Raises:
        ValueError: If the variable is set but is not a number
    """
    value = os.getenv(name)
    if not value:
        return default
    try:
        return float(value)
    except ValueError:
        raise ValueError(f"{name} must be a number, got {value!r}") from None


# ==============================================================================
# Configuration Dataclasses
# ==============================================================================

@dataclass(frozen=True)
class SlackConfig:
    """Slack API configuration."""
    bot_token: str       # xoxb-... token for bot operations
    app_token: str       # xapp-... token for Socket Mode
    signing_secret: str  # For verifying Slack requests


@dataclass(frozen=True)
class OpenAIConfig:
    """OpenAI models used by the helper agents and the assistant agent."""
    api_key: str
    search_agent_model: str
    assistant_agent_model: str
    search_agent_temperature: float
    assistant_agent_temperature: float
    search_agent_reasoning_effort: str
    assistant_agent_reasoning_effort: str
    max_tokens: int


@dataclass(frozen=True)
class DirectiveConfig:
    """System directives (prompts); each can be overridden from the environment."""
    assistant_system: str
    assistant_mention: str
    web_search_system: str
    message_search_system: str


@dataclass(frozen=True)
class RetryConfig:
    """Retry policy for every outbound model call."""
    max_attempts: int
    timeout_seconds: float
    backoff_seconds: float


@dataclass(frozen=True)
class AgentConfig:
    """Everything the orchestration engine needs besides its collaborators."""
    openai: OpenAIConfig
    directives: DirectiveConfig
    retry: RetryConfig
    max_iterations: int


@dataclass(frozen=True)
class Config:
    """
    Root configuration object.

    Access via:
        config = get_config()
        config.slack.bot_token
        config.agent.openai.assistant_agent_model
        config.agent.retry.max_attempts
    """
    slack: SlackConfig
    agent: AgentConfig
    mcp_config_path: Path
    data_dir: Path
    log_level: str


def validate_agent_config(agent: AgentConfig) -> None:
    """
    Check the value ranges the OpenAI API and the engine accept.

    Raises:
        ValueError: On the first invalid value
    """
    openai = agent.openai

    for label, temperature in (
        ("search agent", openai.search_agent_temperature),
        ("assistant agent", openai.assistant_agent_temperature),
    ):
        if not 0.0 <= temperature <= 2.0:
            raise ValueError(f"OpenAI {label} temperature must be between 0 and 2.")

    for label, effort in (
        ("search agent", openai.search_agent_reasoning_effort),
        ("assistant agent", openai.assistant_agent_reasoning_effort),
    ):
        if effort not in REASONING_EFFORTS:
            raise ValueError(
                f"Invalid {label} reasoning effort: {effort}. Must be one of: low, medium, high"
            )

    if not 1 <= openai.max_tokens <= 128000:
        raise ValueError("OpenAI max tokens must be between 1 and 128000.")

    if agent.retry.max_attempts < 1:
        raise ValueError("MODEL_MAX_ATTEMPTS must be at least 1.")
    if agent.retry.timeout_seconds <= 0:
        raise ValueError("MODEL_TIMEOUT_SECONDS must be positive.")
    if agent.retry.backoff_seconds < 0:
        raise ValueError("MODEL_BACKOFF_SECONDS must not be negative.")
    if agent.max_iterations < 1:
        raise ValueError("ASSISTANT_MAX_ITERATIONS must be at least 1.")


def load_agent_config() -> AgentConfig:
    """Load the orchestration engine configuration from the environment."""
    # Imported here: the agent package depends on this module
    from triage_bot.agent import prompts

    agent = AgentConfig(
        openai=OpenAIConfig(
            api_key=_required("OPENAI_API_KEY"),
            search_agent_model=_optional("OPENAI_SEARCH_AGENT_MODEL", "gpt-4.1"),
            assistant_agent_model=_optional("OPENAI_ASSISTANT_AGENT_MODEL", "o3"),
            search_agent_temperature=_optional_float("OPENAI_SEARCH_AGENT_TEMPERATURE", 0.0),
            assistant_agent_temperature=_optional_float("OPENAI_ASSISTANT_AGENT_TEMPERATURE", 0.7),
            search_agent_reasoning_effort=_optional(
                "OPENAI_SEARCH_AGENT_REASONING_EFFORT", "low"
            ).lower(),
            assistant_agent_reasoning_effort=_optional(
                "OPENAI_ASSISTANT_AGENT_REASONING_EFFORT", "medium"
            ).lower(),
            max_tokens=_optional_int("OPENAI_MAX_TOKENS", 65536),
        ),
        directives=DirectiveConfig(
            assistant_system=_optional(
                "ASSISTANT_AGENT_SYSTEM_DIRECTIVE", prompts.ASSISTANT_AGENT_SYSTEM_DIRECTIVE
            ),
            assistant_mention=_optional(
                "ASSISTANT_AGENT_MENTION_DIRECTIVE", prompts.ASSISTANT_AGENT_MENTION_DIRECTIVE
            ),
            web_search_system=_optional(
                "SEARCH_AGENT_SYSTEM_DIRECTIVE", prompts.SEARCH_AGENT_SYSTEM_DIRECTIVE
            ),
            message_search_system=_optional(
                "MESSAGE_SEARCH_AGENT_SYSTEM_DIRECTIVE", prompts.MESSAGE_SEARCH_AGENT_SYSTEM_DIRECTIVE
            ),
        ),
        retry=RetryConfig(
            max_attempts=_optional_int("MODEL_MAX_ATTEMPTS", 3),
            timeout_seconds=_optional_float("MODEL_TIMEOUT_SECONDS", 120.0),
            backoff_seconds=_optional_float("MODEL_BACKOFF_SECONDS", 1.0),
        ),
        max_iterations=_optional_int("ASSISTANT_MAX_ITERATIONS", 5),
    )

    validate_agent_config(agent)
    return agent


def load_config(env_file: Path | None = None) -> Config:
    """
    Load and validate all configuration from the environment.

    Args:
        env_file: Optional explicit .env file; otherwise .env is searched
            for from the working directory upwards

    Returns:
        Config: The validated configuration

    Raises:
        ValueError: If required configuration is missing or out of range
    """
    if env_file is not None:
        load_dotenv(env_file)
    else:
        load_dotenv()

    return Config(
        slack=SlackConfig(
            bot_token=_required("SLACK_BOT_TOKEN"),
            app_token=_required("SLACK_APP_TOKEN"),
            signing_secret=_required("SLACK_SIGNING_SECRET"),
        ),
        agent=load_agent_config(),
        mcp_config_path=Path(_optional("MCP_CONFIG_PATH", "mcp.json")),
        data_dir=Path(_optional("DATA_DIR", "data")),
        log_level=_optional("LOG_LEVEL", "info"),
    )


# ==============================================================================
# Singleton
# ==============================================================================

_config_instance: Config | None = None


def get_config(env_file: Path | None = None) -> Config:
    """
    Get the configuration, loading it on first access.

    Args:
        env_file: Only honoured on the first call

    Returns:
        Config: The application configuration
    """
    global _config_instance
    if _config_instance is None:
        _config_instance = load_config(env_file)
    return _config_instance


def reset_config() -> None:
    """Forget the cached configuration (used by tests)."""
    global _config_instance
    _config_instance = None
