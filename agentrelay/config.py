"""
Configuration management for agentrelay.

Loads all configuration from environment variables with sensible defaults
for local development. A ``.env`` file in the working directory is read
first.
"""

import os
from dataclasses import dataclass, field

from dotenv import load_dotenv

load_dotenv()

DEFAULT_MODEL = "gpt-4o"


def _env(name: str, default: str) -> str:
    return os.getenv(name, default)


def _env_bool(name: str, default: str = "false") -> bool:
    return os.getenv(name, default).lower() == "true"


@dataclass
class CompletionConfig:
    """Configuration for the chat-completion endpoint."""
    base_url: str = field(default_factory=lambda: _env("OPENAI_BASE_URL", ""))
    api_key: str = field(default_factory=lambda: _env("OPENAI_API_KEY", ""))
    model: str = field(default_factory=lambda: _env("AGENT_DEFAULT_MODEL", DEFAULT_MODEL))


@dataclass
class LoopConfig:
    """Defaults for the turn loop.

    ``max_turns`` is unbounded unless ``AGENT_MAX_TURNS`` is set.
    """
    max_turns: float = field(default_factory=lambda: float(_env("AGENT_MAX_TURNS", "inf")))
    debug: bool = field(default_factory=lambda: _env_bool("AGENT_DEBUG"))


@dataclass
class LangfuseConfig:
    """Configuration for Langfuse observability.

    Tracing auto-enables when both public_key and secret_key are provided.
    """
    public_key: str = field(default_factory=lambda: _env("LANGFUSE_PUBLIC_KEY", ""))
    secret_key: str = field(default_factory=lambda: _env("LANGFUSE_SECRET_KEY", ""))
    host: str = field(default_factory=lambda: _env("LANGFUSE_HOST", ""))
    debug: bool = field(default_factory=lambda: _env_bool("LANGFUSE_DEBUG"))

    @property
    def enabled(self) -> bool:
        """Auto-enable when both keys are configured."""
        return bool(self.public_key and self.secret_key)


@dataclass
class Config:
    """Main configuration container."""
    completion: CompletionConfig = field(default_factory=CompletionConfig)
    loop: LoopConfig = field(default_factory=LoopConfig)
    langfuse: LangfuseConfig = field(default_factory=LangfuseConfig)
    log_level: str = field(default_factory=lambda: _env("LOG_LEVEL", "INFO"))


def get_config() -> Config:
    """Get the application configuration from the current environment."""
    return Config(
        completion=CompletionConfig(),
        loop=LoopConfig(),
        langfuse=LangfuseConfig(),
    )


# Global config instance
config = get_config()
