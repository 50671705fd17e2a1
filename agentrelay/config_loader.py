"""
Configuration loader for agentrelay.

Loads configuration from YAML files with support for
environment variable interpolation. Sections that are missing from the
file fall back to the environment defaults in ``config.py``.
"""

import logging
import os
import re
from pathlib import Path
from typing import Any, Optional

import yaml

from .config import (
    DEFAULT_MODEL,
    CompletionConfig,
    Config,
    LangfuseConfig,
    LoopConfig,
    get_config,
)

logger = logging.getLogger(__name__)

DEFAULT_CONFIG_PATH = Path(__file__).parent.parent / "config" / "config.yaml"

# Regex for environment variable interpolation: ${VAR} or ${VAR:-default}
ENV_VAR_PATTERN = re.compile(r"\$\{([^}:]+)(?::-([^}]*))?\}")

# Singleton cache for app config
_app_config: Optional[Config] = None


def resolve_env_vars(value: str) -> str:
    """
    Resolve environment variable references in a string.

    Supports ${VAR} and ${VAR:-default} syntax.

    Args:
        value: String potentially containing env var references

    Returns:
        String with env vars resolved
    """

    def replace_match(match: re.Match) -> str:
        var_name = match.group(1)
        default_value = match.group(2) if match.group(2) is not None else ""
        return os.environ.get(var_name, default_value)

    return ENV_VAR_PATTERN.sub(replace_match, value)


def _substitute_env_vars_recursive(data: Any) -> Any:
    """Recursively substitute environment variables in a data structure."""
    if isinstance(data, dict):
        return {k: _substitute_env_vars_recursive(v) for k, v in data.items()}
    elif isinstance(data, list):
        return [_substitute_env_vars_recursive(item) for item in data]
    elif isinstance(data, str):
        return resolve_env_vars(data)
    return data


def _as_bool(value: Any) -> bool:
    if isinstance(value, str):
        return value.lower() == "true"
    return bool(value)


def _parse_completion_config(data: dict, fallback: CompletionConfig) -> CompletionConfig:
    """Parse completion endpoint configuration from dict."""
    return CompletionConfig(
        base_url=data.get("base_url", fallback.base_url),
        api_key=data.get("api_key", fallback.api_key),
        model=data.get("model", fallback.model) or DEFAULT_MODEL,
    )


def _parse_loop_config(data: dict, fallback: LoopConfig) -> LoopConfig:
    """Parse turn loop configuration from dict."""
    max_turns = data.get("max_turns", fallback.max_turns)
    if max_turns is None or max_turns == "":
        max_turns = float("inf")
    return LoopConfig(
        max_turns=float(max_turns),
        debug=_as_bool(data.get("debug", fallback.debug)),
    )


def _parse_langfuse_config(data: dict, fallback: LangfuseConfig) -> LangfuseConfig:
    """Parse Langfuse configuration from dict."""
    return LangfuseConfig(
        public_key=data.get("public_key", fallback.public_key),
        secret_key=data.get("secret_key", fallback.secret_key),
        host=data.get("host", fallback.host),
        debug=_as_bool(data.get("debug", fallback.debug)),
    )


def load_app_config(path: Optional[str] = None, reload: bool = False) -> Config:
    """
    Load application configuration from a YAML file.

    Subsequent calls return the cached config unless reload=True is
    specified. When no file exists at the resolved path, the environment
    configuration is returned.

    Args:
        path: Path to the YAML configuration file. If None, uses
              the CONFIG_PATH env var or config/config.yaml.
        reload: If True, force reload from disk instead of using cache.

    Returns:
        Config with all sections populated

    Raises:
        ValueError: If the file is not a YAML mapping
    """
    global _app_config

    if _app_config is not None and not reload:
        return _app_config

    if path is None:
        path = os.environ.get("CONFIG_PATH", str(DEFAULT_CONFIG_PATH))

    config_path = Path(path)
    env_config = get_config()

    if not config_path.exists():
        logger.debug("No configuration file at %s, using environment", config_path)
        _app_config = env_config
        return _app_config

    logger.info("Loading configuration from %s", config_path)

    with open(config_path, "r") as f:
        raw_config = yaml.safe_load(f)

    if raw_config is None:
        raw_config = {}
    if not isinstance(raw_config, dict):
        raise ValueError(f"Configuration file {config_path} must contain a mapping")

    raw_config = _substitute_env_vars_recursive(raw_config)

    logging_data = raw_config.get("logging") or {}
    _app_config = Config(
        completion=_parse_completion_config(
            raw_config.get("completion") or {}, env_config.completion
        ),
        loop=_parse_loop_config(raw_config.get("loop") or {}, env_config.loop),
        langfuse=_parse_langfuse_config(
            raw_config.get("langfuse") or {}, env_config.langfuse
        ),
        log_level=logging_data.get("level", env_config.log_level),
    )

    logger.debug(
        "Configuration loaded: model=%s, max_turns=%s",
        _app_config.completion.model,
        _app_config.loop.max_turns,
    )
    return _app_config


def reset_config_cache() -> None:
    """Reset the configuration cache, forcing a reload on next access."""
    global _app_config
    _app_config = None
    logger.debug("Configuration cache reset")
