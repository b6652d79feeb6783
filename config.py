"""Environment-driven settings and validation."""

import logging
import os
from dataclasses import dataclass
from typing import Dict, Mapping, Optional

logger = logging.getLogger(__name__)

DEFAULT_AI_BASE_URL = "https://api.openai.com/v1/chat/completions"


class ConfigurationError(Exception):
    """Raised when environment variables are missing or invalid."""
    pass


def get_env_bool(name: str, default: bool = False, env: Optional[Mapping[str, str]] = None) -> bool:
    """Get boolean value from environment variable."""
    value = (env if env is not None else os.environ).get(name)
    if value is None:
        return default
    return value.lower() in {"1", "true", "yes", "on", "enabled"}


def safe_float(name: str, default: float, env: Optional[Mapping[str, str]] = None) -> float:
    raw = (env if env is not None else os.environ).get(name, "")
    try:
        return float(raw) if raw else default
    except ValueError:
        logger.warning("Invalid float for %s: %r; using %s", name, raw, default)
        return default


def safe_int(name: str, default: int, env: Optional[Mapping[str, str]] = None) -> int:
    raw = (env if env is not None else os.environ).get(name, "")
    try:
        return int(raw) if raw else default
    except ValueError:
        logger.warning("Invalid integer for %s: %r; using %s", name, raw, default)
        return default


@dataclass(frozen=True)
class Settings:
    db_path: str = "data.db"
    openai_api_key: Optional[str] = None
    ai_base_url: str = DEFAULT_AI_BASE_URL
    ai_timeout: float = 30.0
    mentor_model: str = "gpt-4o-mini"
    content_model: str = "gpt-3.5-turbo"
    ai_temperature: float = 0.7
    mentor_history_turns: int = 10

    @property
    def ai_enabled(self) -> bool:
        return bool(self.openai_api_key)

    @classmethod
    def from_env(cls, env: Optional[Mapping[str, str]] = None) -> "Settings":
        source = env if env is not None else os.environ
        return cls(
            db_path=source.get("DB_PATH") or "data.db",
            openai_api_key=source.get("OPENAI_API_KEY") or None,
            ai_base_url=source.get("AI_BASE_URL") or DEFAULT_AI_BASE_URL,
            ai_timeout=safe_float("AI_TIMEOUT", 30.0, source),
            mentor_model=source.get("MENTOR_MODEL") or "gpt-4o-mini",
            content_model=source.get("CONTENT_MODEL") or "gpt-3.5-turbo",
            ai_temperature=safe_float("AI_TEMPERATURE", 0.7, source),
            mentor_history_turns=max(0, safe_int("MENTOR_HISTORY_TURNS", 10, source)),
        )


def validate_environment(env: Optional[Mapping[str, str]] = None) -> Settings:
    """Validate critical environment variables and return the resulting settings.

    Raises ConfigurationError if validation fails.
    """
    source = dict(env if env is not None else os.environ)

    defaults = {
        "DB_PATH": source.get("DB_PATH") or "data.db",
    }
    for var, value in defaults.items():
        if not source.get(var):
            source[var] = value
            logger.info("Environment variable %s not set; using default '%s'", var, value)

    optional_vars: Dict[str, str] = {
        "OPENAI_API_KEY": "API key for the hosted language model (fallback content is served without it)",
        "AI_BASE_URL": "Chat-completions endpoint URL",
    }

    url_vars = {"AI_BASE_URL"}
    for var in url_vars:
        value = source.get(var)
        if value and not (value.startswith("http://") or value.startswith("https://")):
            raise ConfigurationError(f"Invalid URL format for {var}: {value}")

    temperature = safe_float("AI_TEMPERATURE", 0.7, source)
    if not 0.0 <= temperature <= 1.0:
        raise ConfigurationError(f"AI_TEMPERATURE must be between 0.0 and 1.0, got {temperature}")

    for var, description in optional_vars.items():
        if not source.get(var):
            logger.warning("Optional environment variable not set: %s (%s)", var, description)

    return Settings.from_env(source)
