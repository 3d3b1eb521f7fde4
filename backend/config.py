"""App configuration (text backend, speech backend, retry and cache limits).

Values come from the process environment, which `backend.app` seeds from
`.env` via python-dotenv. Anything unset falls back to `_CONFIG_DEFAULTS`.
"""

import os
from typing import Any

from timeline.fetch import DEFAULT_MAX_RETRIES
from timeline.llm import DEFAULT_BASE_URL, DEFAULT_MODEL
from timeline.speech import DEFAULT_VOICE, PLAYHT_URL

_CONFIG_DEFAULTS: dict[str, Any] = {
    "llm_provider": "gemini",
    "gemini_api_key": "",
    "gemini_model": DEFAULT_MODEL,
    "gemini_base_url": DEFAULT_BASE_URL,
    "llm_max_retries": DEFAULT_MAX_RETRIES,
    "llm_timeout": 120.0,
    "cache_max_entries": None,
    "playht_user_id": "",
    "playht_secret_key": "",
    "playht_voice": DEFAULT_VOICE,
    "playht_url": PLAYHT_URL,
    "log_level": "info",
}

_ENV_KEYS: dict[str, str] = {
    "llm_provider": "LLM_PROVIDER",
    "gemini_api_key": "GEMINI_API_KEY",
    "gemini_model": "GEMINI_MODEL",
    "gemini_base_url": "GEMINI_BASE_URL",
    "llm_max_retries": "LLM_MAX_RETRIES",
    "llm_timeout": "LLM_TIMEOUT",
    "cache_max_entries": "NARRATIVE_CACHE_MAX_ENTRIES",
    "playht_user_id": "PLAYHT_USER_ID",
    "playht_secret_key": "PLAYHT_SECRET_KEY",
    "playht_voice": "PLAYHT_VOICE",
    "playht_url": "PLAYHT_URL",
    "log_level": "LOG_LEVEL",
}

_SECRET_KEYS = ("gemini_api_key", "playht_secret_key")
_LOG_LEVELS = ("debug", "info", "warning", "error")


class ConfigError(ValueError):
    """An environment value could not be parsed."""


def _coerce(key: str, raw: str) -> Any:
    try:
        if key == "llm_max_retries":
            value = int(raw)
            if value < 0:
                raise ValueError(raw)
            return value
        if key == "llm_timeout":
            return float(raw)
        if key == "cache_max_entries":
            return int(raw) if raw.strip() else None
    except ValueError as e:
        raise ConfigError(f"Invalid value for {_ENV_KEYS[key]}: {raw!r}") from e
    if key == "llm_provider":
        raw = raw.strip().lower()
        if raw not in ("gemini", "echo"):
            raise ConfigError(f"Invalid value for LLM_PROVIDER: {raw!r}")
    if key == "log_level":
        raw = raw.strip().lower()
        if raw not in _LOG_LEVELS:
            raise ConfigError(f"Invalid value for LOG_LEVEL: {raw!r}")
    return raw


def get_config(env: dict[str, str] | None = None) -> dict[str, Any]:
    """Read config, returning defaults merged with environment values."""
    env = os.environ if env is None else env
    config = dict(_CONFIG_DEFAULTS)
    for key, var in _ENV_KEYS.items():
        if var in env:
            config[key] = _coerce(key, env[var])
    return config


def redact(config: dict[str, Any]) -> dict[str, Any]:
    """Copy of config safe to return over the API."""
    safe = dict(config)
    for key in _SECRET_KEYS:
        safe[key] = "***" if safe.get(key) else ""
    return safe
