"""Process-wide session wiring.

The app serves a single narrative session, built from config by
init_session() and fetched by routes through get_session().
"""

import logging
from typing import Any

from timeline.cache import NarrativeCache
from timeline.fetch import RetryingFetcher
from timeline.llm import LLM, EchoLLM, GeminiLLM
from timeline.session import NarrativeSession
from timeline.speech import PlayHTSpeech, Speech

logger = logging.getLogger(__name__)

_session: NarrativeSession | None = None
_config: dict[str, Any] | None = None


def build_llm(config: dict[str, Any]) -> LLM:
    if config["llm_provider"] == "echo":
        return EchoLLM()
    return GeminiLLM(
        api_key=config["gemini_api_key"],
        model=config["gemini_model"],
        base_url=config["gemini_base_url"],
        timeout=config["llm_timeout"],
    )


def build_speech(config: dict[str, Any]) -> Speech:
    return PlayHTSpeech(
        user_id=config["playht_user_id"],
        secret_key=config["playht_secret_key"],
        voice=config["playht_voice"],
        url=config["playht_url"],
    )


def init_session(
    config: dict[str, Any],
    *,
    llm: LLM | None = None,
    speech: Speech | None = None,
) -> NarrativeSession:
    """Build (or rebuild) the shared session. `llm`/`speech` override config."""
    global _session, _config
    fetcher = RetryingFetcher(
        llm or build_llm(config),
        cache=NarrativeCache(max_entries=config["cache_max_entries"]),
        max_retries=config["llm_max_retries"],
    )
    _session = NarrativeSession(fetcher, speech=speech or build_speech(config))
    _config = config
    logger.info(
        "session ready provider=%s model=%s retries=%d",
        config["llm_provider"], config["gemini_model"], config["llm_max_retries"],
    )
    return _session


def get_session() -> NarrativeSession:
    assert _session is not None, "Call init_session() before using the session"
    return _session


def active_config() -> dict[str, Any]:
    """The config the current session was built from."""
    assert _config is not None, "Call init_session() before using the session"
    return _config


async def close_session() -> None:
    global _session
    if _session is not None:
        await _session.aclose()
        _session = None
