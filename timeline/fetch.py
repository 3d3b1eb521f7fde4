"""Retrying, caching front end to an LLM.

One logical request = up to `max_retries + 1` attempts. The delay before a
retry is `(max_retries - retries_left)` seconds, so with the default budget
of 3 the schedule is 0 s, 1 s, 2 s (linear, not exponential).

Only transport failures and non-success responses are retried. A success
response with the wrong shape is a contract break and surfaces at once.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Awaitable, Callable

from timeline.cache import NarrativeCache, cache_key
from timeline.llm import LLM, NetworkError, RequestError

logger = logging.getLogger(__name__)

Sleep = Callable[[float], Awaitable[None]]

DEFAULT_MAX_RETRIES = 3


class RetryingFetcher:
    """Fetches generated text with cache lookup and bounded retry.

    Args:
        llm:         Single-attempt client.
        cache:       Shared cache. A fresh unbounded one when omitted.
        max_retries: Default retry budget per request.
        use_cache:   Consult and populate the cache.
        sleep:       Awaitable delay, injectable for tests.
    """

    def __init__(
        self,
        llm: LLM,
        cache: NarrativeCache | None = None,
        max_retries: int = DEFAULT_MAX_RETRIES,
        use_cache: bool = True,
        sleep: Sleep = asyncio.sleep,
    ) -> None:
        self._llm = llm
        self.cache = cache if cache is not None else NarrativeCache()
        self._max_retries = max_retries
        self._use_cache = use_cache
        self._sleep = sleep

    async def fetch(
        self,
        prompt: str,
        system_instruction: str,
        max_retries: int | None = None,
    ) -> str:
        budget = self._max_retries if max_retries is None else max_retries

        if self._use_cache:
            cached = self.cache.get(cache_key(prompt))
            if cached:
                logger.debug("cache hit prompt_len=%d", len(prompt))
                return cached

        retries_left = budget
        while True:
            try:
                result = await self._llm(prompt, system_instruction)
            except (NetworkError, RequestError) as e:
                if retries_left <= 0:
                    raise
                logger.warning(
                    "Retrying narrative generation. Attempts left: %d (%s)",
                    retries_left, e,
                )
                await self._sleep(float(budget - retries_left))
                retries_left -= 1
                continue

            if self._use_cache:
                # Keyed by the prompt only; the system instruction is not part of the key.
                self.cache.put(cache_key(prompt), result)
            return result
