"""Narrative orchestrator — one submission end-to-end.

Flow:
  1. Build the story and list prompts for (persona, locale).
  2. Fetch both concurrently, each with its own retry budget.
  3. Join: both must succeed. The first failure propagates, the sibling
     request is cancelled and nothing partial is returned. If both have
     failed by the time the join wakes, the story error is raised.
  4. Strip surrounding whitespace from both texts.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Protocol

from timeline.models import Kind, Locale, NarrativeResult, Persona
from timeline.prompts import build_prompt, system_instruction

logger = logging.getLogger(__name__)


class Fetcher(Protocol):
    async def fetch(
        self, prompt: str, system_instruction: str, max_retries: int | None = None
    ) -> str: ...


async def _fetch_kind(fetcher: Fetcher, persona: Persona, locale: Locale, kind: Kind) -> str:
    prompt = build_prompt(persona, locale, kind)
    return await fetcher.fetch(prompt, system_instruction(locale, kind))


async def generate_narrative(
    persona: Persona,
    locale: Locale,
    *,
    fetcher: Fetcher,
) -> NarrativeResult:
    """Generate story and historical context for a persona, all or nothing."""
    logger.info(
        "generate narrative name=%s city=%s year=%s locale=%s",
        persona.name, persona.city, persona.year, locale,
    )
    story_task = asyncio.create_task(_fetch_kind(fetcher, persona, locale, "story"))
    list_task = asyncio.create_task(_fetch_kind(fetcher, persona, locale, "list"))
    tasks = [story_task, list_task]

    try:
        done, pending = await asyncio.wait(tasks, return_when=asyncio.FIRST_EXCEPTION)
    except asyncio.CancelledError:
        for t in tasks:
            t.cancel()
        raise

    # Story before list, so a simultaneous double failure reports the story.
    failed = [t for t in tasks if t in done and t.exception() is not None]
    if failed:
        for t in pending:
            t.cancel()
        if pending:
            await asyncio.gather(*pending, return_exceptions=True)
        raise failed[0].exception()

    return NarrativeResult(
        story=story_task.result().strip(),
        context_list=list_task.result().strip(),
    )
