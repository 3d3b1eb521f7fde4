"""Tests for timeline.orchestrator — concurrent dual fetch and all-or-nothing join."""

import asyncio

import pytest

from timeline.fetch import RetryingFetcher
from timeline.llm import NetworkError, RequestError
from timeline.models import Persona
from timeline.orchestrator import generate_narrative

from tests.stubs import StubLLM, kind_of

AMINA = Persona(name="Amina", age=30, sex="female", city="Gaza", year=1967)


async def _no_sleep(_: float) -> None:
    return None


def _fetcher(llm, **kwargs) -> RetryingFetcher:
    return RetryingFetcher(llm, sleep=_no_sleep, **kwargs)


async def test_returns_both_texts_trimmed() -> None:
    llm = StubLLM({
        "story": ["\n  Amina walked to the market.  \n"],
        "list": ["- Fact one\n- Fact two\n\n"],
    })
    result = await generate_narrative(AMINA, "en", fetcher=_fetcher(llm))
    assert result.story == "Amina walked to the market."
    assert result.context_list == "- Fact one\n- Fact two"


async def test_builds_one_prompt_per_kind() -> None:
    llm = StubLLM({"story": ["s"], "list": ["l"]})
    await generate_narrative(AMINA, "en", fetcher=_fetcher(llm))
    kinds = sorted(kind for kind, _, _ in llm.calls)
    assert kinds == ["list", "story"]
    story_prompt = next(p for k, p, _ in llm.calls if k == "story")
    assert "30-year-old female living in Gaza, Palestine in 1967" in story_prompt


async def test_requests_run_concurrently() -> None:
    """Both requests are in flight before either completes."""
    started: list[str] = []
    both_started = asyncio.Event()

    async def llm(prompt: str, system_instruction: str) -> str:
        started.append(kind_of(system_instruction))
        if len(started) == 2:
            both_started.set()
        await asyncio.wait_for(both_started.wait(), timeout=1)
        return kind_of(system_instruction)

    result = await generate_narrative(AMINA, "en", fetcher=_fetcher(llm))
    assert result.story == "story"
    assert result.context_list == "list"


async def test_one_failure_fails_the_whole_submission() -> None:
    llm = StubLLM({
        "story": [RequestError("API request failed: boom", status=500)],
        "list": ["- a fact"],
    })
    with pytest.raises(RequestError, match="boom"):
        await generate_narrative(AMINA, "en", fetcher=_fetcher(llm, max_retries=0))


async def test_list_failure_propagates_too() -> None:
    llm = StubLLM({"story": ["story"], "list": [NetworkError("offline")]})
    with pytest.raises(NetworkError):
        await generate_narrative(AMINA, "en", fetcher=_fetcher(llm, max_retries=0))


async def test_story_error_wins_when_both_fail() -> None:
    llm = StubLLM({
        "story": [RequestError("API request failed: story down", status=500)],
        "list": [NetworkError("list offline")],
    })
    with pytest.raises(RequestError, match="story down"):
        await generate_narrative(AMINA, "en", fetcher=_fetcher(llm, max_retries=0))


async def test_retry_budgets_are_independent() -> None:
    llm = StubLLM({
        "story": [NetworkError("a"), NetworkError("b"), "story"],
        "list": ["list"],
    })
    result = await generate_narrative(AMINA, "en", fetcher=_fetcher(llm, max_retries=2))
    assert result.story == "story"
    assert llm.count("story") == 3
    assert llm.count("list") == 1


async def test_sibling_cancelled_on_failure() -> None:
    cancelled = asyncio.Event()

    async def llm(prompt: str, system_instruction: str) -> str:
        if kind_of(system_instruction) == "story":
            raise RequestError("API request failed: nope", status=500)
        try:
            await asyncio.sleep(10)
        except asyncio.CancelledError:
            cancelled.set()
            raise
        return "list"

    with pytest.raises(RequestError):
        await generate_narrative(AMINA, "en", fetcher=_fetcher(llm, max_retries=0))
    assert cancelled.is_set()


async def test_second_submission_served_from_cache() -> None:
    llm = StubLLM({"story": ["story"], "list": ["list"]})
    fetcher = _fetcher(llm)
    first = await generate_narrative(AMINA, "en", fetcher=fetcher)
    second = await generate_narrative(AMINA, "en", fetcher=fetcher)
    assert first == second
    assert len(llm.calls) == 2
