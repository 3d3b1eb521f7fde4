"""Tests for timeline.session — lifecycle transitions, stale-result guard, audio pipeline."""

import asyncio

import pytest

from timeline.fetch import RetryingFetcher
from timeline.llm import RequestError
from timeline.models import AudioState, Persona, RequestState
from timeline.session import NarrativeSession
from timeline.speech import AudioRegistry, SynthesisError

from tests.stubs import GatedLLM, StubLLM, StubSpeech

AMINA = Persona(name="Amina", age=30, sex="female", city="Gaza", year=1967)
KHALIL = Persona(name="Khalil", age=45, sex="male", city="Hebron", year=1948)


async def _no_sleep(_: float) -> None:
    return None


def _session(llm, speech=None, registry=None, max_retries: int = 0) -> NarrativeSession:
    fetcher = RetryingFetcher(llm, max_retries=max_retries, sleep=_no_sleep)
    return NarrativeSession(fetcher, speech=speech, registry=registry)


# ---------------------------------------------------------------------------
# Request lifecycle
# ---------------------------------------------------------------------------

class TestLifecycle:
    async def test_starts_idle(self) -> None:
        session = _session(StubLLM({}))
        assert session.state == RequestState()
        assert session.state.status == "idle"

    async def test_success(self) -> None:
        llm = StubLLM({"story": [" story "], "list": ["- fact"]})
        async with _session(llm) as session:
            state = await session.submit(AMINA, "en")
        assert state.status == "success"
        assert state.result.story == "story"
        assert state.result.context_list == "- fact"
        assert state.persona == AMINA
        assert state.error is None

    async def test_loading_while_in_flight(self) -> None:
        llm = GatedLLM({"Amina": ("story", "list")})
        session = _session(llm)
        task = asyncio.create_task(session.submit(AMINA, "en"))
        await asyncio.sleep(0)
        assert session.state.status == "loading"
        assert session.state.persona == AMINA
        llm.gates["Amina"].set()
        await task
        assert session.state.status == "success"

    async def test_failure_records_error(self) -> None:
        llm = StubLLM({
            "story": [RequestError("API request failed: overloaded", status=503)],
            "list": ["- fact"],
        })
        session = _session(llm)
        state = await session.submit(AMINA, "en")
        assert state.status == "failed"
        assert state.error.message == "API request failed: overloaded"
        assert state.error.status == 503
        assert state.result is None

    async def test_failure_without_message_uses_generic(self) -> None:
        llm = StubLLM({"story": [RequestError("")], "list": ["- fact"]})
        state = await _session(llm).submit(AMINA, "en")
        assert state.error.message == "Failed to generate content. Please try again."

    async def test_failure_keeps_previous_result(self) -> None:
        llm = StubLLM({
            "story": ["first story", RequestError("API request failed: down", status=500)],
            "list": ["first list", "second list"],
        })
        session = _session(llm)
        await session.submit(AMINA, "en")
        state = await session.submit(KHALIL, "en")
        assert state.status == "failed"
        assert state.result.story == "first story"
        assert "second list" not in state.model_dump_json()

    async def test_resubmit_clears_error(self) -> None:
        llm = StubLLM({
            "story": [RequestError("API request failed: down", status=500), "story"],
            "list": ["list", "list"],
        })
        session = _session(llm)
        await session.submit(AMINA, "en")
        seen: list[RequestState] = []
        session.add_listener(lambda state, audio: seen.append(state))
        state = await session.submit(AMINA, "en")
        assert seen[0].status == "loading"
        assert seen[0].error is None
        assert state.status == "success"

    async def test_dismiss_hides_error_only(self) -> None:
        llm = StubLLM({
            "story": ["story", RequestError("API request failed: down", status=500)],
            "list": ["list", "list 2"],
        })
        session = _session(llm)
        await session.submit(AMINA, "en")
        await session.submit(KHALIL, "en")
        session.dismiss()
        assert session.state.status == "idle"
        assert session.state.error is None
        assert session.state.result.story == "story"

    async def test_dismiss_without_error_is_noop(self) -> None:
        session = _session(StubLLM({}))
        calls: list[RequestState] = []
        session.add_listener(lambda state, audio: calls.append(state))
        session.dismiss()
        assert calls == []

    async def test_listener_unsubscribe(self) -> None:
        llm = StubLLM({"story": ["s"], "list": ["l"]})
        session = _session(llm)
        calls: list[str] = []
        unsubscribe = session.add_listener(lambda state, audio: calls.append(state.status))
        unsubscribe()
        await session.submit(AMINA, "en")
        assert calls == []

    async def test_sequence_numbers_increase(self) -> None:
        llm = StubLLM({"story": ["a", "b"], "list": ["a", "b"]})
        session = _session(llm)
        await session.submit(AMINA, "en")
        assert session.state.seq == 1
        await session.submit(KHALIL, "en")
        assert session.state.seq == 2

    async def test_cancelled_submit_returns_to_idle(self) -> None:
        llm = GatedLLM({"Amina": ("story", "list")})
        session = _session(llm)
        task = asyncio.create_task(session.submit(AMINA, "en"))
        await asyncio.sleep(0)
        task.cancel()
        with pytest.raises(asyncio.CancelledError):
            await task
        assert session.state.status == "idle"


# ---------------------------------------------------------------------------
# Superseding submissions
# ---------------------------------------------------------------------------

class TestStaleResults:
    async def test_late_result_from_older_submission_is_dropped(self) -> None:
        llm = GatedLLM({
            "Amina": ("Amina's story", "Amina's facts"),
            "Khalil": ("Khalil's story", "Khalil's facts"),
        })
        session = _session(llm)
        first = asyncio.create_task(session.submit(AMINA, "en"))
        await asyncio.sleep(0)
        second = asyncio.create_task(session.submit(KHALIL, "en"))
        await asyncio.sleep(0)

        llm.gates["Khalil"].set()
        await second
        assert session.state.result.story == "Khalil's story"

        llm.gates["Amina"].set()
        await first
        assert session.state.status == "success"
        assert session.state.persona == KHALIL
        assert session.state.result.story == "Khalil's story"

    async def test_older_result_does_not_end_newer_loading(self) -> None:
        llm = GatedLLM({
            "Amina": ("Amina's story", "Amina's facts"),
            "Khalil": ("Khalil's story", "Khalil's facts"),
        })
        session = _session(llm)
        first = asyncio.create_task(session.submit(AMINA, "en"))
        await asyncio.sleep(0)
        second = asyncio.create_task(session.submit(KHALIL, "en"))
        await asyncio.sleep(0)

        llm.gates["Amina"].set()
        await first
        assert session.state.status == "loading"
        assert session.state.result is None

        llm.gates["Khalil"].set()
        await second
        assert session.state.result.story == "Khalil's story"

    async def test_late_failure_from_older_submission_is_dropped(self) -> None:
        release_amina = asyncio.Event()

        async def llm(prompt: str, system_instruction: str) -> str:
            if "Amina" in prompt:
                await release_amina.wait()
                raise RequestError("API request failed: stale", status=500)
            return "Khalil text"

        session = _session(llm)
        first = asyncio.create_task(session.submit(AMINA, "en"))
        await asyncio.sleep(0)
        await session.submit(KHALIL, "en")
        release_amina.set()
        await first
        assert session.state.status == "success"
        assert session.state.error is None


# ---------------------------------------------------------------------------
# Audio pipeline
# ---------------------------------------------------------------------------

class TestAudio:
    async def test_success_triggers_synthesis(self) -> None:
        llm = StubLLM({"story": ["story"], "list": ["list"]})
        speech = StubSpeech()
        async with _session(llm, speech) as session:
            await session.submit(AMINA, "en")
            await session.audio_settled()
            assert speech.calls == ["story"]
            assert session.audio.status == "ready"
            assert session.audio.url == "https://audio.test/1.mp3"
            assert session.audio_handle is not None
            assert session.audio.handle_id == session.audio_handle.id

    async def test_failure_never_creates_audio(self) -> None:
        llm = StubLLM({"story": [RequestError("API request failed: x", status=500)], "list": ["l"]})
        speech = StubSpeech()
        registry = AudioRegistry()
        async with _session(llm, speech, registry) as session:
            await session.submit(AMINA, "en")
            await session.audio_settled()
        assert speech.calls == []
        assert registry.created == 0

    async def test_same_story_not_resynthesized(self) -> None:
        llm = StubLLM({"story": ["same", "same"], "list": ["a", "b"]})
        speech = StubSpeech()
        async with _session(llm, speech) as session:
            await session.submit(AMINA, "en")
            await session.audio_settled()
            await session.submit(KHALIL, "en")
            await session.audio_settled()
        assert speech.calls == ["same"]

    async def test_synthesis_failure_is_isolated(self) -> None:
        llm = StubLLM({"story": ["story"], "list": ["list"]})
        speech = StubSpeech(fail=SynthesisError("URL not found"))
        async with _session(llm, speech) as session:
            state = await session.submit(AMINA, "en")
            await session.audio_settled()
            assert state.status == "success"
            assert session.state.status == "success"
            assert session.state.error is None
            assert session.audio.status == "failed"
            assert session.audio.error == "Failed to generate audio: URL not found"
            assert session.audio_handle is None

    async def test_new_story_releases_previous_handle(self) -> None:
        llm = StubLLM({"story": ["one", "two", "three"], "list": ["a", "b", "c"]})
        registry = AudioRegistry()
        outstanding: list[int] = []
        async with _session(llm, StubSpeech(), registry) as session:
            session.add_listener(lambda state, audio: outstanding.append(registry.outstanding))
            for persona in (AMINA, KHALIL, AMINA.model_copy(update={"year": 1970})):
                await session.submit(persona, "en")
                await session.audio_settled()
                assert registry.outstanding == 1
            assert registry.created == 3
            assert registry.released == 2
        assert registry.outstanding == 0
        assert registry.released == 3
        assert set(outstanding) <= {0, 1}

    async def test_stale_synthesis_is_discarded(self) -> None:
        llm = StubLLM({"story": ["one", "two"], "list": ["a", "b"]})
        speech = StubSpeech()
        speech.gate = asyncio.Event()
        registry = AudioRegistry()
        async with _session(llm, speech, registry) as session:
            await session.submit(AMINA, "en")
            await asyncio.sleep(0)
            await session.submit(KHALIL, "en")
            speech.gate.set()
            await session.audio_settled()
            assert registry.created == 1
            assert session.audio_handle.url == f"https://audio.test/{len(speech.calls)}.mp3"
            assert speech.calls[-1] == "two"
            assert registry.outstanding == 1

    async def test_stop_releases_handle(self) -> None:
        llm = StubLLM({"story": ["story"], "list": ["list"]})
        registry = AudioRegistry()
        async with _session(llm, StubSpeech(), registry) as session:
            await session.submit(AMINA, "en")
            await session.audio_settled()
            session.stop_audio()
            session.stop_audio()
            assert session.audio == AudioState()
            assert session.audio_handle is None
            assert registry.outstanding == 0
            assert registry.released == 1
            assert session.state.status == "success"

    async def test_close_releases_handle(self) -> None:
        llm = StubLLM({"story": ["story"], "list": ["list"]})
        registry = AudioRegistry()
        session = _session(llm, StubSpeech(), registry)
        await session.submit(AMINA, "en")
        await session.audio_settled()
        await session.aclose()
        assert registry.outstanding == 0
        assert session.audio.status == "none"

    async def test_no_speech_configured(self) -> None:
        llm = StubLLM({"story": ["story"], "list": ["list"]})
        async with _session(llm) as session:
            await session.submit(AMINA, "en")
            await session.audio_settled()
            assert session.audio.status == "none"
