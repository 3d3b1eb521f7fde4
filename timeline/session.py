"""Request lifecycle controller.

One NarrativeSession backs one user. It owns:

    RequestState  idle → loading → success | failed, re-entering loading on
                  every submit. Each submit takes a sequence number; a
                  completion whose number is no longer the latest is dropped,
                  so an older submission can never overwrite a newer one.
    AudioState    fed by a separate worker task. A success whose story
                  differs from the previous one is pushed onto a queue; the
                  worker synthesizes it and parks the handle in an AudioSlot.
                  Audio failures only ever change AudioState.

Use as an async context manager, or call aclose() when the owning view goes
away so the worker stops and the audio handle is released.
"""

from __future__ import annotations

import asyncio
import contextlib
import logging
from typing import Callable

from timeline.models import (
    GENERIC_FAILURE,
    AudioState,
    ErrorInfo,
    Locale,
    Persona,
    RequestState,
)
from timeline.orchestrator import Fetcher, generate_narrative
from timeline.speech import AudioHandle, AudioRegistry, AudioSlot, Speech

logger = logging.getLogger(__name__)

Listener = Callable[[RequestState, AudioState], None]


class NarrativeSession:
    def __init__(
        self,
        fetcher: Fetcher,
        speech: Speech | None = None,
        registry: AudioRegistry | None = None,
    ) -> None:
        self._fetcher = fetcher
        self._speech = speech
        self.registry = registry or AudioRegistry()
        self._slot = AudioSlot()

        self._state = RequestState()
        self._audio = AudioState()
        self._seq = 0
        self._listeners: list[Listener] = []

        self._last_story: str | None = None
        self._audio_seq = 0
        self._stories: asyncio.Queue[tuple[int, str]] | None = None
        self._worker: asyncio.Task | None = None

    # ------------------------------------------------------------------
    # Observation
    # ------------------------------------------------------------------

    @property
    def state(self) -> RequestState:
        return self._state

    @property
    def audio(self) -> AudioState:
        return self._audio

    @property
    def audio_handle(self) -> AudioHandle | None:
        return self._slot.handle

    def add_listener(self, listener: Listener) -> Callable[[], None]:
        """Call `listener(state, audio)` after every change. Returns an unsubscribe function."""
        self._listeners.append(listener)
        return lambda: self._listeners.remove(listener)

    def _notify(self) -> None:
        for listener in list(self._listeners):
            listener(self._state, self._audio)

    def _set_state(self, **changes) -> None:
        self._state = self._state.model_copy(update=changes)
        self._notify()

    def _set_audio(self, audio: AudioState) -> None:
        self._audio = audio
        self._notify()

    # ------------------------------------------------------------------
    # Text pipeline
    # ------------------------------------------------------------------

    async def submit(self, persona: Persona, locale: Locale = "en") -> RequestState:
        """Run one submission and return the state it left behind.

        The returned state is whatever is current when this call finishes,
        which may belong to a newer submission.
        """
        self._seq += 1
        seq = self._seq
        self._set_state(status="loading", seq=seq, persona=persona, locale=locale, error=None)

        try:
            result = await generate_narrative(persona, locale, fetcher=self._fetcher)
        except asyncio.CancelledError:
            if seq == self._seq:
                self._set_state(status="idle")
            raise
        except Exception as e:
            if seq != self._seq:
                logger.info("dropping stale failure seq=%d latest=%d", seq, self._seq)
                return self._state
            logger.error("API Error: %r", e)
            self._set_state(
                status="failed",
                error=ErrorInfo(message=str(e) or GENERIC_FAILURE, status=getattr(e, "status", None)),
            )
            return self._state

        if seq != self._seq:
            logger.info("dropping stale result seq=%d latest=%d", seq, self._seq)
            return self._state

        self._set_state(status="success", result=result, error=None)
        self._story_ready(result.story)
        return self._state

    def dismiss(self) -> None:
        """Hide the current error. The last narrative stays."""
        if self._state.error is None and self._state.status != "failed":
            return
        status = "idle" if self._state.status == "failed" else self._state.status
        self._set_state(status=status, error=None)

    # ------------------------------------------------------------------
    # Audio pipeline
    # ------------------------------------------------------------------

    def _story_ready(self, story: str) -> None:
        if not story or story == self._last_story:
            return
        self._last_story = story
        if self._speech is None:
            return

        self._audio_seq += 1
        # Audio for the previous story no longer matches what is on screen.
        self._slot.stop()
        self._set_audio(AudioState(status="pending"))
        self._ensure_worker()
        assert self._stories is not None
        self._stories.put_nowait((self._audio_seq, story))

    def _ensure_worker(self) -> None:
        if self._stories is None:
            self._stories = asyncio.Queue()
        if self._worker is None or self._worker.done():
            self._worker = asyncio.create_task(self._audio_worker(self._stories))

    async def _audio_worker(self, stories: asyncio.Queue[tuple[int, str]]) -> None:
        while True:
            audio_seq, story = await stories.get()
            try:
                await self._synthesize(audio_seq, story)
            finally:
                stories.task_done()

    async def _synthesize(self, audio_seq: int, story: str) -> None:
        if audio_seq != self._audio_seq:
            return
        assert self._speech is not None
        try:
            url = await self._speech.synthesize(story)
        except Exception as e:
            logger.warning("Error generating TTS: %s", e)
            if audio_seq == self._audio_seq:
                self._set_audio(AudioState(status="failed", error=f"Failed to generate audio: {e}"))
            return

        if audio_seq != self._audio_seq:
            logger.debug("dropping stale audio seq=%d latest=%d", audio_seq, self._audio_seq)
            return

        self._slot.stop()
        handle = self.registry.create(url)
        self._slot.replace(handle)
        self._set_audio(AudioState(status="ready", handle_id=handle.id, url=handle.url))

    async def audio_settled(self) -> None:
        """Wait until every queued synthesis has finished."""
        if self._stories is not None:
            await self._stories.join()

    def stop_audio(self) -> None:
        """Release the current audio and ignore any synthesis still running."""
        self._audio_seq += 1
        self._slot.stop()
        self._set_audio(AudioState())

    # ------------------------------------------------------------------
    # Teardown
    # ------------------------------------------------------------------

    async def aclose(self) -> None:
        worker, self._worker = self._worker, None
        if worker is not None:
            worker.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await worker
        self._stories = None
        self._audio_seq += 1
        self._slot.close()
        self._audio = AudioState()

    async def __aenter__(self) -> NarrativeSession:
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.aclose()
