"""Speech synthesis — narrative text to a playable audio resource.

    PlayHTSpeech  — HTTP client for the PlayHT v2 TTS endpoint. Returns the
                    URL of the rendered mp3. Never retried.
    AudioRegistry — allocator for AudioHandle objects; tracks which handles
                    are still live so the HTTP layer can serve them.
    AudioSlot     — holds at most one live handle and releases the previous
                    one whenever it is replaced, stopped or closed.

Failures here raise SynthesisError and never touch the text pipeline.
"""

from __future__ import annotations

import itertools
import logging
from typing import Protocol

import httpx

logger = logging.getLogger(__name__)

PLAYHT_URL = "https://api.play.ht/api/v2/tts"
DEFAULT_VOICE = (
    "s3://voice-cloning-zero-shot/d9ff78ba-d016-47f6-b0ef-dd630f59414e/female-cs/manifest.json"
)


class SynthesisError(RuntimeError):
    """Any failure from the speech-synthesis service."""


class Speech(Protocol):
    async def synthesize(self, text: str) -> str: ...


# ---------------------------------------------------------------------------
# PlayHTSpeech
# ---------------------------------------------------------------------------

class PlayHTSpeech:
    """Async client for PlayHT text-to-speech.

    Request:  POST {url}  {"text", "voice", "output_format": "mp3",
                           "voice_engine": "PlayHT2.0"}
              headers AUTHORIZATION: Bearer <secret>, X-USER-ID: <user id>
    Response: {"url": "https://..."}
    """

    def __init__(
        self,
        user_id: str,
        secret_key: str,
        voice: str = DEFAULT_VOICE,
        url: str = PLAYHT_URL,
        timeout: float = 120.0,
    ) -> None:
        self._user_id = user_id
        self._secret_key = secret_key
        self._voice = voice
        self._url = url
        self._timeout = timeout

    def _headers(self) -> dict[str, str]:
        return {
            "Content-Type": "application/json",
            "AUTHORIZATION": f"Bearer {self._secret_key}",
            "X-USER-ID": self._user_id,
        }

    def build_body(self, text: str) -> dict[str, str]:
        return {
            "text": text,
            "voice": self._voice,
            "output_format": "mp3",
            "voice_engine": "PlayHT2.0",
        }

    async def synthesize(self, text: str) -> str:
        if not self._secret_key or not self._user_id:
            raise SynthesisError("PlayHT credentials are missing")

        logger.debug("tts call text_len=%d", len(text))
        try:
            async with httpx.AsyncClient(timeout=self._timeout) as client:
                resp = await client.post(self._url, json=self.build_body(text), headers=self._headers())
        except httpx.TimeoutException as e:
            raise SynthesisError(f"PlayHT timed out after {self._timeout}s") from e
        except httpx.TransportError as e:
            raise SynthesisError(f"Cannot reach PlayHT: {e}") from e

        if not resp.is_success:
            try:
                payload = resp.json()
            except ValueError:
                raise SynthesisError(
                    f"PlayAI API request failed with status {resp.status_code}: {resp.reason_phrase}"
                ) from None
            message = payload.get("message") if isinstance(payload, dict) else None
            raise SynthesisError(f"PlayAI API request failed: {message or 'Unknown error'}")

        try:
            data = resp.json()
        except ValueError as e:
            raise SynthesisError("URL not found") from e
        url = data.get("url") if isinstance(data, dict) else None
        if not url:
            raise SynthesisError("URL not found")
        return url


# ---------------------------------------------------------------------------
# Handles
# ---------------------------------------------------------------------------

class AudioHandle:
    """A live reference to a synthesized audio resource.

    Release is idempotent: the first call frees the resource, later calls
    do nothing.
    """

    def __init__(self, handle_id: str, url: str, registry: AudioRegistry) -> None:
        self.id = handle_id
        self.url = url
        self._registry = registry
        self.released = False

    def release(self) -> None:
        if self.released:
            return
        self.released = True
        self._registry._discard(self)

    def __repr__(self) -> str:
        state = "released" if self.released else "live"
        return f"<AudioHandle {self.id} {state}>"


class AudioRegistry:
    """Allocates handles and keeps the live ones addressable by id."""

    def __init__(self) -> None:
        self._live: dict[str, AudioHandle] = {}
        self._ids = itertools.count(1)
        self.created = 0
        self.released = 0

    def create(self, url: str) -> AudioHandle:
        handle = AudioHandle(f"a{next(self._ids)}", url, self)
        self._live[handle.id] = handle
        self.created += 1
        logger.debug("audio handle created id=%s", handle.id)
        return handle

    def get(self, handle_id: str) -> AudioHandle | None:
        return self._live.get(handle_id)

    @property
    def outstanding(self) -> int:
        return len(self._live)

    def _discard(self, handle: AudioHandle) -> None:
        if self._live.pop(handle.id, None) is not None:
            self.released += 1
            logger.debug("audio handle released id=%s", handle.id)


class AudioSlot:
    """Exactly one live handle at a time; the slot owns what it holds."""

    def __init__(self) -> None:
        self._handle: AudioHandle | None = None

    @property
    def handle(self) -> AudioHandle | None:
        return self._handle

    def replace(self, handle: AudioHandle) -> None:
        previous, self._handle = self._handle, handle
        if previous is not None and previous is not handle:
            previous.release()

    def stop(self) -> None:
        previous, self._handle = self._handle, None
        if previous is not None:
            previous.release()

    close = stop
