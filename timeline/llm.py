"""LLM client — HTTP connection to the generative-text backend.

The fetcher injects an LLM callable matching the protocol:

    async def __call__(self, prompt: str, system_instruction: str) -> str: ...

One call is one attempt; retry and caching live in `timeline.fetch`.

Two implementations are provided:

    GeminiLLM — real HTTP client for the Google generateContent endpoint.
    EchoLLM   — returns the prompt back unchanged. Useful for running the
                service offline without an API key.

Tests use StubLLM (defined in the test helpers) instead.
"""

from __future__ import annotations

import logging
from typing import Any, Protocol

import httpx

logger = logging.getLogger(__name__)

DEFAULT_BASE_URL = "https://generativelanguage.googleapis.com/v1beta"
DEFAULT_MODEL = "gemini-2.0-pro-exp-02-05"


# ---------------------------------------------------------------------------
# Protocol — every LLM implementation must match this signature
# ---------------------------------------------------------------------------

class LLM(Protocol):
    async def __call__(self, prompt: str, system_instruction: str) -> str: ...


# ---------------------------------------------------------------------------
# Errors
# ---------------------------------------------------------------------------

class NarrativeError(RuntimeError):
    """Base class for failures on the text-generation path."""


class NetworkError(NarrativeError):
    """The backend could not be reached (connect failure, timeout)."""


class RequestError(NarrativeError):
    """The backend answered with a non-success status."""

    def __init__(self, message: str, status: int | None = None, details: str | None = None) -> None:
        super().__init__(message)
        self.status = status
        self.details = details


class MalformedResponse(NarrativeError):
    """A success response without the expected text field. Not retried."""


# ---------------------------------------------------------------------------
# GeminiLLM — connects to the real backend
# ---------------------------------------------------------------------------

class GeminiLLM:
    """Async HTTP client for the generateContent API.

    Request:  POST {base_url}/models/{model}:generateContent?key={api_key}
              {"contents": [system turn, "Ok." acknowledgment, prompt turn]}
    Response: {"candidates": [{"content": {"parts": [{"text": "..."}]}}]}

    Args:
        api_key:  Google AI Studio key, sent as the `key` query parameter.
        model:    Model identifier.
        base_url: API root. Defaults to the public v1beta endpoint.
        timeout:  HTTP timeout in seconds. Defaults to 120.
    """

    def __init__(
        self,
        api_key: str,
        model: str = DEFAULT_MODEL,
        base_url: str = DEFAULT_BASE_URL,
        timeout: float = 120.0,
    ) -> None:
        self._api_key = api_key
        self._model = model
        self._base_url = base_url.rstrip("/")
        self._timeout = timeout

    @property
    def url(self) -> str:
        return f"{self._base_url}/models/{self._model}:generateContent"

    @staticmethod
    def build_body(prompt: str, system_instruction: str) -> dict[str, Any]:
        return {
            "contents": [
                {"role": "user", "parts": [{"text": system_instruction}]},
                {"role": "model", "parts": [{"text": "Ok."}]},
                {"role": "user", "parts": [{"text": prompt}]},
            ]
        }

    @staticmethod
    def _parse_response(data: Any) -> str:
        try:
            text = data["candidates"][0]["content"]["parts"][0]["text"]
        except (KeyError, IndexError, TypeError) as e:
            raise MalformedResponse("Unexpected response format from text backend") from e
        if not isinstance(text, str):
            raise MalformedResponse("Unexpected response format from text backend")
        return text

    @staticmethod
    def _error_details(resp: httpx.Response) -> str | None:
        try:
            payload = resp.json()
        except ValueError:
            return None
        if isinstance(payload, dict) and isinstance(payload.get("error"), dict):
            return payload["error"].get("message")
        return None

    async def __call__(self, prompt: str, system_instruction: str) -> str:
        if not self._api_key:
            raise RequestError("Google AI Studio API key is missing")

        body = self.build_body(prompt, system_instruction)
        logger.debug("llm call model=%s prompt_len=%d", self._model, len(prompt))

        try:
            async with httpx.AsyncClient(timeout=self._timeout) as client:
                resp = await client.post(
                    self.url,
                    params={"key": self._api_key},
                    json=body,
                    headers={"Content-Type": "application/json"},
                )
        except httpx.ConnectError as e:
            raise NetworkError(f"Cannot connect to text backend at {self._base_url}") from e
        except httpx.TimeoutException as e:
            raise NetworkError(f"Text backend timed out after {self._timeout}s") from e
        except httpx.TransportError as e:
            raise NetworkError(f"Transport error talking to text backend: {e}") from e

        if not resp.is_success:
            details = self._error_details(resp)
            raise RequestError(
                f"API request failed: {details or 'Unknown error'}",
                status=resp.status_code,
                details=details,
            )

        try:
            data = resp.json()
        except ValueError as e:
            raise MalformedResponse("Unexpected response format from text backend") from e
        text = self._parse_response(data)
        logger.debug("llm response len=%d", len(text))
        return text


# ---------------------------------------------------------------------------
# EchoLLM — returns the prompt unchanged; offline mode
# ---------------------------------------------------------------------------

class EchoLLM:
    """Returns the prompt text as-is. No network calls.

    Lets you exercise the whole flow (caching, concurrency, lifecycle, the
    HTTP surface) without an API key.
    """

    async def __call__(self, prompt: str, system_instruction: str) -> str:
        logger.debug("EchoLLM prompt_len=%d", len(prompt))
        return prompt
