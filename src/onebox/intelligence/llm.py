"""LLM client abstractions used by intelligence features."""

from __future__ import annotations

import json
import logging
import time
from typing import Protocol

import httpx

from onebox.core.config import LlmSettings

LOGGER = logging.getLogger(__name__)


class LLMError(RuntimeError):
    """Raised when the LLM provider fails to respond as expected."""


class LLMClient(Protocol):
    """Protocol describing the minimal LLM client behaviour."""

    @property
    def provider_id(self) -> str:
        """Identifier describing the backing model/provider."""
        raise NotImplementedError

    def generate(self, prompt: str) -> str:
        """Return the raw text completion for ``prompt``."""
        raise NotImplementedError


class ChatCompletionClient:
    """Synchronous client for OpenAI-compatible chat completion APIs."""

    def __init__(
        self, settings: LlmSettings, *, http_client: httpx.Client | None = None
    ) -> None:
        if not settings.api_key:
            raise LLMError("An API key is required for the chat completion client")
        self._settings = settings
        self._http = http_client or httpx.Client(timeout=settings.timeout_seconds)

    @property
    def provider_id(self) -> str:
        """Return a human readable identifier for the configured model."""
        return f"openai:{self._settings.model}"

    def generate(self, prompt: str) -> str:
        """Send a single-message chat completion request."""
        endpoint = self._settings.base_url.rstrip("/") + "/chat/completions"
        payload: dict[str, object] = {
            "model": self._settings.model,
            "messages": [{"role": "user", "content": prompt}],
            "temperature": self._settings.temperature,
        }
        if self._settings.max_output_tokens is not None:
            payload["max_tokens"] = self._settings.max_output_tokens
        headers = {"Authorization": f"Bearer {self._settings.api_key}"}

        data: object = None
        last_error: Exception | None = None
        attempts = self._settings.max_attempts
        for attempt in range(1, attempts + 1):
            try:
                response = self._http.post(
                    endpoint,
                    json=payload,
                    headers=headers,
                    timeout=self._settings.timeout_seconds,
                )
                response.raise_for_status()
                data = response.json()
                break
            except httpx.HTTPError as exc:  # pragma: no cover - network dependent
                last_error = exc
                LOGGER.debug("LLM request attempt %s failed: %s", attempt, exc)
            except json.JSONDecodeError as exc:
                raise LLMError("LLM returned invalid JSON") from exc

            if attempt < attempts:
                time.sleep(min(2**attempt, 8))

        if data is None:
            raise LLMError("LLM request failed after retries") from last_error

        return _extract_content(data)

    def close(self) -> None:
        """Release pooled HTTP connections."""
        self._http.close()


def _extract_content(data: object) -> str:
    try:
        content = data["choices"][0]["message"]["content"]  # type: ignore[index]
    except (KeyError, IndexError, TypeError) as exc:
        raise LLMError("LLM response missing 'choices[0].message.content'") from exc
    if not isinstance(content, str):
        raise LLMError("LLM response content is not text")
    return content


__all__ = ["ChatCompletionClient", "LLMClient", "LLMError"]
