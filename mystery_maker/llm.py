"""LLM client: HTTP connection to an Anthropic-compatible Messages API.

    AnthropicClient  POST {base_url}/v1/messages
                       Request:  {"model", "max_tokens", "system", "messages", "temperature"?}
                       Response: {"content": [{"type": "text", "text": "..."}], ...}

All connection and protocol failures surface as LLMError. Callers decide how
to present them (the chat proxy turns them into ordinary assistant content).
"""

from __future__ import annotations

import logging
from typing import Any

import httpx

logger = logging.getLogger(__name__)

ANTHROPIC_VERSION = "2023-06-01"


class AnthropicClient:
    """Async HTTP client for the Messages API.

    Args:
        api_key:    Value for the x-api-key header.
        base_url:   Base URL of the API, e.g. "https://api.anthropic.com".
        model:      Model identifier sent with every request.
        max_tokens: Completion budget per request. Defaults to 2000.
        timeout:    HTTP timeout in seconds. Defaults to 120.
    """

    def __init__(
        self,
        api_key: str,
        base_url: str = "https://api.anthropic.com",
        model: str = "claude-3-7-sonnet-20250219",
        max_tokens: int = 2000,
        timeout: float = 120.0,
    ) -> None:
        self._api_key = api_key
        self._base_url = base_url.rstrip("/")
        self._model = model
        self._max_tokens = max_tokens
        self._timeout = timeout

    def _headers(self) -> dict[str, str]:
        return {
            "Content-Type": "application/json",
            "x-api-key": self._api_key,
            "anthropic-version": ANTHROPIC_VERSION,
        }

    def _build_body(
        self, system: str, messages: list[dict[str, str]], temperature: float | None
    ) -> dict[str, Any]:
        body: dict[str, Any] = {
            "model": self._model,
            "max_tokens": self._max_tokens,
            "system": system,
            "messages": messages,
        }
        if temperature is not None:
            body["temperature"] = temperature
        return body

    async def create_message(
        self,
        system: str,
        messages: list[dict[str, str]],
        temperature: float | None = None,
    ) -> dict[str, Any]:
        """Send one Messages request and return the decoded response body."""
        url = f"{self._base_url}/v1/messages"
        body = self._build_body(system, messages, temperature)
        logger.debug("llm call url=%s messages=%d system_len=%d",
                     url, len(messages), len(system))

        try:
            async with httpx.AsyncClient(timeout=self._timeout) as client:
                resp = await client.post(url, json=body, headers=self._headers())
                resp.raise_for_status()
        except httpx.ConnectError as e:
            raise LLMError(f"Cannot connect to LLM provider at {self._base_url}") from e
        except httpx.HTTPStatusError as e:
            raise LLMError(f"LLM provider returned HTTP {e.response.status_code}") from e
        except httpx.TimeoutException as e:
            raise LLMError(f"LLM provider timed out after {self._timeout}s") from e
        except httpx.HTTPError as e:
            raise LLMError(f"LLM request failed: {e}") from e

        data = resp.json()
        logger.debug("llm response id=%s usage=%s", data.get("id"), data.get("usage"))
        return data

    async def complete(
        self,
        system: str,
        messages: list[dict[str, str]],
        temperature: float | None = None,
    ) -> str:
        """Send a request and return only the assistant text."""
        return extract_text(await self.create_message(system, messages, temperature))


def extract_text(data: dict[str, Any]) -> str:
    """Pull the first text block out of a Messages API response."""
    content = data.get("content") if isinstance(data, dict) else None
    if not content or not isinstance(content, list) or "text" not in content[0]:
        raise LLMError("Unexpected response format from LLM provider")
    text = content[0]["text"]
    if not text:
        raise LLMError("No content in response from LLM provider")
    return text


class LLMError(RuntimeError):
    """Raised when the LLM provider cannot be reached or returns an error."""
