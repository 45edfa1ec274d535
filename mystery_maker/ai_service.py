"""Chat client for the proxy endpoint, with retries.

Each attempt:
  - targets the primary proxy URL, alternating with the fallback proxy URL
    when one is configured,
  - sends a shrinking window of the history (everything, then 20
    messages, then 10, then 6), always keeping the first message,
  - waits 1s * 2**attempt before retrying,
  - times out after 60 seconds.

Failures never propagate: the caller gets a user-facing error string as the
assistant reply.
"""

import asyncio
import logging
import re
from typing import Any

import httpx

from mystery_maker.config import Settings, get_settings

logger = logging.getLogger(__name__)

REQUEST_TIMEOUT = 60.0
BACKOFF_BASE = 1.0
HISTORY_WINDOWS: tuple[int | None, ...] = (None, 20, 10, 6)

MARKDOWN_INSTRUCTION = (
    "Please format your response using Markdown syntax with headings (##, ###), "
    "lists (-, 1., 2.), bold (**), italic (*), and other formatting as appropriate "
    "to structure the information clearly. Do not use a title at the beginning of "
    "your response unless you are presenting a complete murder mystery concept "
    "with a title, premise, victim details, and character list."
)

_BARE_HEADING = re.compile(r"^(VICTIM|SUSPECTS|CLUES|SOLUTION):", re.MULTILINE)


class AIServiceError(RuntimeError):
    """Raised internally when one attempt against the proxy fails."""


def _to_request_messages(messages: list[dict[str, Any]]) -> list[dict[str, str]]:
    result = []
    for msg in messages:
        is_ai = msg.get("is_ai") is True or msg.get("role") == "assistant"
        result.append({"role": "assistant" if is_ai else "user", "content": msg.get("content", "")})
    return result


def window_history(messages: list[dict[str, str]], limit: int | None) -> list[dict[str, str]]:
    """Keep the first message plus the most recent `limit - 1` messages."""
    if limit is None or len(messages) <= limit:
        return list(messages)
    return [messages[0]] + messages[-(limit - 1):]


def extract_content(data: Any) -> str:
    """Read the assistant text from either the proxy or the raw provider shape."""
    if isinstance(data, dict):
        choices = data.get("choices")
        if choices and isinstance(choices, list):
            message = choices[0].get("message") or {}
            if message.get("content"):
                return message["content"]
        content = data.get("content")
        if content and isinstance(content, list) and content[0].get("type") == "text":
            return content[0]["text"]
    raise AIServiceError("Invalid response format from API")


def normalize_headings(text: str) -> str:
    return _BARE_HEADING.sub(r"## \1:", text)


async def _attempt(url: str, body: dict[str, Any]) -> str:
    try:
        async with httpx.AsyncClient(timeout=REQUEST_TIMEOUT) as client:
            resp = await client.post(url, json=body, headers={"Content-Type": "application/json"})
            resp.raise_for_status()
    except httpx.TimeoutException as e:
        raise AIServiceError("Request timed out. Please try again.") from e
    except httpx.HTTPStatusError as e:
        raise AIServiceError(f"API returned status {e.response.status_code}") from e
    except httpx.TransportError as e:
        raise AIServiceError("network error") from e
    try:
        data = resp.json()
    except ValueError as e:
        raise AIServiceError("Invalid response format from API") from e
    return extract_content(data)


async def get_ai_response(
    messages: list[dict[str, Any]],
    prompt_version: str = "free",
    settings: Settings | None = None,
    max_attempts: int = 3,
) -> str:
    """Ask the proxy for the next assistant reply. Never raises."""
    settings = settings or get_settings()
    history = _to_request_messages(messages)
    if history and history[-1]["role"] == "user":
        history.append({"role": "user", "content": MARKDOWN_INSTRUCTION})

    urls = [settings.proxy_url]
    if settings.fallback_proxy_url:
        urls.append(settings.fallback_proxy_url)

    last_error: AIServiceError | None = None
    for attempt in range(max_attempts):
        url = urls[attempt % len(urls)]
        window = HISTORY_WINDOWS[min(attempt, len(HISTORY_WINDOWS) - 1)]
        body = {"messages": window_history(history, window), "promptVersion": prompt_version}
        logger.info("ai request attempt=%d url=%s messages=%d",
                    attempt + 1, url, len(body["messages"]))
        try:
            return normalize_headings(await _attempt(url, body))
        except AIServiceError as e:
            last_error = e
            logger.warning("ai request attempt %d failed: %s", attempt + 1, e)
            if attempt < max_attempts - 1:
                await asyncio.sleep(BACKOFF_BASE * 2 ** attempt)

    logger.error("ai request gave up after %d attempts: %s", max_attempts, last_error)
    if last_error is not None and str(last_error) == "network error":
        return (
            "There was a network error while connecting to our AI service. "
            "Please check your internet connection and try again."
        )
    return f"There was an error: {last_error}. Please try again."
