"""Stateless chat proxy between the chat UI and the LLM provider.

Request body: {"messages": [{"role", "content"}], "system"?: str, "promptVersion"?: "free" | "paid"}

System prompt selection, first match wins:
  1. explicit `system` from the request
  2. configured prompt for the prompt version (MURDER_MYSTERY_PAID_PROMPT /
     MURDER_MYSTERY_FREE_PROMPT)
  3. new-mystery heuristic: a single message mentioning mystery/murder/design/
     create/craft → ask for the player count first
  4. creation prompt once a player count has been mentioned
  5. player-count question

A language directive with localized section labels is appended, based on the
locale detected from the user's messages.

The proxy never fails at the HTTP level: upstream errors come back as a 200
body carrying an `error` field and a fallback assistant message.
"""

import logging
import re
from typing import Any

from mystery_maker.config import Settings, get_settings
from mystery_maker.llm import AnthropicClient, LLMError
from mystery_maker.prompts import (
    CREATION_PROMPT,
    NEW_MYSTERY_PROMPT,
    PLAYER_COUNT_PROMPT,
    PromptError,
    language_directive,
    section_labels,
)

logger = logging.getLogger(__name__)

CORS_HEADERS = {
    "Access-Control-Allow-Origin": "*",
    "Access-Control-Allow-Methods": "GET, POST, OPTIONS",
    "Access-Control-Allow-Headers": "Content-Type, Authorization, x-api-key",
    "Access-Control-Max-Age": "86400",
}

FALLBACK_MESSAGE = (
    "I apologize, but I'm having trouble processing your request right now. "
    "Please try again in a moment."
)

_NEW_REQUEST_KEYWORDS = ("mystery", "murder", "design", "create", "craft")
_PLAYER_COUNT_WORDS = ("player", "people", "guests")


# ── Locale detection ─────────────────────────────────────

_HANGUL = re.compile(r"[ᄀ-ᇿ㄰-㆏가-힣]")
_KANA = re.compile(r"[぀-ヿ]")
_CJK = re.compile(r"[一-鿿]")

_LATIN_MARKERS: dict[str, str] = {
    "es": "ñ¿¡áíóú",
    "fr": "çœèêàâîôûë",
    "de": "ßäöü",
}

_STOP_WORDS: dict[str, set[str]] = {
    "es": {"el", "la", "los", "las", "que", "y", "una", "por", "para", "con",
           "misterio", "asesinato", "jugadores", "quiero"},
    "fr": {"le", "la", "les", "des", "et", "une", "est", "pour", "avec",
           "meurtre", "mystère", "joueurs", "je", "veux"},
    "de": {"der", "die", "das", "und", "ein", "eine", "ist", "für", "mit",
           "mord", "krimi", "spieler", "ich", "möchte"},
}


def detect_locale(text: str) -> str:
    """Guess the user's locale from character sets and common words.

    Scripts decide outright (Hangul → ko, kana → ja, CJK ideographs → zh).
    Latin-script languages are scored: 2 points per distinct marker character,
    1 per stop word; a score of 2 or more is needed to beat English.
    """
    if not text:
        return "en"
    if _HANGUL.search(text):
        return "ko"
    if _KANA.search(text):
        return "ja"
    if _CJK.search(text):
        return "zh"

    lowered = text.lower()
    words = re.findall(r"[^\W\d_]+", lowered)
    best, best_score = "en", 1
    for locale in ("es", "fr", "de"):
        score = 2 * sum(1 for ch in set(_LATIN_MARKERS[locale]) if ch in lowered)
        score += sum(1 for w in words if w in _STOP_WORDS[locale])
        if score > best_score:
            best, best_score = locale, score
    return best


# ── Prompt selection ─────────────────────────────────────

def format_messages(messages: list[dict[str, Any]]) -> list[dict[str, str]]:
    """Normalize roles to user/assistant and drop blank messages."""
    formatted = []
    for msg in messages:
        if not isinstance(msg, dict):
            continue
        content = msg.get("content") or ""
        if not isinstance(content, str) or not content.strip():
            continue
        is_ai = msg.get("role") == "assistant" or msg.get("is_ai") is True
        formatted.append({"role": "assistant" if is_ai else "user", "content": content})
    return formatted


def looks_like_new_mystery_request(messages: list[dict[str, str]]) -> bool:
    if len(messages) != 1:
        return False
    text = messages[0].get("content", "").lower()
    return any(keyword in text for keyword in _NEW_REQUEST_KEYWORDS)


def mentions_player_count(messages: list[dict[str, str]]) -> bool:
    for msg in messages:
        content = msg.get("content", "")
        if re.search(r"\d+", content) or any(w in content for w in _PLAYER_COUNT_WORDS):
            return True
    return False


def _user_text(messages: list[dict[str, str]]) -> str:
    return "\n".join(m["content"] for m in messages if m["role"] == "user")


def select_system_prompt(
    messages: list[dict[str, str]],
    system: str | None,
    prompt_version: str,
    settings: Settings,
    locale: str = "en",
) -> str:
    """Pick the system prompt for a request and append the language directive."""
    if system:
        base = system
        source = "request"
    else:
        configured = settings.paid_prompt if prompt_version == "paid" else settings.free_prompt
        if configured:
            base, source = configured, f"{prompt_version} prompt"
        elif looks_like_new_mystery_request(messages):
            base, source = NEW_MYSTERY_PROMPT, "new mystery request"
        elif mentions_player_count(messages):
            base, source = CREATION_PROMPT, "creation mode"
        else:
            base, source = PLAYER_COUNT_PROMPT, "player count question"
    logger.info("system prompt from %s (locale=%s)", source, locale)
    return f"{base}\n\n{language_directive(locale)}"


# ── Request handling ─────────────────────────────────────

def _choice(content: str) -> dict[str, Any]:
    return {"choices": [{"message": {"content": content, "role": "assistant"}}]}


def _mock_response(locale: str) -> dict[str, Any]:
    labels = section_labels(locale)
    content = (
        '# "DEBUGGING MODE" - A MURDER MYSTERY\n\n'
        f"## {labels['premise']}\n"
        "This is a debug response to verify the chat endpoint is being called correctly.\n\n"
        f"## {labels['victim']}\n"
        "**The API** - Mysteriously not showing any logs or errors.\n\n"
        f"## {labels['characters']}\n"
        "1. **The Frontend** - Sends requests but doesn't see proper responses.\n"
        "2. **The Backend** - Processes requests but might have issues.\n"
        "3. **The Environment Variables** - Might be missing or invalid.\n"
        "4. **The LLM API** - The external service that might be rejecting our calls.\n"
    )
    return {**_choice(content), "id": "msg_mock", "locale": locale, "mock": True}


async def handle_chat_request(
    body: dict[str, Any],
    settings: Settings | None = None,
    client: AnthropicClient | None = None,
) -> dict[str, Any]:
    """Translate one chat request into an LLM call. Never raises."""
    settings = settings or get_settings()
    locale = "en"
    try:
        messages = body.get("messages")
        if not isinstance(messages, list):
            raise ValueError("Messages array is required")
        formatted = format_messages(messages)
        locale = detect_locale(_user_text(formatted))
        system_prompt = select_system_prompt(
            formatted,
            body.get("system"),
            body.get("promptVersion") or "free",
            settings,
            locale,
        )

        if not settings.use_real_api:
            logger.info("USE_REAL_API is off, returning mock response")
            return _mock_response(locale)

        if not settings.anthropic_api_key:
            raise LLMError("ANTHROPIC_API_KEY not configured")

        if client is None:
            client = AnthropicClient(
                api_key=settings.anthropic_api_key,
                base_url=settings.anthropic_url,
                model=settings.anthropic_model,
            )
        logger.info("forwarding %d message(s) to LLM provider", len(formatted))
        text = await client.complete(system_prompt, formatted, temperature=0.7)
    except (ValueError, LLMError, PromptError) as e:
        logger.error("chat proxy failed: %s", e)
        return {"error": str(e), "locale": locale, **_choice(FALLBACK_MESSAGE)}

    return {**_choice(text), "locale": locale}
