"""Conversation-level operations: creation, chat turns, dashboard, purchase."""

import logging
import re
from collections.abc import Awaitable, Callable
from typing import Any

from mystery_maker import storage
from mystery_maker.ai_service import get_ai_response
from mystery_maker.models import MysteryForm

logger = logging.getLogger(__name__)

Responder = Callable[[list[dict[str, Any]], str], Awaitable[str]]

STATUS_FILTERS = ("all", "draft", "purchased", "archived")

_TITLE_PATTERNS = (
    re.compile(r"#\s*[\"']?([^\"'\n#]+)[\"']?(?:\s*-\s*A MURDER MYSTERY)?", re.IGNORECASE),
    re.compile(r"\"([^\"]+)\"\s*(?:-\s*A\s+MURDER\s+MYSTERY)?", re.IGNORECASE),
    re.compile(r"title:\s*[\"']?([^\"'\n]+)[\"']?", re.IGNORECASE),
)
_QUESTION_MARKERS = ("initial questions", "clarification", "# questions", "## questions")


def format_title(title: str) -> str:
    return " ".join(word[:1].upper() + word[1:].lower() for word in title.strip().split(" "))


def extract_title_from_messages(messages: list[dict[str, Any]]) -> str | None:
    """Find a mystery title in the assistant's replies."""
    for message in messages:
        if message.get("role") != "assistant":
            continue
        content = message.get("content") or ""
        if any(marker in content.lower() for marker in _QUESTION_MARKERS):
            continue
        for pattern in _TITLE_PATTERNS:
            match = pattern.search(content)
            if match and match.group(1).strip():
                return format_title(match.group(1))
    return None


def initial_message(form: MysteryForm) -> str:
    parts = [
        f"Let's create a murder mystery with a {form.theme} theme for {form.player_count} players.",
        f"Script type: {form.script_type}.",
    ]
    if form.has_accomplice:
        parts.append("The murderer should have an accomplice.")
    if form.additional_details:
        parts.append(f"Additional details: {form.additional_details}")
    return " ".join(parts)


def create_mystery(user_id: str, form: MysteryForm) -> dict[str, Any]:
    """Create a draft conversation and its opening user message."""
    conversation = storage.create_conversation(user_id, {
        "title": f"{form.theme} Mystery",
        "theme": form.theme,
        "player_count": form.player_count,
        "script_type": form.script_type,
        "has_accomplice": form.has_accomplice,
        "additional_details": form.additional_details,
    })
    storage.append_message(conversation["id"], "user", initial_message(form))
    logger.info("Created mystery %s for user %s", conversation["id"], user_id)
    return storage.get_conversation(conversation["id"])


async def send_chat_message(
    conversation_id: str,
    content: str,
    prompt_version: str = "free",
    responder: Responder = get_ai_response,
) -> dict[str, Any]:
    """Run one chat turn. Returns the stored assistant message."""
    if storage.get_conversation(conversation_id) is None:
        raise LookupError("Conversation not found")
    if content.strip():
        storage.append_message(conversation_id, "user", content)
    history = storage.get_messages(conversation_id)
    reply = await responder(history, prompt_version)
    assistant = storage.append_message(conversation_id, "assistant", reply)

    title = extract_title_from_messages(storage.get_messages(conversation_id))
    if title:
        storage.update_conversation(conversation_id, {"title": title})
    return assistant


def list_mysteries(user_id: str, status: str = "all", search: str = "") -> list[dict[str, Any]]:
    """Dashboard listing filtered by display status and a search string."""
    if status not in STATUS_FILTERS:
        raise ValueError(f"Unknown status filter {status!r}")
    query = search.strip().lower()
    results = []
    for conversation in storage.list_conversations(user_id):
        if status != "all" and conversation.get("display_status") != status:
            continue
        if query:
            haystack = f"{conversation.get('title') or ''} {conversation.get('theme') or ''}".lower()
            if query not in haystack:
                continue
        results.append(conversation)
    return results


def archive_mystery(conversation_id: str) -> dict[str, Any] | None:
    return storage.update_conversation(conversation_id, {"display_status": "archived"})


def mark_purchased(conversation_id: str, user_id: str) -> dict[str, Any] | None:
    """Flip purchase flags on the conversation and the owner's profile."""
    now = storage.now_iso()
    conversation = storage.update_conversation(conversation_id, {
        "is_paid": True,
        "display_status": "purchased",
        "purchase_date": now,
    })
    if conversation is None:
        return None
    storage.update_profile(user_id, {"has_purchased": True, "purchase_date": now})
    logger.info("Mystery %s purchased by %s", conversation_id, user_id)
    return conversation
