"""Chat message storage (append-only log per conversation)."""

from pathlib import Path
from typing import Any

from .conversations import touch_conversation
from .core import conversations_dir, new_id, now_iso, read_json, write_json

ROLES = ("user", "assistant")


def _messages_path(conversation_id: str) -> Path:
    return conversations_dir() / conversation_id / "messages.json"


def get_messages(conversation_id: str) -> list[dict[str, Any]]:
    """Load messages for a conversation. Returns [] if none exist."""
    return read_json(_messages_path(conversation_id), [])


def append_message(conversation_id: str, role: str, content: str) -> dict[str, Any]:
    """Append one message to a conversation's log and return it."""
    if role not in ROLES:
        raise ValueError(f"Invalid message role {role!r}")
    message = {
        "id": new_id(),
        "conversation_id": conversation_id,
        "role": role,
        "content": content,
        "created_at": now_iso(),
    }
    existing = get_messages(conversation_id)
    existing.append(message)
    write_json(_messages_path(conversation_id), existing)
    touch_conversation(conversation_id)
    return message
