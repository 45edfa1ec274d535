"""Conversation rows (one per mystery-creation session)."""

import json
import shutil
from pathlib import Path
from typing import Any

from .core import conversations_dir, new_id, now_iso, read_json, write_json

MUTABLE_FIELDS = {
    "title",
    "theme",
    "player_count",
    "script_type",
    "has_accomplice",
    "additional_details",
    "display_status",
    "is_paid",
    "has_complete_package",
    "needs_package_generation",
    "purchase_date",
    "webhook_sent",
    "webhook_sent_at",
}


def _conversation_path(conversation_id: str) -> Path:
    return conversations_dir() / f"{conversation_id}.json"


def create_conversation(user_id: str, fields: dict[str, Any] | None = None) -> dict[str, Any]:
    """Create a draft conversation owned by user_id."""
    now = now_iso()
    conversation: dict[str, Any] = {
        "id": new_id(),
        "user_id": user_id,
        "title": "",
        "theme": None,
        "player_count": None,
        "script_type": "full",
        "has_accomplice": False,
        "additional_details": None,
        "display_status": "draft",
        "is_paid": False,
        "has_complete_package": False,
        "needs_package_generation": False,
        "purchase_date": None,
        "webhook_sent": False,
        "webhook_sent_at": None,
        "created_at": now,
        "updated_at": now,
    }
    for key, value in (fields or {}).items():
        if key in MUTABLE_FIELDS:
            conversation[key] = value
    write_json(_conversation_path(conversation["id"]), conversation)
    (conversations_dir() / conversation["id"]).mkdir(exist_ok=True)
    return conversation


def get_conversation(conversation_id: str) -> dict[str, Any] | None:
    return read_json(_conversation_path(conversation_id))


def list_conversations(user_id: str | None = None) -> list[dict[str, Any]]:
    """List conversations, most recently updated first."""
    results = []
    for path in conversations_dir().glob("*.json"):
        conversation = json.loads(path.read_text(encoding="utf-8"))
        if user_id is None or conversation.get("user_id") == user_id:
            results.append(conversation)
    results.sort(key=lambda c: c.get("updated_at", ""), reverse=True)
    return results


def update_conversation(conversation_id: str, fields: dict[str, Any]) -> dict[str, Any] | None:
    """Apply mutable fields and bump updated_at. Returns the updated row."""
    conversation = get_conversation(conversation_id)
    if conversation is None:
        return None
    for key, value in fields.items():
        if key in MUTABLE_FIELDS:
            conversation[key] = value
    conversation["updated_at"] = now_iso()
    write_json(_conversation_path(conversation_id), conversation)
    return conversation


def touch_conversation(conversation_id: str) -> None:
    update_conversation(conversation_id, {})


def delete_conversation(conversation_id: str) -> bool:
    """Delete a conversation with its messages and package."""
    from .packages import delete_package, get_package_for_conversation

    path = _conversation_path(conversation_id)
    if not path.is_file():
        return False
    package = get_package_for_conversation(conversation_id)
    if package is not None:
        delete_package(package["id"])
    path.unlink()
    child_dir = conversations_dir() / conversation_id
    if child_dir.is_dir():
        shutil.rmtree(child_dir)
    return True
