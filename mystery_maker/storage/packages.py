"""Mystery package rows (one per conversation) with change events."""

import json
import shutil
from pathlib import Path
from typing import Any

from . import events
from .core import new_id, now_iso, packages_dir, read_json, write_json

CONTENT_FIELDS = (
    "title",
    "game_overview",
    "host_guide",
    "materials",
    "preparation_instructions",
    "timeline",
    "hosting_tips",
    "evidence_cards",
    "relationship_matrix",
    "detective_script",
)

MUTABLE_FIELDS = set(CONTENT_FIELDS) | {
    "generation_status",
    "generation_started_at",
    "generation_completed_at",
    "legacy_content",
}


def _package_path(package_id: str) -> Path:
    return packages_dir() / f"{package_id}.json"


def _publish(package: dict[str, Any], event_type: str) -> None:
    events.publish(package["conversation_id"], {
        "table": "mystery_packages",
        "type": event_type,
        "record": package,
    })


def get_package(package_id: str) -> dict[str, Any] | None:
    return read_json(_package_path(package_id))


def get_package_for_conversation(conversation_id: str) -> dict[str, Any] | None:
    """Find the package belonging to a conversation, or None."""
    for path in packages_dir().glob("*.json"):
        package = json.loads(path.read_text(encoding="utf-8"))
        if package.get("conversation_id") == conversation_id:
            return package
    return None


def create_package(conversation_id: str, fields: dict[str, Any] | None = None) -> dict[str, Any]:
    now = now_iso()
    package: dict[str, Any] = {
        "id": new_id(),
        "conversation_id": conversation_id,
        "generation_status": None,
        "generation_started_at": None,
        "generation_completed_at": None,
        "legacy_content": "",
        "created_at": now,
        "updated_at": now,
    }
    for name in CONTENT_FIELDS:
        package[name] = None
    for key, value in (fields or {}).items():
        if key in MUTABLE_FIELDS:
            package[key] = value
    write_json(_package_path(package["id"]), package)
    (packages_dir() / package["id"]).mkdir(exist_ok=True)
    _publish(package, "INSERT")
    return package


def update_package(package_id: str, fields: dict[str, Any]) -> dict[str, Any] | None:
    """Apply mutable fields and bump updated_at. Returns the updated row."""
    package = get_package(package_id)
    if package is None:
        return None
    for key, value in fields.items():
        if key in MUTABLE_FIELDS:
            package[key] = value
    package["updated_at"] = now_iso()
    write_json(_package_path(package_id), package)
    _publish(package, "UPDATE")
    return package


def delete_package(package_id: str) -> bool:
    """Delete a package together with its characters and assignments."""
    path = _package_path(package_id)
    if not path.is_file():
        return False
    path.unlink()
    child_dir = packages_dir() / package_id
    if child_dir.is_dir():
        shutil.rmtree(child_dir)
    return True
