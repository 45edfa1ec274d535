"""Mystery character rows, stored per package."""

from pathlib import Path
from typing import Any

from .core import new_id, now_iso, packages_dir, read_json, write_json

TEXT_FIELDS = (
    "description",
    "background",
    "secret",
    "introduction",
    "rumors",
    "whereabouts",
    "round1_statement",
    "round2_statement",
    "round3_statement",
    "round2_questions",
    "round2_innocent",
    "round2_guilty",
    "role",
)
LIST_FIELDS = ("relationships", "secrets", "questioning_options")


def _characters_path(package_id: str) -> Path:
    return packages_dir() / package_id / "characters.json"


def _new_row(package_id: str, fields: dict[str, Any]) -> dict[str, Any]:
    name = fields.get("character_name")
    if not name:
        raise ValueError("Character must have a name")
    now = now_iso()
    row: dict[str, Any] = {
        "id": new_id(),
        "package_id": package_id,
        "character_name": name,
        "created_at": now,
        "updated_at": now,
    }
    for key in TEXT_FIELDS:
        row[key] = fields.get(key) or None
    for key in LIST_FIELDS:
        value = fields.get(key)
        row[key] = value if isinstance(value, list) else []
    return row


def get_characters(package_id: str) -> list[dict[str, Any]]:
    """Load characters for a package. Returns [] if missing."""
    return read_json(_characters_path(package_id), [])


def get_character(package_id: str, character_id: str) -> dict[str, Any] | None:
    for char in get_characters(package_id):
        if char["id"] == character_id:
            return char
    return None


def add_character(package_id: str, fields: dict[str, Any]) -> dict[str, Any]:
    """Insert one character and return the stored row."""
    row = _new_row(package_id, fields)
    characters = get_characters(package_id)
    characters.append(row)
    write_json(_characters_path(package_id), characters)
    return row


def replace_characters(package_id: str, characters: list[dict[str, Any]]) -> list[dict[str, Any]]:
    """Bulk-replace every character of a package."""
    rows = [_new_row(package_id, fields) for fields in characters]
    write_json(_characters_path(package_id), rows)
    return rows


def update_character(package_id: str, character_id: str, fields: dict[str, Any]) -> dict[str, Any] | None:
    characters = get_characters(package_id)
    for char in characters:
        if char["id"] == character_id:
            for key, value in fields.items():
                if key in TEXT_FIELDS or key in LIST_FIELDS or key == "character_name":
                    char[key] = value
            char["updated_at"] = now_iso()
            write_json(_characters_path(package_id), characters)
            return char
    return None


def delete_characters(package_id: str) -> int:
    """Remove all characters of a package. Returns how many were removed."""
    count = len(get_characters(package_id))
    write_json(_characters_path(package_id), [])
    return count
