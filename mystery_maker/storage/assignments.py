"""Character-to-guest assignments with guest access tokens."""

import json
import secrets
from pathlib import Path
from typing import Any

from .core import now_iso, new_id, packages_dir, read_json, write_json


def _assignments_path(package_id: str) -> Path:
    return packages_dir() / package_id / "assignments.json"


def get_assignments(package_id: str) -> list[dict[str, Any]]:
    return read_json(_assignments_path(package_id), [])


def upsert_assignment(
    package_id: str, character_id: str, guest_name: str, guest_email: str
) -> dict[str, Any]:
    """Assign a character to a guest. One assignment per character."""
    assignments = get_assignments(package_id)
    for assignment in assignments:
        if assignment["character_id"] == character_id:
            assignment["guest_name"] = guest_name
            assignment["guest_email"] = guest_email
            assignment["updated_at"] = now_iso()
            write_json(_assignments_path(package_id), assignments)
            return assignment
    now = now_iso()
    assignment = {
        "id": new_id(),
        "package_id": package_id,
        "character_id": character_id,
        "guest_name": guest_name,
        "guest_email": guest_email,
        "is_sent": False,
        "sent_at": None,
        "access_token": secrets.token_urlsafe(24),
        "created_at": now,
        "updated_at": now,
    }
    assignments.append(assignment)
    write_json(_assignments_path(package_id), assignments)
    return assignment


def set_assignment_sent(package_id: str, assignment_id: str, sent: bool) -> dict[str, Any] | None:
    assignments = get_assignments(package_id)
    for assignment in assignments:
        if assignment["id"] == assignment_id:
            assignment["is_sent"] = sent
            assignment["sent_at"] = now_iso() if sent else None
            assignment["updated_at"] = now_iso()
            write_json(_assignments_path(package_id), assignments)
            return assignment
    return None


def find_assignment_by_token(token: str) -> dict[str, Any] | None:
    """Look up an assignment across all packages by its access token."""
    if not token:
        return None
    wanted = token.encode("utf-8")
    for path in packages_dir().glob("*/assignments.json"):
        for assignment in json.loads(path.read_text(encoding="utf-8")):
            if secrets.compare_digest(assignment.get("access_token", "").encode("utf-8"), wanted):
                return assignment
    return None
