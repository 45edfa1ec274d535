"""Role selection and guest assignments for a generated package."""

import logging
import re
from typing import Any

from mystery_maker import storage

logger = logging.getLogger(__name__)

_EMAIL = re.compile(r"^[^\s@]+@[^\s@]+\.[^\s@]+$")


class AssignmentError(ValueError):
    """Raised for invalid role or guest assignments."""


def is_valid_email(email: str) -> bool:
    return bool(_EMAIL.match(email.strip()))


def _require_package(package_id: str) -> dict[str, Any]:
    package = storage.get_package(package_id)
    if package is None:
        raise AssignmentError("Package not found")
    return package


def assign_roles(package_id: str, murderer_id: str, accomplice_id: str | None = None) -> list[dict[str, Any]]:
    """Mark the murderer (and optional accomplice); everyone else is innocent."""
    _require_package(package_id)
    characters = storage.get_characters(package_id)
    ids = {c["id"] for c in characters}
    if murderer_id not in ids:
        raise AssignmentError("Murderer must be one of the package's characters")
    if accomplice_id is not None:
        if accomplice_id not in ids:
            raise AssignmentError("Accomplice must be one of the package's characters")
        if accomplice_id == murderer_id:
            raise AssignmentError("The murderer and the accomplice must be different characters")

    updated = []
    for char in characters:
        if char["id"] == murderer_id:
            role = "murderer"
        elif char["id"] == accomplice_id:
            role = "accomplice"
        else:
            role = "innocent"
        updated.append(storage.update_character(package_id, char["id"], {"role": role}))
    logger.info("Assigned roles in package %s", package_id)
    return updated


def assign_guest(package_id: str, character_id: str, guest_name: str, guest_email: str) -> dict[str, Any]:
    """Assign a character to a guest. A guest email may hold only one character."""
    _require_package(package_id)
    if storage.get_character(package_id, character_id) is None:
        raise AssignmentError("Character not found")
    guest_name = guest_name.strip()
    guest_email = guest_email.strip()
    if not guest_name:
        raise AssignmentError("Guest name is required")
    if not is_valid_email(guest_email):
        raise AssignmentError(f"Invalid email address: {guest_email!r}")
    for existing in storage.get_assignments(package_id):
        if existing["character_id"] != character_id and existing["guest_email"].lower() == guest_email.lower():
            raise AssignmentError(f"{guest_email} is already assigned to another character")
    return storage.upsert_assignment(package_id, character_id, guest_name, guest_email)


def mark_sent(package_id: str, assignment_id: str, sent: bool = True) -> dict[str, Any]:
    assignment = storage.set_assignment_sent(package_id, assignment_id, sent)
    if assignment is None:
        raise AssignmentError("Assignment not found")
    return assignment


def get_character_for_token(token: str) -> dict[str, Any] | None:
    """Resolve a guest's access token to their assignment and character."""
    assignment = storage.find_assignment_by_token(token)
    if assignment is None:
        return None
    character = storage.get_character(assignment["package_id"], assignment["character_id"])
    if character is None:
        return None
    return {
        "guest_name": assignment["guest_name"],
        "character": character,
    }
