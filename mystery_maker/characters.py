"""Character guide parsing and batch import.

Guides are plain text blocks headed `NAME - CHARACTER GUIDE`, followed by
upper-case section headings:

    LADY ASHWORTH - CHARACTER GUIDE
    CHARACTER DESCRIPTION
    A retired opera singer...
    YOUR RELATIONSHIPS
    Colonel Mustard: Old flame
    YOUR SECRETS
    She owes the victim money
    CHOOSE SOMEONE TO QUESTION
    Ask Colonel Mustard: "Where were you at midnight?"

Importing replaces all characters of a package at once.
"""

import logging
import re
from typing import Any

from mystery_maker import storage
from mystery_maker.models import GenerationStatus

logger = logging.getLogger(__name__)

_GUIDE_HEADER = re.compile(r"([A-Z][A-Z\s]+[A-Z])\s*-\s*CHARACTER GUIDE")
_NEXT_SECTION = re.compile(r"\n\s*[A-Z][A-Z0-9\s]+[A-Z0-9]:?\s*\n")
_ASK = re.compile(r"Ask\s+([^:\n]+):\s*[\"“]([^\"”]+)[\"”]", re.IGNORECASE)

# field → section heading
SECTIONS = {
    "description": "CHARACTER DESCRIPTION",
    "background": "YOUR BACKGROUND",
    "whereabouts": "YOUR WHEREABOUTS",
    "introduction": "YOUR INTRODUCTION",
    "round1_statement": "ROUND 1",
    "round2_statement": "ROUND 2",
    "round3_statement": "ROUND 3",
}


class CharacterImportError(ValueError):
    """Raised when guide text can't be imported."""


def parse_character_section(text: str, section_name: str) -> str | None:
    """Return the body of a section, up to the next upper-case heading."""
    match = re.search(rf"{re.escape(section_name)}\s*:?\s*\n", text, re.IGNORECASE)
    if not match:
        return None
    rest = text[match.end():]
    next_match = _NEXT_SECTION.search(rest)
    body = rest[:next_match.start()] if next_match else rest
    return body.strip()


def parse_questioning_options(text: str) -> list[dict[str, str]]:
    """Find `Ask Name: "question"` lines."""
    return [
        {"target": target.strip(), "question": question.strip()}
        for target, question in _ASK.findall(text)
    ]


def extract_character_info(text: str) -> dict[str, Any]:
    character: dict[str, Any] = {}
    header = _GUIDE_HEADER.search(text)
    if header:
        character["character_name"] = header.group(1).strip()

    for field, heading in SECTIONS.items():
        character[field] = parse_character_section(text, heading)

    relationships_text = parse_character_section(text, "YOUR RELATIONSHIPS")
    if relationships_text:
        relationships = []
        for line in relationships_text.splitlines():
            line = line.strip()
            if not line:
                continue
            name, sep, description = line.partition(":")
            if sep and name.strip():
                relationships.append({"character": name.strip(), "description": description.strip()})
            else:
                relationships.append({"character": line, "description": ""})
        character["relationships"] = relationships

    secrets_text = parse_character_section(text, "YOUR SECRETS")
    if secrets_text:
        character["secrets"] = [line.strip() for line in secrets_text.splitlines() if line.strip()]

    question_text = parse_character_section(text, "CHOOSE SOMEONE TO QUESTION")
    if question_text:
        character["questioning_options"] = parse_questioning_options(question_text)

    if not character.get("character_name"):
        first_line = text.strip().splitlines()[0] if text.strip() else ""
        name = first_line.split("-")[0].strip()
        if name:
            character["character_name"] = name
    return character


def split_character_guides(text: str) -> list[str]:
    """Split a document into one text block per character guide."""
    parts = _GUIDE_HEADER.split(text)
    guides = []
    # parts: [preamble, name1, body1, name2, body2, ...]
    for i in range(1, len(parts) - 1, 2):
        name = parts[i].strip()
        guides.append(f"{name} - CHARACTER GUIDE\n{parts[i + 1]}")
    return guides


def import_character_batch(package_id: str, text: str, replace: bool = False) -> list[dict[str, Any]]:
    """Parse guides and bulk-replace the package's characters.

    Refuses when the package already has characters unless `replace` is set.
    """
    package = storage.get_package(package_id)
    if package is None:
        raise CharacterImportError("Package not found")
    if storage.get_characters(package_id) and not replace:
        raise CharacterImportError("Package already has characters; pass replace to overwrite them")

    guides = split_character_guides(text)
    if not guides:
        raise CharacterImportError("No character guides found in the provided text")

    parsed = []
    for guide in guides:
        info = extract_character_info(guide)
        if info.get("character_name"):
            parsed.append(info)
        else:
            logger.warning("Skipping character guide without a name")
    if not parsed:
        raise CharacterImportError("No characters were successfully imported")

    rows = storage.replace_characters(package_id, parsed)
    storage.update_package(package_id, {
        "generation_status": GenerationStatus(
            status="completed",
            progress=100,
            current_step="Character import completed",
            sections={"characters": True, "hostGuide": True, "clues": True},
        ).to_json(),
    })
    logger.info("Imported %d characters into package %s", len(rows), package_id)
    return rows
