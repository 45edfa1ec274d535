"""Package generation orchestrator.

Generation runs out of process: the full conversation is POSTed to an
external automation webhook, which later reports results through the
generation-complete callback (or, occasionally, answers synchronously with
the finished package).

Package state machine (stored in mystery_packages.generation_status):

    not_started → in_progress → completed
                              → failed (resumable) → in_progress (resume)

No lock guards concurrent generation requests for the same conversation;
the last writer wins.
"""

import logging
from typing import Any

import httpx

from mystery_maker import storage
from mystery_maker.config import Settings, get_settings
from mystery_maker.models import GenerationStatus

logger = logging.getLogger(__name__)

SECTION_KEYS = (
    "hostGuide",
    "characters",
    "clues",
    "inspectorScript",
    "characterMatrix",
    "solution",
)

WEBHOOK_TIMEOUT = 60.0

_test_mode_enabled = False


class GenerationError(RuntimeError):
    """Raised when generation cannot be started. Status is recorded first."""


class PackageDataError(ValueError):
    """Raised when a structured package payload lacks required fields."""


# ---------------------------------------------------------------------------
# Test mode
# ---------------------------------------------------------------------------

def get_test_mode_enabled() -> bool:
    return _test_mode_enabled


def toggle_test_mode(enabled: bool) -> bool:
    global _test_mode_enabled
    _test_mode_enabled = enabled
    logger.info("Test mode %s", "enabled" if enabled else "disabled")
    return _test_mode_enabled


# ---------------------------------------------------------------------------
# Status helpers
# ---------------------------------------------------------------------------

def _sections(value: bool) -> dict[str, bool]:
    return {key: value for key in SECTION_KEYS}


def _in_progress(progress: int, step: str) -> dict[str, Any]:
    return GenerationStatus(
        status="in_progress", progress=progress, current_step=step, sections=_sections(False),
    ).to_json()


def _failed(step: str) -> dict[str, Any]:
    return GenerationStatus(
        status="failed", progress=0, current_step=step, resumable=True,
    ).to_json()


def get_package_generation_status(conversation_id: str) -> GenerationStatus:
    """Latest generation status, or a not-started default."""
    package = storage.get_package_for_conversation(conversation_id)
    if not package or not package.get("generation_status"):
        return GenerationStatus.not_started()
    return GenerationStatus.model_validate(package["generation_status"])


def record_generation_failure(conversation_id: str, step: str) -> dict[str, Any] | None:
    """Mark the conversation's package as failed and resumable."""
    package = storage.get_package_for_conversation(conversation_id)
    if package is None:
        return None
    return storage.update_package(package["id"], {"generation_status": _failed(step)})


# ---------------------------------------------------------------------------
# Webhook payload
# ---------------------------------------------------------------------------

def generation_plan(player_count: int | None, test_mode: bool) -> dict[str, Any]:
    """Chunking and step metadata the external generator works through.

    Characters are generated in chunks; test mode caps the cast at two
    characters in one chunk and only runs the first two steps.
    """
    count = player_count or 0
    if test_mode:
        chunk_size = 2
        count = min(count, 2)
        steps = list(SECTION_KEYS[:2])
        max_tokens = 1000
    else:
        chunk_size = 3
        steps = list(SECTION_KEYS)
        max_tokens = 4000
    total_chunks = max(1, -(-count // chunk_size))
    return {
        "chunkSize": chunk_size,
        "totalChunks": total_chunks,
        "characterCount": count,
        "steps": steps,
        "maxTokens": max_tokens,
    }


def conversation_transcript(messages: list[dict[str, Any]]) -> str:
    parts = []
    for msg in messages:
        role = "AI" if msg["role"] == "assistant" else "User"
        parts.append(f"{role}: {msg['content']}")
    return "\n\n---\n\n".join(parts)


def build_webhook_payload(
    conversation: dict[str, Any],
    messages: list[dict[str, Any]],
    test_mode: bool,
    settings: Settings,
) -> dict[str, Any]:
    player_count = conversation.get("player_count")
    base = settings.test_callback_base_url if test_mode else settings.callback_base_url
    plan = generation_plan(player_count, test_mode)
    payload: dict[str, Any] = {
        "userId": conversation.get("user_id"),
        "conversationId": conversation["id"],
        "title": conversation.get("title") or f"Mystery - {player_count} Players",
        "messages": [
            {
                "role": msg["role"],
                "content": msg["content"],
                "timestamp": msg.get("created_at"),
                "is_ai": msg["role"] == "assistant",
            }
            for msg in messages
        ],
        "message_count": len(messages),
        "content": conversation_transcript(messages),
        "playerCount": player_count,
        "theme": conversation.get("theme"),
        "scriptType": conversation.get("script_type") or "full",
        "additionalDetails": conversation.get("additional_details"),
        "hasAccomplice": bool(conversation.get("has_accomplice")),
        "createdAt": conversation.get("created_at"),
        "updatedAt": conversation.get("updated_at"),
        "testMode": test_mode,
        "environment": "development" if test_mode else "production",
        "callback_domain": base,
        "callback_url": f"{base.rstrip('/')}/api/generation-complete",
        "max_tokens": plan["maxTokens"],
        "generation": plan,
    }
    # Flat per-message fields for automation tools that can't iterate arrays
    for index, msg in enumerate(messages, start=1):
        payload[f"message_{index}_role"] = msg["role"]
        payload[f"message_{index}_content"] = msg["content"]
    return payload


# ---------------------------------------------------------------------------
# Generation
# ---------------------------------------------------------------------------

def _start_package(conversation_id: str) -> dict[str, Any]:
    """Create or reset the package row with an in-progress status."""
    status = _in_progress(10, "Sending to external generation service...")
    started = storage.now_iso()
    package = storage.get_package_for_conversation(conversation_id)
    if package is None:
        return storage.create_package(conversation_id, {
            "generation_status": status,
            "generation_started_at": started,
        })
    return storage.update_package(package["id"], {
        "generation_status": status,
        "generation_started_at": started,
    })


async def generate_complete_package(conversation_id: str, test_mode: bool = False) -> str:
    """Kick off external generation for a conversation.

    Returns a short description of the outcome. Raises GenerationError after
    recording a resumable failure when the webhook can't be reached.
    """
    settings = get_settings()
    conversation = storage.get_conversation(conversation_id)
    if conversation is None:
        raise GenerationError(f"Conversation {conversation_id} not found")
    messages = storage.get_messages(conversation_id)
    logger.info("Starting package generation for %s (%d messages, test_mode=%s)",
                conversation_id, len(messages), test_mode)

    package = _start_package(conversation_id)
    payload = build_webhook_payload(conversation, messages, test_mode, settings)
    logger.debug("webhook payload: messages=%d theme=%r players=%r",
                 payload["message_count"], payload["theme"], payload["playerCount"])

    if not settings.webhook_url:
        step = "Failed to send to external service: no webhook URL configured"
        storage.update_package(package["id"], {"generation_status": _failed(step)})
        raise GenerationError(step)

    try:
        async with httpx.AsyncClient(timeout=WEBHOOK_TIMEOUT) as client:
            resp = await client.post(settings.webhook_url, json=payload)
            resp.raise_for_status()
    except httpx.HTTPStatusError as e:
        step = f"Failed to send to external service: HTTP {e.response.status_code}"
        logger.error("Webhook error for %s: %s", conversation_id, step)
        storage.update_package(package["id"], {"generation_status": _failed(step)})
        raise GenerationError(step) from e
    except httpx.HTTPError as e:
        step = f"Failed to send to external service: {e.__class__.__name__}"
        logger.error("Webhook unreachable for %s: %s", conversation_id, e)
        storage.update_package(package["id"], {"generation_status": _failed(step)})
        raise GenerationError(step) from e

    try:
        data = resp.json()
    except ValueError:
        data = None
        logger.info("Webhook answered with non-JSON body (normal for async webhooks)")

    if isinstance(data, dict) and data.get("title"):
        try:
            save_structured_package_data(conversation_id, data)
        except PackageDataError as e:
            logger.warning("Webhook reply for %s is not a complete package: %s", conversation_id, e)
        else:
            logger.info("Webhook returned a finished package for %s", conversation_id)
            return "Package generation completed successfully"

    storage.update_package(package["id"], {
        "generation_status": _in_progress(20, "Package generation in progress (3-5 minutes)..."),
    })
    storage.update_conversation(conversation_id, {
        "needs_package_generation": True,
        "webhook_sent": True,
        "webhook_sent_at": storage.now_iso(),
    })
    logger.info("Webhook accepted generation for %s", conversation_id)
    return "Webhook sent - generation in progress"


async def resume_package_generation(conversation_id: str) -> str:
    """Restart generation; there is no partial resume."""
    logger.info("Resuming package generation for %s", conversation_id)
    return await generate_complete_package(conversation_id, get_test_mode_enabled())


# ---------------------------------------------------------------------------
# Structured results
# ---------------------------------------------------------------------------

# target field → accepted source keys, first present wins
_PACKAGE_FIELDS: dict[str, tuple[str, ...]] = {
    "title": ("title",),
    "game_overview": ("gameOverview", "game_overview"),
    "host_guide": ("hostGuide", "host_guide"),
    "materials": ("materials",),
    "preparation_instructions": ("preparation", "preparationInstructions", "preparation_instructions"),
    "timeline": ("timeline",),
    "hosting_tips": ("hostingTips", "hosting_tips"),
    "evidence_cards": ("evidenceCards", "evidence_cards"),
    "relationship_matrix": ("relationshipMatrix", "relationship_matrix"),
    "detective_script": ("detectiveScript", "detective_script", "inspectorScript", "inspector_script"),
}

_CHARACTER_FIELDS: dict[str, tuple[str, ...]] = {
    "character_name": ("name", "characterName", "character_name"),
    "description": ("description",),
    "background": ("background",),
    "secret": ("secret",),
    "introduction": ("introduction",),
    "rumors": ("rumors",),
    "whereabouts": ("whereabouts",),
    "round1_statement": ("round1Statement", "round1_statement"),
    "round2_statement": ("round2Statement", "round2_statement"),
    "round3_statement": ("round3Statement", "round3_statement"),
    "round2_questions": ("round2Questions", "round2_questions"),
    "round2_innocent": ("round2Innocent", "round2_innocent"),
    "round2_guilty": ("round2Guilty", "round2_guilty"),
    "relationships": ("relationships",),
    "secrets": ("secrets",),
}

_LIST_FIELDS = ("relationships", "secrets")


def _pick(source: dict[str, Any], keys: tuple[str, ...]) -> Any:
    for key in keys:
        value = source.get(key)
        if value not in (None, ""):
            return value
    return None


def normalize_character(raw: dict[str, Any]) -> dict[str, Any]:
    character = {field: _pick(raw, keys) for field, keys in _CHARACTER_FIELDS.items()}
    for field in _LIST_FIELDS:
        if not isinstance(character[field], list):
            character[field] = []
    return character


def normalize_package_data(data: dict[str, Any]) -> dict[str, Any]:
    """Map camelCase/snake_case payload variants onto one snake_case shape."""
    if not isinstance(data, dict):
        raise PackageDataError("Structured package data must be a JSON object")
    normalized = {field: _pick(data, keys) for field, keys in _PACKAGE_FIELDS.items()}
    characters = data.get("characters")
    missing = [name for name in ("title", "game_overview", "host_guide") if not normalized[name]]
    if not isinstance(characters, list):
        missing.append("characters")
    if missing:
        raise PackageDataError(f"Missing required fields: {', '.join(missing)}")
    normalized["characters"] = [normalize_character(c) for c in characters if isinstance(c, dict)]
    return normalized


def save_structured_package_data(conversation_id: str, data: dict[str, Any]) -> dict[str, Any]:
    """Persist a finished package: content fields, characters, conversation flags."""
    normalized = normalize_package_data(data)
    characters = normalized.pop("characters")
    now = storage.now_iso()
    fields = {
        **normalized,
        "generation_status": GenerationStatus(
            status="completed",
            progress=100,
            current_step="Package generation completed",
            sections=_sections(True),
        ).to_json(),
        "generation_completed_at": now,
    }

    package = storage.get_package_for_conversation(conversation_id)
    if package is None:
        package = storage.create_package(conversation_id, fields)
    else:
        package = storage.update_package(package["id"], fields)

    named = [c for c in characters if c.get("character_name")]
    if len(named) != len(characters):
        logger.warning("Dropped %d unnamed character(s) for %s",
                       len(characters) - len(named), conversation_id)
    storage.replace_characters(package["id"], named)

    storage.update_conversation(conversation_id, {
        "is_paid": True,
        "has_complete_package": True,
        "needs_package_generation": False,
        "display_status": "purchased",
    })
    logger.info("Saved package for %s with %d characters", conversation_id, len(named))
    return package


def handle_generation_complete(payload: dict[str, Any]) -> dict[str, Any]:
    """Process the external generator's completion callback."""
    conversation_id = payload.get("conversation_id") or payload.get("conversationId")
    if not conversation_id:
        raise ValueError("Missing conversation_id")
    if storage.get_conversation(conversation_id) is None:
        raise ValueError(f"Conversation {conversation_id} not found")
    status = payload.get("status")
    structured = payload.get("structured_data")
    logger.info("Generation complete callback for %s with status %r", conversation_id, status)

    processed = False
    if isinstance(structured, dict):
        try:
            save_structured_package_data(conversation_id, structured)
            processed = True
        except PackageDataError as e:
            # the client can retry; keep acknowledging the callback
            logger.error("Could not save structured data for %s: %s", conversation_id, e)
    elif status == "failed":
        reason = payload.get("error") or "External generation failed"
        record_generation_failure(conversation_id, str(reason))

    return {
        "received": True,
        "conversation_id": conversation_id,
        "status": "acknowledged",
        "structured_data_processed": processed,
    }
