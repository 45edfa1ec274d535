"""Tests for the package generation orchestrator."""

import httpx
import pytest
from unittest.mock import AsyncMock, MagicMock, patch

from mystery_maker import generation, storage
from mystery_maker.generation import (
    GenerationError,
    PackageDataError,
    build_webhook_payload,
    generate_complete_package,
    generation_plan,
    get_package_generation_status,
    handle_generation_complete,
    normalize_package_data,
    resume_package_generation,
    save_structured_package_data,
)
from mystery_maker.config import Settings

WEBHOOK = "https://hooks.example.com/generate"


def _mock_response(body=None, status: int = 200) -> MagicMock:
    resp = MagicMock()
    resp.status_code = status
    if body is None:
        resp.json.side_effect = ValueError("no json")
    else:
        resp.json.return_value = body
    resp.raise_for_status = MagicMock(
        side_effect=None if status < 400 else httpx.HTTPStatusError(
            "", request=MagicMock(), response=resp
        )
    )
    return resp


CAMEL = {
    "title": "The Last Curtain",
    "gameOverview": "Overview",
    "hostGuide": "Guide",
    "preparation": "Print guides",
    "detectiveScript": "Nobody leaves",
    "characters": [
        {"name": "Leo Marsh", "round1Statement": "In the wings", "relationships": [{"character": "Greta"}]},
        {"name": "Greta Voss", "secret": "Bankrupt"},
    ],
}

SNAKE = {
    "title": "The Last Curtain",
    "game_overview": "Overview",
    "host_guide": "Guide",
    "preparation_instructions": "Print guides",
    "detective_script": "Nobody leaves",
    "characters": [
        {"character_name": "Leo Marsh", "round1_statement": "In the wings", "relationships": [{"character": "Greta"}]},
        {"character_name": "Greta Voss", "secret": "Bankrupt"},
    ],
}


@pytest.fixture
def conversation():
    conv = storage.create_conversation("u1", {"title": "Theatre Mystery", "theme": "Theatre", "player_count": 6})
    storage.append_message(conv["id"], "user", "A theatre murder for 6 players")
    storage.append_message(conv["id"], "assistant", "# \"THE LAST CURTAIN\" - A MURDER MYSTERY")
    return storage.get_conversation(conv["id"])


@pytest.fixture
def webhook(monkeypatch):
    monkeypatch.setenv("GENERATION_WEBHOOK_URL", WEBHOOK)


# ---------------------------------------------------------------------------
# Status
# ---------------------------------------------------------------------------

def test_status_not_started_without_package(conversation):
    status = get_package_generation_status(conversation["id"])
    assert status.status == "not_started"
    assert status.progress == 0


def test_status_not_started_when_package_has_no_status(conversation):
    storage.create_package(conversation["id"])
    assert get_package_generation_status(conversation["id"]).status == "not_started"


# ---------------------------------------------------------------------------
# Plan + payload
# ---------------------------------------------------------------------------

def test_production_plan():
    plan = generation_plan(7, test_mode=False)
    assert plan["chunkSize"] == 3
    assert plan["totalChunks"] == 3
    assert plan["characterCount"] == 7
    assert plan["steps"] == list(generation.SECTION_KEYS)
    assert plan["maxTokens"] == 4000


def test_test_mode_plan_is_reduced():
    plan = generation_plan(6, test_mode=True)
    assert plan["chunkSize"] == 2
    assert plan["totalChunks"] == 1
    assert plan["characterCount"] == 2
    assert plan["steps"] == ["hostGuide", "characters"]
    assert plan["maxTokens"] == 1000


def test_payload_fields(conversation):
    messages = storage.get_messages(conversation["id"])
    settings = Settings(callback_base_url="https://app.example.com/")
    payload = build_webhook_payload(conversation, messages, False, settings)
    assert payload["conversationId"] == conversation["id"]
    assert payload["playerCount"] == 6
    assert payload["testMode"] is False
    assert payload["environment"] == "production"
    assert payload["callback_url"] == "https://app.example.com/api/generation-complete"
    assert payload["message_count"] == 2
    assert payload["message_2_role"] == "assistant"
    assert payload["messages"][1]["is_ai"] is True
    assert "User: A theatre murder" in payload["content"]
    assert "\n\n---\n\n" in payload["content"]


# ---------------------------------------------------------------------------
# generate_complete_package
# ---------------------------------------------------------------------------

async def test_generate_sends_webhook_and_marks_in_progress(conversation, webhook):
    mock_post = AsyncMock(return_value=_mock_response({"accepted": True}))
    with patch("httpx.AsyncClient.post", mock_post):
        message = await generate_complete_package(conversation["id"])
    assert message == "Webhook sent - generation in progress"
    assert mock_post.call_args[0][0] == WEBHOOK
    status = get_package_generation_status(conversation["id"])
    assert status.status == "in_progress"
    assert status.progress == 20
    conv = storage.get_conversation(conversation["id"])
    assert conv["needs_package_generation"] is True
    assert conv["webhook_sent"] is True


async def test_test_mode_payload(conversation, webhook):
    mock_post = AsyncMock(return_value=_mock_response(None))
    with patch("httpx.AsyncClient.post", mock_post):
        await generate_complete_package(conversation["id"], test_mode=True)
    payload = mock_post.call_args.kwargs["json"]
    assert payload["testMode"] is True
    assert payload["environment"] == "development"
    assert payload["max_tokens"] == 1000
    assert payload["generation"]["characterCount"] == 2
    assert payload["generation"]["steps"] == ["hostGuide", "characters"]


async def test_synchronous_package_is_saved(conversation, webhook):
    mock_post = AsyncMock(return_value=_mock_response(CAMEL))
    with patch("httpx.AsyncClient.post", mock_post):
        message = await generate_complete_package(conversation["id"])
    assert message == "Package generation completed successfully"
    package = storage.get_package_for_conversation(conversation["id"])
    assert package["title"] == "The Last Curtain"
    assert get_package_generation_status(conversation["id"]).status == "completed"


async def test_incomplete_synchronous_reply_falls_back_to_in_progress(conversation, webhook):
    mock_post = AsyncMock(return_value=_mock_response({"title": "Ack only", "status": "queued"}))
    with patch("httpx.AsyncClient.post", mock_post):
        message = await generate_complete_package(conversation["id"])
    assert message == "Webhook sent - generation in progress"
    status = get_package_generation_status(conversation["id"])
    assert status.status == "in_progress"
    assert status.progress == 20
    assert storage.get_package_for_conversation(conversation["id"])["title"] is None
    assert storage.get_conversation(conversation["id"])["webhook_sent"] is True


async def test_webhook_failure_is_resumable(conversation, webhook):
    mock_post = AsyncMock(return_value=_mock_response({}, status=500))
    with patch("httpx.AsyncClient.post", mock_post):
        with pytest.raises(GenerationError, match="HTTP 500"):
            await generate_complete_package(conversation["id"])
    status = get_package_generation_status(conversation["id"])
    assert status.status == "failed"
    assert status.resumable is True
    assert status.progress == 0


async def test_unreachable_webhook_is_resumable(conversation, webhook):
    mock_post = AsyncMock(side_effect=httpx.ConnectError("refused"))
    with patch("httpx.AsyncClient.post", mock_post):
        with pytest.raises(GenerationError):
            await generate_complete_package(conversation["id"])
    assert get_package_generation_status(conversation["id"]).resumable is True


async def test_missing_webhook_url_fails(conversation):
    with pytest.raises(GenerationError, match="no webhook URL"):
        await generate_complete_package(conversation["id"])
    assert get_package_generation_status(conversation["id"]).status == "failed"


async def test_missing_conversation():
    with pytest.raises(GenerationError, match="not found"):
        await generate_complete_package("missing")


async def test_resume_after_failure(conversation, webhook):
    with patch("httpx.AsyncClient.post", AsyncMock(return_value=_mock_response({}, status=503))):
        with pytest.raises(GenerationError):
            await generate_complete_package(conversation["id"])
    package_id = storage.get_package_for_conversation(conversation["id"])["id"]

    with patch("httpx.AsyncClient.post", AsyncMock(return_value=_mock_response(None))):
        await resume_package_generation(conversation["id"])
    assert get_package_generation_status(conversation["id"]).status == "in_progress"
    # the same package row is reused
    assert storage.get_package_for_conversation(conversation["id"])["id"] == package_id


async def test_resume_uses_test_mode_toggle(conversation, webhook):
    generation.toggle_test_mode(True)
    mock_post = AsyncMock(return_value=_mock_response(None))
    with patch("httpx.AsyncClient.post", mock_post):
        await resume_package_generation(conversation["id"])
    assert mock_post.call_args.kwargs["json"]["testMode"] is True


# ---------------------------------------------------------------------------
# Structured data
# ---------------------------------------------------------------------------

def test_camel_and_snake_normalize_identically():
    assert normalize_package_data(CAMEL) == normalize_package_data(SNAKE)


def test_normalize_reports_missing_fields():
    with pytest.raises(PackageDataError, match="host_guide, characters"):
        normalize_package_data({"title": "T", "gameOverview": "O"})


def test_save_structured_data(conversation):
    save_structured_package_data(conversation["id"], CAMEL)
    package = storage.get_package_for_conversation(conversation["id"])
    assert package["preparation_instructions"] == "Print guides"
    assert package["detective_script"] == "Nobody leaves"
    status = get_package_generation_status(conversation["id"])
    assert status.status == "completed"
    assert status.progress == 100
    assert all(status.sections.values())
    characters = storage.get_characters(package["id"])
    assert [c["character_name"] for c in characters] == ["Leo Marsh", "Greta Voss"]
    assert characters[0]["round1_statement"] == "In the wings"
    conv = storage.get_conversation(conversation["id"])
    assert conv["has_complete_package"] is True
    assert conv["needs_package_generation"] is False
    assert conv["display_status"] == "purchased"


def test_save_replaces_previous_characters(conversation):
    save_structured_package_data(conversation["id"], CAMEL)
    save_structured_package_data(conversation["id"], {**CAMEL, "characters": [{"name": "Felix"}, {"description": "x"}]})
    package = storage.get_package_for_conversation(conversation["id"])
    assert [c["character_name"] for c in storage.get_characters(package["id"])] == ["Felix"]


# ---------------------------------------------------------------------------
# Callback
# ---------------------------------------------------------------------------

def test_callback_saves_structured_data(conversation):
    result = handle_generation_complete({
        "conversation_id": conversation["id"],
        "status": "completed",
        "structured_data": SNAKE,
    })
    assert result["received"] is True
    assert result["structured_data_processed"] is True
    assert get_package_generation_status(conversation["id"]).status == "completed"


def test_callback_accepts_camel_conversation_id(conversation):
    result = handle_generation_complete({"conversationId": conversation["id"], "structured_data": CAMEL})
    assert result["conversation_id"] == conversation["id"]


def test_callback_with_bad_data_is_acknowledged(conversation):
    result = handle_generation_complete({"conversation_id": conversation["id"], "structured_data": {"title": "x"}})
    assert result["received"] is True
    assert result["structured_data_processed"] is False


async def test_callback_failure_marks_resumable(conversation, webhook):
    with patch("httpx.AsyncClient.post", AsyncMock(return_value=_mock_response(None))):
        await generate_complete_package(conversation["id"])
    handle_generation_complete({"conversation_id": conversation["id"], "status": "failed", "error": "Timed out"})
    status = get_package_generation_status(conversation["id"])
    assert status.status == "failed"
    assert status.current_step == "Timed out"
    assert status.resumable is True


def test_callback_requires_conversation_id():
    with pytest.raises(ValueError, match="conversation_id"):
        handle_generation_complete({"status": "completed"})


def test_callback_for_unknown_conversation_is_rejected():
    with pytest.raises(ValueError, match="not found"):
        handle_generation_complete({"conversation_id": "does-not-exist", "structured_data": SNAKE})
    assert storage.get_package_for_conversation("does-not-exist") is None
