"""Mystery (conversation) CRUD, messages, chat, and purchase endpoints."""

from fastapi import APIRouter, HTTPException

from mystery_maker import mysteries, storage
from mystery_maker.models import MysteryForm

from .models import ChatBody, CreateMystery, PurchaseBody, UpdateMystery

router = APIRouter()


def _require_conversation(conversation_id: str) -> dict:
    conversation = storage.get_conversation(conversation_id)
    if not conversation:
        raise HTTPException(404, "Mystery not found")
    return conversation


@router.get("/mysteries")
async def list_mysteries(user_id: str, status: str = "all", search: str = ""):
    """Dashboard listing for a user, filtered by status and search text."""
    try:
        return mysteries.list_mysteries(user_id, status, search)
    except ValueError as e:
        raise HTTPException(400, str(e))


@router.post("/mysteries", status_code=201)
async def create_mystery(body: CreateMystery):
    """Create a draft mystery from the creation form."""
    form = MysteryForm.model_validate(body.model_dump(exclude={"user_id"}))
    return mysteries.create_mystery(body.user_id, form)


@router.get("/mysteries/{conversation_id}")
async def get_mystery(conversation_id: str):
    """Get a single mystery."""
    return _require_conversation(conversation_id)


@router.patch("/mysteries/{conversation_id}")
async def update_mystery(conversation_id: str, body: UpdateMystery):
    """Update title, theme, or display status."""
    updated = storage.update_conversation(conversation_id, body.model_dump(exclude_none=True))
    if not updated:
        raise HTTPException(404, "Mystery not found")
    return updated


@router.delete("/mysteries/{conversation_id}")
async def delete_mystery(conversation_id: str):
    """Delete a mystery with its messages and package."""
    if not storage.delete_conversation(conversation_id):
        raise HTTPException(404, "Mystery not found")
    return {"ok": True}


@router.post("/mysteries/{conversation_id}/archive")
async def archive_mystery(conversation_id: str):
    """Move a mystery to the archive."""
    _require_conversation(conversation_id)
    return mysteries.archive_mystery(conversation_id)


@router.get("/mysteries/{conversation_id}/messages")
async def get_messages(conversation_id: str):
    """Chat history of a mystery."""
    _require_conversation(conversation_id)
    return storage.get_messages(conversation_id)


@router.post("/mysteries/{conversation_id}/chat")
async def chat(conversation_id: str, body: ChatBody):
    """Send a user message and store the assistant's reply."""
    _require_conversation(conversation_id)
    return await mysteries.send_chat_message(conversation_id, body.message, body.prompt_version)


@router.post("/mysteries/{conversation_id}/purchase")
async def purchase(conversation_id: str, body: PurchaseBody):
    """Record a completed purchase."""
    _require_conversation(conversation_id)
    return mysteries.mark_purchased(conversation_id, body.user_id)
