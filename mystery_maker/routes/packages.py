"""Package generation, status, characters, and realtime endpoints."""

import asyncio
import logging

from fastapi import APIRouter, HTTPException, WebSocket, WebSocketDisconnect

from mystery_maker import generation, storage
from mystery_maker.characters import CharacterImportError, import_character_batch
from mystery_maker.generation import GenerationError, get_package_generation_status
from mystery_maker.models import GenerationStatus

from .models import GenerateBody, ImportCharactersBody

logger = logging.getLogger(__name__)

router = APIRouter()


def _require_package(conversation_id: str) -> dict:
    if not storage.get_conversation(conversation_id):
        raise HTTPException(404, "Mystery not found")
    package = storage.get_package_for_conversation(conversation_id)
    if not package:
        raise HTTPException(404, "Package not found")
    return package


@router.post("/mysteries/{conversation_id}/package/generate")
async def generate_package(conversation_id: str, body: GenerateBody | None = None):
    """Send the conversation to the external generator."""
    if not storage.get_conversation(conversation_id):
        raise HTTPException(404, "Mystery not found")
    test_mode = body.test_mode if body and body.test_mode is not None else generation.get_test_mode_enabled()
    try:
        message = await generation.generate_complete_package(conversation_id, test_mode)
    except GenerationError as e:
        raise HTTPException(502, str(e))
    return {"message": message, "status": get_package_generation_status(conversation_id).to_json()}


@router.post("/mysteries/{conversation_id}/package/resume")
async def resume_package(conversation_id: str):
    """Restart a failed generation."""
    if not storage.get_conversation(conversation_id):
        raise HTTPException(404, "Mystery not found")
    try:
        message = await generation.resume_package_generation(conversation_id)
    except GenerationError as e:
        raise HTTPException(502, str(e))
    return {"message": message, "status": get_package_generation_status(conversation_id).to_json()}


@router.get("/mysteries/{conversation_id}/package/status")
async def package_status(conversation_id: str):
    """Current generation status; not_started when there is no package."""
    return get_package_generation_status(conversation_id).to_json()


@router.get("/mysteries/{conversation_id}/package")
async def get_package(conversation_id: str):
    """The package with its characters."""
    package = _require_package(conversation_id)
    return {**package, "characters": storage.get_characters(package["id"])}


@router.get("/mysteries/{conversation_id}/package/characters")
async def list_characters(conversation_id: str):
    package = _require_package(conversation_id)
    return storage.get_characters(package["id"])


@router.post("/mysteries/{conversation_id}/package/characters/import")
async def import_characters(conversation_id: str, body: ImportCharactersBody):
    """Replace the package's characters with guides parsed from text."""
    package = _require_package(conversation_id)
    try:
        return import_character_batch(package["id"], body.text, body.replace)
    except CharacterImportError as e:
        raise HTTPException(400, str(e))


@router.websocket("/mysteries/{conversation_id}/package/events")
async def package_events(websocket: WebSocket, conversation_id: str):
    """Push status changes until generation completes, fails, or the client leaves."""
    await websocket.accept()
    queue = storage.subscribe(conversation_id)
    receiver = asyncio.ensure_future(websocket.receive())
    try:
        status = get_package_generation_status(conversation_id)
        await websocket.send_json({"type": "STATUS", "status": status.to_json()})
        while not status.is_terminal:
            getter = asyncio.ensure_future(queue.get())
            done, _ = await asyncio.wait({getter, receiver}, return_when=asyncio.FIRST_COMPLETED)
            event = getter.result() if getter in done else None
            if getter not in done:
                getter.cancel()
            if receiver in done:
                if receiver.result()["type"] == "websocket.disconnect":
                    logger.debug("Events client for %s disconnected", conversation_id)
                    return
                # client messages are ignored
                receiver = asyncio.ensure_future(websocket.receive())
            if event is None:
                continue
            record = event.get("record") or {}
            if not record.get("generation_status"):
                continue
            status = GenerationStatus.model_validate(record["generation_status"])
            await websocket.send_json({"type": event["type"], "status": status.to_json()})
        await websocket.close()
    except WebSocketDisconnect:
        pass
    finally:
        receiver.cancel()
        storage.unsubscribe(conversation_id, queue)


@router.post("/generation-complete")
async def generation_complete(payload: dict):
    """Callback from the external generator."""
    try:
        return generation.handle_generation_complete(payload)
    except ValueError as e:
        raise HTTPException(400, str(e))
