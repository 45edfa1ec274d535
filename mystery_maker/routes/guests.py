"""Role selection, guest assignments, and guest character access."""

from fastapi import APIRouter, HTTPException

from mystery_maker import guests, storage
from mystery_maker.guests import AssignmentError

from .models import AssignmentBody, RolesBody, SentBody

router = APIRouter()


@router.put("/packages/{package_id}/roles")
async def assign_roles(package_id: str, body: RolesBody):
    """Pick the murderer and optional accomplice."""
    try:
        return guests.assign_roles(package_id, body.murderer_id, body.accomplice_id)
    except AssignmentError as e:
        raise HTTPException(400, str(e))


@router.get("/packages/{package_id}/assignments")
async def list_assignments(package_id: str):
    if not storage.get_package(package_id):
        raise HTTPException(404, "Package not found")
    return storage.get_assignments(package_id)


@router.post("/packages/{package_id}/assignments", status_code=201)
async def assign_guest(package_id: str, body: AssignmentBody):
    """Assign a character to a guest."""
    try:
        return guests.assign_guest(package_id, body.character_id, body.guest_name, body.guest_email)
    except AssignmentError as e:
        raise HTTPException(400, str(e))


@router.post("/packages/{package_id}/assignments/{assignment_id}/sent")
async def mark_sent(package_id: str, assignment_id: str, body: SentBody):
    """Record whether the guest's invitation went out."""
    try:
        return guests.mark_sent(package_id, assignment_id, body.sent)
    except AssignmentError as e:
        raise HTTPException(404, str(e))


@router.get("/character-access/{token}")
async def character_access(token: str):
    """A guest's own character, looked up by access token."""
    result = guests.get_character_for_token(token)
    if result is None:
        raise HTTPException(404, "Invalid or expired access link")
    return result
