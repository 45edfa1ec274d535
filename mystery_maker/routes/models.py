"""Pydantic request models for API endpoints."""

from pydantic import BaseModel

from mystery_maker.models import DisplayStatus, MysteryForm, PromptVersion


class CreateMystery(MysteryForm):
    user_id: str


class UpdateMystery(BaseModel):
    title: str | None = None
    theme: str | None = None
    display_status: DisplayStatus | None = None


class ChatBody(BaseModel):
    message: str
    prompt_version: PromptVersion = "free"


class PurchaseBody(BaseModel):
    user_id: str


class GenerateBody(BaseModel):
    test_mode: bool | None = None


class ImportCharactersBody(BaseModel):
    text: str
    replace: bool = False


class RolesBody(BaseModel):
    murderer_id: str
    accomplice_id: str | None = None


class AssignmentBody(BaseModel):
    character_id: str
    guest_name: str
    guest_email: str


class SentBody(BaseModel):
    sent: bool = True


class TestModeBody(BaseModel):
    enabled: bool
