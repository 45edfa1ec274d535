"""Core domain models.

Storage keeps plain dicts; these pydantic models validate and serialise at
the boundaries (generation status blobs, chat messages, the creation form).
"""

from __future__ import annotations

from typing import Literal

from pydantic import BaseModel, ConfigDict, Field

GenerationState = Literal["not_started", "in_progress", "completed", "failed"]
DisplayStatus = Literal["draft", "purchased", "archived"]
ScriptType = Literal["full", "summary"]
PromptVersion = Literal["free", "paid"]

TERMINAL_STATES = ("completed", "failed")


class GenerationStatus(BaseModel):
    """Lifecycle of the external generation job, stored as a JSON blob.

    Serialised with camelCase `currentStep` to match the stored shape.
    """

    model_config = ConfigDict(populate_by_name=True)

    status: GenerationState
    progress: int = Field(default=0, ge=0, le=100)
    current_step: str = Field(default="", alias="currentStep")
    resumable: bool | None = None
    sections: dict[str, bool] = Field(default_factory=dict)

    @classmethod
    def not_started(cls) -> GenerationStatus:
        return cls(status="not_started", progress=0, current_step="Not started", sections={})

    @property
    def is_terminal(self) -> bool:
        return self.status in TERMINAL_STATES

    def to_json(self) -> dict:
        return self.model_dump(by_alias=True, exclude_none=True)


class MysteryForm(BaseModel):
    """Fields collected by the creation form before chatting starts."""

    theme: str
    player_count: int = Field(ge=2, le=40)
    script_type: ScriptType = "full"
    has_accomplice: bool = False
    additional_details: str | None = None
