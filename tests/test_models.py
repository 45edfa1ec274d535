"""Tests for mystery_maker.models."""

import pytest
from pydantic import ValidationError

from mystery_maker.models import GenerationStatus, MysteryForm


class TestGenerationStatus:
    def test_not_started(self) -> None:
        status = GenerationStatus.not_started()
        assert status.status == "not_started"
        assert status.progress == 0
        assert status.is_terminal is False

    def test_accepts_camel_and_snake_step(self) -> None:
        a = GenerationStatus.model_validate({"status": "in_progress", "currentStep": "Working"})
        b = GenerationStatus(status="in_progress", current_step="Working")
        assert a == b

    def test_to_json_uses_camel_case_and_drops_none(self) -> None:
        data = GenerationStatus(status="completed", progress=100, current_step="Done").to_json()
        assert data["currentStep"] == "Done"
        assert "current_step" not in data
        assert "resumable" not in data

    @pytest.mark.parametrize("state", ["completed", "failed"])
    def test_terminal_states(self, state: str) -> None:
        assert GenerationStatus(status=state).is_terminal

    def test_progress_bounds(self) -> None:
        with pytest.raises(ValidationError):
            GenerationStatus(status="in_progress", progress=101)

    def test_unknown_state_rejected(self) -> None:
        with pytest.raises(ValidationError):
            GenerationStatus(status="paused")


class TestMysteryForm:
    def test_defaults(self) -> None:
        form = MysteryForm(theme="Noir", player_count=6)
        assert form.script_type == "full"
        assert form.has_accomplice is False

    def test_player_count_too_small(self) -> None:
        with pytest.raises(ValidationError):
            MysteryForm(theme="Noir", player_count=1)
