"""Health check and test-mode toggle."""

from fastapi import APIRouter

from mystery_maker import generation

from .models import TestModeBody

router = APIRouter()


@router.get("/health")
async def health():
    """Health check."""
    return {"status": "ok"}


@router.get("/test-mode")
async def get_test_mode():
    """Whether resumed generations run with the reduced test configuration."""
    return {"enabled": generation.get_test_mode_enabled()}


@router.put("/test-mode")
async def set_test_mode(body: TestModeBody):
    """Enable or disable test mode."""
    return {"enabled": generation.toggle_test_mode(body.enabled)}
