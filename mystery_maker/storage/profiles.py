"""User profiles (purchase flags)."""

from pathlib import Path
from typing import Any

from .core import now_iso, profiles_dir, read_json, write_json

_PROFILE_DEFAULTS: dict[str, Any] = {
    "name": "",
    "email": "",
    "has_purchased": False,
    "purchase_date": None,
}


def _profile_path(user_id: str) -> Path:
    return profiles_dir() / f"{user_id}.json"


def get_profile(user_id: str) -> dict[str, Any]:
    """Read a profile, returning defaults merged with stored values."""
    profile: dict[str, Any] = {"id": user_id, **_PROFILE_DEFAULTS}
    stored = read_json(_profile_path(user_id))
    if stored:
        profile.update(stored)
    return profile


def update_profile(user_id: str, fields: dict[str, Any]) -> dict[str, Any]:
    """Merge known fields into a profile and persist. Returns full profile."""
    profile = get_profile(user_id)
    for key, value in fields.items():
        if key in _PROFILE_DEFAULTS:
            profile[key] = value
    profile["updated_at"] = now_iso()
    write_json(_profile_path(user_id), profile)
    return profile
