"""Storage initialization, path helpers, and id/timestamp utilities."""

import json
import uuid
from datetime import datetime, timezone
from pathlib import Path
from typing import Any

_data_dir: Path | None = None


def init_storage(data_dir: Path) -> None:
    global _data_dir
    from . import events as _events_mod

    _data_dir = data_dir
    _data_dir.mkdir(parents=True, exist_ok=True)
    conversations_dir().mkdir(exist_ok=True)
    packages_dir().mkdir(exist_ok=True)
    profiles_dir().mkdir(exist_ok=True)
    _events_mod._subscribers.clear()  # drop listeners bound to the previous store


def data_dir() -> Path:
    assert _data_dir is not None, "Call init_storage() before using storage"
    return _data_dir


def conversations_dir() -> Path:
    return data_dir() / "conversations"


def packages_dir() -> Path:
    return data_dir() / "packages"


def profiles_dir() -> Path:
    return data_dir() / "profiles"


def new_id() -> str:
    return uuid.uuid4().hex


def now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


def read_json(path: Path, default: Any = None) -> Any:
    if not path.is_file():
        return default
    return json.loads(path.read_text(encoding="utf-8"))


def write_json(path: Path, data: Any) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(json.dumps(data, indent=2, ensure_ascii=False), encoding="utf-8")
